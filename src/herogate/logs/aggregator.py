"""
Unified builder + deployer log stream with incremental tailing.
"""

import logging
import threading
from typing import Iterator, List, Optional

from ..models import (
    BUILDER_PROCESS,
    DEPLOYER_PROCESS,
    HEROGATE_SOURCE,
    LogEntry,
    LogFilter,
)
from ..provider import CloudProvider
from .builder import BuilderLogs
from .deployer import DeployerLogs

logger = logging.getLogger(__name__)

DEFAULT_TAIL_INTERVAL = 5.0


def merge_entries(builder: List[LogEntry], deployer: List[LogEntry]) -> List[LogEntry]:
    """Stable merge by timestamp; builder entries come first on ties."""
    return sorted(builder + deployer, key=lambda entry: entry.timestamp)


def entries_after(entries: List[LogEntry], last_seen: Optional[LogEntry]) -> List[LogEntry]:
    """
    Select the entries newer than `last_seen`.

    The id of `last_seen` is searched from the end; when found, everything
    after it is new. When it is gone (a new build replaced the old id space),
    fall back to entries strictly later than its timestamp.
    """
    if last_seen is None:
        return list(entries)

    for i in range(len(entries) - 1, -1, -1):
        if entries[i].id == last_seen.id:
            return entries[i + 1:]

    return [entry for entry in entries if entry.timestamp > last_seen.timestamp]


class LogAggregator:
    """Fetches and merges builder and deployer logs of an application."""

    def __init__(
        self,
        provider: CloudProvider,
        build_log_resolver: str = "project",
        builder: Optional[BuilderLogs] = None,
        deployer: Optional[DeployerLogs] = None,
    ):
        self.provider = provider
        self.builder = builder or BuilderLogs(provider, resolver=build_log_resolver)
        self.deployer = deployer or DeployerLogs(provider)

    def fetch(self, app_name: str, log_filter: Optional[LogFilter] = None) -> List[LogEntry]:
        """Fetch all available entries matching the filter, oldest first."""
        log_filter = log_filter or LogFilter()
        if log_filter.source and log_filter.source != HEROGATE_SOURCE:
            logger.debug(f"Unknown log source {log_filter.source}")
            return []
        if log_filter.process and log_filter.process not in (
            BUILDER_PROCESS,
            DEPLOYER_PROCESS,
        ):
            logger.debug(f"Unknown log process {log_filter.process}")
            return []

        builder: List[LogEntry] = []
        deployer: List[LogEntry] = []
        if log_filter.process in (None, "", BUILDER_PROCESS):
            builder = self.builder.fetch(app_name)
        if log_filter.process in (None, "", DEPLOYER_PROCESS):
            deployer = self.deployer.fetch(app_name)

        return merge_entries(builder, deployer)

    def fetch_new(
        self,
        app_name: str,
        log_filter: Optional[LogFilter] = None,
        last_seen: Optional[LogEntry] = None,
    ) -> List[LogEntry]:
        """Fetch, then keep only the entries produced after `last_seen`."""
        return entries_after(self.fetch(app_name, log_filter), last_seen)

    def tail(
        self,
        app_name: str,
        log_filter: Optional[LogFilter] = None,
        num: Optional[int] = None,
        follow: bool = False,
        interval: float = DEFAULT_TAIL_INTERVAL,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[LogEntry]:
        """
        Yield the latest `num` entries, then (with `follow`) keep polling for
        new ones every `interval` seconds until `cancel` is set.
        """
        entries = self.fetch_new(app_name, log_filter, None)
        last_seen = entries[-1] if entries else None
        if num is not None:
            entries = entries[-num:] if num > 0 else []
        yield from entries

        if not follow:
            return

        cancel = cancel or threading.Event()
        while not cancel.wait(interval):
            for entry in self.fetch_new(app_name, log_filter, last_seen):
                last_seen = entry
                yield entry
