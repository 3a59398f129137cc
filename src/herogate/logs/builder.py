"""
Builder (CodeBuild) log source.
"""

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..exceptions import MalformedStateError, TransientAbsence
from ..models import BUILDER_PROCESS, HEROGATE_SOURCE, LogEntry
from ..provider import CloudProvider

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

BUILD_STAGE = "Build"


def builder_log_id(build_id: str, timestamp_millis: int, message: str) -> str:
    """
    Stable id of a build log event.

    A finished build never changes, so hashing its id with the event's time
    and text yields the same id on every fetch.
    """
    raw = f"{build_id}-{timestamp_millis}-{message}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class BuilderLogs:
    """Reads the log stream of the most recent build of an application."""

    RESOLVERS = ("project", "pipeline")

    def __init__(self, provider: CloudProvider, resolver: str = "project"):
        """
        Args:
            provider: Cloud provider
            resolver: "project" asks CodeBuild for the latest build of the
                project; "pipeline" walks the latest pipeline execution's
                Build stage instead
        """
        if resolver not in self.RESOLVERS:
            raise ValueError(f"Unknown build log resolver: {resolver}")
        self.provider = provider
        self.resolver = resolver

    def latest_build_id(self, app_name: str) -> Optional[str]:
        if self.resolver == "pipeline":
            return self._latest_build_id_from_pipeline(app_name)

        build_ids = self.provider.list_build_ids(app_name)
        if not build_ids:
            return None
        return build_ids[0]

    def _latest_build_id_from_pipeline(self, app_name: str) -> Optional[str]:
        executions = self.provider.list_pipeline_execution_ids(app_name)
        if not executions:
            return None
        execution_id = executions[0]

        build_id = None
        for stage in self.provider.get_pipeline_stage_states(app_name):
            latest = stage.get("latestExecution") or {}
            if latest.get("pipelineExecutionId") != execution_id:
                continue
            actions = stage.get("actionStates") or []
            if stage.get("stageName") == BUILD_STAGE and actions:
                build_id = (actions[0].get("latestExecution") or {}).get(
                    "externalExecutionId"
                )
        return build_id

    def fetch(self, app_name: str) -> List[LogEntry]:
        """Fetch every event of the latest build. No build yet means no entries."""
        try:
            build_id = self.latest_build_id(app_name)
        except TransientAbsence as e:
            logger.debug(f"No builds for {app_name} yet: {e}")
            return []
        if build_id is None:
            logger.debug(f"Build list of {app_name} is empty")
            return []

        build = self.provider.get_build(build_id)
        if "logs" not in build:
            raise MalformedStateError(f"Build {build_id} has no log location", path="logs")
        group = build["logs"].get("groupName")
        stream = build["logs"].get("streamName")
        if not group or not stream:
            logger.debug(f"Build {build_id} has not started logging")
            return []

        try:
            events = self.provider.get_log_events(group, stream)
        except TransientAbsence as e:
            logger.debug(f"Log stream of build {build_id} is not available: {e}")
            return []

        entries = []
        for event in events:
            if "timestamp" not in event or "message" not in event:
                raise MalformedStateError(
                    f"Log event of build {build_id} is incomplete",
                    path=f"{group}/{stream}",
                )
            millis = int(event["timestamp"])
            entries.append(LogEntry(
                id=builder_log_id(build_id, millis, event["message"]),
                timestamp=EPOCH + timedelta(milliseconds=millis),
                source=HEROGATE_SOURCE,
                process=BUILDER_PROCESS,
                message=event["message"].rstrip("\n"),
            ))
        return entries
