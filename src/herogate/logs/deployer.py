"""
Deployer (ECS service event) log source.
"""

import logging
from datetime import datetime, timezone
from typing import List

from ..exceptions import MalformedStateError, TransientAbsence
from ..models import DEPLOYER_PROCESS, HEROGATE_SOURCE, LogEntry
from ..provider import CloudProvider

logger = logging.getLogger(__name__)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DeployerLogs:
    """Reads the recent event history ECS keeps for the application service."""

    def __init__(self, provider: CloudProvider):
        self.provider = provider

    def fetch(self, app_name: str) -> List[LogEntry]:
        try:
            service = self.provider.describe_service(app_name, app_name)
        except TransientAbsence as e:
            logger.debug(f"Service of {app_name} is not available: {e}")
            return []

        entries = []
        for event in service.get("events", []):
            if not all(key in event for key in ("id", "createdAt", "message")):
                raise MalformedStateError(
                    f"Service event of {app_name} is incomplete", path="events"
                )
            entries.append(LogEntry(
                id=event["id"],
                timestamp=_utc(event["createdAt"]),
                source=HEROGATE_SOURCE,
                process=DEPLOYER_PROCESS,
                message=event["message"],
            ))

        # ECS returns the newest event first
        return sorted(entries, key=lambda entry: entry.timestamp)
