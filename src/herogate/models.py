"""
Records shared by the stack manager, template mutator and log aggregator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class AppState(Enum):
    """Lifecycle state of an application stack."""
    NOT_EXISTS = "not_exists"
    CREATING = "creating"
    CREATED = "created"
    FAILED = "failed"
    DELETING = "deleting"


class StackStatus(Enum):
    """CloudFormation stack status, plus a marker for absent stacks."""
    NOT_EXISTS = "NOT_EXISTS"
    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_FAILED = "CREATE_FAILED"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_FAILED = "DELETE_FAILED"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_ROLLBACK_IN_PROGRESS = "UPDATE_ROLLBACK_IN_PROGRESS"
    UPDATE_ROLLBACK_FAILED = "UPDATE_ROLLBACK_FAILED"
    UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS = (
        "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS"
    )
    UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
    REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"
    IMPORT_COMPLETE = "IMPORT_COMPLETE"
    IMPORT_ROLLBACK_IN_PROGRESS = "IMPORT_ROLLBACK_IN_PROGRESS"
    IMPORT_ROLLBACK_FAILED = "IMPORT_ROLLBACK_FAILED"
    IMPORT_ROLLBACK_COMPLETE = "IMPORT_ROLLBACK_COMPLETE"

    @property
    def state(self) -> AppState:
        """Map the stack status onto the application lifecycle."""
        if self in (StackStatus.NOT_EXISTS, StackStatus.DELETE_COMPLETE):
            return AppState.NOT_EXISTS
        if self in (StackStatus.CREATE_IN_PROGRESS, StackStatus.REVIEW_IN_PROGRESS):
            return AppState.CREATING
        if self == StackStatus.DELETE_IN_PROGRESS:
            return AppState.DELETING
        if self in (
            StackStatus.CREATE_FAILED,
            StackStatus.ROLLBACK_IN_PROGRESS,
            StackStatus.ROLLBACK_FAILED,
            StackStatus.ROLLBACK_COMPLETE,
            StackStatus.DELETE_FAILED,
        ):
            return AppState.FAILED
        return AppState.CREATED


@dataclass(frozen=True)
class Application:
    """A herogate application. This is a view of its CloudFormation stack."""
    name: str
    status: StackStatus
    repository_url: str = ""
    endpoint_url: str = ""
    platform_version: str = ""


@dataclass(frozen=True)
class Container:
    """A container definition of the running task, with its task count."""
    name: str
    running_count: int = 0
    command: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AppInfo:
    """Application details including containers and region."""
    app: Application
    containers: List[Container] = field(default_factory=list)
    region: str = "us-east-1"


HEROGATE_SOURCE = "herogate"

BUILDER_PROCESS = "builder"
DEPLOYER_PROCESS = "deployer"


@dataclass(frozen=True)
class LogEntry:
    """A single log line from the builder or the deployer."""
    id: str
    timestamp: datetime
    source: str
    process: str
    message: str

    def format(self) -> str:
        """Render as `<RFC3339 timestamp> source[process]: message`."""
        stamp = self.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ")
        return f"{stamp} {self.source}[{self.process}]: {self.message}"


@dataclass(frozen=True)
class LogFilter:
    """Optional process/source restriction for a log fetch."""
    process: Optional[str] = None
    source: Optional[str] = None
