"""
Herogate: deploy and manage containerized applications like Heroku on AWS.

Each application is a CloudFormation stack built from a versioned platform
blueprint.
"""

__version__ = "1.0.0"

from .cloudformation import Blueprint, StackManager
from .config import HerogateConfig, get_config
from .exceptions import (
    HerogateError,
    MalformedStateError,
    NameTakenError,
    NotFoundError,
    OperationCancelled,
    TransientAbsence,
    UpstreamFailure,
)
from .logs import LogAggregator
from .models import AppInfo, Application, AppState, LogEntry, LogFilter, StackStatus
from .provider import CloudProvider
from .template import TemplateDocument, TemplateEditor

__all__ = [
    "AppInfo",
    "AppState",
    "Application",
    "Blueprint",
    "CloudProvider",
    "HerogateConfig",
    "HerogateError",
    "LogAggregator",
    "LogEntry",
    "LogFilter",
    "MalformedStateError",
    "NameTakenError",
    "NotFoundError",
    "OperationCancelled",
    "StackStatus",
    "StackManager",
    "TemplateDocument",
    "TemplateEditor",
    "TransientAbsence",
    "UpstreamFailure",
    "get_config",
]
