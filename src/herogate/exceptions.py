"""Errors raised by the herogate control plane."""

from typing import Any, Dict, List, Optional


class HerogateError(Exception):
    """
    Base class for every error the control plane raises.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class NotFoundError(HerogateError):
    """
    The requested application or stack does not exist.

    Attributes:
        message: Human-readable error description
        app_name: The application that could not be found
    """

    def __init__(self, message: str, app_name: Optional[str] = None) -> None:
        self.app_name = app_name
        super().__init__(message)


class NameTakenError(HerogateError):
    """An application or stack with the requested name already exists."""


class TransientAbsence(HerogateError):
    """
    A dependent sub-resource (service, build list) is not present yet.

    Callers treat this as an empty result rather than a failure.
    """


class MalformedStateError(HerogateError):
    """
    A template or provider response is missing a field or has the wrong shape.

    Attributes:
        message: Human-readable error description
        path: Template path or response field that was malformed
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)


class UpstreamFailure(HerogateError):
    """
    The cloud provider rejected or failed a mutating call.

    Attributes:
        message: Human-readable error description
        app_name: Application the operation was acting on
        resources: Stack resource summaries collected for diagnosis
    """

    def __init__(
        self,
        message: str,
        app_name: Optional[str] = None,
        resources: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.app_name = app_name
        self.resources = resources or []
        super().__init__(message)


class OperationCancelled(HerogateError):
    """The caller stopped waiting for a long-running operation."""
