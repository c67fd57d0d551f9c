"""
Error taxonomy shared by every systemd-facing component.
"""
from .models import ServiceError


class PanelError(Exception):
    """
    Base class of all tagged errors.

    :param message: Human readable explanation.
    """

    code = "error"
    http_status = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_model(self) -> ServiceError:
        """
        Convert to the value handed to the rendering layer.

        :returns: ServiceError with code and message.
        """
        return ServiceError(code=self.code, message=self.message)


class ConfigError(PanelError):
    code = "config_error"


class NotFound(PanelError):
    """Unknown logical service id."""

    code = "not_found"
    http_status = 404


class UnitNotFound(PanelError):
    """systemd has no knowledge of the unit."""

    code = "unit_not_found"
    http_status = 404


class PermissionDenied(PanelError):
    code = "permission_denied"
    http_status = 403


class LogsDisabled(PanelError):
    code = "logs_disabled"
    http_status = 403


class ProbeUnavailable(PanelError):
    code = "probe_unavailable"
    http_status = 503


class LogToolUnavailable(PanelError):
    code = "log_tool_unavailable"
    http_status = 503


class ActionTimedOut(PanelError):
    code = "action_timed_out"
    http_status = 504


class LogFetchTimedOut(PanelError):
    code = "log_fetch_timed_out"
    http_status = 504


class ActionRejected(PanelError):
    code = "action_rejected"
    http_status = 409


class ActionInProgress(PanelError):
    code = "action_in_progress"
    http_status = 409


_HTTP_STATUS = {
    cls.code: cls.http_status
    for cls in (
        NotFound,
        UnitNotFound,
        PermissionDenied,
        LogsDisabled,
        ProbeUnavailable,
        LogToolUnavailable,
        ActionTimedOut,
        LogFetchTimedOut,
        ActionRejected,
        ActionInProgress,
    )
}


def http_status_for(error: ServiceError) -> int:
    """
    Map a tagged error to the HTTP status the front end expects.

    :param error: Tagged error value.

    :returns: HTTP status code, 500 for unknown codes.
    """
    return _HTTP_STATUS.get(error.code, 500)


_DENIED_MARKERS = ("access denied", "interactive authentication required", "permission denied")
_MISSING_MARKERS = ("not found", "not loaded", "no such unit", "could not be found")


def classify_stderr(stderr: str, default: type[PanelError]) -> PanelError:
    """
    Turn the stderr of a failed systemctl/journalctl call into a tagged error.

    :param stderr: Captured stderr text.
    :param default: Error class used when nothing more specific matches.

    :returns: PanelError instance.
    """
    text = stderr.strip()
    lowered = text.lower()
    if any(m in lowered for m in _DENIED_MARKERS):
        return PermissionDenied(text)
    if any(m in lowered for m in _MISSING_MARKERS):
        return UnitNotFound(text)
    return default(text)
