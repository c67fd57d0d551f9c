"""
Pydantic models handed to the HTTP layer.
"""
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ServiceEntry(BaseModel):
    """
    One configured service, immutable for the process lifetime.

    :param logical_id: Operator-facing key, unique in the registry.
    :param unit_name: systemd unit, e.g. NetworkManager.service.
    :param friendly_name: Label shown in the UI.
    :param logs_enabled: Whether journal output may be shown.
    """

    model_config = ConfigDict(frozen=True)

    logical_id: str
    unit_name: str
    friendly_name: str
    logs_enabled: bool = False


class ActiveState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "ActiveState":
        if raw in ("reloading", "refreshing"):
            return cls.ACTIVE
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


class LoadState(str, Enum):
    LOADED = "loaded"
    NOT_FOUND = "not-found"
    BAD_SETTING = "bad-setting"
    ERROR = "error"
    MASKED = "masked"
    MERGED = "merged"
    STUB = "stub"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "LoadState":
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


class UnitStatus(BaseModel):
    unit_name: str
    active_state: ActiveState
    sub_state: str
    load_state: LoadState
    enabled: bool
    description: str = ""
    main_pid: int | None = None
    running: bool = False
    status_errno: int | None = None
    uptime: str | None = None


class ActionName(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"


class ActionOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class ServiceError(BaseModel):
    """Tagged error value, e.g. {"code": "unit_not_found", "message": ...}."""

    code: str
    message: str


class ActionResult(BaseModel):
    unit_name: str
    requested_action: ActionName
    outcome: ActionOutcome
    resulting_status: UnitStatus | None = None
    error: ServiceError | None = None


class LogChunk(BaseModel):
    unit_name: str
    lines: list[str]
    truncated: bool = False


class ServiceView(BaseModel):
    """
    A configured service with either its live status or the probe error.
    """

    entry: ServiceEntry
    status: UnitStatus | None = None
    error: ServiceError | None = None


class ServiceDetail(BaseModel):
    view: ServiceView
    status_text: str | None = None
    status_error: ServiceError | None = None
    logs: LogChunk | None = None
    logs_error: ServiceError | None = None
