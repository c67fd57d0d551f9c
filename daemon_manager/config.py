import logging
import os
import re
import tomllib

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError
from .models import ServiceEntry

# Load .env file if present
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_ADDR = ("127.0.0.1", 3000)
UNIT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_@:.\-]+$")


def _is_on(s: str) -> bool:
    return s.strip().lower() in ("1", "true", "yes", "on")


def _number(env, name: str, default, cast=float):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _parse_addr(raw: str) -> tuple[str, int]:
    host, sep, port = raw.rpartition(":")
    if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
        logger.warning("Could not parse address %r. Will use default %s:%s", raw, *DEFAULT_ADDR)
        return DEFAULT_ADDR
    return host, int(port)


class Config:
    """
    Runtime configuration loaded from environment variables.

    :param environ: Mapping to read from; os.environ when omitted.

    :param config_path: TOML file listing the managed services.
    :param host: Host to bind the HTTP server on.
    :param port: Port to listen on.
    :param systemctl: systemctl binary.
    :param journalctl: journalctl binary.
    :param use_dbus: Query systemd over D-Bus before falling back to systemctl.
    :param probe_timeout: Seconds allowed per status query channel.
    :param action_timeout: Seconds allowed for start/stop/restart.
    :param log_timeout: Seconds allowed for a journal read.
    :param log_lines: Default number of journal lines.
    :param log_lines_limit: Upper bound on requested journal lines.
    :param log_since: Optional journalctl --since window.
    :param log_level: Logging level name.
    """

    def __init__(self, environ=None):
        env = os.environ if environ is None else environ
        self.config_path = env.get("DAEMON_MANAGER_CONFIG_PATH") or "services.toml"
        self.host, self.port = _parse_addr(env.get("DAEMON_MANAGER_ADDR") or "%s:%s" % DEFAULT_ADDR)
        self.systemctl = env.get("SYSTEMCTL_PATH") or "systemctl"
        self.journalctl = env.get("JOURNALCTL_PATH") or "journalctl"
        self.use_dbus = _is_on(env.get("USE_DBUS", "1"))
        self.probe_timeout = _number(env, "PROBE_TIMEOUT_SECONDS", 5.0)
        self.action_timeout = _number(env, "ACTION_TIMEOUT_SECONDS", 30.0)
        self.log_timeout = _number(env, "LOG_TIMEOUT_SECONDS", 10.0)
        self.log_lines = _number(env, "LOG_LINES", 100, int)
        self.log_lines_limit = _number(env, "LOG_LINES_LIMIT", 1000, int)
        self.log_since = env.get("LOG_SINCE") or None
        self.log_level = (env.get("LOG_LEVEL") or "INFO").upper()
        if self.log_level not in logging.getLevelNamesMapping():
            raise ConfigError(f"LOG_LEVEL must be a logging level name, got {self.log_level!r}")


class _ServiceTable(BaseModel):
    """One [service.<id>] table of the services file."""

    model_config = ConfigDict(extra="forbid")

    service_name: str
    friendly_name: str
    show_logs: bool = False

    @field_validator("service_name")
    @classmethod
    def _unit_name(cls, v: str) -> str:
        if not UNIT_NAME_PATTERN.match(v) or "." not in v.strip("."):
            raise ValueError(f"invalid service name: {v!r}")
        return v


def parse_services(data: dict) -> list[ServiceEntry]:
    """
    Validate parsed TOML and build service entries.

    :param data: Parsed document with a `service` table.

    :returns: Entries in file order.
    """
    tables = data.get("service")
    if not isinstance(tables, dict) or not tables:
        raise ConfigError("configuration must define at least one [service.<id>] table")
    entries = []
    for logical_id, table in tables.items():
        if not isinstance(table, dict):
            raise ConfigError(f"service.{logical_id} must be a table")
        try:
            item = _ServiceTable(**table)
        except ValidationError as e:
            raise ConfigError(f"service.{logical_id}: {e}") from e
        entries.append(
            ServiceEntry(
                logical_id=logical_id,
                unit_name=item.service_name,
                friendly_name=item.friendly_name,
                logs_enabled=item.show_logs,
            )
        )
    return entries


def load_services(path: str) -> list[ServiceEntry]:
    """
    Read the services file.

    :param path: Path to a TOML file.

    :returns: Validated entries in file order.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"could not read configuration file {path!r}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"configuration error in {path!r}: {e}") from e
    extra = set(data) - {"service"}
    if extra:
        raise ConfigError(f"unknown top-level keys: {', '.join(sorted(extra))}")
    return parse_services(data)
