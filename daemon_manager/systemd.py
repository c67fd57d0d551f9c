"""
Live unit status, read through D-Bus with a systemctl fallback.
"""
import asyncio
import importlib.util
import logging
import time
from abc import ABC, abstractmethod

from . import proc
from .errors import PanelError, PermissionDenied, ProbeUnavailable, UnitNotFound, classify_stderr
from .models import ActiveState, LoadState, UnitStatus

logger = logging.getLogger(__name__)

REQUIRED_PROPERTIES = ("ActiveState", "SubState", "LoadState", "UnitFileState")
OPTIONAL_PROPERTIES = ("Description", "MainPID", "StatusErrno", "ExecMainStartTimestampMonotonic")
PROPERTIES = REQUIRED_PROPERTIES + OPTIONAL_PROPERTIES

_SYSTEMD_BUS_NAME = "org.freedesktop.systemd1"
_SYSTEMD_PATH = "/org/freedesktop/systemd1"
_MANAGER_IFACE = "org.freedesktop.systemd1.Manager"
_PROPERTIES_IFACE = "org.freedesktop.DBus.Properties"
_UNIT_IFACES = ("org.freedesktop.systemd1.Unit", "org.freedesktop.systemd1.Service")


class UnitSource(ABC):
    """
    One channel able to read unit properties.

    Implementations return only the properties they could read and raise
    PanelError subclasses on failure.
    """

    name = "source"

    @abstractmethod
    async def properties(self, unit: str, names: list[str]) -> dict[str, str]:
        ...


def translate_dbus_error(name: str, message: str) -> PanelError:
    """
    Map a D-Bus error name onto the error taxonomy.

    :param name: D-Bus error name, e.g. org.freedesktop.systemd1.NoSuchUnit.
    :param message: Error message from the bus.

    :returns: PanelError instance.
    """
    if name == "org.freedesktop.systemd1.NoSuchUnit":
        return UnitNotFound(message)
    if name in (
        "org.freedesktop.DBus.Error.AccessDenied",
        "org.freedesktop.DBus.Error.InteractiveAuthorizationRequired",
    ):
        return PermissionDenied(message)
    return ProbeUnavailable(f"{name}: {message}")


def dbus_available() -> bool:
    """
    Whether the optional dbus-python binding is importable.
    """
    return importlib.util.find_spec("dbus") is not None


class DBusUnitSource(UnitSource):
    """
    Structured reads over the system bus via dbus-python.

    dbus-python is an optional install; without it, or without a reachable
    bus, every read raises ProbeUnavailable.
    """

    name = "dbus"

    async def properties(self, unit: str, names: list[str]) -> dict[str, str]:
        return await asyncio.to_thread(self._read, unit, names)

    def _read(self, unit: str, names: list[str]) -> dict[str, str]:
        try:
            import dbus
        except ImportError:
            raise ProbeUnavailable("dbus-python is not installed") from None

        values = {}
        try:
            bus = dbus.SystemBus()
            manager = dbus.Interface(bus.get_object(_SYSTEMD_BUS_NAME, _SYSTEMD_PATH), _MANAGER_IFACE)
            path = manager.LoadUnit(unit)
            props = dbus.Interface(bus.get_object(_SYSTEMD_BUS_NAME, path), _PROPERTIES_IFACE)
            for iface in _UNIT_IFACES:
                try:
                    values.update(props.GetAll(iface))
                except dbus.exceptions.DBusException as e:
                    # Non-service units have no Service interface.
                    if e.get_dbus_name() != "org.freedesktop.DBus.Error.UnknownInterface":
                        raise
        except dbus.exceptions.DBusException as e:
            raise translate_dbus_error(e.get_dbus_name() or "", e.get_dbus_message() or "") from e
        except Exception as e:
            raise ProbeUnavailable(f"D-Bus read failed: {e!r}") from e
        return {k: str(values[k]) for k in names if k in values}


class SystemctlUnitSource(UnitSource):
    """
    Reads properties from `systemctl show`.

    :param systemctl: Path to the systemctl binary.
    :param run: Subprocess runner returning (rc, stdout, stderr).
    """

    name = "systemctl"

    def __init__(self, systemctl: str = "systemctl", run=proc.run):
        self._systemctl = systemctl
        self._run = run

    async def properties(self, unit: str, names: list[str]) -> dict[str, str]:
        try:
            rc, out, err = await self._run(
                self._systemctl, "show", unit, "--no-pager", "--property=" + ",".join(names)
            )
        except OSError as e:
            raise ProbeUnavailable(f"cannot run {self._systemctl}: {e}") from e
        if rc != 0:
            raise classify_stderr(err, ProbeUnavailable)
        data = {}
        for line in out.splitlines():
            if "=" in line:
                k, v = line.split("=", 1)
                if k in names:
                    data[k] = v
        return data


def format_duration(secs: int) -> str:
    """
    Format seconds as e.g. "1d 2h 3m 4s"; leading zero units are omitted.

    :param secs: Duration in whole seconds.

    :returns: Human readable duration.
    """
    days, hours = secs // 86400, (secs % 86400) // 3600
    minutes, seconds = (secs % 3600) // 60, secs % 60
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours or parts:
        parts.append(f"{hours}h")
    if minutes or parts:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def _int_or_none(raw: str | None) -> int | None:
    try:
        return int(raw) if raw not in (None, "") else None
    except ValueError:
        return None


def _uptime(monotonic_us: int | None) -> str | None:
    # systemd stamps with CLOCK_MONOTONIC, which is what time.monotonic() reads on Linux.
    if not monotonic_us:
        return None
    elapsed = max(0, int(time.monotonic() - monotonic_us / 1_000_000))
    return format_duration(elapsed)


def to_unit_status(unit: str, values: dict[str, str]) -> UnitStatus:
    """
    Build a UnitStatus from raw systemd properties.

    :param unit: Unit name.
    :param values: Property name -> raw string value.

    :returns: UnitStatus.
    """
    main_pid = _int_or_none(values.get("MainPID"))
    return UnitStatus(
        unit_name=unit,
        active_state=ActiveState.parse(values.get("ActiveState", "")),
        sub_state=values.get("SubState", ""),
        load_state=LoadState.parse(values.get("LoadState", "")),
        enabled=values.get("UnitFileState") in ("enabled", "enabled-runtime"),
        description=values.get("Description", ""),
        main_pid=main_pid,
        running=bool(main_pid),
        status_errno=_int_or_none(values.get("StatusErrno")),
        uptime=_uptime(_int_or_none(values.get("ExecMainStartTimestampMonotonic"))),
    )


class UnitStatusProbe:
    """
    Query live unit state, trying each source in order.

    Later sources are asked only for properties earlier ones could not
    supply, so callers never see which channel answered.

    :param sources: UnitSource instances, primary first.
    :param timeout: Per-source bound in seconds.
    :param systemctl: systemctl binary used for status_text.
    :param run: Subprocess runner.
    """

    def __init__(self, sources: list[UnitSource], timeout: float = 5.0, systemctl: str = "systemctl", run=proc.run):
        self._sources = list(sources)
        self._timeout = timeout
        self._systemctl = systemctl
        self._run = run

    async def query(self, unit: str) -> UnitStatus:
        """
        Return the current status of a unit.

        :param unit: Unit name.

        :returns: UnitStatus.

        :raises UnitNotFound: systemd does not know the unit.
        :raises PermissionDenied: The caller may not query it.
        :raises ProbeUnavailable: No source produced the required properties.
        """
        values: dict[str, str] = {}
        failures = []
        for source in self._sources:
            missing = [p for p in PROPERTIES if p not in values]
            if not missing:
                break
            try:
                got = await asyncio.wait_for(source.properties(unit, missing), self._timeout)
            except (UnitNotFound, PermissionDenied):
                raise
            except ProbeUnavailable as e:
                logger.warning("%s probe failed for %s: %s", source.name, unit, e.message)
                failures.append(f"{source.name}: {e.message}")
                continue
            except asyncio.TimeoutError:
                logger.warning("%s probe for %s timed out after %ss", source.name, unit, self._timeout)
                failures.append(f"{source.name}: timed out after {self._timeout}s")
                continue
            except Exception as e:
                logger.warning("%s probe failed unexpectedly for %s", source.name, unit, exc_info=True)
                failures.append(f"{source.name}: {e!r}")
                continue
            logger.debug("%s supplied %s for %s", source.name, sorted(got), unit)
            values.update(got)
            if values.get("LoadState") == LoadState.NOT_FOUND.value:
                raise UnitNotFound(f"unit {unit} not found")

        absent = [p for p in REQUIRED_PROPERTIES if p not in values]
        if absent:
            detail = "; ".join(failures) or "missing " + ", ".join(absent)
            raise ProbeUnavailable(detail)
        return to_unit_status(unit, values)

    async def status_text(self, unit: str) -> str:
        """
        Return the plain `systemctl status` report for a unit.

        :param unit: Unit name.

        :returns: Status text without journal lines.
        """
        try:
            rc, out, err = await asyncio.wait_for(
                self._run(self._systemctl, "status", unit, "--no-pager", "--lines", "0", "--full", "--legend=no"),
                self._timeout,
            )
        except asyncio.TimeoutError:
            raise ProbeUnavailable(f"systemctl status timed out after {self._timeout}s") from None
        except OSError as e:
            raise ProbeUnavailable(f"cannot run {self._systemctl}: {e}") from e
        # rc 1-3 means the unit is not active, which is still a valid report.
        if rc == 4:
            raise UnitNotFound(err.strip() or f"unit {unit} not found")
        if rc != 0 and not out:
            raise classify_stderr(err, ProbeUnavailable)
        return out
