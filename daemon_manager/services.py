"""
Compose registry entries with live systemd state for the HTTP layer.
"""
import asyncio
import logging

from .control import ControlExecutor
from .errors import ActionRejected, LogsDisabled, NotFound, PanelError, ProbeUnavailable, UnitNotFound
from .journal import LogFetcher
from .models import (
    ActionName,
    ActionResult,
    LoadState,
    LogChunk,
    ServiceDetail,
    ServiceEntry,
    ServiceError,
    ServiceView,
)
from .registry import ServiceRegistry
from .systemd import UnitStatusProbe

logger = logging.getLogger(__name__)


class StatusAggregator:
    """
    Build ServiceView values; a failing unit only degrades its own view.

    :param registry: Configured services.
    :param probe: Live status probe.
    """

    def __init__(self, registry: ServiceRegistry, probe: UnitStatusProbe):
        self._registry = registry
        self._probe = probe

    async def build_view(self, logical_id: str) -> ServiceView:
        """
        :raises NotFound: logical_id is not configured.
        """
        return await self.view_for(self._registry.lookup(logical_id))

    async def build_all_views(self) -> list[ServiceView]:
        """
        Probe every configured unit concurrently.

        :returns: One ServiceView per registry entry, in registry order.
        """
        return list(await asyncio.gather(*(self.view_for(e) for e in self._registry.list_all())))

    async def view_for(self, entry: ServiceEntry) -> ServiceView:
        try:
            status = await self._probe.query(entry.unit_name)
        except PanelError as e:
            return ServiceView(entry=entry, error=e.to_model())
        except Exception as e:
            logger.exception("Unexpected probe failure for %s", entry.unit_name)
            return ServiceView(entry=entry, error=ProbeUnavailable(str(e)).to_model())
        return ServiceView(entry=entry, status=status)


class ServiceManager:
    """
    Operations consumed by the HTTP layer.

    Every method returns a model or a ServiceError, never raising a
    PanelError. A key is a logical id or a configured unit name.

    :param registry: Configured services.
    :param probe: Live status probe.
    :param executor: Control executor.
    :param fetcher: Journal reader.
    :param default_log_lines: Lines returned when the caller gives none.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        probe: UnitStatusProbe,
        executor: ControlExecutor,
        fetcher: LogFetcher,
        default_log_lines: int = 100,
    ):
        self.registry = registry
        self._probe = probe
        self._executor = executor
        self._fetcher = fetcher
        self._default_log_lines = default_log_lines
        self._aggregator = StatusAggregator(registry, probe)

    def _resolve(self, key: str) -> ServiceEntry:
        try:
            return self.registry.lookup(key)
        except NotFound:
            entry = self.registry.find_by_unit(key)
            if entry is None:
                raise
            return entry

    async def list_services(self) -> list[ServiceView]:
        return await self._aggregator.build_all_views()

    async def get_service_view(self, key: str) -> ServiceView | ServiceError:
        try:
            entry = self._resolve(key)
        except NotFound as e:
            return e.to_model()
        return await self._aggregator.view_for(entry)

    async def perform_action(self, key: str, action: ActionName) -> ActionResult | ServiceError:
        try:
            entry = self._resolve(key)
        except NotFound as e:
            return e.to_model()
        try:
            action = ActionName(action)
        except ValueError:
            return ActionRejected(f"unsupported action: {action!r}").to_model()
        return await self._executor.execute(entry.unit_name, action)

    async def get_logs(self, key: str, max_lines: int | None = None) -> LogChunk | ServiceError:
        """
        Fetch recent journal lines when the service allows it.

        :param key: Logical id or unit name.
        :param max_lines: Number of lines; the configured default if None.

        :returns: LogChunk or ServiceError (not_found, logs_disabled, ...).
        """
        try:
            entry = self._resolve(key)
            if not entry.logs_enabled:
                raise LogsDisabled(f"logs are disabled for {entry.logical_id}")
            chunk = await self._fetcher.fetch(entry.unit_name, max_lines or self._default_log_lines)
            if not chunk.lines:
                await self._confirm_unit(entry.unit_name)
            return chunk
        except PanelError as e:
            return e.to_model()

    async def _confirm_unit(self, unit: str) -> None:
        # journalctl prints nothing for units systemd has never heard of.
        try:
            await self._probe.query(unit)
        except UnitNotFound:
            raise
        except PanelError as e:
            logger.debug("Could not confirm %s exists: %s", unit, e.message)

    async def get_service_detail(self, key: str) -> ServiceDetail | ServiceError:
        """
        Status view plus the raw status report and, if enabled, the logs.

        :param key: Logical id or unit name.

        :returns: ServiceDetail or ServiceError when the key is unknown.
        """
        try:
            entry = self._resolve(key)
        except NotFound as e:
            return e.to_model()

        async def status_text():
            try:
                return await self._probe.status_text(entry.unit_name), None
            except PanelError as e:
                return None, e.to_model()

        async def logs():
            if not entry.logs_enabled:
                return None, None
            result = await self.get_logs(entry.logical_id)
            if isinstance(result, ServiceError):
                return None, result
            return result, None

        view, (text, text_error), (chunk, logs_error) = await asyncio.gather(
            self._aggregator.view_for(entry), status_text(), logs()
        )
        return ServiceDetail(
            view=view, status_text=text, status_error=text_error, logs=chunk, logs_error=logs_error
        )

    async def verify_units(self) -> list[ServiceView]:
        """
        Probe every configured unit once and log the ones systemd cannot load.

        :returns: Views of the units that are missing or masked.
        """
        bad = []
        for view in await self._aggregator.build_all_views():
            if view.error is not None and view.error.code == "unit_not_found":
                logger.error("Unit %s is not loaded (not found)", view.entry.unit_name)
                bad.append(view)
            elif view.status is not None and view.status.load_state is LoadState.MASKED:
                logger.error("Unit %s is masked", view.entry.unit_name)
                bad.append(view)
            elif view.error is not None:
                logger.warning("Could not verify unit %s: %s", view.entry.unit_name, view.error.message)
        return bad
