"""
FastAPI entry point for the daemon manager.
"""
import contextlib
import logging
import sys

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from .config import Config, load_services
from .control import ControlExecutor
from .errors import ConfigError, http_status_for
from .journal import LogFetcher
from .models import ActionName, ActionOutcome, ServiceError
from .registry import ServiceRegistry
from .services import ServiceManager
from .systemd import DBusUnitSource, SystemctlUnitSource, UnitStatusProbe, dbus_available

logger = logging.getLogger(__name__)


def _error(err: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=http_status_for(err), content={"error": err.model_dump()})


def _reply(result):
    if isinstance(result, ServiceError):
        return _error(result)
    return result


def build_manager(config: Config) -> ServiceManager:
    """
    Wire all components from configuration.

    :param config: Runtime configuration.

    :returns: ServiceManager.
    """
    registry = ServiceRegistry(load_services(config.config_path))
    sources = [SystemctlUnitSource(config.systemctl)]
    if config.use_dbus and dbus_available():
        sources.insert(0, DBusUnitSource())
    elif config.use_dbus:
        logger.info("dbus-python is not installed; querying units through systemctl only")
    probe = UnitStatusProbe(sources, timeout=config.probe_timeout, systemctl=config.systemctl)
    return ServiceManager(
        registry,
        probe,
        ControlExecutor(probe, systemctl=config.systemctl, timeout=config.action_timeout),
        LogFetcher(
            journalctl=config.journalctl,
            timeout=config.log_timeout,
            max_lines_limit=config.log_lines_limit,
            since=config.log_since,
        ),
        default_log_lines=config.log_lines,
    )


def create_app(manager: ServiceManager) -> FastAPI:
    """
    Build the ASGI app around a ServiceManager.

    :param manager: Wired service manager.

    :returns: FastAPI app.
    """

    @contextlib.asynccontextmanager
    async def lifespan(_app):
        bad = await manager.verify_units()
        if bad:
            logger.error("%d configured unit(s) are missing or masked", len(bad))
        logger.info("Managing %d service(s)", len(manager.registry))
        yield

    app = FastAPI(title="daemon-manager", version="1.0.0", lifespan=lifespan)

    @app.get("/api/services")
    async def list_services():
        """
        Current status of every configured service, in configuration order.
        """
        return {"services": await manager.list_services()}

    @app.get("/api/services/{key}")
    async def service_view(key: str):
        return _reply(await manager.get_service_view(key))

    @app.get("/api/services/{key}/detail")
    async def service_detail(key: str):
        return _reply(await manager.get_service_detail(key))

    @app.get("/api/services/{key}/logs")
    async def service_logs(key: str, lines: int | None = Query(default=None, ge=1)):
        return _reply(await manager.get_logs(key, lines))

    @app.post("/api/services/{key}/{action}")
    async def service_action(key: str, action: ActionName):
        """
        Runs systemctl <action> on the service's unit.
        """
        result = await manager.perform_action(key, action)
        if isinstance(result, ServiceError):
            return _error(result)
        if result.outcome is not ActionOutcome.SUCCEEDED and result.error is not None:
            return JSONResponse(status_code=http_status_for(result.error), content=result.model_dump(mode="json"))
        return result

    return app


def main() -> None:
    try:
        config = Config()
        logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")
        manager = build_manager(config)
    except ConfigError as e:
        logging.basicConfig()
        logger.error("Configuration error: %s", e.message)
        sys.exit(1)

    import uvicorn

    logger.info("Listening on %s:%s", config.host, config.port)
    uvicorn.run(create_app(manager), host=config.host, port=config.port, reload=False)


if __name__ == "__main__":
    main()
