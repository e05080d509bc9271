import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from src.config import Config
from src.config.logging_config import configure_logging
from src.routes import app_ids, health, monitoring
from src.services.auth0_client import Auth0Client
from src.services.email_client import EmailClient
from src.services.http_client import HTTPClient
from src.services.notifier import Notifier
from src.services.portal_db_client import PortalDBClient
from src.services.relay_meter_client import RelayMeterClient
from src.services.scheduler import UsageScheduler
from src.services.threshold_engine import ThresholdEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Components wired from one Config, shared by the routes and the scheduler."""

    http: HTTPClient
    engine: ThresholdEngine
    notifier: Notifier | None = None


def build_services(config: Config, http: HTTPClient | None = None) -> Services:
    http = http or HTTPClient(retries=config.http_retries, timeout=config.http_timeout)

    engine = ThresholdEngine(
        portal_db=PortalDBClient(http, config.http_db_url, config.http_db_api_key),
        relay_meter=RelayMeterClient(http, config.relay_meter_url),
        grace_period=config.grace_period,
    )

    notifier = None
    if config.notifier_enabled:
        notifier = Notifier(
            engine,
            Auth0Client(
                http, config.auth0_domain, config.auth0_client_id, config.auth0_client_secret
            ),
            EmailClient(
                http,
                api_key=config.mailgun_api_key,
                domain=config.mailgun_domain,
                from_email=config.mailgun_from_email,
                base_url=config.mailgun_base_url,
            ),
        )

    return Services(http=http, engine=engine, notifier=notifier)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Populate the first snapshot, then start the background loops.

    A failed first refresh aborts startup.
    """
    config: Config = app.state.config

    is_valid, missing_vars = config.validate_critical_env_vars()
    if not is_valid:
        logger.warning(f"Missing environment variables: {missing_vars}")

    services: Services = app.state.services or build_services(config)
    app.state.engine = services.engine

    try:
        await services.engine.refresh()
    except Exception as e:
        logger.error(f"CRITICAL: initial usage refresh failed: {e}", exc_info=True)
        await services.http.aclose()
        raise

    scheduler = UsageScheduler(
        services.engine,
        services.notifier,
        refresh_interval_seconds=config.cache_refresh_minutes * 60,
        notifier_interval_seconds=config.notifier_interval_minutes * 60,
    )
    app.state.scheduler = scheduler
    await scheduler.start()

    logger.info(f"Rate Limiter running in port: {config.port}")

    yield

    await scheduler.stop()
    await services.http.aclose()
    logger.info("Rate Limiter shutdown complete")


def create_app(config: Config | None = None, services: Services | None = None) -> FastAPI:
    config = config or Config.from_env()

    app = FastAPI(
        title="Rate Limiter",
        description="Reports applications whose relay usage crossed their daily limit",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.services = services

    app.include_router(health.router)
    app.include_router(app_ids.router)
    app.include_router(monitoring.router)

    return app


# Export a default app instance for environments that import `app`
_config = Config.from_env()
configure_logging(_config)
app = create_app(_config)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.config.port)
