import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import FastAPI

from .api.geo import router as geo_router
from .api.health import router as health_router
from .api.prometheus import router as prometheus_router
from .config import env_bool
from .exceptions import CountryNotAllowed, ResolutionExhausted
from .geolocation import GeoLocation
from .guard import country_not_allowed_handler, resolution_exhausted_handler
from .logging_config import setup_logging
from .middleware import GeoGuardMiddleware

logger = logging.getLogger("geogate")


def create_app(
    geo: Optional[GeoLocation] = None,
    enforce: Optional[bool] = None,
    exclude_paths: Optional[Iterable[str]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    ``enforce`` installs GeoGuardMiddleware in front of every route; it
    defaults to the GEOGATE_ENFORCE environment flag.
    """
    geo = geo or GeoLocation.from_env()
    if enforce is None:
        enforce = env_bool("GEOGATE_ENFORCE", False)

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info("geogate starting up", extra={
            "component": "api",
            "providers": geo.resolver.provider_names,
            "allowed_countries": geo.get_allowed_countries(),
            "enforce": enforce,
        })
        try:
            yield
        finally:
            geo.close()
            logger.info("geogate shutting down", extra={"component": "api"})

    application = FastAPI(title="geogate", lifespan=lifespan)
    application.state.geo = geo

    application.add_exception_handler(CountryNotAllowed, country_not_allowed_handler)
    application.add_exception_handler(ResolutionExhausted, resolution_exhausted_handler)

    if enforce:
        kwargs = {"exclude_paths": exclude_paths} if exclude_paths is not None else {}
        application.add_middleware(GeoGuardMiddleware, geo=geo, **kwargs)

    application.include_router(health_router)
    application.include_router(prometheus_router)
    application.include_router(geo_router)
    return application


def build_app() -> FastAPI:
    """Entry point for ``uvicorn --factory geogate.main:build_app``"""
    setup_logging()
    return create_app()


# Server startup configuration
if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.getenv("APP_PORT", "8000"))
    logging.getLogger("geogate").info(f"Starting geogate on port {port}")

    uvicorn.run(
        "geogate.main:build_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=True
    )
