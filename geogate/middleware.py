import logging
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .exceptions import CountryNotAllowed
from .geolocation import GeoLocation
from .guard import render_not_allowed
from .logging_config import trace_id_var
from .models import RequestInfo

logger = logging.getLogger("geogate.middleware")

DEFAULT_EXCLUDE_PATHS = ("/v1/healthz", "/v1/metrics/prometheus")


class GeoGuardMiddleware(BaseHTTPMiddleware):
    """Rejects requests whose origin country is not on the allow-list"""

    def __init__(
        self,
        app: ASGIApp,
        geo: GeoLocation,
        countries: Optional[Iterable[str]] = None,
        exclude_paths: Iterable[str] = DEFAULT_EXCLUDE_PATHS,
    ):
        super().__init__(app)
        # A route-specific allow-list gets its own policy over the shared cache
        self.geo = geo.with_countries(countries) if countries else geo
        self.exclude_paths = set(exclude_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        trace_id_var.set(trace_id)

        try:
            if request.url.path in self.exclude_paths:
                return await call_next(request)

            info = RequestInfo.from_request(request)
            try:
                # Resolution does blocking network I/O
                await run_in_threadpool(self.geo.validate, None, info)
            except CountryNotAllowed as e:
                logger.info("Request blocked", extra={
                    "path": request.url.path,
                    "client_ip": info.client_host,
                    "country": e.detected_country,
                })
                response = render_not_allowed(request, e, self.geo.config)
                response.headers["X-Request-ID"] = trace_id
                return response

            response = await call_next(request)
            response.headers["X-Request-ID"] = trace_id
            return response
        finally:
            trace_id_var.set(None)
