"""
Boundary actions: turn denials into HTTP responses
"""

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .access import AccessEvaluator
from .config import GeoConfig
from .exceptions import CountryNotAllowed, GeoLocationError, ResolutionExhausted
from .models import RequestInfo

logger = logging.getLogger("geogate.guard")


class Guard:
    """Synchronous guard entry point over an AccessEvaluator"""

    def __init__(self, evaluator: AccessEvaluator):
        self.evaluator = evaluator

    @property
    def config(self) -> GeoConfig:
        return self.evaluator.config

    def deny_access(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        ip: Optional[str] = None,
        request: Optional[RequestInfo] = None,
    ) -> Response:
        message = message or self.config.message("not_allowed")
        status_code = status_code or self.config.response.status_code

        try:
            country = self.evaluator.resolver.get_country_from_ip(ip, request)
        except GeoLocationError:
            country = None

        logger.info("Denying request", extra={"client_ip": ip, "country": country, "status": status_code})

        if not self.config.response.json_response:
            return PlainTextResponse(message, status_code=status_code)

        return JSONResponse(
            {
                "success": False,
                "error": True,
                "message": message,
                "country": country,
                "allowed_countries": self.evaluator.get_allowed_countries(),
            },
            status_code=status_code,
        )

    def guard(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Optional[Response]:
        """Deny response when access is refused, None when the caller may proceed"""
        if self.evaluator.is_allowed(ip, request):
            return None
        return self.deny_access(ip=ip, request=request)


def wants_json(request: Request, config: GeoConfig) -> bool:
    accept = request.headers.get("accept", "")
    return config.response.json_response or "application/json" in accept


def render_not_allowed(request: Request, exc: CountryNotAllowed, config: GeoConfig) -> Response:
    status_code = config.response.status_code
    if wants_json(request, config):
        return JSONResponse(exc.to_dict(), status_code=status_code)
    return PlainTextResponse(exc.message, status_code=status_code)


async def country_not_allowed_handler(request: Request, exc: CountryNotAllowed) -> Response:
    return render_not_allowed(request, exc, request.app.state.geo.config)


async def resolution_exhausted_handler(request: Request, exc: ResolutionExhausted) -> Response:
    return JSONResponse(
        {"error": True, "message": exc.message, "code": exc.code},
        status_code=503,
    )
