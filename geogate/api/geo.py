from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from ..geolocation import GeoLocation
from ..models import RequestInfo
from ..security import is_valid_ip

router = APIRouter(prefix="/v1/geo", tags=["geo"])


def _geo(request: Request) -> GeoLocation:
    return request.app.state.geo


def _target(ip: Optional[str]) -> Optional[str]:
    if ip is not None and not is_valid_ip(ip):
        raise HTTPException(status_code=400, detail=f"Invalid IP address: {ip}")
    return ip


@router.get("/country")
async def get_country(request: Request, ip: Optional[str] = Query(None)) -> Dict[str, Any]:
    """Country for ``ip``, or for the caller when omitted"""
    geo = _geo(request)
    resolution = await run_in_threadpool(geo.resolve, _target(ip), RequestInfo.from_request(request))
    return {
        "ip": resolution.ip,
        "country": resolution.country,
        "source": resolution.reason.value,
    }


@router.get("/location")
async def get_location(request: Request, ip: Optional[str] = Query(None)) -> Dict[str, Any]:
    geo = _geo(request)
    record = await run_in_threadpool(geo.get_location_details, _target(ip), RequestInfo.from_request(request))
    return record.model_dump()


@router.get("/check")
async def check_access(request: Request, ip: Optional[str] = Query(None)) -> Dict[str, Any]:
    geo = _geo(request)
    decision = await run_in_threadpool(geo.decide, _target(ip), RequestInfo.from_request(request))
    return {
        **decision.model_dump(mode="json"),
        "allowed_countries": geo.get_allowed_countries(),
    }


@router.get("/debug")
async def debug(request: Request) -> Dict[str, Any]:
    geo = _geo(request)
    return await run_in_threadpool(geo.debug_info, RequestInfo.from_request(request))


async def require_allowed_country(request: Request) -> None:
    """Route dependency: raises CountryNotAllowed for callers outside the allow-list"""
    await run_in_threadpool(_geo(request).validate, None, RequestInfo.from_request(request))
