"""
Health check endpoints - no authentication required
"""

from fastapi import APIRouter, Request

router = APIRouter(prefix="/v1")


@router.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}


@router.get("/health")
async def health(request: Request):
    geo = request.app.state.geo
    return {
        "status": "ok",
        "service": "geogate",
        "providers": [p.get_status() for p in geo.resolver.providers],
        "cache_enabled": geo.resolver.cache_enabled,
        "cache_entries": len(geo.resolver.cache),
    }
