"""
feedgate System API Routes
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter()


class SystemStatusResponse(BaseModel):
    """System status response."""
    status: str
    version: str
    components: Dict[str, Any]


class FeedsResponse(BaseModel):
    feeds: List[Dict[str, Any]]


@router.get("/status")
async def get_system_status(request: Request):
    """Get service health, schedule and last cycle outcome."""
    from ... import __version__

    manager = getattr(request.app.state, "manager", None)
    scheduler = getattr(request.app.state, "scheduler", None)

    components: Dict[str, Any] = {
        "database": "healthy",
        "updates": manager.get_status() if manager else {"status": "disabled"},
    }

    next_run: Optional[str] = None
    if scheduler and scheduler.next_run_at:
        next_run = scheduler.next_run_at.isoformat()
    components["scheduler"] = {
        "enabled": scheduler is not None,
        "next_run_at": next_run,
    }

    return SystemStatusResponse(
        status="healthy",
        version=__version__,
        components=components,
    )


@router.get("/feeds")
async def get_feeds(request: Request):
    """Recorded state of every feed."""
    records = await request.app.state.store.list_all()
    return FeedsResponse(feeds=[record.to_dict() for record in records])


@router.post("/update")
async def trigger_update(request: Request):
    """Start an update cycle in the background."""
    manager = request.app.state.manager
    manager.trigger_now()
    return JSONResponse({"status": "started"}, status_code=202)


@router.get("/config")
async def get_system_config(request: Request):
    """Get non-sensitive system configuration."""
    settings = request.app.state.settings

    return {
        "server": {
            "host": settings.server.host,
            "port": settings.server.port,
        },
        "schedule": {
            "enabled": settings.schedule.enabled,
            "time": settings.schedule.time,
        },
        "feeds": {
            "ids_versions": settings.ids.versions,
            "geo_enabled": settings.geo.enabled,
            "snort_template_enabled": settings.snort_template.enabled,
            "webfilter_enabled": settings.webfilter.enabled,
            "bitdefender_enabled": settings.bitdefender.enabled,
            "bitdefender_proxy_mode": settings.bitdefender.proxy_mode,
            "shield_matrix_enabled": settings.shield_matrix.enabled,
            "custom_urls": len(settings.custom.urls),
        },
        "license_configured": bool(settings.license.number),
        "proxy_configured": bool(settings.download.proxy_url),
    }
