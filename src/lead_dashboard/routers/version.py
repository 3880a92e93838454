"""Version router for exposing the service version via API."""

from fastapi import APIRouter

from lead_dashboard.core.version import get_version

router = APIRouter(prefix="/api", tags=["version"])


@router.get("/version")
async def get_service_version() -> dict[str, str]:
    """Get the dashboard service version."""
    return {"version": get_version(), "component": "lead-dashboard"}
