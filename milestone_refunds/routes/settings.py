"""Platform settings endpoints: GET/PUT /api/v1/settings"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from milestone_refunds.models.settings import SettingsUpdate
from milestone_refunds.security.auth import require_api_key
from milestone_refunds.services import settings_service

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


def _envelope(data, request: Request) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    }


@router.get("")
async def get_settings(request: Request, _: str = Depends(require_api_key)) -> dict:
    return _envelope(settings_service.get_settings().model_dump(mode="json"), request)


@router.put("")
async def update_settings(
    body: SettingsUpdate,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Change one or more settings. Takes effect for the next operation."""
    request_id = getattr(request.state, "request_id", "unknown")
    updated = settings_service.update_settings(body, request_id)
    return _envelope(updated.model_dump(mode="json"), request)
