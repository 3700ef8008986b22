"""Audit endpoints: GET /api/v1/audit"""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Request
from milestone_refunds.services.audit_service import get_audit_entries
from milestone_refunds.security.auth import require_api_key

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


def _envelope(data, request: Request) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    }


@router.get("")
async def get_audit(
    refund_request_id: Optional[str] = None,
    decision_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    request: Request = None,
    _: str = Depends(require_api_key),
) -> dict:
    """Retrieve audit log entries, optionally filtered by refund request, decision, or actor."""
    entries = get_audit_entries(refund_request_id=refund_request_id, decision_id=decision_id, actor_id=actor_id)
    return _envelope([e.model_dump(mode="json") for e in entries], request)
