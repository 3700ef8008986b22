"""Ledger endpoints: campaigns, donations, and milestone transitions under /api/v1"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request, status
from milestone_refunds.engine.fees import FeeValidationError
from milestone_refunds.models.campaign import DonationCreate
from milestone_refunds.security.auth import require_api_key
from milestone_refunds.services import ledger_service
from milestone_refunds.validators.refund_validator import ValidationError

router = APIRouter(prefix="/api/v1", tags=["ledger"])


def _envelope(data, request: Request) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    }


def _http_error(exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=exc.http_status,
        detail={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )


@router.get("/campaigns")
async def list_campaigns(request: Request, _: str = Depends(require_api_key)) -> dict:
    campaigns = ledger_service.list_active_campaigns()
    return _envelope([c.model_dump(mode="json") for c in campaigns], request)


@router.post("/donations", status_code=status.HTTP_201_CREATED)
async def record_donation(
    body: DonationCreate,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Record a completed donation and allocate it to the campaign's open milestones."""
    try:
        donation = ledger_service.record_donation(body)
    except ValidationError as exc:
        raise _http_error(exc)
    except FeeValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
        )
    return _envelope(donation.model_dump(mode="json"), request)


@router.post("/milestones/{milestone_id}/reject")
async def reject_milestone(milestone_id: str, request: Request, _: str = Depends(require_api_key)) -> dict:
    try:
        milestone = ledger_service.reject_milestone(milestone_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(milestone.model_dump(mode="json"), request)


@router.post("/milestones/{milestone_id}/release")
async def release_milestone_funds(milestone_id: str, request: Request, _: str = Depends(require_api_key)) -> dict:
    """Disburse a milestone's allocations to the charity; released funds are not refundable."""
    try:
        released = ledger_service.release_milestone_funds(milestone_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope({"milestone_id": milestone_id, "allocations_released": released}, request)
