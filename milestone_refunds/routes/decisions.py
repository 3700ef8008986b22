"""Donor decision endpoints: /api/v1/donors/me/refund-decisions, /api/v1/refund-decisions/{id}/..."""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from milestone_refunds.engine.eligibility import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from milestone_refunds.models.campaign import CampaignSort
from milestone_refunds.models.refund import DecisionSubmission, OperatorAction
from milestone_refunds.security.auth import require_api_key, require_donor_id
from milestone_refunds.services import decision_service, processing_service
from milestone_refunds.validators.refund_validator import ValidationError

router = APIRouter(prefix="/api/v1", tags=["refund-decisions"])


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


# ── Donor ───────────────────────────────────────────────────────────────────

@router.get("/donors/me/refund-decisions")
async def get_my_pending_decisions(
    request: Request,
    _: str = Depends(require_api_key),
    donor_id: str = Depends(require_donor_id),
) -> dict:
    """Pending refund decisions awaiting the calling donor, newest first."""
    decisions = decision_service.get_donor_pending_decisions(donor_id)
    return _envelope([d.model_dump(mode="json") for d in decisions], request)


@router.post("/refund-decisions/{decision_id}/submit")
async def submit_decision(
    decision_id: str,
    body: DecisionSubmission,
    request: Request,
    _: str = Depends(require_api_key),
    donor_id: str = Depends(require_donor_id),
) -> dict:
    """Record the donor's choice. Execution happens later, in processing."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        decision = decision_service.submit_decision(
            decision_id, donor_id, body.decision_type, body.target_campaign_id, request_id
        )
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(decision.model_dump(mode="json"), request)


@router.get("/refund-decisions/{decision_id}/redirect-campaigns")
async def list_redirect_campaigns(
    decision_id: str,
    request: Request,
    category: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, max_length=100),
    sort: CampaignSort = CampaignSort.POPULAR,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _: str = Depends(require_api_key),
    donor_id: str = Depends(require_donor_id),
) -> dict:
    """Campaigns currently eligible to receive this decision's amount."""
    try:
        result = decision_service.list_redirect_campaigns(
            decision_id, donor_id, category=category, search=search, sort=sort, page=page, limit=limit
        )
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(result.model_dump(mode="json"), request)


# ── Operator ────────────────────────────────────────────────────────────────

@router.post("/refund-decisions/{decision_id}/reset")
async def reset_decision(
    decision_id: str,
    body: OperatorAction,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Return a failed decision to pending so it can be executed again."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        decision = processing_service.reset_decision_for_retry(decision_id, body.operator_id, request_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(decision.model_dump(mode="json"), request)


@router.post("/refund-decisions/{decision_id}/revert")
async def revert_decision(
    decision_id: str,
    body: OperatorAction,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Clear a donor's recorded choice while the decision is still pending."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        decision = decision_service.revert_decision_intent(decision_id, body.operator_id, body.reason, request_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(decision.model_dump(mode="json"), request)
