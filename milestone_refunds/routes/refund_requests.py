"""Refund request endpoints (admin): /api/v1/refund-requests"""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from milestone_refunds.models.refund import (
    CampaignRefundCreate,
    MilestoneRefundCreate,
    OperatorAction,
    RefundRequestStatus,
)
from milestone_refunds.security.auth import require_api_key
from milestone_refunds.services import deadline_service, processing_service, refund_request_service
from milestone_refunds.validators.refund_validator import ValidationError

router = APIRouter(prefix="/api/v1/refund-requests", tags=["refund-requests"])


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


def _created_or_replayed(refund_request, was_replayed: bool, request: Request) -> Response:
    response_body = _envelope(refund_request.model_dump(mode="json"), request)
    status_code = status.HTTP_200_OK if was_replayed else status.HTTP_201_CREATED
    headers = {"Idempotent-Replayed": "true"} if was_replayed else {}
    return JSONResponse(content=response_body, status_code=status_code, headers=headers)


@router.get("")
async def list_refund_requests(
    request: Request,
    status_filter: Optional[RefundRequestStatus] = Query(None, alias="status"),
    _: str = Depends(require_api_key),
) -> dict:
    """List refund requests, newest first. Filter with ?status=."""
    results = refund_request_service.list_refund_requests(status=status_filter)
    return _envelope([r.model_dump(mode="json") for r in results], request)


@router.get("/stats")
async def get_refund_stats(request: Request, _: str = Depends(require_api_key)) -> dict:
    return _envelope(refund_request_service.get_refund_stats().model_dump(mode="json"), request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def initiate_milestone_refund(
    body: MilestoneRefundCreate,
    request: Request,
    _: str = Depends(require_api_key),
) -> Response:
    """Open the refund request for a rejected milestone.

    A milestone has at most one request; repeating the call returns it with
    status 200 and the Idempotent-Replayed: true header.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        refund_request, was_replayed = refund_request_service.initiate_milestone_refund(
            body.milestone_id, body.rejection_reason, body.operator_id, request_id
        )
    except ValidationError as exc:
        raise _http_error(exc)
    return _created_or_replayed(refund_request, was_replayed, request)


@router.post("/campaign", status_code=status.HTTP_201_CREATED)
async def initiate_campaign_refund(
    body: CampaignRefundCreate,
    request: Request,
    _: str = Depends(require_api_key),
) -> Response:
    """Open the refund request for an expired or cancelled campaign."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        refund_request, was_replayed = refund_request_service.initiate_campaign_refund(
            body.campaign_id, body.trigger_type, body.reason, body.operator_id, request_id
        )
    except ValidationError as exc:
        raise _http_error(exc)
    return _created_or_replayed(refund_request, was_replayed, request)


@router.post("/sweep")
async def sweep_expired_decisions(request: Request, _: str = Depends(require_api_key)) -> dict:
    """Apply the refund default to every undecided decision past its deadline."""
    request_id = getattr(request.state, "request_id", "unknown")
    result = deadline_service.sweep_expired_decisions(request_id=request_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/scheduled-jobs")
async def run_scheduled_jobs(request: Request, _: str = Depends(require_api_key)) -> dict:
    """Run every time-driven job once. Intended for an external cron."""
    request_id = getattr(request.state, "request_id", "unknown")
    summary = deadline_service.run_scheduled_jobs(request_id=request_id)
    summary["sweep"] = summary["sweep"].model_dump(mode="json")
    return _envelope(summary, request)


@router.get("/{refund_request_id}")
async def get_refund_request(
    refund_request_id: str,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Retrieve a refund request together with its decisions."""
    detail = refund_request_service.get_refund_request(refund_request_id)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": {"code": "REFUND_REQUEST_NOT_FOUND", "message": f"Refund request {refund_request_id} not found"}},
        )
    return _envelope(detail.model_dump(mode="json"), request)


@router.get("/{refund_request_id}/decisions")
async def list_request_decisions(
    refund_request_id: str,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    try:
        decisions = refund_request_service.list_request_decisions(refund_request_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope([d.model_dump(mode="json") for d in decisions], request)


@router.post("/{refund_request_id}/process")
async def process_refund_request(
    refund_request_id: str,
    body: OperatorAction,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Execute every pending decision of the request that is ready to run."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        result = processing_service.process_refund_request(refund_request_id, body.operator_id, request_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/{refund_request_id}/retry-failed")
async def retry_failed_decisions(
    refund_request_id: str,
    body: OperatorAction,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Reset every failed decision of the request and process it again."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        result = processing_service.retry_failed_decisions(refund_request_id, body.operator_id, request_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return _envelope(result.model_dump(mode="json"), request)
