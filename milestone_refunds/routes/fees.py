"""Fee endpoints: POST /api/v1/fees/quote"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request, status
from milestone_refunds.engine.fees import CalculationError, calculate_fees, get_suggested_tips
from milestone_refunds.models.fees import FeeQuote, FeeQuoteRequest
from milestone_refunds.security.auth import require_api_key
from milestone_refunds.services import settings_service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


def _envelope(data, request: Request) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    }


@router.post("/quote")
async def quote_fees(
    body: FeeQuoteRequest,
    request: Request,
    _: str = Depends(require_api_key),
) -> dict:
    """Price a donation at the current platform fee rate, with suggested tips."""
    try:
        breakdown = calculate_fees(
            body.amount,
            body.tip_amount,
            body.donor_covers_fees,
            settings_service.get_fee_rate(),
        )
    except CalculationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": {"code": "CALCULATION_ERROR", "message": str(exc)}},
        )
    quote = FeeQuote(breakdown=breakdown, suggested_tips=get_suggested_tips(body.amount))
    return _envelope(quote.model_dump(mode="json"), request)
