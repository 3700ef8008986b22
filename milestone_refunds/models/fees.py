from decimal import Decimal
from pydantic import BaseModel, Field


class FeeBreakdown(BaseModel):
    gross_amount: Decimal
    platform_fee: Decimal
    tip_amount: Decimal
    net_amount: Decimal
    total_charge: Decimal
    donor_covers_fees: bool
    fee_rate_percent: Decimal


class FeeQuoteRequest(BaseModel):
    model_config = {"extra": "forbid"}

    amount: Decimal = Field(..., ge=Decimal("0"), le=Decimal("10000000.00"))
    tip_amount: Decimal = Field(Decimal("0"), ge=Decimal("0"), le=Decimal("10000000.00"))
    donor_covers_fees: bool = True


class FeeQuote(BaseModel):
    breakdown: FeeBreakdown
    suggested_tips: list[Decimal]
