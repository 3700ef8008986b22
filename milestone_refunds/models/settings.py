from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class PlatformSettings(BaseModel):
    """Admin-editable platform configuration read by the settings provider."""

    platform_fee_percent: Decimal = Field(..., ge=Decimal("0"), le=Decimal("100"))
    minimum_donation: Decimal = Field(..., ge=Decimal("0"))
    minimum_net_amount: Decimal = Field(..., ge=Decimal("0"))
    channel_limit: Decimal = Field(..., gt=Decimal("0"))
    decision_window_days: int = Field(..., ge=1, le=365)
    min_campaign_days_remaining: int = Field(..., ge=0, le=365)
    minimum_refund_amount: Decimal = Field(..., ge=Decimal("0"))
    expiration_grace_days: int = Field(..., ge=0, le=365)


class SettingsUpdate(BaseModel):
    model_config = {"extra": "forbid"}

    platform_fee_percent: Optional[Decimal] = Field(None, ge=Decimal("0"), le=Decimal("100"))
    minimum_donation: Optional[Decimal] = Field(None, ge=Decimal("0"))
    minimum_net_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    channel_limit: Optional[Decimal] = Field(None, gt=Decimal("0"))
    decision_window_days: Optional[int] = Field(None, ge=1, le=365)
    min_campaign_days_remaining: Optional[int] = Field(None, ge=0, le=365)
    minimum_refund_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    expiration_grace_days: Optional[int] = Field(None, ge=0, le=365)
    operator_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[a-zA-Z0-9_-]+$')

    @model_validator(mode="after")
    def reject_null_values(self) -> "SettingsUpdate":
        nulls = sorted(f for f in self.model_fields_set if getattr(self, f) is None)
        if nulls:
            raise ValueError(f"Settings cannot be cleared: {', '.join(nulls)}")
        return self
