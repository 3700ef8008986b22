from decimal import Decimal
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DonationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class CampaignSort(str, Enum):
    POPULAR = "popular"
    NEWEST = "newest"
    ALMOST_FUNDED = "almost_funded"
    ENDING_SOON = "ending_soon"


class Campaign(BaseModel):
    id: str = Field(..., min_length=1, max_length=50)
    charity_id: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    category: Optional[str] = None
    status: CampaignStatus
    goal_amount: Decimal = Field(..., gt=Decimal("0"))
    current_amount: Decimal = Field(Decimal("0"), ge=Decimal("0"))
    donors_count: int = Field(0, ge=0)
    end_date: Optional[datetime] = None
    created_at: datetime
    expiration_refund_initiated: bool = False


class Milestone(BaseModel):
    id: str = Field(..., min_length=1, max_length=50)
    campaign_id: str
    title: str
    target_amount: Decimal = Field(..., gt=Decimal("0"))
    status: MilestoneStatus = MilestoneStatus.PENDING
    funds_released: bool = False
    refund_initiated: bool = False
    refund_initiated_at: Optional[datetime] = None
    created_at: datetime


class Donation(BaseModel):
    id: str
    campaign_id: str
    donor_id: str
    gross_amount: Decimal
    platform_fee: Decimal
    tip_amount: Decimal
    net_amount: Decimal
    total_charge: Decimal
    donor_covers_fees: bool
    status: DonationStatus
    payment_method: str
    provider_payment_id: Optional[str] = None
    is_redirect: bool = False
    source_decision_id: Optional[str] = None
    created_at: datetime


class MilestoneAllocation(BaseModel):
    id: str
    milestone_id: str
    donation_id: str
    campaign_id: str
    donor_id: str
    allocated_amount: Decimal
    allocation_percentage: Decimal
    is_released: bool = False
    released_at: Optional[datetime] = None


class DonationShare(BaseModel):
    """One completed donation's unreleased net contribution toward a milestone."""

    donor_id: str
    donation_id: str
    net_amount: Decimal


class CampaignPage(BaseModel):
    items: list[Campaign]
    total: int
    page: int
    limit: int


class DonationCreate(BaseModel):
    model_config = {"extra": "forbid"}

    campaign_id: str = Field(..., min_length=1, max_length=50)
    donor_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[a-zA-Z0-9_-]+$')
    amount: Decimal = Field(..., gt=Decimal("0"), le=Decimal("10000000.00"))
    tip_amount: Decimal = Field(Decimal("0"), ge=Decimal("0"))
    donor_covers_fees: bool = True
    payment_method: str = Field("gcash", min_length=1, max_length=30)
    provider_payment_id: Optional[str] = Field(None, max_length=100)
