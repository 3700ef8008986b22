from decimal import Decimal
from datetime import datetime
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


class RefundRequestStatus(str, Enum):
    PENDING_DECISIONS = "pending_decisions"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"


class RefundTriggerType(str, Enum):
    MILESTONE_REJECTION = "milestone_rejection"
    CAMPAIGN_EXPIRATION = "campaign_expiration"
    CAMPAIGN_CANCELLATION = "campaign_cancellation"


class DecisionType(str, Enum):
    REFUND = "refund"
    REDIRECT_TO_CAMPAIGN = "redirect_to_campaign"
    DONATE_TO_PLATFORM = "donate_to_platform"


class DecisionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RefundRequest(BaseModel):
    id: str
    campaign_id: str
    milestone_id: Optional[str] = None
    charity_id: str
    trigger_type: RefundTriggerType = RefundTriggerType.MILESTONE_REJECTION
    total_refund_amount: Decimal
    affected_donors_count: int
    status: RefundRequestStatus = RefundRequestStatus.PENDING_DECISIONS
    rejection_reason: str
    decision_deadline: datetime
    created_by: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class DecisionContribution(BaseModel):
    donation_id: str
    amount: Decimal


class DonorRefundDecision(BaseModel):
    id: str
    refund_request_id: str
    donor_id: str
    campaign_id: str
    milestone_id: Optional[str] = None
    refund_amount: Decimal
    contributions: list[DecisionContribution]
    decision_type: Optional[DecisionType] = None
    target_campaign_id: Optional[str] = None
    status: DecisionStatus = DecisionStatus.PENDING
    decision_deadline: datetime
    decided_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    auto_defaulted: bool = False
    refund_references: dict[str, str] = Field(default_factory=dict)
    new_donation_id: Optional[str] = None
    platform_credit_id: Optional[str] = None
    processing_error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    version: int = 0
    claim_token: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RefundRequestDetail(BaseModel):
    request: RefundRequest
    decisions: list[DonorRefundDecision]


# ── Request bodies ──────────────────────────────────────────────────────────

class MilestoneRefundCreate(BaseModel):
    model_config = {"extra": "forbid"}

    milestone_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[A-Z0-9_-]+$')
    rejection_reason: str = Field(..., min_length=1, max_length=1000)
    operator_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[a-zA-Z0-9_-]+$')


class CampaignRefundCreate(BaseModel):
    model_config = {"extra": "forbid"}

    campaign_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[A-Z0-9_-]+$')
    trigger_type: RefundTriggerType
    reason: Optional[str] = Field(None, max_length=1000)
    operator_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[a-zA-Z0-9_-]+$')


class DecisionSubmission(BaseModel):
    model_config = {"extra": "forbid"}

    decision_type: DecisionType
    target_campaign_id: Optional[str] = Field(None, min_length=1, max_length=50)


class OperatorAction(BaseModel):
    model_config = {"extra": "forbid"}

    operator_id: str = Field(..., min_length=1, max_length=50, pattern=r'^[a-zA-Z0-9_-]+$')
    reason: Optional[str] = Field(None, max_length=500)


# ── Results ─────────────────────────────────────────────────────────────────

class ExecutionOutcome(BaseModel):
    decision_id: str
    status: DecisionStatus
    decision_type: Optional[DecisionType] = None
    executed: bool
    replayed: bool = False
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


class ProcessingResult(BaseModel):
    refund_request_id: str
    processed: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    refund_count: int = 0
    redirect_count: int = 0
    platform_count: int = 0
    status: RefundRequestStatus
    errors: list[dict[str, str]] = Field(default_factory=list)


class SweepResult(BaseModel):
    processed_count: int
    total_amount: Decimal
    outcomes: list[ExecutionOutcome]
    requests_recomputed: int


class RefundStats(BaseModel):
    total_requests: int
    pending_decisions: int
    processing_count: int
    completed_count: int
    partially_completed_count: int
    total_amount: Decimal
    pending_amount: Decimal
    processed_amount: Decimal
    failed_decisions: int
    decision_type_distribution: dict[str, int]
    average_response_days: Decimal
