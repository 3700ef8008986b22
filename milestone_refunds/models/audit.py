from decimal import Decimal
from datetime import datetime
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel


class AuditAction(str, Enum):
    REFUND_INITIATED = "REFUND_INITIATED"
    REFUND_INITIATION_REPLAYED = "REFUND_INITIATION_REPLAYED"
    REFUND_INITIATION_REJECTED = "REFUND_INITIATION_REJECTED"
    DECISION_SUBMITTED = "DECISION_SUBMITTED"
    DECISION_REJECTED = "DECISION_REJECTED"
    DECISION_INTENT_REVERTED = "DECISION_INTENT_REVERTED"
    DECISION_COMPLETED = "DECISION_COMPLETED"
    DECISION_FAILED = "DECISION_FAILED"
    DECISION_RESET_FOR_RETRY = "DECISION_RESET_FOR_RETRY"
    REFUND_REQUEST_PROCESSED = "REFUND_REQUEST_PROCESSED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"


class AuditEntry(BaseModel):
    id: str
    timestamp: datetime
    action: AuditAction
    actor_id: str
    refund_request_id: Optional[str] = None
    decision_id: Optional[str] = None
    reasoning: str
    detail: dict[str, Any]
    amount: Optional[Decimal] = None
    request_id: str
