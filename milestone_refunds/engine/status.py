"""
Aggregate refund request status.

Derived purely from the current decision states; safe to evaluate on a
partially-updated set and to call any number of times.
"""
from datetime import datetime
from decimal import Decimal

from milestone_refunds.engine.fees import _quantize
from milestone_refunds.models.refund import (
    DecisionStatus,
    DonorRefundDecision,
    RefundRequestStatus,
)


def derive_request_status(
    decisions: list[DonorRefundDecision],
    decision_deadline: datetime,
    now: datetime,
) -> RefundRequestStatus:
    """
    Derive the request status from its decisions.

      any pending, deadline not passed      → pending_decisions
      any pending, deadline passed          → processing
      all completed                         → completed
      completed + failed, nothing pending   → partially_completed
      all failed                            → processing (nothing settled yet)
    """
    statuses = {d.status for d in decisions}

    if DecisionStatus.PENDING in statuses:
        if now < decision_deadline:
            return RefundRequestStatus.PENDING_DECISIONS
        return RefundRequestStatus.PROCESSING

    if statuses == {DecisionStatus.COMPLETED}:
        return RefundRequestStatus.COMPLETED

    if DecisionStatus.COMPLETED in statuses:
        return RefundRequestStatus.PARTIALLY_COMPLETED

    return RefundRequestStatus.PROCESSING


def decisions_total(decisions: list[DonorRefundDecision]) -> Decimal:
    return _quantize(sum((d.refund_amount for d in decisions), Decimal("0")))
