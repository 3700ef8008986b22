"""Unit tests for milestone_refunds/engine/status.py."""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from milestone_refunds.engine.status import derive_request_status, decisions_total
from milestone_refunds.models.refund import (
    DecisionContribution,
    DecisionStatus,
    DonorRefundDecision,
    RefundRequestStatus,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)
DEADLINE = NOW + timedelta(days=14)


def _decision(status: DecisionStatus, amount: str = "100") -> DonorRefundDecision:
    return DonorRefundDecision(
        id="DEC-1",
        refund_request_id="RR-1",
        donor_id="D1",
        campaign_id="CAMP-X",
        refund_amount=Decimal(amount),
        contributions=[DecisionContribution(donation_id="DON-1", amount=Decimal(amount))],
        status=status,
        decision_deadline=DEADLINE,
        created_at=NOW,
        updated_at=NOW,
    )


P, C, F = DecisionStatus.PENDING, DecisionStatus.COMPLETED, DecisionStatus.FAILED


@pytest.mark.parametrize("statuses, now, expected", [
    ([P, P, P], NOW, RefundRequestStatus.PENDING_DECISIONS),
    ([P, C, F], NOW, RefundRequestStatus.PENDING_DECISIONS),
    ([P, C], DEADLINE, RefundRequestStatus.PROCESSING),
    ([P], DEADLINE + timedelta(days=1), RefundRequestStatus.PROCESSING),
    ([C, C, C], NOW, RefundRequestStatus.COMPLETED),
    ([C, C, F], DEADLINE, RefundRequestStatus.PARTIALLY_COMPLETED),
    ([F, F], DEADLINE, RefundRequestStatus.PROCESSING),
])
def test_derive_request_status(statuses, now, expected):
    decisions = [_decision(s) for s in statuses]
    assert derive_request_status(decisions, DEADLINE, now) == expected


def test_derivation_is_repeatable():
    decisions = [_decision(C), _decision(F)]
    first = derive_request_status(decisions, DEADLINE, NOW)
    assert derive_request_status(decisions, DEADLINE, NOW) == first


def test_decisions_total():
    assert decisions_total([_decision(P, "500"), _decision(P, "300"), _decision(P, "200")]) == Decimal("1000.00")
