"""Unit tests for milestone_refunds/engine/allocation.py."""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from milestone_refunds.engine.allocation import allocate_to_milestones, group_donor_shares, sum_contributions
from milestone_refunds.engine.fees import CalculationError
from milestone_refunds.models.campaign import Milestone, DonationShare

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _milestone(milestone_id: str, target: str) -> Milestone:
    return Milestone(id=milestone_id, campaign_id="CAMP-X", title=milestone_id, target_amount=Decimal(target), created_at=NOW)


def test_allocation_is_proportional_to_targets():
    result = allocate_to_milestones(Decimal("1000"), [_milestone("M1", "3000"), _milestone("M2", "1000")])
    assert result == [("M1", Decimal("750.00"), Decimal("75.00")), ("M2", Decimal("250.00"), Decimal("25.00"))]


def test_rounding_remainder_goes_to_last_milestone():
    milestones = [_milestone("M1", "1"), _milestone("M2", "1"), _milestone("M3", "1")]
    result = allocate_to_milestones(Decimal("100"), milestones)
    amounts = [amount for _, amount, _ in result]
    assert amounts == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(amounts) == Decimal("100")


def test_no_milestones_allocates_nothing():
    assert allocate_to_milestones(Decimal("100"), []) == []


def test_negative_amount_raises():
    with pytest.raises(CalculationError):
        allocate_to_milestones(Decimal("-1"), [_milestone("M1", "100")])


def test_group_donor_shares_sums_per_donor_in_first_seen_order():
    shares = [
        DonationShare(donor_id="D1", donation_id="DON-1", net_amount=Decimal("100")),
        DonationShare(donor_id="D2", donation_id="DON-2", net_amount=Decimal("50")),
        DonationShare(donor_id="D1", donation_id="DON-3", net_amount=Decimal("25.50")),
    ]
    grouped = group_donor_shares(shares)
    assert list(grouped) == ["D1", "D2"]
    assert [c.donation_id for c in grouped["D1"]] == ["DON-1", "DON-3"]
    assert sum_contributions(grouped["D1"]) == Decimal("125.50")


def test_group_donor_shares_drops_zero_amounts():
    shares = [
        DonationShare(donor_id="D1", donation_id="DON-1", net_amount=Decimal("0")),
        DonationShare(donor_id="D2", donation_id="DON-2", net_amount=Decimal("10")),
    ]
    grouped = group_donor_shares(shares)
    assert list(grouped) == ["D2"]
