"""
Allocation math: spreading a donation across milestones and grouping a
milestone's contributions into per-donor refundable shares.

Pure functions. Amounts are Decimal, quantized to cents.
"""
from collections import OrderedDict
from decimal import Decimal

from milestone_refunds.engine.fees import CalculationError, _quantize
from milestone_refunds.models.campaign import Milestone, DonationShare
from milestone_refunds.models.refund import DecisionContribution

ZERO = Decimal("0")


def allocate_to_milestones(
    net_amount: Decimal,
    milestones: list[Milestone],
) -> list[tuple[str, Decimal, Decimal]]:
    """
    Split a donation's net amount across milestones in proportion to their targets.

    The rounding remainder goes to the last milestone so the allocated amounts
    always sum exactly to net_amount.

    Args:
        net_amount: The net-to-charity amount of the donation.
        milestones: Open milestones of the campaign, oldest first.

    Returns:
        List of (milestone_id, allocated_amount, allocation_percentage).
        Empty when there are no milestones to allocate to.

    Raises:
        CalculationError: If net_amount is negative.

    Example:
        net=1000.00, targets 3000 / 1000
        → 750.00 (75.00%), 250.00 (25.00%)
    """
    if net_amount < ZERO:
        raise CalculationError("Cannot allocate a negative amount")

    total_target = sum((m.target_amount for m in milestones), ZERO)
    if not milestones or total_target == ZERO:
        return []

    allocations = []
    allocated = ZERO
    for index, milestone in enumerate(milestones):
        ratio = milestone.target_amount / total_target
        if index == len(milestones) - 1:
            amount = _quantize(net_amount - allocated)
        else:
            amount = _quantize(net_amount * ratio)
        allocated += amount
        allocations.append((milestone.id, amount, _quantize(ratio * Decimal("100"))))
    return allocations


def group_donor_shares(shares: list[DonationShare]) -> "OrderedDict[str, list[DecisionContribution]]":
    """
    Group donation shares by donor, in first-seen order.

    Zero-amount shares are dropped; a donor left with nothing is omitted.
    """
    grouped: "OrderedDict[str, list[DecisionContribution]]" = OrderedDict()
    for share in shares:
        amount = _quantize(share.net_amount)
        if amount <= ZERO:
            continue
        grouped.setdefault(share.donor_id, []).append(
            DecisionContribution(donation_id=share.donation_id, amount=amount)
        )
    return grouped


def sum_contributions(contributions: list[DecisionContribution]) -> Decimal:
    return _quantize(sum((c.amount for c in contributions), ZERO))
