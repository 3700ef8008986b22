"""
Ledger service: donations, milestone allocations, and campaign totals.

This is the money-in side the refund engine reads from (refundable shares)
and writes to (redirected donations). Fee math is delegated to the engine.

Flow for a donation: validate → price → persist → credit campaign → allocate
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from milestone_refunds.collaborators.payment_gateway import CollaboratorError
from milestone_refunds.engine.allocation import allocate_to_milestones
from milestone_refunds.engine.fees import _quantize, validate_donation_amount
from milestone_refunds.models.campaign import (
    Campaign,
    CampaignStatus,
    Donation,
    DonationCreate,
    DonationShare,
    DonationStatus,
    Milestone,
    MilestoneAllocation,
    MilestoneStatus,
)
from milestone_refunds.repository.store import store
from milestone_refunds.services import settings_service
from milestone_refunds.validators.refund_validator import ValidationError, validate_donation_target

logger = logging.getLogger(__name__)

REDIRECT_PAYMENT_METHOD = "redirected"


class LedgerError(CollaboratorError):
    """Raised when a ledger credit cannot be applied."""


def record_donation(body: DonationCreate, now: Optional[datetime] = None) -> Donation:
    """
    Record a completed donation and allocate its net amount to the campaign's open milestones.

    Raises:
        ValidationError: If the campaign is missing or not active.
        FeeValidationError: If the amount fails the fee rules.
    """
    now = now or datetime.now(timezone.utc)
    campaign = validate_donation_target(body.campaign_id)
    breakdown = validate_donation_amount(
        body.amount,
        body.tip_amount,
        body.donor_covers_fees,
        settings_service.get_settings(),
    )

    donation = Donation(
        id=f"DON-{str(uuid.uuid4())[:8].upper()}",
        campaign_id=campaign.id,
        donor_id=body.donor_id,
        gross_amount=breakdown.gross_amount,
        platform_fee=breakdown.platform_fee,
        tip_amount=breakdown.tip_amount,
        net_amount=breakdown.net_amount,
        total_charge=breakdown.total_charge,
        donor_covers_fees=breakdown.donor_covers_fees,
        status=DonationStatus.COMPLETED,
        payment_method=body.payment_method,
        provider_payment_id=body.provider_payment_id,
        created_at=now,
    )
    store.save_donation(donation)
    _credit_and_allocate(donation)
    logger.info("Donation %s recorded for campaign %s: net %s", donation.id, campaign.id, donation.net_amount)
    return donation


def credit_campaign(
    campaign_id: str,
    donor_id: str,
    amount: Decimal,
    source_decision_id: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Credit a redirected refund to another campaign as a new, fee-free donation.

    Idempotent per source decision: a repeated call returns the donation
    created by the first one and does not credit the campaign again.

    Returns:
        The id of the redirect donation.

    Raises:
        LedgerError: If the target campaign does not exist.
    """
    now = now or datetime.now(timezone.utc)
    if store.get_campaign(campaign_id) is None:
        raise LedgerError(f"Target campaign {campaign_id} not found")

    amount = _quantize(amount)
    candidate = Donation(
        id=f"DON-{str(uuid.uuid4())[:8].upper()}",
        campaign_id=campaign_id,
        donor_id=donor_id,
        gross_amount=amount,
        platform_fee=Decimal("0.00"),
        tip_amount=Decimal("0.00"),
        net_amount=amount,
        total_charge=amount,
        donor_covers_fees=False,
        status=DonationStatus.COMPLETED,
        payment_method=REDIRECT_PAYMENT_METHOD,
        is_redirect=True,
        source_decision_id=source_decision_id,
        created_at=now,
    )
    donation = store.save_donation_once(candidate)
    if donation.id == candidate.id:
        _credit_and_allocate(donation)
        logger.info(
            "Redirected %s from decision %s to campaign %s as donation %s",
            amount, source_decision_id, campaign_id, donation.id,
        )
    return donation.id


def _credit_and_allocate(donation: Donation) -> None:
    new_donor = not store.has_donated(donation.campaign_id, donation.donor_id, donation.id)
    store.apply_campaign_credit(donation.campaign_id, donation.net_amount, new_donor)
    for milestone_id, amount, percentage in allocate_to_milestones(
        donation.net_amount, open_milestones(donation.campaign_id)
    ):
        store.save_allocation(MilestoneAllocation(
            id=f"ALLOC-{str(uuid.uuid4())[:8].upper()}",
            milestone_id=milestone_id,
            donation_id=donation.id,
            campaign_id=donation.campaign_id,
            donor_id=donation.donor_id,
            allocated_amount=amount,
            allocation_percentage=percentage,
        ))


def open_milestones(campaign_id: str) -> list[Milestone]:
    """Milestones that can still receive funds: not verified, not rejected, not released."""
    return [
        m for m in store.list_milestones(campaign_id)
        if m.status in (MilestoneStatus.PENDING, MilestoneStatus.SUBMITTED)
        and not m.funds_released
        and not m.refund_initiated
    ]


def list_completed_donations(
    campaign_id: str,
    milestone_id: Optional[str] = None,
    exclude_milestone_ids: frozenset = frozenset(),
) -> list[DonationShare]:
    """
    Unreleased net contributions of completed donations, one row per donation.

    With milestone_id, only that milestone's allocations count; without it,
    every milestone of the campaign not in exclude_milestone_ids. Amounts are
    net-to-charity, never gross.
    """
    totals: dict[str, Decimal] = {}
    donors: dict[str, str] = {}
    for allocation in store.list_allocations(
        milestone_id=milestone_id,
        campaign_id=campaign_id,
        only_unreleased=True,
    ):
        if allocation.milestone_id in exclude_milestone_ids:
            continue
        donation = store.get_donation(allocation.donation_id)
        if donation is None or donation.status != DonationStatus.COMPLETED:
            continue
        totals[donation.id] = totals.get(donation.id, Decimal("0")) + allocation.allocated_amount
        donors[donation.id] = donation.donor_id

    return [
        DonationShare(donor_id=donors[donation_id], donation_id=donation_id, net_amount=_quantize(total))
        for donation_id, total in totals.items()
    ]


def list_active_campaigns() -> list[Campaign]:
    return [c for c in store.list_campaigns() if c.status == CampaignStatus.ACTIVE]


def reject_milestone(milestone_id: str) -> Milestone:
    milestone = _require_milestone(milestone_id)
    updated = milestone.model_copy(update={"status": MilestoneStatus.REJECTED})
    store.save_milestone(updated)
    return updated


def mark_milestone_verified(milestone_id: str) -> Milestone:
    milestone = _require_milestone(milestone_id)
    updated = milestone.model_copy(update={"status": MilestoneStatus.VERIFIED})
    store.save_milestone(updated)
    return updated


def release_milestone_funds(milestone_id: str, now: Optional[datetime] = None) -> int:
    """Disburse a milestone's allocations to the charity. Released amounts are no longer refundable."""
    milestone = _require_milestone(milestone_id)
    store.save_milestone(milestone.model_copy(update={"funds_released": True}))
    return store.release_allocations(milestone_id, now or datetime.now(timezone.utc))


def _require_milestone(milestone_id: str) -> Milestone:
    milestone = store.get_milestone(milestone_id)
    if milestone is None:
        raise ValidationError(
            code="MILESTONE_NOT_FOUND",
            message=f"Milestone {milestone_id} not found",
            http_status=404,
        )
    return milestone
