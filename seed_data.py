"""
Seed data generator for the milestone refund service.

Builds campaigns, milestones and completed donations covering every refund
scenario. Donations go through the ledger so milestone allocations are real.
Run via: python seed_data.py (standalone) or imported by app startup.

Scenarios:
  MS-FLOOD-01     rejected; ANA 500 / BEN 300 / CARLA 200 net, one milestone
  MS-SCHOOL-02    rejected; sibling MS-SCHOOL-01 already released (excluded)
  MS-GARDEN-02    rejected; DIEGO's 10.00 share is below the minimum refund
  CAMP-EXPIRED    ended 10 days ago short of goal (expiration refund)
  CAMP-CANCELLED  cancelled by the charity (cancellation refund)
  CAMP-CLINIC, CAMP-OPEN     eligible redirect targets (OPEN has no end date)
  CAMP-LIBRARY, CAMP-ARTS, CAMP-WELLS   ineligible: ending soon, paused, fully funded
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from milestone_refunds.models.campaign import (
    Campaign,
    CampaignStatus,
    DonationCreate,
    Milestone,
    MilestoneStatus,
)
from milestone_refunds.repository.store import store
from milestone_refunds.services import ledger_service

CHARITY_ID = "CHARITY-BAYANIHAN"


def load_seed_data(now: Optional[datetime] = None) -> None:
    """Populate the in-memory store with campaigns, milestones and donations."""
    now = now or datetime.now(timezone.utc)
    for campaign in _build_campaigns(now):
        store.save_campaign(campaign)
    for milestone in _build_milestones(now):
        store.save_milestone(milestone)
    _record_donations(now)
    _settle_milestones(now)
    _close_campaigns()


def _campaign(
    campaign_id: str,
    title: str,
    category: str,
    goal: str,
    created_days_ago: int,
    now: datetime,
    ends_in_days: Optional[int],
    status: CampaignStatus = CampaignStatus.ACTIVE,
    current: str = "0",
) -> Campaign:
    return Campaign(
        id=campaign_id,
        charity_id=CHARITY_ID,
        title=title,
        description=f"Community fundraiser: {title}",
        category=category,
        status=status,
        goal_amount=Decimal(goal),
        current_amount=Decimal(current),
        end_date=now + timedelta(days=ends_in_days) if ends_in_days is not None else None,
        created_at=now - timedelta(days=created_days_ago),
    )


def _build_campaigns(now: datetime) -> list[Campaign]:
    return [
        _campaign("CAMP-FLOOD", "Flood relief for Marikina", "disaster", "100000", 40, now, ends_in_days=45),
        _campaign("CAMP-SCHOOL", "Classroom rebuild in Tacloban", "education", "50000", 60, now, ends_in_days=60),
        _campaign("CAMP-GARDEN", "Community garden in Cebu", "environment", "20000", 30, now, ends_in_days=30),
        _campaign("CAMP-CLINIC", "Rural clinic supplies", "health", "80000", 20, now, ends_in_days=90),
        _campaign("CAMP-OPEN", "Scholarship fund", "education", "150000", 10, now, ends_in_days=None),
        _campaign("CAMP-EXPIRED", "Typhoon shelter repairs", "disaster", "50000", 90, now, ends_in_days=-10),
        _campaign("CAMP-CANCELLED", "Mobile library van", "education", "25000", 50, now, ends_in_days=40),
        _campaign("CAMP-LIBRARY", "Barangay reading corner", "education", "30000", 70, now, ends_in_days=3),
        _campaign("CAMP-ARTS", "Youth arts festival", "arts", "40000", 35, now, ends_in_days=50,
                  status=CampaignStatus.PAUSED),
        _campaign("CAMP-WELLS", "Clean water wells", "health", "10000", 80, now, ends_in_days=30,
                  current="10000"),
    ]


def _build_milestones(now: datetime) -> list[Milestone]:
    specs = [
        # (id, campaign_id, title, target, status, created_days_ago)
        ("MS-FLOOD-01", "CAMP-FLOOD", "Relief packs", "20000", MilestoneStatus.SUBMITTED, 39),
        ("MS-FLOOD-02", "CAMP-FLOOD", "Evacuation center supplies", "30000", MilestoneStatus.VERIFIED, 38),
        ("MS-SCHOOL-01", "CAMP-SCHOOL", "Foundation works", "6000", MilestoneStatus.SUBMITTED, 59),
        ("MS-SCHOOL-02", "CAMP-SCHOOL", "Roofing", "4000", MilestoneStatus.SUBMITTED, 58),
        ("MS-GARDEN-01", "CAMP-GARDEN", "Land preparation", "9000", MilestoneStatus.PENDING, 29),
        ("MS-GARDEN-02", "CAMP-GARDEN", "Seedlings", "1000", MilestoneStatus.SUBMITTED, 28),
        ("MS-CLINIC-01", "CAMP-CLINIC", "Medicine stock", "40000", MilestoneStatus.PENDING, 19),
        ("MS-OPEN-01", "CAMP-OPEN", "First semester grants", "50000", MilestoneStatus.PENDING, 9),
        ("MS-EXPIRED-01", "CAMP-EXPIRED", "Roof sheets", "50000", MilestoneStatus.PENDING, 89),
        ("MS-CANCELLED-01", "CAMP-CANCELLED", "Van purchase", "25000", MilestoneStatus.PENDING, 49),
    ]
    return [
        Milestone(
            id=milestone_id,
            campaign_id=campaign_id,
            title=title,
            target_amount=Decimal(target),
            status=status,
            created_at=now - timedelta(days=days_ago),
        )
        for milestone_id, campaign_id, title, target, status, days_ago in specs
    ]


def _record_donations(now: datetime) -> None:
    donations = [
        # (campaign_id, donor_id, amount, donor_covers_fees)
        ("CAMP-FLOOD", "DONOR-ANA", "500", True),
        ("CAMP-FLOOD", "DONOR-BEN", "300", True),
        ("CAMP-FLOOD", "DONOR-CARLA", "200", True),
        ("CAMP-SCHOOL", "DONOR-ANA", "1000", True),
        ("CAMP-SCHOOL", "DONOR-BEN", "500", True),
        ("CAMP-GARDEN", "DONOR-DIEGO", "100", True),
        ("CAMP-GARDEN", "DONOR-ELLA", "1000", True),
        ("CAMP-CLINIC", "DONOR-FE", "2000", True),
        ("CAMP-CLINIC", "DONOR-GIO", "1500", False),
        ("CAMP-OPEN", "DONOR-JO", "300", True),
        ("CAMP-EXPIRED", "DONOR-HANA", "1000", True),
        ("CAMP-EXPIRED", "DONOR-ANA", "250", True),
        ("CAMP-CANCELLED", "DONOR-IAN", "800", True),
    ]
    for campaign_id, donor_id, amount, covers in donations:
        ledger_service.record_donation(
            DonationCreate(
                campaign_id=campaign_id,
                donor_id=donor_id,
                amount=Decimal(amount),
                donor_covers_fees=covers,
                payment_method="gcash",
                provider_payment_id=f"PM-{campaign_id}-{donor_id}",
            ),
            now=now - timedelta(days=5),
        )


def _settle_milestones(now: datetime) -> None:
    ledger_service.mark_milestone_verified("MS-SCHOOL-01")
    ledger_service.release_milestone_funds("MS-SCHOOL-01", now - timedelta(days=2))
    for milestone_id in ("MS-FLOOD-01", "MS-SCHOOL-02", "MS-GARDEN-02"):
        ledger_service.reject_milestone(milestone_id)


def _close_campaigns() -> None:
    cancelled = store.get_campaign("CAMP-CANCELLED")
    store.save_campaign(cancelled.model_copy(update={"status": CampaignStatus.CANCELLED}))


if __name__ == "__main__":
    load_seed_data()
    print(f"Loaded {len(store.list_campaigns())} campaigns:")
    for campaign in sorted(store.list_campaigns(), key=lambda c: c.id):
        print(f"  {campaign.id}: {campaign.status.value} | raised {campaign.current_amount} of {campaign.goal_amount}")
    for milestone in store.list_milestones():
        refundable = sum(
            (a.allocated_amount for a in store.list_allocations(milestone_id=milestone.id, only_unreleased=True)),
            Decimal("0"),
        )
        print(f"  {milestone.id}: {milestone.status.value} | unreleased {refundable}")
