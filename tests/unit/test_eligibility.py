"""Unit tests for milestone_refunds/engine/eligibility.py."""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from milestone_refunds.engine.eligibility import (
    check_redirect_eligibility,
    is_eligible_redirect_target,
    filter_redirect_campaigns,
    check_campaign_refund_eligibility,
)
from milestone_refunds.models.campaign import Campaign, CampaignSort, CampaignStatus
from milestone_refunds.models.refund import RefundTriggerType

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _campaign(campaign_id: str = "CAMP-T", **kwargs) -> Campaign:
    defaults = dict(
        id=campaign_id,
        charity_id="CH-1",
        title=f"Campaign {campaign_id}",
        description="",
        category="health",
        status=CampaignStatus.ACTIVE,
        goal_amount=Decimal("10000"),
        current_amount=Decimal("1000"),
        donors_count=1,
        end_date=NOW + timedelta(days=30),
        created_at=NOW - timedelta(days=10),
    )
    defaults.update(kwargs)
    return Campaign(**defaults)


def test_eligible_campaign():
    assert check_redirect_eligibility(_campaign(), "CAMP-SRC", NOW, 7) is None
    assert is_eligible_redirect_target(_campaign(), "CAMP-SRC", NOW, 7)


@pytest.mark.parametrize("campaign, reason", [
    (None, "CAMPAIGN_NOT_FOUND"),
    (_campaign(status=CampaignStatus.PAUSED), "CAMPAIGN_NOT_ACTIVE"),
    (_campaign(status=CampaignStatus.CANCELLED), "CAMPAIGN_NOT_ACTIVE"),
    (_campaign("CAMP-SRC"), "SAME_CAMPAIGN"),
    (_campaign(end_date=NOW + timedelta(days=3)), "CAMPAIGN_ENDING_SOON"),
    (_campaign(current_amount=Decimal("10000")), "CAMPAIGN_FULLY_FUNDED"),
])
def test_ineligible_reasons(campaign, reason):
    assert check_redirect_eligibility(campaign, "CAMP-SRC", NOW, 7) == reason


def test_exactly_minimum_days_remaining_is_eligible():
    campaign = _campaign(end_date=NOW + timedelta(days=7))
    assert is_eligible_redirect_target(campaign, "CAMP-SRC", NOW, 7)


def test_open_ended_campaign_is_eligible():
    assert is_eligible_redirect_target(_campaign(end_date=None), "CAMP-SRC", NOW, 7)


def test_first_failing_reason_wins():
    campaign = _campaign("CAMP-SRC", status=CampaignStatus.PAUSED)
    assert check_redirect_eligibility(campaign, "CAMP-SRC", NOW, 7) == "CAMPAIGN_NOT_ACTIVE"


def test_filter_excludes_ineligible_and_source():
    campaigns = [
        _campaign("CAMP-SRC"),
        _campaign("CAMP-A"),
        _campaign("CAMP-B", end_date=NOW + timedelta(days=2)),
        _campaign("CAMP-C", status=CampaignStatus.DRAFT),
    ]
    page = filter_redirect_campaigns(campaigns, "CAMP-SRC", NOW, 7)
    assert [c.id for c in page.items] == ["CAMP-A"]
    assert page.total == 1


def test_filter_by_category_and_search():
    campaigns = [
        _campaign("CAMP-A", category="health", title="Clinic beds"),
        _campaign("CAMP-B", category="education", title="Clinic for schools"),
        _campaign("CAMP-C", category="health", title="Water", description="Clean CLINIC water"),
    ]
    page = filter_redirect_campaigns(campaigns, "CAMP-SRC", NOW, 7, category="Health", search="clinic")
    assert sorted(c.id for c in page.items) == ["CAMP-A", "CAMP-C"]


def test_sort_orders():
    campaigns = [
        _campaign("CAMP-A", donors_count=5, current_amount=Decimal("100"), created_at=NOW - timedelta(days=3),
                  end_date=NOW + timedelta(days=20)),
        _campaign("CAMP-B", donors_count=9, current_amount=Decimal("9000"), created_at=NOW - timedelta(days=1),
                  end_date=None),
        _campaign("CAMP-C", donors_count=1, current_amount=Decimal("5000"), created_at=NOW - timedelta(days=2),
                  end_date=NOW + timedelta(days=10)),
    ]

    def ids(sort):
        return [c.id for c in filter_redirect_campaigns(campaigns, "CAMP-SRC", NOW, 7, sort=sort).items]

    assert ids(CampaignSort.POPULAR) == ["CAMP-B", "CAMP-A", "CAMP-C"]
    assert ids(CampaignSort.NEWEST) == ["CAMP-B", "CAMP-C", "CAMP-A"]
    assert ids(CampaignSort.ALMOST_FUNDED) == ["CAMP-B", "CAMP-C", "CAMP-A"]
    assert ids(CampaignSort.ENDING_SOON) == ["CAMP-C", "CAMP-A", "CAMP-B"]


def test_pagination_and_limit_clamp():
    campaigns = [_campaign(f"CAMP-{i:02d}", donors_count=i) for i in range(1, 8)]
    page = filter_redirect_campaigns(campaigns, "CAMP-SRC", NOW, 7, page=2, limit=3)
    assert [c.id for c in page.items] == ["CAMP-04", "CAMP-03", "CAMP-02"]
    assert page.total == 7

    clamped = filter_redirect_campaigns(campaigns, "CAMP-SRC", NOW, 7, limit=500)
    assert clamped.limit == 50


def test_campaign_refund_for_cancelled_campaign():
    campaign = _campaign(status=CampaignStatus.CANCELLED)
    assert check_campaign_refund_eligibility(campaign, NOW, 7) == RefundTriggerType.CAMPAIGN_CANCELLATION


def test_campaign_refund_after_grace_period():
    campaign = _campaign(end_date=NOW - timedelta(days=8))
    assert check_campaign_refund_eligibility(campaign, NOW, 7) == RefundTriggerType.CAMPAIGN_EXPIRATION


def test_campaign_refund_within_grace_period():
    campaign = _campaign(end_date=NOW - timedelta(days=3))
    assert check_campaign_refund_eligibility(campaign, NOW, 7) is None


def test_campaign_refund_not_for_funded_campaign():
    campaign = _campaign(end_date=NOW - timedelta(days=30), current_amount=Decimal("10000"))
    assert check_campaign_refund_eligibility(campaign, NOW, 7) is None


def test_campaign_refund_only_once():
    campaign = _campaign(status=CampaignStatus.CANCELLED, expiration_refund_initiated=True)
    assert check_campaign_refund_eligibility(campaign, NOW, 7) is None
