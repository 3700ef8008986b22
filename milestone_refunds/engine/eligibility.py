"""
Redirect-target eligibility.

A campaign can receive a redirected refund only while it is active, is not
the source campaign, has at least the configured number of days left, and
is not yet fully funded. Pure functions; "now" is always passed in.
"""
from datetime import datetime, timedelta
from typing import Optional

from milestone_refunds.models.campaign import Campaign, CampaignPage, CampaignSort, CampaignStatus
from milestone_refunds.models.refund import RefundTriggerType

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 12


def check_redirect_eligibility(
    campaign: Optional[Campaign],
    source_campaign_id: str,
    now: datetime,
    min_days_remaining: int,
) -> Optional[str]:
    """Return the first failing criterion as a reason code, or None when eligible."""
    if campaign is None:
        return "CAMPAIGN_NOT_FOUND"
    if campaign.status != CampaignStatus.ACTIVE:
        return "CAMPAIGN_NOT_ACTIVE"
    if campaign.id == source_campaign_id:
        return "SAME_CAMPAIGN"
    # No end date means the campaign is open-ended.
    if campaign.end_date is not None and campaign.end_date < now + timedelta(days=min_days_remaining):
        return "CAMPAIGN_ENDING_SOON"
    if campaign.current_amount >= campaign.goal_amount:
        return "CAMPAIGN_FULLY_FUNDED"
    return None


def is_eligible_redirect_target(
    campaign: Optional[Campaign],
    source_campaign_id: str,
    now: datetime,
    min_days_remaining: int,
) -> bool:
    return check_redirect_eligibility(campaign, source_campaign_id, now, min_days_remaining) is None


def _matches(campaign: Campaign, category: Optional[str], search: Optional[str]) -> bool:
    if category and (campaign.category or "").lower() != category.lower():
        return False
    if search:
        needle = search.lower()
        if needle not in campaign.title.lower() and needle not in campaign.description.lower():
            return False
    return True


def _sort(campaigns: list[Campaign], sort: CampaignSort) -> list[Campaign]:
    if sort == CampaignSort.POPULAR:
        return sorted(campaigns, key=lambda c: (-c.donors_count, c.id))
    if sort == CampaignSort.NEWEST:
        return sorted(campaigns, key=lambda c: (c.created_at, c.id), reverse=True)
    if sort == CampaignSort.ALMOST_FUNDED:
        return sorted(campaigns, key=lambda c: (-c.current_amount, c.id))
    # ENDING_SOON: open-ended campaigns last
    return sorted(
        campaigns,
        key=lambda c: (c.end_date is None, c.end_date.timestamp() if c.end_date else 0.0, c.id),
    )


def filter_redirect_campaigns(
    campaigns: list[Campaign],
    source_campaign_id: str,
    now: datetime,
    min_days_remaining: int,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: CampaignSort = CampaignSort.POPULAR,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> CampaignPage:
    """
    Return one page of eligible redirect targets.

    Ineligible campaigns (including the source) are always excluded, whatever
    the filters. page is 1-based; limit is clamped to 1..MAX_PAGE_SIZE.
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    eligible = [
        c for c in campaigns
        if is_eligible_redirect_target(c, source_campaign_id, now, min_days_remaining)
        and _matches(c, category, search)
    ]
    ordered = _sort(eligible, sort)
    start = (page - 1) * limit
    return CampaignPage(items=ordered[start:start + limit], total=len(ordered), page=page, limit=limit)


def check_campaign_refund_eligibility(
    campaign: Campaign,
    now: datetime,
    grace_days: int,
) -> Optional[RefundTriggerType]:
    """
    Return the trigger under which a campaign's donors are owed a refund, or None.

    Cancelled campaigns always qualify. Active or paused campaigns qualify once
    end_date + grace_days has passed without reaching the goal.
    """
    if campaign.expiration_refund_initiated:
        return None
    if campaign.status == CampaignStatus.CANCELLED:
        return RefundTriggerType.CAMPAIGN_CANCELLATION
    if campaign.status not in (CampaignStatus.ACTIVE, CampaignStatus.PAUSED) or campaign.end_date is None:
        return None
    if campaign.end_date + timedelta(days=grace_days) > now:
        return None
    if campaign.current_amount >= campaign.goal_amount:
        return None
    return RefundTriggerType.CAMPAIGN_EXPIRATION
