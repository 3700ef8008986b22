from __future__ import annotations

"""
Business rule validation for refund initiation, donor decisions, and
operator actions.

All validations execute in order and stop at the first failure. Validators
read from the repository but never write to it.
"""
from datetime import datetime
from typing import Optional
from milestone_refunds.engine.eligibility import check_redirect_eligibility, check_campaign_refund_eligibility
from milestone_refunds.models.campaign import Campaign, CampaignStatus, Milestone, MilestoneStatus
from milestone_refunds.models.refund import (
    DecisionStatus,
    DecisionType,
    DonorRefundDecision,
    RefundRequest,
    RefundTriggerType,
)
from milestone_refunds.repository.store import store


class ValidationError(Exception):
    """Raised when a business rule validation fails."""

    def __init__(self, code: str, message: str, details: dict | None = None, http_status: int = 422):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status
        super().__init__(message)


# ── Refund initiation ───────────────────────────────────────────────────────

def validate_milestone_refund(milestone_id: str) -> tuple[Milestone, Campaign]:
    """
    Rules for initiating a refund from a milestone.

    Returns:
        The rejected milestone and its campaign.

    Raises:
        ValidationError: MILESTONE_NOT_FOUND (404) or MILESTONE_NOT_REJECTED (422).
    """
    milestone = store.get_milestone(milestone_id)
    if milestone is None:
        raise ValidationError(
            code="MILESTONE_NOT_FOUND",
            message=f"Milestone {milestone_id} not found",
            http_status=404,
        )
    if milestone.status != MilestoneStatus.REJECTED:
        raise ValidationError(
            code="MILESTONE_NOT_REJECTED",
            message=(
                f"Milestone {milestone_id} has status {milestone.status.value}. "
                "Refunds can only be initiated for rejected milestones."
            ),
            details={"status": milestone.status.value},
        )
    campaign = _require_campaign(milestone.campaign_id)
    return milestone, campaign


def validate_campaign_refund(
    campaign_id: str,
    trigger_type: RefundTriggerType,
    now: datetime,
    grace_days: int,
) -> Campaign:
    """Rules for a campaign-level refund: the campaign must currently qualify for the given trigger."""
    campaign = _require_campaign(campaign_id)
    if trigger_type == RefundTriggerType.MILESTONE_REJECTION:
        raise ValidationError(
            code="INVALID_TRIGGER_TYPE",
            message="Milestone rejections are initiated per milestone, not per campaign",
            details={"trigger_type": trigger_type.value},
        )
    qualifying = check_campaign_refund_eligibility(campaign, now, grace_days)
    if qualifying != trigger_type:
        raise ValidationError(
            code="CAMPAIGN_NOT_REFUNDABLE",
            message=f"Campaign {campaign_id} does not qualify for a {trigger_type.value} refund",
            details={
                "status": campaign.status.value,
                "end_date": campaign.end_date.isoformat() if campaign.end_date else None,
                "qualifying_trigger": qualifying.value if qualifying else None,
            },
        )
    return campaign


def _require_campaign(campaign_id: str) -> Campaign:
    campaign = store.get_campaign(campaign_id)
    if campaign is None:
        raise ValidationError(
            code="CAMPAIGN_NOT_FOUND",
            message=f"Campaign {campaign_id} not found",
            http_status=404,
        )
    return campaign


def require_refund_request(refund_request_id: str) -> RefundRequest:
    refund_request = store.get_refund_request(refund_request_id)
    if refund_request is None:
        raise ValidationError(
            code="REFUND_REQUEST_NOT_FOUND",
            message=f"Refund request {refund_request_id} not found",
            http_status=404,
        )
    return refund_request


# ── Donor decisions ─────────────────────────────────────────────────────────

def validate_decision_submission(
    decision_id: str,
    donor_id: str,
    decision_type: DecisionType,
    target_campaign_id: Optional[str],
    now: datetime,
    min_days_remaining: int,
) -> DonorRefundDecision:
    """
    Run the submission rules in order.

    Rule 1: the decision exists and belongs to the donor.
    Rule 2: it is pending and no disposition has been recorded.
    Rule 3: its deadline has not passed.
    Rule 4: a redirect names an eligible target; other types name none.

    Raises:
        ValidationError: On the first failing rule.
    """
    decision = _validate_decision_owned(decision_id, donor_id)
    _validate_decision_open(decision)
    _validate_deadline(decision, now)
    _validate_redirect_target(decision, decision_type, target_campaign_id, now, min_days_remaining)
    return decision


def _validate_decision_owned(decision_id: str, donor_id: str) -> DonorRefundDecision:
    """Rule 1. Another donor's decision is reported as not found."""
    decision = store.get_decision(decision_id)
    if decision is None or decision.donor_id != donor_id:
        raise ValidationError(
            code="DECISION_NOT_FOUND",
            message=f"Refund decision {decision_id} not found",
            http_status=404,
        )
    return decision


def _validate_decision_open(decision: DonorRefundDecision) -> None:
    """Rule 2: a disposition is write-once."""
    if decision.status != DecisionStatus.PENDING or decision.decision_type is not None:
        raise ValidationError(
            code="DECISION_ALREADY_SUBMITTED",
            message=f"A decision has already been recorded for {decision.id}",
            details={
                "status": decision.status.value,
                "decision_type": decision.decision_type.value if decision.decision_type else None,
            },
            http_status=409,
        )


def _validate_deadline(decision: DonorRefundDecision, now: datetime) -> None:
    """Rule 3: no submissions at or after the deadline."""
    if now >= decision.decision_deadline:
        raise ValidationError(
            code="DECISION_DEADLINE_PASSED",
            message=(
                f"The decision deadline for {decision.id} passed at "
                f"{decision.decision_deadline.isoformat()}. The amount will be refunded."
            ),
            details={"decision_deadline": decision.decision_deadline.isoformat()},
            http_status=409,
        )


def _validate_redirect_target(
    decision: DonorRefundDecision,
    decision_type: DecisionType,
    target_campaign_id: Optional[str],
    now: datetime,
    min_days_remaining: int,
) -> None:
    """Rule 4: redirect targets must pass the eligibility filter at submission time."""
    if decision_type != DecisionType.REDIRECT_TO_CAMPAIGN:
        if target_campaign_id is not None:
            raise ValidationError(
                code="INVALID_REDIRECT_TARGET",
                message=f"target_campaign_id is only accepted with {DecisionType.REDIRECT_TO_CAMPAIGN.value}",
                details={"reason": "TARGET_NOT_ALLOWED", "decision_type": decision_type.value},
            )
        return

    if not target_campaign_id:
        raise ValidationError(
            code="INVALID_REDIRECT_TARGET",
            message="A redirect decision requires target_campaign_id",
            details={"reason": "TARGET_REQUIRED"},
        )

    reason = check_redirect_eligibility(
        store.get_campaign(target_campaign_id),
        decision.campaign_id,
        now,
        min_days_remaining,
    )
    if reason is not None:
        raise ValidationError(
            code="INVALID_REDIRECT_TARGET",
            message=f"Campaign {target_campaign_id} cannot receive redirected funds ({reason})",
            details={"reason": reason, "target_campaign_id": target_campaign_id},
        )


# ── Operator actions ────────────────────────────────────────────────────────

def _require_decision(decision_id: str) -> DonorRefundDecision:
    decision = store.get_decision(decision_id)
    if decision is None:
        raise ValidationError(
            code="DECISION_NOT_FOUND",
            message=f"Refund decision {decision_id} not found",
            http_status=404,
        )
    return decision


def validate_decision_for_reset(decision_id: str) -> DonorRefundDecision:
    """Only failed decisions may be returned to pending."""
    decision = _require_decision(decision_id)
    if decision.status != DecisionStatus.FAILED:
        raise ValidationError(
            code="DECISION_NOT_RETRYABLE",
            message=f"Decision {decision_id} has status {decision.status.value}; only failed decisions can be retried",
            details={"status": decision.status.value},
            http_status=409,
        )
    return decision


def validate_decision_for_revert(decision_id: str) -> DonorRefundDecision:
    """A recorded intent can be cleared only while the decision is pending and not being executed."""
    decision = _require_decision(decision_id)
    if decision.status != DecisionStatus.PENDING or decision.claim_token is not None:
        raise ValidationError(
            code="DECISION_NOT_REVERTIBLE",
            message=f"Decision {decision_id} is {decision.status.value} and can no longer be changed",
            details={"status": decision.status.value},
            http_status=409,
        )
    if decision.decision_type is None:
        raise ValidationError(
            code="DECISION_NOT_REVERTIBLE",
            message=f"Decision {decision_id} has no recorded disposition to revert",
            details={"status": decision.status.value},
            http_status=409,
        )
    return decision


# ── Donations ───────────────────────────────────────────────────────────────

def validate_donation_target(campaign_id: str) -> Campaign:
    """Donations are accepted only by active campaigns."""
    campaign = _require_campaign(campaign_id)
    if campaign.status != CampaignStatus.ACTIVE:
        raise ValidationError(
            code="CAMPAIGN_NOT_ACTIVE",
            message=f"Campaign {campaign_id} is {campaign.status.value} and is not accepting donations",
            details={"status": campaign.status.value},
        )
    return campaign
