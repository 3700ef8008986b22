"""
Refund request service: creates refund requests and keeps their aggregate
status in line with their decisions.

Flow: validate → enumerate shares → build decisions → verify totals → persist → audit
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from milestone_refunds.engine.allocation import group_donor_shares, sum_contributions
from milestone_refunds.engine.fees import _quantize
from milestone_refunds.engine.status import decisions_total, derive_request_status
from milestone_refunds.models.audit import AuditAction
from milestone_refunds.models.refund import (
    DecisionStatus,
    DecisionType,
    DonorRefundDecision,
    RefundRequest,
    RefundRequestDetail,
    RefundRequestStatus,
    RefundStats,
    RefundTriggerType,
)
from milestone_refunds.models.campaign import DonationShare
from milestone_refunds.repository.store import store
from milestone_refunds.services import audit_service, ledger_service, settings_service
from milestone_refunds.validators.refund_validator import (
    ValidationError,
    require_refund_request,
    validate_campaign_refund,
    validate_milestone_refund,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = Decimal("86400")


def initiate_milestone_refund(
    milestone_id: str,
    rejection_reason: str,
    operator_id: str,
    request_id: str,
    now: Optional[datetime] = None,
) -> tuple[RefundRequest, bool]:
    """
    Create the refund request for a rejected milestone.

    Steps:
      1. Validate the milestone exists and is rejected.
      2. Return the existing request if the milestone already has one.
      3. Enumerate unreleased net contributions and group them per donor.
      4. Build one pending decision per donor and verify the totals.
      5. Persist request + decisions atomically, then audit.

    Returns:
        (refund_request, replayed). replayed is True when an existing request
        was returned instead of creating a new one.

    Raises:
        ValidationError: MILESTONE_NOT_FOUND, MILESTONE_NOT_REJECTED,
            NO_AFFECTED_DONORS or CONSISTENCY_ERROR.
    """
    now = now or datetime.now(timezone.utc)

    try:
        milestone, campaign = validate_milestone_refund(milestone_id)
    except ValidationError as exc:
        audit_service.record_initiation_rejected(operator_id, request_id, milestone_id, exc.code, exc.message)
        raise

    existing = store.get_request_by_milestone(milestone_id)
    if existing is not None:
        return _replayed(existing, operator_id, request_id), True

    shares = ledger_service.list_completed_donations(campaign.id, milestone_id=milestone_id)
    refund_request, decisions = _build_request(
        shares=shares,
        campaign_id=campaign.id,
        charity_id=campaign.charity_id,
        milestone_id=milestone_id,
        trigger_type=RefundTriggerType.MILESTONE_REJECTION,
        reason=rejection_reason,
        operator_id=operator_id,
        request_id=request_id,
        subject_id=milestone_id,
        now=now,
    )

    saved, created = store.create_refund_request(
        refund_request, decisions, [milestone.id], campaign_level=False, initiated_at=now
    )
    if not created:
        return _replayed(saved, operator_id, request_id), True

    logger.info(
        "Refund request %s initiated for milestone %s: %d donor(s), total %s",
        saved.id, milestone_id, saved.affected_donors_count, saved.total_refund_amount,
    )
    audit_service.record_refund_initiated(saved, request_id)
    return saved, False


def initiate_campaign_refund(
    campaign_id: str,
    trigger_type: RefundTriggerType,
    reason: Optional[str],
    operator_id: str,
    request_id: str,
    now: Optional[datetime] = None,
) -> tuple[RefundRequest, bool]:
    """
    Create the refund request for an expired or cancelled campaign.

    Covers every unreleased allocation of the campaign except those of
    milestones that already have their own refund request. At most one
    campaign-level request exists per campaign.
    """
    now = now or datetime.now(timezone.utc)

    existing = store.get_campaign_level_request(campaign_id)
    if existing is not None:
        return _replayed(existing, operator_id, request_id), True

    try:
        campaign = validate_campaign_refund(
            campaign_id, trigger_type, now, settings_service.get_expiration_grace_days()
        )
    except ValidationError as exc:
        audit_service.record_initiation_rejected(operator_id, request_id, campaign_id, exc.code, exc.message)
        raise

    already_covered = frozenset(m.id for m in store.list_milestones(campaign_id) if m.refund_initiated)
    covered_milestones = sorted({
        a.milestone_id
        for a in store.list_allocations(campaign_id=campaign_id, only_unreleased=True)
        if a.milestone_id not in already_covered
    })
    shares = ledger_service.list_completed_donations(campaign_id, exclude_milestone_ids=already_covered)

    refund_request, decisions = _build_request(
        shares=shares,
        campaign_id=campaign.id,
        charity_id=campaign.charity_id,
        milestone_id=None,
        trigger_type=trigger_type,
        reason=reason or f"Campaign {trigger_type.value.replace('campaign_', '')}",
        operator_id=operator_id,
        request_id=request_id,
        subject_id=campaign_id,
        now=now,
    )

    saved, created = store.create_refund_request(
        refund_request, decisions, covered_milestones, campaign_level=True, initiated_at=now
    )
    if not created:
        return _replayed(saved, operator_id, request_id), True

    logger.info(
        "Campaign refund request %s initiated for campaign %s (%s): %d donor(s), total %s",
        saved.id, campaign_id, trigger_type.value, saved.affected_donors_count, saved.total_refund_amount,
    )
    audit_service.record_refund_initiated(saved, request_id)
    return saved, False


def _build_request(
    shares: list[DonationShare],
    campaign_id: str,
    charity_id: str,
    milestone_id: Optional[str],
    trigger_type: RefundTriggerType,
    reason: str,
    operator_id: str,
    request_id: str,
    subject_id: str,
    now: datetime,
) -> tuple[RefundRequest, list[DonorRefundDecision]]:
    grouped = group_donor_shares(shares)
    if not grouped:
        exc = ValidationError(
            code="NO_AFFECTED_DONORS",
            message=f"No unreleased donations to refund for {subject_id}",
            details={"campaign_id": campaign_id, "milestone_id": milestone_id},
        )
        audit_service.record_initiation_rejected(operator_id, request_id, subject_id, exc.code, exc.message)
        raise exc

    deadline = now + timedelta(days=settings_service.get_decision_window_days())
    refund_request_id = f"RR-{str(uuid.uuid4())[:8].upper()}"

    decisions = [
        DonorRefundDecision(
            id=f"DEC-{str(uuid.uuid4())[:8].upper()}",
            refund_request_id=refund_request_id,
            donor_id=donor_id,
            campaign_id=campaign_id,
            milestone_id=milestone_id,
            refund_amount=sum_contributions(contributions),
            contributions=contributions,
            decision_deadline=deadline,
            created_at=now,
            updated_at=now,
        )
        for donor_id, contributions in grouped.items()
    ]

    total = decisions_total(decisions)
    expected = _quantize(sum((s.net_amount for s in shares if s.net_amount > 0), Decimal("0")))
    if total != expected:
        logger.error(
            "Refund totals for %s do not reconcile: decisions %s, contributions %s",
            subject_id, total, expected,
        )
        exc = ValidationError(
            code="CONSISTENCY_ERROR",
            message="Refund totals do not reconcile with the affected donations",
            details={"decisions_total": str(total), "contributions_total": str(expected)},
            http_status=500,
        )
        audit_service.record_initiation_rejected(operator_id, request_id, subject_id, exc.code, exc.message)
        raise exc

    refund_request = RefundRequest(
        id=refund_request_id,
        campaign_id=campaign_id,
        milestone_id=milestone_id,
        charity_id=charity_id,
        trigger_type=trigger_type,
        total_refund_amount=total,
        affected_donors_count=len(decisions),
        rejection_reason=reason,
        decision_deadline=deadline,
        created_by=operator_id,
        created_at=now,
        updated_at=now,
    )
    return refund_request, decisions


def _replayed(refund_request: RefundRequest, operator_id: str, request_id: str) -> RefundRequest:
    audit_service.record(
        action=AuditAction.REFUND_INITIATION_REPLAYED,
        actor_id=operator_id,
        request_id=request_id,
        reasoning=f"Refund request {refund_request.id} already exists; returned without changes.",
        refund_request_id=refund_request.id,
    )
    return refund_request


def recompute_status(refund_request_id: str, now: Optional[datetime] = None) -> RefundRequest:
    """
    Re-derive a request's status from its decisions and persist it if it changed.

    Safe to call at any time and any number of times.

    Raises:
        ValidationError: REFUND_REQUEST_NOT_FOUND, or CONSISTENCY_ERROR if the
            decisions no longer sum to the request total.
    """
    now = now or datetime.now(timezone.utc)
    require_refund_request(refund_request_id)

    def derive(refund_request: RefundRequest, decisions: list[DonorRefundDecision]) -> RefundRequestStatus:
        total = decisions_total(decisions)
        if total != refund_request.total_refund_amount:
            logger.error(
                "Refund request %s total %s does not match its decisions (%s)",
                refund_request_id, refund_request.total_refund_amount, total,
            )
            raise ValidationError(
                code="CONSISTENCY_ERROR",
                message=f"Refund request {refund_request_id} does not reconcile with its decisions",
                details={
                    "total_refund_amount": str(refund_request.total_refund_amount),
                    "decisions_total": str(total),
                },
                http_status=500,
            )
        return derive_request_status(decisions, refund_request.decision_deadline, now)

    before, after = store.refresh_request_status(refund_request_id, derive, now)
    if after.status != before.status:
        logger.info("Refund request %s: %s -> %s", refund_request_id, before.status.value, after.status.value)
    return after


def list_refund_requests(status: Optional[RefundRequestStatus] = None) -> list[RefundRequest]:
    """List refund requests, newest first, optionally filtered by status."""
    return store.list_refund_requests(status=status)


def get_refund_request(refund_request_id: str) -> Optional[RefundRequestDetail]:
    """Retrieve a request together with its decisions."""
    refund_request = store.get_refund_request(refund_request_id)
    if refund_request is None:
        return None
    return RefundRequestDetail(
        request=refund_request,
        decisions=store.list_decisions(refund_request_id=refund_request_id),
    )


def list_request_decisions(refund_request_id: str) -> list[DonorRefundDecision]:
    require_refund_request(refund_request_id)
    return store.list_decisions(refund_request_id=refund_request_id)


def get_refund_stats() -> RefundStats:
    """Summary counts and amounts across every refund request and decision."""
    requests = store.list_refund_requests()
    decisions = store.list_decisions()

    def count(status: RefundRequestStatus) -> int:
        return sum(1 for r in requests if r.status == status)

    def amount(status: DecisionStatus) -> Decimal:
        return decisions_total([d for d in decisions if d.status == status])

    distribution = {t.value: 0 for t in DecisionType}
    for decision in decisions:
        if decision.decision_type is not None:
            distribution[decision.decision_type.value] += 1

    # Response time counts donor-submitted decisions only.
    response_days = [
        Decimal(str((d.decided_at - d.created_at).total_seconds())) / SECONDS_PER_DAY
        for d in decisions
        if d.decided_at is not None and not d.auto_defaulted
    ]
    average = sum(response_days, Decimal("0")) / len(response_days) if response_days else Decimal("0")

    return RefundStats(
        total_requests=len(requests),
        pending_decisions=count(RefundRequestStatus.PENDING_DECISIONS),
        processing_count=count(RefundRequestStatus.PROCESSING),
        completed_count=count(RefundRequestStatus.COMPLETED),
        partially_completed_count=count(RefundRequestStatus.PARTIALLY_COMPLETED),
        total_amount=_quantize(sum((r.total_refund_amount for r in requests), Decimal("0"))),
        pending_amount=amount(DecisionStatus.PENDING),
        processed_amount=amount(DecisionStatus.COMPLETED),
        failed_decisions=sum(1 for d in decisions if d.status == DecisionStatus.FAILED),
        decision_type_distribution=distribution,
        average_response_days=_quantize(average),
    )
