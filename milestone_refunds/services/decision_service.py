"""
Decision service: records donor dispositions. Nothing is executed here.

Flow: validate → apply minimum refund rule → conditional write → audit → recompute
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from milestone_refunds.engine.eligibility import DEFAULT_PAGE_SIZE, filter_redirect_campaigns
from milestone_refunds.models.audit import AuditAction
from milestone_refunds.models.campaign import CampaignPage, CampaignSort
from milestone_refunds.models.refund import DecisionStatus, DecisionType, DonorRefundDecision
from milestone_refunds.repository.store import store
from milestone_refunds.services import audit_service, ledger_service, settings_service
from milestone_refunds.services.refund_request_service import recompute_status
from milestone_refunds.validators.refund_validator import (
    ValidationError,
    validate_decision_for_revert,
    validate_decision_submission,
)

logger = logging.getLogger(__name__)


def submit_decision(
    decision_id: str,
    donor_id: str,
    decision_type: DecisionType,
    target_campaign_id: Optional[str],
    request_id: str,
    now: Optional[datetime] = None,
) -> DonorRefundDecision:
    """
    Record a donor's disposition for a pending decision.

    A refund choice below the minimum refund amount is recorded as a platform
    donation instead, with the original choice kept in metadata. The write
    succeeds only if no other submission landed first.

    Raises:
        ValidationError: DECISION_NOT_FOUND, DECISION_ALREADY_SUBMITTED,
            DECISION_DEADLINE_PASSED or INVALID_REDIRECT_TARGET.
    """
    now = now or datetime.now(timezone.utc)

    try:
        decision = validate_decision_submission(
            decision_id,
            donor_id,
            decision_type,
            target_campaign_id,
            now,
            settings_service.get_min_campaign_days_remaining(),
        )
    except ValidationError as exc:
        _record_rejected(decision_id, donor_id, request_id, exc)
        raise

    effective_type = decision_type
    metadata = dict(decision.metadata)
    minimum_refund = settings_service.get_minimum_refund_amount()
    if decision_type == DecisionType.REFUND and decision.refund_amount < minimum_refund:
        effective_type = DecisionType.DONATE_TO_PLATFORM
        metadata.update({
            "auto_converted": True,
            "original_decision_type": decision_type.value,
            "minimum_refund_amount": str(minimum_refund),
        })

    updated = store.update_decision_intent(
        decision_id,
        decision.version,
        effective_type,
        target_campaign_id,
        now,
        metadata,
    )
    if updated is None:
        exc = ValidationError(
            code="DECISION_ALREADY_SUBMITTED",
            message=f"A decision has already been recorded for {decision_id}",
            http_status=409,
        )
        _record_rejected(decision_id, donor_id, request_id, exc)
        raise exc

    logger.info("Decision %s recorded as %s by donor %s", decision_id, effective_type.value, donor_id)
    audit_service.record_decision_submitted(updated, request_id)
    recompute_status(updated.refund_request_id, now)
    return updated


def _record_rejected(decision_id: str, donor_id: str, request_id: str, exc: ValidationError) -> None:
    decision = store.get_decision(decision_id)
    audit_service.record(
        action=AuditAction.DECISION_REJECTED,
        actor_id=donor_id,
        request_id=request_id,
        reasoning=f"Decision submission rejected. Code: {exc.code}. Reason: {exc.message}",
        refund_request_id=decision.refund_request_id if decision else None,
        decision_id=decision_id,
        detail={"error_code": exc.code, **exc.details},
    )


def get_donor_pending_decisions(donor_id: str) -> list[DonorRefundDecision]:
    """Pending decisions for a donor, newest first."""
    decisions = store.list_decisions(donor_id=donor_id, status=DecisionStatus.PENDING)
    return sorted(decisions, key=lambda d: d.created_at, reverse=True)


def revert_decision_intent(
    decision_id: str,
    operator_id: str,
    reason: Optional[str],
    request_id: str,
    now: Optional[datetime] = None,
) -> DonorRefundDecision:
    """
    Clear a recorded disposition so the donor can choose again.

    Only possible while the decision is pending and not being executed.
    """
    now = now or datetime.now(timezone.utc)
    decision = validate_decision_for_revert(decision_id)

    updated = store.clear_decision_intent(decision_id, now)
    if updated is None:
        raise ValidationError(
            code="DECISION_NOT_REVERTIBLE",
            message=f"Decision {decision_id} changed while it was being reverted",
            http_status=409,
        )

    audit_service.record(
        action=AuditAction.DECISION_INTENT_REVERTED,
        actor_id=operator_id,
        request_id=request_id,
        reasoning=(
            f"Operator '{operator_id}' cleared the {decision.decision_type.value} choice on {decision_id}."
            + (f" Reason: {reason}" if reason else "")
        ),
        refund_request_id=decision.refund_request_id,
        decision_id=decision_id,
        detail={
            "previous_decision_type": decision.decision_type.value,
            "previous_target_campaign_id": decision.target_campaign_id,
        },
    )
    recompute_status(updated.refund_request_id, now)
    return updated


def list_redirect_campaigns(
    decision_id: str,
    donor_id: str,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: CampaignSort = CampaignSort.POPULAR,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> CampaignPage:
    """Campaigns the donor could redirect this decision's amount to right now."""
    now = now or datetime.now(timezone.utc)
    decision = store.get_decision(decision_id)
    if decision is None or decision.donor_id != donor_id:
        raise ValidationError(
            code="DECISION_NOT_FOUND",
            message=f"Refund decision {decision_id} not found",
            http_status=404,
        )
    return filter_redirect_campaigns(
        ledger_service.list_active_campaigns(),
        decision.campaign_id,
        now,
        settings_service.get_min_campaign_days_remaining(),
        category=category,
        search=search,
        sort=sort,
        page=page,
        limit=limit,
    )
