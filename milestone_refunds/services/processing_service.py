"""
Processing service: executes donor decisions against the payment gateway,
the ledger, and the platform account.

Flow per decision: claim → dispatch → finalize → recompute → audit

A decision is executed only by the caller that wins its claim, so concurrent
admin runs and deadline sweeps never move the same money twice. Collaborator
failures, expected or not, mark the one decision failed; they never abort its
siblings.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from milestone_refunds.collaborators.payment_gateway import CollaboratorError, payment_gateway
from milestone_refunds.collaborators.platform_account import platform_account
from milestone_refunds.models.audit import AuditAction
from milestone_refunds.models.refund import (
    DecisionStatus,
    DecisionType,
    DonorRefundDecision,
    ExecutionOutcome,
    ProcessingResult,
)
from milestone_refunds.repository.store import store
from milestone_refunds.services import audit_service, ledger_service
from milestone_refunds.services.refund_request_service import recompute_status
from milestone_refunds.validators.refund_validator import (
    ValidationError,
    require_refund_request,
    validate_decision_for_reset,
)

logger = logging.getLogger(__name__)

AWAITING_DECISION = "AWAITING_DECISION"
CLAIMED_ELSEWHERE = "CLAIMED_ELSEWHERE"


def execute_decision(decision_id: str, request_id: str, now: Optional[datetime] = None) -> ExecutionOutcome:
    """
    Execute one decision. Idempotent.

    - Already completed or failed: returns the stored result, no external call.
    - Undecided before the deadline: nothing happens (AWAITING_DECISION).
    - Undecided after the deadline: the refund default is recorded as part of the claim.
    - Claim lost to a concurrent executor: nothing happens (CLAIMED_ELSEWHERE).

    Raises:
        ValidationError: DECISION_NOT_FOUND if the decision does not exist.
    """
    now = now or datetime.now(timezone.utc)
    decision = store.get_decision(decision_id)
    if decision is None:
        raise ValidationError(
            code="DECISION_NOT_FOUND",
            message=f"Refund decision {decision_id} not found",
            http_status=404,
        )
    if decision.status != DecisionStatus.PENDING:
        return _stored_outcome(decision)

    claim_token = uuid.uuid4().hex
    if decision.decision_type is None:
        if now < decision.decision_deadline:
            return _skipped(decision, AWAITING_DECISION)
        claimed = store.claim_decision(
            decision_id, decision.version, claim_token, now, default_type=DecisionType.REFUND
        )
    else:
        claimed = store.claim_decision(decision_id, decision.version, claim_token, now)

    if claimed is None:
        current = store.get_decision(decision_id)
        if current.status != DecisionStatus.PENDING:
            return _stored_outcome(current)
        return _skipped(current, CLAIMED_ELSEWHERE)

    fields, error = _dispatch(claimed, claim_token, now)
    status = DecisionStatus.FAILED if error else DecisionStatus.COMPLETED
    finalized = store.finalize_decision(
        decision_id, claim_token, status, now, processing_error=error, **fields
    )
    if finalized is None:
        logger.error("Decision %s lost its claim before it could be finalized", decision_id)
        return _skipped(store.get_decision(decision_id), CLAIMED_ELSEWHERE)

    if error:
        logger.warning("Decision %s (%s) failed: %s", decision_id, finalized.decision_type.value, error)
    else:
        logger.info(
            "Decision %s executed as %s for %s",
            decision_id, finalized.decision_type.value, finalized.refund_amount,
        )

    recompute_status(finalized.refund_request_id, now)
    audit_service.record_decision_executed(finalized, request_id)
    return ExecutionOutcome(
        decision_id=finalized.id,
        status=finalized.status,
        decision_type=finalized.decision_type,
        executed=True,
        error=finalized.processing_error,
    )


def _dispatch(
    decision: DonorRefundDecision,
    claim_token: str,
    now: datetime,
) -> tuple[dict[str, Any], Optional[str]]:
    """Run the disposition. Returns (fields to store, error message or None)."""
    try:
        if decision.decision_type == DecisionType.REFUND:
            return {}, _refund_contributions(decision, claim_token, now)

        if decision.decision_type == DecisionType.REDIRECT_TO_CAMPAIGN:
            new_donation_id = ledger_service.credit_campaign(
                decision.target_campaign_id,
                decision.donor_id,
                decision.refund_amount,
                source_decision_id=decision.id,
                now=now,
            )
            return {"new_donation_id": new_donation_id}, None

        credit_id = platform_account.credit(decision.refund_amount, reference=decision.id)
        return {"platform_credit_id": credit_id}, None
    except CollaboratorError as exc:
        return {}, str(exc)
    except Exception as exc:
        # The claim must still be released through finalize.
        logger.exception("Unexpected error executing decision %s", decision.id)
        return {}, f"Unexpected {type(exc).__name__}: {exc}"


def _refund_contributions(decision: DonorRefundDecision, claim_token: str, now: datetime) -> Optional[str]:
    """
    Refund each contribution to its originating donation.

    References are stored as each refund succeeds, so a retry only calls the
    gateway for contributions that have not been refunded yet.
    """
    for contribution in decision.contributions:
        if contribution.donation_id in decision.refund_references:
            continue
        result = payment_gateway.initiate_refund(
            contribution.donation_id,
            contribution.amount,
            idempotency_key=f"{decision.id}:{contribution.donation_id}",
        )
        if not result.success:
            return f"Refund of donation {contribution.donation_id} declined: {result.reason}"
        store.record_refund_reference(decision.id, claim_token, contribution.donation_id, result.reference, now)
    return None


def _stored_outcome(decision: DonorRefundDecision) -> ExecutionOutcome:
    return ExecutionOutcome(
        decision_id=decision.id,
        status=decision.status,
        decision_type=decision.decision_type,
        executed=False,
        replayed=True,
        error=decision.processing_error,
    )


def _skipped(decision: DonorRefundDecision, reason: str) -> ExecutionOutcome:
    return ExecutionOutcome(
        decision_id=decision.id,
        status=decision.status,
        decision_type=decision.decision_type,
        executed=False,
        skipped_reason=reason,
    )


def process_refund_request(
    refund_request_id: str,
    operator_id: str,
    request_id: str,
    now: Optional[datetime] = None,
) -> ProcessingResult:
    """
    Execute every pending decision of a request.

    Decided decisions run regardless of the deadline; undecided ones get the
    refund default only once the deadline has passed.

    Raises:
        ValidationError: REFUND_REQUEST_NOT_FOUND.
    """
    now = now or datetime.now(timezone.utc)
    require_refund_request(refund_request_id)

    counts = {
        "processed": 0,
        "success_count": 0,
        "failure_count": 0,
        "skipped_count": 0,
        "refund_count": 0,
        "redirect_count": 0,
        "platform_count": 0,
    }
    errors: list[dict[str, str]] = []
    type_counter = {
        DecisionType.REFUND: "refund_count",
        DecisionType.REDIRECT_TO_CAMPAIGN: "redirect_count",
        DecisionType.DONATE_TO_PLATFORM: "platform_count",
    }

    for decision in store.list_decisions(refund_request_id=refund_request_id, status=DecisionStatus.PENDING):
        outcome = execute_decision(decision.id, request_id, now)
        if not outcome.executed:
            counts["skipped_count"] += 1
            continue
        counts["processed"] += 1
        if outcome.status == DecisionStatus.COMPLETED:
            counts["success_count"] += 1
            counts[type_counter[outcome.decision_type]] += 1
        else:
            counts["failure_count"] += 1
            errors.append({"decision_id": outcome.decision_id, "error": outcome.error or "unknown error"})

    refund_request = recompute_status(refund_request_id, now)
    result = ProcessingResult(
        refund_request_id=refund_request_id,
        status=refund_request.status,
        errors=errors,
        **counts,
    )
    audit_service.record_request_processed(result, operator_id, request_id)
    return result


def reset_decision_for_retry(
    decision_id: str,
    operator_id: str,
    request_id: str,
    now: Optional[datetime] = None,
) -> DonorRefundDecision:
    """
    Return a failed decision to pending so it can be executed again.

    The disposition and any stored refund references are kept.

    Raises:
        ValidationError: DECISION_NOT_FOUND or DECISION_NOT_RETRYABLE.
    """
    now = now or datetime.now(timezone.utc)
    decision = validate_decision_for_reset(decision_id)

    updated = store.reset_failed_decision(decision_id, now)
    if updated is None:
        raise ValidationError(
            code="DECISION_NOT_RETRYABLE",
            message=f"Decision {decision_id} is no longer failed",
            http_status=409,
        )

    audit_service.record(
        action=AuditAction.DECISION_RESET_FOR_RETRY,
        actor_id=operator_id,
        request_id=request_id,
        reasoning=f"Operator '{operator_id}' reset failed decision {decision_id} for retry.",
        refund_request_id=decision.refund_request_id,
        decision_id=decision_id,
        detail={"previous_error": decision.processing_error},
    )
    recompute_status(updated.refund_request_id, now)
    return updated


def retry_failed_decisions(
    refund_request_id: str,
    operator_id: str,
    request_id: str,
    now: Optional[datetime] = None,
) -> ProcessingResult:
    """Reset every failed decision of a request, then process the request."""
    now = now or datetime.now(timezone.utc)
    require_refund_request(refund_request_id)
    for decision in store.list_decisions(refund_request_id=refund_request_id, status=DecisionStatus.FAILED):
        reset_decision_for_retry(decision.id, operator_id, request_id, now)
    return process_refund_request(refund_request_id, operator_id, request_id, now)
