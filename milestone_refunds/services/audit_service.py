"""
Audit service: append-only audit log management.

Every refund engine action (initiation, decision submission, execution,
retry, settings change) is recorded here. Entries are never modified or
deleted.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Any
from milestone_refunds.models.audit import AuditAction, AuditEntry
from milestone_refunds.models.refund import RefundRequest, DonorRefundDecision, ProcessingResult
from milestone_refunds.repository.store import store


def record(
    action: AuditAction,
    actor_id: str,
    request_id: str,
    reasoning: str,
    refund_request_id: Optional[str] = None,
    decision_id: Optional[str] = None,
    detail: Optional[dict[str, Any]] = None,
    amount: Optional[Decimal] = None,
) -> AuditEntry:
    """Append one entry to the audit log and return it."""
    entry = AuditEntry(
        id=str(uuid.uuid4()),
        timestamp=datetime.now(timezone.utc),
        action=action,
        actor_id=actor_id,
        refund_request_id=refund_request_id,
        decision_id=decision_id,
        reasoning=reasoning,
        detail=detail or {},
        amount=amount,
        request_id=request_id,
    )
    store.append_audit(entry)
    return entry


def record_refund_initiated(refund_request: RefundRequest, request_id: str) -> AuditEntry:
    """
    Record that a refund request was created.

    Args:
        refund_request: The persisted RefundRequest.
        request_id: The X-Request-ID from the HTTP request.

    Returns:
        The created AuditEntry.
    """
    scope = (
        f"milestone {refund_request.milestone_id}"
        if refund_request.milestone_id
        else f"campaign {refund_request.campaign_id}"
    )
    reasoning = (
        f"Refund request {refund_request.id} initiated for {scope} "
        f"({refund_request.trigger_type.value}). "
        f"{refund_request.affected_donors_count} donor(s) affected, "
        f"total {refund_request.total_refund_amount}. "
        f"Decision deadline {refund_request.decision_deadline.isoformat()}."
    )
    return record(
        action=AuditAction.REFUND_INITIATED,
        actor_id=refund_request.created_by,
        request_id=request_id,
        reasoning=reasoning,
        refund_request_id=refund_request.id,
        detail={
            "campaign_id": refund_request.campaign_id,
            "milestone_id": refund_request.milestone_id,
            "trigger_type": refund_request.trigger_type.value,
            "affected_donors_count": refund_request.affected_donors_count,
            "rejection_reason": refund_request.rejection_reason,
        },
        amount=refund_request.total_refund_amount,
    )


def record_initiation_rejected(
    actor_id: str,
    request_id: str,
    subject_id: str,
    error_code: str,
    error_message: str,
) -> AuditEntry:
    return record(
        action=AuditAction.REFUND_INITIATION_REJECTED,
        actor_id=actor_id,
        request_id=request_id,
        reasoning=f"Refund initiation for {subject_id} rejected. Code: {error_code}. Reason: {error_message}",
        detail={"subject_id": subject_id, "error_code": error_code},
    )


def record_decision_submitted(decision: DonorRefundDecision, request_id: str) -> AuditEntry:
    reasoning = f"Donor '{decision.donor_id}' chose {decision.decision_type.value}"
    if decision.target_campaign_id:
        reasoning += f" to campaign {decision.target_campaign_id}"
    reasoning += f" for {decision.refund_amount}."
    if decision.metadata.get("auto_converted"):
        reasoning += " Refund below the minimum refund amount was converted to a platform donation."
    return record(
        action=AuditAction.DECISION_SUBMITTED,
        actor_id=decision.donor_id,
        request_id=request_id,
        reasoning=reasoning,
        refund_request_id=decision.refund_request_id,
        decision_id=decision.id,
        detail={
            "decision_type": decision.decision_type.value,
            "target_campaign_id": decision.target_campaign_id,
            "metadata": decision.metadata,
        },
        amount=decision.refund_amount,
    )


def record_decision_executed(decision: DonorRefundDecision, request_id: str) -> AuditEntry:
    """
    Record the terminal outcome of one decision execution.

    Completed decisions record the collaborator references; failed ones
    record the processing error.
    """
    completed = decision.processing_error is None
    action = AuditAction.DECISION_COMPLETED if completed else AuditAction.DECISION_FAILED
    disposition = decision.decision_type.value if decision.decision_type else "none"
    if completed:
        reasoning = f"Decision {decision.id} executed as {disposition} for {decision.refund_amount}."
    else:
        reasoning = f"Decision {decision.id} ({disposition}) failed: {decision.processing_error}"
    if decision.auto_defaulted:
        reasoning += " Disposition defaulted to refund after the decision deadline."
    return record(
        action=action,
        actor_id="system",
        request_id=request_id,
        reasoning=reasoning,
        refund_request_id=decision.refund_request_id,
        decision_id=decision.id,
        detail={
            "decision_type": disposition,
            "auto_defaulted": decision.auto_defaulted,
            "refund_references": decision.refund_references,
            "new_donation_id": decision.new_donation_id,
            "platform_credit_id": decision.platform_credit_id,
            "processing_error": decision.processing_error,
        },
        amount=decision.refund_amount,
    )


def record_request_processed(result: ProcessingResult, operator_id: str, request_id: str) -> AuditEntry:
    return record(
        action=AuditAction.REFUND_REQUEST_PROCESSED,
        actor_id=operator_id,
        request_id=request_id,
        reasoning=(
            f"Refund request {result.refund_request_id} processed by '{operator_id}': "
            f"{result.success_count} succeeded, {result.failure_count} failed, "
            f"{result.skipped_count} skipped. Status {result.status.value}."
        ),
        refund_request_id=result.refund_request_id,
        detail=result.model_dump(mode="json", exclude={"refund_request_id"}),
    )


def get_audit_entries(
    refund_request_id: Optional[str] = None,
    decision_id: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> list[AuditEntry]:
    """
    Retrieve audit entries, optionally filtered by refund request, decision, or actor.

    Returns:
        List of matching AuditEntry objects in chronological order.
    """
    return store.get_audit_log(
        refund_request_id=refund_request_id,
        decision_id=decision_id,
        actor_id=actor_id,
    )
