"""Unit tests for milestone_refunds/services/audit_service.py."""
import pytest
from decimal import Decimal
from milestone_refunds.models.audit import AuditAction
from milestone_refunds.services.audit_service import (
    record,
    record_initiation_rejected,
    record_decision_executed,
    get_audit_entries,
)
from milestone_refunds.repository.store import store


def test_audit_entry_is_appended():
    before = len(get_audit_entries())
    record_initiation_rejected("op1", "req-test", "MS-CLINIC-01", "MILESTONE_NOT_REJECTED", "Milestone is pending")
    assert len(get_audit_entries()) == before + 1


def test_audit_log_is_immutable():
    """Audit entries cannot be deleted or overwritten through the public interface."""
    record_initiation_rejected("op1", "req-1", "MS-CLINIC-01", "MILESTONE_NOT_REJECTED", "Milestone is pending")
    count_before = len(get_audit_entries())
    assert not hasattr(store, "delete_audit")
    assert not hasattr(store, "update_audit")
    assert not hasattr(store, "clear_audit")
    record_initiation_rejected("op2", "req-2", "MS-OPEN-01", "MILESTONE_NOT_REJECTED", "Milestone is pending")
    assert len(get_audit_entries()) == count_before + 1


def test_initiation_is_recorded_with_amount(flood_request):
    entries = get_audit_entries(refund_request_id=flood_request.id)
    initiated = [e for e in entries if e.action == AuditAction.REFUND_INITIATED]
    assert len(initiated) == 1
    assert initiated[0].actor_id == "op1"
    assert initiated[0].amount == Decimal("1000.00")
    assert initiated[0].detail["milestone_id"] == "MS-FLOOD-01"
    assert initiated[0].request_id == "req-test"


def test_filters_by_decision_and_actor(flood_decisions):
    decision = flood_decisions["DONOR-BEN"]
    record(
        action=AuditAction.DECISION_SUBMITTED,
        actor_id="DONOR-BEN",
        request_id="req-1",
        reasoning="Donor chose refund for 300.00.",
        refund_request_id=decision.refund_request_id,
        decision_id=decision.id,
    )
    assert [e.actor_id for e in get_audit_entries(decision_id=decision.id)] == ["DONOR-BEN"]
    assert all(e.actor_id == "DONOR-BEN" for e in get_audit_entries(actor_id="DONOR-BEN"))


def test_failed_execution_is_recorded_as_failure(flood_decisions):
    decision = flood_decisions["DONOR-CARLA"].model_copy(update={"processing_error": "Gateway timed out"})
    entry = record_decision_executed(decision, "req-test")
    assert entry.action == AuditAction.DECISION_FAILED
    assert entry.actor_id == "system"
    assert entry.detail["processing_error"] == "Gateway timed out"


def test_entries_are_chronological(flood_request):
    record_initiation_rejected("op1", "req-2", "MS-CLINIC-01", "MILESTONE_NOT_REJECTED", "Milestone is pending")
    timestamps = [e.timestamp for e in get_audit_entries()]
    assert timestamps == sorted(timestamps)


def test_reasoning_is_non_empty(flood_request):
    record_initiation_rejected("op1", "req-test", "MS-CLINIC-01", "SOME_ERROR", "Something went wrong")
    for entry in get_audit_entries():
        assert entry.reasoning and len(entry.reasoning) > 10
