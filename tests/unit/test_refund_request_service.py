"""Unit tests for milestone_refunds/services/refund_request_service.py."""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from milestone_refunds.models.audit import AuditAction
from milestone_refunds.models.campaign import CampaignStatus
from milestone_refunds.models.refund import (
    DecisionStatus,
    DecisionType,
    RefundRequestStatus,
    RefundTriggerType,
)
from milestone_refunds.repository.store import store
from milestone_refunds.services import ledger_service
from milestone_refunds.services.audit_service import get_audit_entries
from milestone_refunds.services.refund_request_service import (
    initiate_milestone_refund,
    initiate_campaign_refund,
    recompute_status,
    get_refund_request,
    list_refund_requests,
    get_refund_stats,
)
from milestone_refunds.validators.refund_validator import ValidationError


def _amounts(refund_request_id: str) -> dict[str, Decimal]:
    return {d.donor_id: d.refund_amount for d in store.list_decisions(refund_request_id=refund_request_id)}


# ── Milestone refunds ───────────────────────────────────────────────────────

def test_flood_request_has_one_decision_per_donor(flood_request):
    assert flood_request.total_refund_amount == Decimal("1000.00")
    assert flood_request.affected_donors_count == 3
    assert flood_request.status == RefundRequestStatus.PENDING_DECISIONS
    assert flood_request.trigger_type == RefundTriggerType.MILESTONE_REJECTION
    assert _amounts(flood_request.id) == {
        "DONOR-ANA": Decimal("500.00"),
        "DONOR-BEN": Decimal("300.00"),
        "DONOR-CARLA": Decimal("200.00"),
    }


def test_decisions_share_the_request_deadline(flood_request):
    decisions = store.list_decisions(refund_request_id=flood_request.id)
    assert {d.decision_deadline for d in decisions} == {flood_request.decision_deadline}
    assert flood_request.decision_deadline - flood_request.created_at == timedelta(days=14)
    assert all(d.status == DecisionStatus.PENDING and d.decision_type is None for d in decisions)


def test_released_sibling_milestone_is_not_refunded():
    refund_request, _ = initiate_milestone_refund("MS-SCHOOL-02", "Roofing contractor vanished", "op1", "req-1")
    assert refund_request.total_refund_amount == Decimal("600.00")
    assert _amounts(refund_request.id) == {"DONOR-ANA": Decimal("400.00"), "DONOR-BEN": Decimal("200.00")}


def test_second_initiation_returns_existing_request(flood_request):
    again, replayed = initiate_milestone_refund("MS-FLOOD-01", "Different reason", "op2", "req-2")
    assert replayed is True
    assert again.id == flood_request.id
    assert again.rejection_reason == flood_request.rejection_reason
    assert len(store.list_refund_requests()) == 1
    actions = [e.action for e in get_audit_entries(refund_request_id=flood_request.id)]
    assert AuditAction.REFUND_INITIATION_REPLAYED in actions


def test_non_rejected_milestone_is_refused_and_audited():
    with pytest.raises(ValidationError) as exc_info:
        initiate_milestone_refund("MS-CLINIC-01", "Not actually rejected", "op1", "req-1")
    assert exc_info.value.code == "MILESTONE_NOT_REJECTED"
    assert store.list_refund_requests() == []
    rejected = [e for e in get_audit_entries(actor_id="op1") if e.action == AuditAction.REFUND_INITIATION_REJECTED]
    assert rejected[0].detail["error_code"] == "MILESTONE_NOT_REJECTED"


def test_milestone_without_contributions_has_no_affected_donors():
    ledger_service.reject_milestone("MS-FLOOD-02")
    with pytest.raises(ValidationError) as exc_info:
        initiate_milestone_refund("MS-FLOOD-02", "Supplies never delivered", "op1", "req-1")
    assert exc_info.value.code == "NO_AFFECTED_DONORS"
    assert store.get_milestone("MS-FLOOD-02").refund_initiated is False


# ── Campaign refunds ────────────────────────────────────────────────────────

def test_expired_campaign_refund():
    refund_request, replayed = initiate_campaign_refund(
        "CAMP-EXPIRED", RefundTriggerType.CAMPAIGN_EXPIRATION, None, "op1", "req-1"
    )
    assert replayed is False
    assert refund_request.milestone_id is None
    assert refund_request.rejection_reason == "Campaign expiration"
    assert _amounts(refund_request.id) == {"DONOR-HANA": Decimal("1000.00"), "DONOR-ANA": Decimal("250.00")}
    assert store.get_milestone("MS-EXPIRED-01").refund_initiated is True
    assert store.get_campaign("CAMP-EXPIRED").expiration_refund_initiated is True


def test_campaign_refund_is_created_once():
    first, _ = initiate_campaign_refund("CAMP-CANCELLED", RefundTriggerType.CAMPAIGN_CANCELLATION, None, "op1", "req-1")
    second, replayed = initiate_campaign_refund(
        "CAMP-CANCELLED", RefundTriggerType.CAMPAIGN_CANCELLATION, None, "op1", "req-2"
    )
    assert replayed is True
    assert second.id == first.id


def test_campaign_refund_skips_milestones_with_their_own_request():
    initiate_milestone_refund("MS-GARDEN-02", "Seedlings were never bought", "op1", "req-1")
    garden = store.get_campaign("CAMP-GARDEN")
    store.save_campaign(garden.model_copy(update={"status": CampaignStatus.CANCELLED}))

    refund_request, _ = initiate_campaign_refund(
        "CAMP-GARDEN", RefundTriggerType.CAMPAIGN_CANCELLATION, "Charity withdrew", "op1", "req-2"
    )
    assert _amounts(refund_request.id) == {"DONOR-DIEGO": Decimal("90.00"), "DONOR-ELLA": Decimal("900.00")}


def test_active_campaign_cannot_be_refunded():
    with pytest.raises(ValidationError) as exc_info:
        initiate_campaign_refund("CAMP-CLINIC", RefundTriggerType.CAMPAIGN_EXPIRATION, None, "op1", "req-1")
    assert exc_info.value.code == "CAMPAIGN_NOT_REFUNDABLE"


# ── Status and reporting ────────────────────────────────────────────────────

def test_recompute_after_deadline_moves_to_processing(flood_request):
    later = flood_request.decision_deadline + timedelta(minutes=1)
    updated = recompute_status(flood_request.id, later)
    assert updated.status == RefundRequestStatus.PROCESSING
    assert recompute_status(flood_request.id, later).status == RefundRequestStatus.PROCESSING


def test_recompute_detects_inconsistent_totals(flood_request):
    broken = store.get_refund_request(flood_request.id).model_copy(update={"total_refund_amount": Decimal("999.99")})
    with store._lock:
        store._refund_requests[flood_request.id] = broken
    with pytest.raises(ValidationError) as exc_info:
        recompute_status(flood_request.id)
    assert exc_info.value.code == "CONSISTENCY_ERROR"
    assert exc_info.value.http_status == 500


def test_get_refund_request_includes_decisions(flood_request):
    detail = get_refund_request(flood_request.id)
    assert detail.request.id == flood_request.id
    assert len(detail.decisions) == 3
    assert get_refund_request("RR-NOPE") is None


def test_list_filters_by_status(flood_request):
    assert [r.id for r in list_refund_requests(RefundRequestStatus.PENDING_DECISIONS)] == [flood_request.id]
    assert list_refund_requests(RefundRequestStatus.COMPLETED) == []


def test_stats(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    decided_at = decision.created_at + timedelta(days=2)
    store.update_decision_intent(decision.id, decision.version, DecisionType.REFUND, None, decided_at, {})

    stats = get_refund_stats()
    assert stats.total_requests == 1
    assert stats.pending_decisions == 1
    assert stats.total_amount == Decimal("1000.00")
    assert stats.pending_amount == Decimal("1000.00")
    assert stats.processed_amount == Decimal("0.00")
    assert stats.decision_type_distribution == {
        "refund": 1,
        "redirect_to_campaign": 0,
        "donate_to_platform": 0,
    }
    assert stats.average_response_days == Decimal("2.00")
