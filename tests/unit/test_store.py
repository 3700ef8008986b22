"""Unit tests for the conditional decision updates in milestone_refunds/repository/store.py."""
import threading
import pytest
from datetime import datetime, timedelta, timezone
from milestone_refunds.models.refund import DecisionStatus, DecisionType
from milestone_refunds.repository.store import store


def _now() -> datetime:
    return datetime.now(timezone.utc)


def test_intent_is_write_once(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    first = store.update_decision_intent(decision.id, decision.version, DecisionType.REFUND, None, _now(), {})
    assert first is not None
    assert first.version == decision.version + 1

    second = store.update_decision_intent(
        decision.id, first.version, DecisionType.DONATE_TO_PLATFORM, None, _now(), {}
    )
    assert second is None
    assert store.get_decision(decision.id).decision_type == DecisionType.REFUND


def test_intent_rejects_stale_version(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    stale = store.update_decision_intent(decision.id, decision.version + 5, DecisionType.REFUND, None, _now(), {})
    assert stale is None
    assert store.get_decision(decision.id).decision_type is None


def test_claim_requires_recorded_intent(flood_decisions):
    decision = flood_decisions["DONOR-BEN"]
    assert store.claim_decision(decision.id, decision.version, "tok", _now()) is None


def test_default_claim_records_refund(flood_decisions):
    decision = flood_decisions["DONOR-BEN"]
    claimed = store.claim_decision(decision.id, decision.version, "tok", _now(), default_type=DecisionType.REFUND)
    assert claimed.decision_type == DecisionType.REFUND
    assert claimed.auto_defaulted is True
    assert claimed.claim_token == "tok"


def test_only_one_concurrent_claim_wins(flood_decisions):
    decision = flood_decisions["DONOR-CARLA"]
    decided = store.update_decision_intent(decision.id, decision.version, DecisionType.REFUND, None, _now(), {})
    results = []
    barrier = threading.Barrier(8)

    def claim(token):
        barrier.wait()
        results.append(store.claim_decision(decision.id, decided.version, token, _now()))

    threads = [threading.Thread(target=claim, args=(f"tok-{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert store.get_decision(decision.id).claim_token == winners[0].claim_token


def test_claimed_decision_cannot_be_reverted(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    decided = store.update_decision_intent(decision.id, decision.version, DecisionType.REFUND, None, _now(), {})
    store.claim_decision(decision.id, decided.version, "tok", _now())
    assert store.clear_decision_intent(decision.id, _now()) is None


def test_finalize_requires_matching_claim(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    claimed = store.claim_decision(decision.id, decision.version, "tok", _now(), default_type=DecisionType.REFUND)
    assert store.finalize_decision(decision.id, "other", DecisionStatus.COMPLETED, _now()) is None

    done = store.finalize_decision(claimed.id, "tok", DecisionStatus.COMPLETED, _now())
    assert done.status == DecisionStatus.COMPLETED
    assert done.claim_token is None
    assert done.processed_at is not None


def test_completed_decision_never_changes_again(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    store.claim_decision(decision.id, decision.version, "tok", _now(), default_type=DecisionType.REFUND)
    done = store.finalize_decision(decision.id, "tok", DecisionStatus.COMPLETED, _now())

    assert store.claim_decision(decision.id, done.version, "tok-2", _now()) is None
    assert store.clear_decision_intent(decision.id, _now()) is None
    assert store.reset_failed_decision(decision.id, _now()) is None
    assert store.finalize_decision(decision.id, "tok", DecisionStatus.FAILED, _now()) is None
    assert store.get_decision(decision.id).status == DecisionStatus.COMPLETED


def test_failed_decision_resets_to_pending(flood_decisions):
    decision = flood_decisions["DONOR-BEN"]
    store.claim_decision(decision.id, decision.version, "tok", _now(), default_type=DecisionType.REFUND)
    failed = store.finalize_decision(
        decision.id, "tok", DecisionStatus.FAILED, _now(), processing_error="Gateway timed out"
    )
    assert failed.processed_at is None

    reset = store.reset_failed_decision(decision.id, _now())
    assert reset.status == DecisionStatus.PENDING
    assert reset.processing_error is None
    assert reset.decision_type == DecisionType.REFUND


def test_refund_reference_requires_claim(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    donation_id = decision.contributions[0].donation_id
    assert store.record_refund_reference(decision.id, "tok", donation_id, "GR-1", _now()) is None

    store.claim_decision(decision.id, decision.version, "tok", _now(), default_type=DecisionType.REFUND)
    updated = store.record_refund_reference(decision.id, "tok", donation_id, "GR-1", _now())
    assert updated.refund_references == {donation_id: "GR-1"}


def test_expired_undecided_listing(flood_decisions):
    decision = flood_decisions["DONOR-ANA"]
    assert store.list_expired_undecided(decision.decision_deadline - timedelta(seconds=1)) == []
    expired = store.list_expired_undecided(decision.decision_deadline)
    assert {d.donor_id for d in expired} == {"DONOR-ANA", "DONOR-BEN", "DONOR-CARLA"}


def test_second_request_for_milestone_is_not_created(flood_request):
    duplicate = flood_request.model_copy(update={"id": "RR-DUPLICATE"})
    saved, created = store.create_refund_request(
        duplicate, [], ["MS-FLOOD-01"], campaign_level=False, initiated_at=_now()
    )
    assert created is False
    assert saved.id == flood_request.id
    assert store.get_refund_request("RR-DUPLICATE") is None


def test_request_initiation_flags_milestone(flood_request):
    milestone = store.get_milestone("MS-FLOOD-01")
    assert milestone.refund_initiated is True
    assert milestone.refund_initiated_at == flood_request.created_at
