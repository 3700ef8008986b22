"""Unit tests for milestone_refunds/scheduler.py."""
import logging
from milestone_refunds.repository.store import InMemoryStore, store
from milestone_refunds.scheduler import main, run_once


def test_run_once_reports_jobs():
    summary = run_once()
    initiated = sorted(store.get_refund_request(rid).campaign_id for rid in summary["campaign_refunds_initiated"])
    assert initiated == ["CAMP-CANCELLED", "CAMP-EXPIRED"]
    assert summary["sweep"]["processed_count"] == 0


def test_main_runs_against_the_process_store():
    assert main([]) == 0
    assert store.get_campaign_level_request("CAMP-EXPIRED") is not None


def test_empty_store_without_seed_warns(caplog):
    store.__dict__.update(InMemoryStore().__dict__)
    with caplog.at_level(logging.WARNING, logger="milestone_refunds.scheduler"):
        assert main([]) == 0
    assert "pass --seed" in caplog.text
    assert store.list_refund_requests() == []
