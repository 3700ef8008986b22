"""Shared fixtures for all test modules."""
import os
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("API_KEY", "TEST-KEY-2026")
os.environ.setdefault("APP_ENV", "development")

from milestone_refunds.main import app
from milestone_refunds.repository.store import store
from milestone_refunds.collaborators.payment_gateway import payment_gateway
from milestone_refunds.collaborators.platform_account import platform_account
from seed_data import load_seed_data


@pytest.fixture(autouse=True)
def reset_store():
    """Reset the in-memory store and collaborators before each test to ensure isolation."""
    from milestone_refunds.repository.store import InMemoryStore
    # Replace the store's internal state
    store.__dict__.update(InMemoryStore().__dict__)
    payment_gateway.reset()
    platform_account.reset()
    load_seed_data()
    yield


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": "TEST-KEY-2026"}


@pytest.fixture
def donor_headers(auth_headers):
    def _headers(donor_id: str) -> dict:
        return {**auth_headers, "X-Donor-ID": donor_id}
    return _headers


@pytest.fixture
def flood_request():
    """The refund request for rejected milestone MS-FLOOD-01 (ANA 500 / BEN 300 / CARLA 200)."""
    from milestone_refunds.services.refund_request_service import initiate_milestone_refund
    refund_request, _ = initiate_milestone_refund("MS-FLOOD-01", "Receipts were forged", "op1", "req-test")
    return refund_request


@pytest.fixture
def flood_decisions(flood_request):
    """Decisions of the MS-FLOOD-01 request keyed by donor id."""
    return {d.donor_id: d for d in store.list_decisions(refund_request_id=flood_request.id)}
