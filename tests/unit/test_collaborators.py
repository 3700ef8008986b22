"""Unit tests for the in-memory payment gateway and platform account."""
import pytest
from decimal import Decimal
from milestone_refunds.collaborators.payment_gateway import InMemoryPaymentGateway, PaymentGatewayError
from milestone_refunds.collaborators.platform_account import InMemoryPlatformAccount, PlatformAccountError


def test_gateway_refund_returns_reference():
    gateway = InMemoryPaymentGateway()
    result = gateway.initiate_refund("DON-1", Decimal("500.00"), "DEC-1:DON-1")
    assert result.success is True
    assert result.reference.startswith("GR-")
    assert gateway.total_refunded() == Decimal("500.00")


def test_gateway_dedupes_on_idempotency_key():
    gateway = InMemoryPaymentGateway()
    first = gateway.initiate_refund("DON-1", Decimal("500.00"), "DEC-1:DON-1")
    second = gateway.initiate_refund("DON-1", Decimal("500.00"), "DEC-1:DON-1")
    assert first.reference == second.reference
    assert len(gateway.list_refunds("DON-1")) == 1
    assert gateway.call_count == 2


def test_gateway_decline_and_restore():
    gateway = InMemoryPaymentGateway()
    gateway.decline("DON-1", "Card closed")
    declined = gateway.initiate_refund("DON-1", Decimal("10"), "k1")
    assert declined.success is False
    assert declined.reason == "Card closed"

    gateway.restore("DON-1")
    assert gateway.initiate_refund("DON-1", Decimal("10"), "k1").success is True


def test_gateway_unavailable_raises():
    gateway = InMemoryPaymentGateway()
    gateway.make_unavailable("DON-1")
    with pytest.raises(PaymentGatewayError):
        gateway.initiate_refund("DON-1", Decimal("10"), "k1")
    assert gateway.list_refunds() == []


def test_platform_credit_is_idempotent_by_reference():
    account = InMemoryPlatformAccount()
    first = account.credit(Decimal("10.00"), reference="DEC-1")
    second = account.credit(Decimal("10.00"), reference="DEC-1")
    assert first == second
    assert first.startswith("PC-")
    assert account.balance() == Decimal("10.00")


def test_platform_account_unavailable_raises():
    account = InMemoryPlatformAccount()
    account.set_unavailable(True)
    with pytest.raises(PlatformAccountError):
        account.credit(Decimal("10.00"), reference="DEC-1")
    assert account.get_credit("DEC-1") is None
