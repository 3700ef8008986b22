"""
Payment gateway seam.

The engine only needs one call: return a donation's amount to the donor's
original payment method. The in-memory gateway dedupes on the idempotency key
and can be told to fail specific donations, which is how the failure paths are
exercised.
"""
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Protocol


class CollaboratorError(Exception):
    """Raised by an external collaborator when a call could not be completed."""


class PaymentGatewayError(CollaboratorError):
    """Gateway unreachable, timed out, or returned a malformed response."""


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    reference: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class GatewayRefund:
    reference: str
    donation_id: str
    amount: Decimal
    idempotency_key: str
    created_at: datetime


class PaymentGateway(Protocol):
    def initiate_refund(self, donation_id: str, amount: Decimal, idempotency_key: str) -> GatewayResult:
        ...


class InMemoryPaymentGateway:
    """Records refunds in memory; each idempotency key is honoured at most once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._refunds: dict[str, GatewayRefund] = {}
        self._declined: dict[str, str] = {}
        self._unavailable: set[str] = set()
        self.call_count = 0

    def initiate_refund(self, donation_id: str, amount: Decimal, idempotency_key: str) -> GatewayResult:
        with self._lock:
            self.call_count += 1
            existing = self._refunds.get(idempotency_key)
            if existing is not None:
                return GatewayResult(success=True, reference=existing.reference)
            if donation_id in self._unavailable:
                raise PaymentGatewayError(f"Gateway timed out refunding donation {donation_id}")
            if donation_id in self._declined:
                return GatewayResult(success=False, reason=self._declined[donation_id])

            refund = GatewayRefund(
                reference=f"GR-{str(uuid.uuid4())[:8].upper()}",
                donation_id=donation_id,
                amount=amount,
                idempotency_key=idempotency_key,
                created_at=datetime.now(timezone.utc),
            )
            self._refunds[idempotency_key] = refund
            return GatewayResult(success=True, reference=refund.reference)

    def decline(self, donation_id: str, reason: str = "Refund declined by provider") -> None:
        with self._lock:
            self._declined[donation_id] = reason

    def make_unavailable(self, donation_id: str) -> None:
        with self._lock:
            self._unavailable.add(donation_id)

    def restore(self, donation_id: Optional[str] = None) -> None:
        """Clear injected failures for one donation, or for all when donation_id is None."""
        with self._lock:
            if donation_id is None:
                self._declined.clear()
                self._unavailable.clear()
            else:
                self._declined.pop(donation_id, None)
                self._unavailable.discard(donation_id)

    def list_refunds(self, donation_id: Optional[str] = None) -> list[GatewayRefund]:
        with self._lock:
            refunds = list(self._refunds.values())
        if donation_id:
            refunds = [r for r in refunds if r.donation_id == donation_id]
        return refunds

    def total_refunded(self) -> Decimal:
        return sum((r.amount for r in self.list_refunds()), Decimal("0"))

    def reset(self) -> None:
        with self._lock:
            self._refunds.clear()
            self._declined.clear()
            self._unavailable.clear()
            self.call_count = 0


payment_gateway = InMemoryPaymentGateway()
