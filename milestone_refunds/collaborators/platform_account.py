"""
Platform account seam: receives donations made to the platform itself.
"""
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Protocol

from milestone_refunds.collaborators.payment_gateway import CollaboratorError


class PlatformAccountError(CollaboratorError):
    pass


@dataclass(frozen=True)
class PlatformCredit:
    id: str
    amount: Decimal
    reference: str
    created_at: datetime


class PlatformAccount(Protocol):
    def credit(self, amount: Decimal, reference: str) -> str:
        ...


class InMemoryPlatformAccount:
    """Credits keyed by reference; crediting the same reference twice returns the first credit."""

    def __init__(self):
        self._lock = threading.Lock()
        self._credits: dict[str, PlatformCredit] = {}
        self._unavailable = False

    def credit(self, amount: Decimal, reference: str) -> str:
        with self._lock:
            existing = self._credits.get(reference)
            if existing is not None:
                return existing.id
            if self._unavailable:
                raise PlatformAccountError("Platform account is unavailable")
            credit = PlatformCredit(
                id=f"PC-{str(uuid.uuid4())[:8].upper()}",
                amount=amount,
                reference=reference,
                created_at=datetime.now(timezone.utc),
            )
            self._credits[reference] = credit
            return credit.id

    def get_credit(self, reference: str) -> Optional[PlatformCredit]:
        with self._lock:
            return self._credits.get(reference)

    def balance(self) -> Decimal:
        with self._lock:
            return sum((c.amount for c in self._credits.values()), Decimal("0"))

    def set_unavailable(self, unavailable: bool) -> None:
        with self._lock:
            self._unavailable = unavailable

    def reset(self) -> None:
        with self._lock:
            self._credits.clear()
            self._unavailable = False


platform_account = InMemoryPlatformAccount()
