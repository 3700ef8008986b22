from __future__ import annotations

"""
Fee calculation engine.

Pure functions with no side effects or I/O. All monetary math uses Decimal.
The platform fee rate is always passed in by the caller; it is never read
from module state.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING

from milestone_refunds.models.fees import FeeBreakdown

if TYPE_CHECKING:
    from milestone_refunds.models.settings import PlatformSettings

CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")
SUGGESTED_TIP_RATES = (Decimal("0"), Decimal("0.05"), Decimal("0.10"), Decimal("0.15"))


class CalculationError(Exception):
    """Raised when a financial guard condition is violated."""
    pass


class FeeValidationError(CalculationError):
    """Raised when a donation amount fails one of the configured limits."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


def _quantize(value: Decimal) -> Decimal:
    """Round to 2 decimal places using ROUND_HALF_UP."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _guard_inputs(amount: Decimal, tip_amount: Decimal, fee_rate_percent: Decimal) -> None:
    if amount < ZERO:
        raise CalculationError("Donation amount cannot be negative")
    if tip_amount < ZERO:
        raise CalculationError("Tip amount cannot be negative")
    if fee_rate_percent < ZERO or fee_rate_percent > HUNDRED:
        raise CalculationError("Platform fee rate must be between 0 and 100 percent")


def _platform_fee(amount: Decimal, fee_rate_percent: Decimal) -> Decimal:
    return _quantize(amount * fee_rate_percent / HUNDRED)


def calculate_fees_with_donor_covers(
    amount: Decimal,
    tip_amount: Decimal,
    fee_rate_percent: Decimal,
) -> FeeBreakdown:
    """
    Donor pays the platform fee on top so the charity receives the full amount.

    The tip goes to the platform, not the charity.

    Args:
        amount: The donor's intended donation.
        tip_amount: Optional tip to the platform.
        fee_rate_percent: Platform fee as a percentage (5 means 5%).

    Returns:
        FeeBreakdown with net_amount == amount.

    Raises:
        CalculationError: On negative inputs or a rate outside 0-100.

    Example:
        amount=1000.00, tip=0, rate=5
        → platform_fee = 50.00
        → total_charge = 1000.00 + 50.00 + 0 = 1050.00
        → net_amount = 1000.00
    """
    _guard_inputs(amount, tip_amount, fee_rate_percent)
    platform_fee = _platform_fee(amount, fee_rate_percent)
    return FeeBreakdown(
        gross_amount=_quantize(amount),
        platform_fee=platform_fee,
        tip_amount=_quantize(tip_amount),
        net_amount=_quantize(amount),
        total_charge=_quantize(amount + platform_fee + tip_amount),
        donor_covers_fees=True,
        fee_rate_percent=fee_rate_percent,
    )


def calculate_fees_standard(
    amount: Decimal,
    tip_amount: Decimal,
    fee_rate_percent: Decimal,
) -> FeeBreakdown:
    """
    Standard deduction: the platform fee comes out of the donation.

    Args:
        amount: The gross donation amount.
        tip_amount: Optional tip to the platform.
        fee_rate_percent: Platform fee as a percentage.

    Returns:
        FeeBreakdown with net_amount + platform_fee == amount.

    Raises:
        CalculationError: On negative inputs or a rate outside 0-100.

    Example:
        amount=1000.00, tip=20.00, rate=5
        → platform_fee = 50.00
        → total_charge = 1020.00
        → net_amount = 950.00
    """
    _guard_inputs(amount, tip_amount, fee_rate_percent)
    platform_fee = _platform_fee(amount, fee_rate_percent)
    return FeeBreakdown(
        gross_amount=_quantize(amount),
        platform_fee=platform_fee,
        tip_amount=_quantize(tip_amount),
        net_amount=_quantize(amount - platform_fee),
        total_charge=_quantize(amount + tip_amount),
        donor_covers_fees=False,
        fee_rate_percent=fee_rate_percent,
    )


def calculate_fees(
    amount: Decimal,
    tip_amount: Decimal,
    donor_covers_fees: bool,
    fee_rate_percent: Decimal,
) -> FeeBreakdown:
    """Route to the donor-covers or standard calculation."""
    if donor_covers_fees:
        return calculate_fees_with_donor_covers(amount, tip_amount, fee_rate_percent)
    return calculate_fees_standard(amount, tip_amount, fee_rate_percent)


def validate_donation_amount(
    amount: Decimal,
    tip_amount: Decimal,
    donor_covers_fees: bool,
    settings: "PlatformSettings",
) -> FeeBreakdown:
    """
    Check a donation against the configured limits and return its breakdown.

    Checks run in order and stop at the first failure:
      1. amount >= minimum_donation        (BELOW_MINIMUM_DONATION)
      2. net_amount >= minimum_net_amount  (NET_BELOW_FLOOR)
      3. total_charge <= channel_limit     (CHANNEL_LIMIT_EXCEEDED)

    Raises:
        FeeValidationError: With the code of the first failing check.
    """
    if amount < settings.minimum_donation:
        raise FeeValidationError(
            code="BELOW_MINIMUM_DONATION",
            message=f"Minimum donation is {settings.minimum_donation}",
            details={"amount": str(amount), "minimum_donation": str(settings.minimum_donation)},
        )

    fees = calculate_fees(amount, tip_amount, donor_covers_fees, settings.platform_fee_percent)

    if fees.net_amount < settings.minimum_net_amount:
        raise FeeValidationError(
            code="NET_BELOW_FLOOR",
            message=f"Charity must receive at least {settings.minimum_net_amount} after fees",
            details={"net_amount": str(fees.net_amount), "minimum_net_amount": str(settings.minimum_net_amount)},
        )

    if fees.total_charge > settings.channel_limit:
        raise FeeValidationError(
            code="CHANNEL_LIMIT_EXCEEDED",
            message=f"Total charge exceeds the payment channel limit of {settings.channel_limit}",
            details={"total_charge": str(fees.total_charge), "channel_limit": str(settings.channel_limit)},
        )

    return fees


def get_suggested_tips(amount: Decimal) -> list[Decimal]:
    """Suggested tips at 0%, 5%, 10% and 15%, rounded to whole units."""
    return [(amount * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP) for rate in SUGGESTED_TIP_RATES]
