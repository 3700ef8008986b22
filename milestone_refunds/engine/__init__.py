from .fees import (
    calculate_fees,
    calculate_fees_with_donor_covers,
    calculate_fees_standard,
    validate_donation_amount,
    get_suggested_tips,
    CalculationError,
    FeeValidationError,
)
from .allocation import allocate_to_milestones, group_donor_shares, sum_contributions
from .eligibility import (
    check_redirect_eligibility,
    is_eligible_redirect_target,
    filter_redirect_campaigns,
    check_campaign_refund_eligibility,
)
from .status import derive_request_status, decisions_total

__all__ = [
    "calculate_fees",
    "calculate_fees_with_donor_covers",
    "calculate_fees_standard",
    "validate_donation_amount",
    "get_suggested_tips",
    "CalculationError",
    "FeeValidationError",
    "allocate_to_milestones",
    "group_donor_shares",
    "sum_contributions",
    "check_redirect_eligibility",
    "is_eligible_redirect_target",
    "filter_redirect_campaigns",
    "check_campaign_refund_eligibility",
    "derive_request_status",
    "decisions_total",
]
