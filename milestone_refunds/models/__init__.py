from .campaign import (
    Campaign, CampaignStatus, CampaignSort, CampaignPage, Milestone, MilestoneStatus,
    Donation, DonationStatus, DonationCreate, MilestoneAllocation, DonationShare,
)
from .refund import (
    RefundRequest, RefundRequestStatus, RefundTriggerType, DonorRefundDecision,
    DecisionContribution, DecisionType, DecisionStatus, RefundRequestDetail,
    MilestoneRefundCreate, CampaignRefundCreate, DecisionSubmission, OperatorAction,
    ExecutionOutcome, ProcessingResult, SweepResult, RefundStats,
)
from .fees import FeeBreakdown, FeeQuoteRequest, FeeQuote
from .settings import PlatformSettings, SettingsUpdate
from .audit import AuditEntry, AuditAction

__all__ = [
    "Campaign", "CampaignStatus", "CampaignSort", "CampaignPage", "Milestone", "MilestoneStatus",
    "Donation", "DonationStatus", "DonationCreate", "MilestoneAllocation", "DonationShare",
    "RefundRequest", "RefundRequestStatus", "RefundTriggerType", "DonorRefundDecision",
    "DecisionContribution", "DecisionType", "DecisionStatus", "RefundRequestDetail",
    "MilestoneRefundCreate", "CampaignRefundCreate", "DecisionSubmission", "OperatorAction",
    "ExecutionOutcome", "ProcessingResult", "SweepResult", "RefundStats",
    "FeeBreakdown", "FeeQuoteRequest", "FeeQuote",
    "PlatformSettings", "SettingsUpdate",
    "AuditEntry", "AuditAction",
]
