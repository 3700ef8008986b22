"""
In-memory data store with thread-safe operations.

No business logic, only data access primitives. Every decision mutation is
a conditional update evaluated under the lock, so concurrent callers cannot
both win the same transition.
"""
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from milestone_refunds.models.campaign import Campaign, Milestone, Donation, MilestoneAllocation
from milestone_refunds.models.refund import (
    RefundRequest,
    RefundRequestStatus,
    DonorRefundDecision,
    DecisionStatus,
    DecisionType,
)
from milestone_refunds.models.settings import PlatformSettings
from milestone_refunds.models.audit import AuditEntry


class InMemoryStore:
    """Thread-safe in-memory store for the ledger, refund requests, decisions, and audit entries."""

    def __init__(self):
        self._lock = threading.Lock()
        self._campaigns: dict[str, Campaign] = {}
        self._milestones: dict[str, Milestone] = {}
        self._donations: dict[str, Donation] = {}
        self._allocations: dict[str, MilestoneAllocation] = {}
        self._refund_requests: dict[str, RefundRequest] = {}
        self._decisions: dict[str, DonorRefundDecision] = {}
        # refund_request_id -> list of decision_ids
        self._decisions_by_request: dict[str, list[str]] = {}
        # milestone_id -> refund_request_id
        self._requests_by_milestone: dict[str, str] = {}
        # campaign_id -> campaign-level refund_request_id
        self._campaign_level_requests: dict[str, str] = {}
        self._settings: Optional[PlatformSettings] = None
        self._audit_log: list[AuditEntry] = []

    # ── Campaigns ───────────────────────────────────────────────────────────

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        with self._lock:
            return self._campaigns.get(campaign_id)

    def list_campaigns(self) -> list[Campaign]:
        with self._lock:
            return list(self._campaigns.values())

    def save_campaign(self, campaign: Campaign) -> None:
        with self._lock:
            self._campaigns[campaign.id] = campaign

    def apply_campaign_credit(self, campaign_id: str, amount: Decimal, new_donor: bool) -> Optional[Campaign]:
        """Atomically add a credited amount (and optionally a donor) to a campaign's totals."""
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None:
                return None
            updated = campaign.model_copy(update={
                "current_amount": campaign.current_amount + amount,
                "donors_count": campaign.donors_count + (1 if new_donor else 0),
            })
            self._campaigns[campaign_id] = updated
            return updated

    # ── Milestones ──────────────────────────────────────────────────────────

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        with self._lock:
            return self._milestones.get(milestone_id)

    def list_milestones(self, campaign_id: Optional[str] = None) -> list[Milestone]:
        with self._lock:
            milestones = list(self._milestones.values())
        if campaign_id:
            milestones = [m for m in milestones if m.campaign_id == campaign_id]
        return sorted(milestones, key=lambda m: (m.created_at, m.id))

    def save_milestone(self, milestone: Milestone) -> None:
        with self._lock:
            self._milestones[milestone.id] = milestone

    # ── Donations & allocations ─────────────────────────────────────────────

    def get_donation(self, donation_id: str) -> Optional[Donation]:
        with self._lock:
            return self._donations.get(donation_id)

    def list_donations(self, campaign_id: Optional[str] = None, donor_id: Optional[str] = None) -> list[Donation]:
        with self._lock:
            donations = list(self._donations.values())
        if campaign_id:
            donations = [d for d in donations if d.campaign_id == campaign_id]
        if donor_id:
            donations = [d for d in donations if d.donor_id == donor_id]
        return donations

    def save_donation(self, donation: Donation) -> None:
        with self._lock:
            self._donations[donation.id] = donation

    def save_donation_once(self, donation: Donation) -> Donation:
        """Insert a redirect donation unless one already exists for the same source decision."""
        with self._lock:
            if donation.source_decision_id:
                for existing in self._donations.values():
                    if existing.source_decision_id == donation.source_decision_id:
                        return existing
            self._donations[donation.id] = donation
            return donation

    def has_donated(self, campaign_id: str, donor_id: str, exclude_donation_id: str) -> bool:
        with self._lock:
            return any(
                d.campaign_id == campaign_id and d.donor_id == donor_id and d.id != exclude_donation_id
                for d in self._donations.values()
            )

    def save_allocation(self, allocation: MilestoneAllocation) -> None:
        with self._lock:
            self._allocations[allocation.id] = allocation

    def list_allocations(
        self,
        milestone_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        only_unreleased: bool = False,
    ) -> list[MilestoneAllocation]:
        with self._lock:
            allocations = list(self._allocations.values())
        if milestone_id:
            allocations = [a for a in allocations if a.milestone_id == milestone_id]
        if campaign_id:
            allocations = [a for a in allocations if a.campaign_id == campaign_id]
        if only_unreleased:
            allocations = [a for a in allocations if not a.is_released]
        return allocations

    def release_allocations(self, milestone_id: str, released_at: datetime) -> int:
        """Mark every unreleased allocation of a milestone as disbursed. Returns the count."""
        with self._lock:
            count = 0
            for allocation_id, allocation in self._allocations.items():
                if allocation.milestone_id == milestone_id and not allocation.is_released:
                    self._allocations[allocation_id] = allocation.model_copy(
                        update={"is_released": True, "released_at": released_at}
                    )
                    count += 1
            return count

    # ── Refund requests ─────────────────────────────────────────────────────

    def create_refund_request(
        self,
        request: RefundRequest,
        decisions: list[DonorRefundDecision],
        milestone_ids: list[str],
        campaign_level: bool,
        initiated_at: datetime,
    ) -> tuple[RefundRequest, bool]:
        """
        Persist a request and its decisions in one step.

        If the milestone (or, for campaign-level requests, the campaign) already
        has a request, nothing is written and the existing request is returned
        with created=False. Covered milestones are flagged refund_initiated.
        """
        with self._lock:
            if campaign_level:
                existing_id = self._campaign_level_requests.get(request.campaign_id)
            else:
                existing_id = self._requests_by_milestone.get(request.milestone_id)
            if existing_id:
                return self._refund_requests[existing_id], False

            self._refund_requests[request.id] = request
            self._decisions_by_request[request.id] = []
            for decision in decisions:
                self._decisions[decision.id] = decision
                self._decisions_by_request[request.id].append(decision.id)

            for milestone_id in milestone_ids:
                self._requests_by_milestone.setdefault(milestone_id, request.id)
                milestone = self._milestones.get(milestone_id)
                if milestone is not None:
                    self._milestones[milestone_id] = milestone.model_copy(
                        update={"refund_initiated": True, "refund_initiated_at": initiated_at}
                    )
            if campaign_level:
                self._campaign_level_requests[request.campaign_id] = request.id
                campaign = self._campaigns.get(request.campaign_id)
                if campaign is not None:
                    self._campaigns[campaign.id] = campaign.model_copy(
                        update={"expiration_refund_initiated": True}
                    )
            return request, True

    def get_refund_request(self, request_id: str) -> Optional[RefundRequest]:
        with self._lock:
            return self._refund_requests.get(request_id)

    def get_request_by_milestone(self, milestone_id: str) -> Optional[RefundRequest]:
        with self._lock:
            request_id = self._requests_by_milestone.get(milestone_id)
            return self._refund_requests.get(request_id) if request_id else None

    def get_campaign_level_request(self, campaign_id: str) -> Optional[RefundRequest]:
        with self._lock:
            request_id = self._campaign_level_requests.get(campaign_id)
            return self._refund_requests.get(request_id) if request_id else None

    def list_refund_requests(self, status: Optional[RefundRequestStatus] = None) -> list[RefundRequest]:
        with self._lock:
            requests = list(self._refund_requests.values())
        if status:
            requests = [r for r in requests if r.status == status]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    def refresh_request_status(
        self,
        request_id: str,
        derive: Callable[[RefundRequest, list[DonorRefundDecision]], RefundRequestStatus],
        updated_at: datetime,
    ) -> tuple[Optional[RefundRequest], Optional[RefundRequest]]:
        """
        Derive a request's status from a consistent snapshot of its decisions
        and write it if it changed. Returns (before, after).

        completed_at is stamped the first time the request completes.
        """
        with self._lock:
            request = self._refund_requests.get(request_id)
            if request is None:
                return None, None
            decisions = [self._decisions[did] for did in self._decisions_by_request.get(request_id, [])]
            status = derive(request, decisions)
            if status == request.status:
                return request, request
            update: dict[str, Any] = {"status": status, "updated_at": updated_at}
            if status == RefundRequestStatus.COMPLETED and request.completed_at is None:
                update["completed_at"] = updated_at
            updated = request.model_copy(update=update)
            self._refund_requests[request_id] = updated
            return request, updated

    # ── Decisions ───────────────────────────────────────────────────────────

    def get_decision(self, decision_id: str) -> Optional[DonorRefundDecision]:
        with self._lock:
            return self._decisions.get(decision_id)

    def list_decisions(
        self,
        refund_request_id: Optional[str] = None,
        donor_id: Optional[str] = None,
        status: Optional[DecisionStatus] = None,
    ) -> list[DonorRefundDecision]:
        with self._lock:
            if refund_request_id:
                ids = self._decisions_by_request.get(refund_request_id, [])
                decisions = [self._decisions[did] for did in ids if did in self._decisions]
            else:
                decisions = list(self._decisions.values())
        if donor_id:
            decisions = [d for d in decisions if d.donor_id == donor_id]
        if status:
            decisions = [d for d in decisions if d.status == status]
        return decisions

    def list_expired_undecided(self, now: datetime) -> list[DonorRefundDecision]:
        """Pending decisions with no disposition whose deadline has passed."""
        with self._lock:
            return [
                d for d in self._decisions.values()
                if d.status == DecisionStatus.PENDING
                and d.decision_type is None
                and d.decision_deadline <= now
            ]

    def _swap_decision(
        self,
        decision_id: str,
        expected_version: Optional[int],
        predicate,
        update: dict[str, Any],
    ) -> Optional[DonorRefundDecision]:
        # Caller must hold the lock.
        decision = self._decisions.get(decision_id)
        if decision is None:
            return None
        if expected_version is not None and decision.version != expected_version:
            return None
        if not predicate(decision):
            return None
        update = {**update, "version": decision.version + 1}
        updated = decision.model_copy(update=update)
        self._decisions[decision_id] = updated
        return updated

    def update_decision_intent(
        self,
        decision_id: str,
        expected_version: int,
        decision_type: DecisionType,
        target_campaign_id: Optional[str],
        decided_at: datetime,
        metadata: dict[str, Any],
    ) -> Optional[DonorRefundDecision]:
        """Write-once: succeeds only on a pending, unclaimed, undecided decision at the expected version."""
        with self._lock:
            return self._swap_decision(
                decision_id,
                expected_version,
                lambda d: d.status == DecisionStatus.PENDING and d.decision_type is None and d.claim_token is None,
                {
                    "decision_type": decision_type,
                    "target_campaign_id": target_campaign_id,
                    "decided_at": decided_at,
                    "metadata": metadata,
                    "updated_at": decided_at,
                },
            )

    def clear_decision_intent(self, decision_id: str, updated_at: datetime) -> Optional[DonorRefundDecision]:
        with self._lock:
            return self._swap_decision(
                decision_id,
                None,
                lambda d: d.status == DecisionStatus.PENDING and d.claim_token is None and d.decision_type is not None,
                {
                    "decision_type": None,
                    "target_campaign_id": None,
                    "decided_at": None,
                    "metadata": {},
                    "updated_at": updated_at,
                },
            )

    def claim_decision(
        self,
        decision_id: str,
        expected_version: int,
        claim_token: str,
        claimed_at: datetime,
        default_type: Optional[DecisionType] = None,
    ) -> Optional[DonorRefundDecision]:
        """
        Take exclusive ownership of a pending decision for execution.

        With default_type, the claim only succeeds if the decision is still
        undecided, and the default disposition is recorded in the same step.
        """
        with self._lock:
            update: dict[str, Any] = {"claim_token": claim_token, "updated_at": claimed_at}
            if default_type is not None:
                update.update({"decision_type": default_type, "auto_defaulted": True, "decided_at": claimed_at})

                def predicate(d):
                    return d.status == DecisionStatus.PENDING and d.claim_token is None and d.decision_type is None
            else:
                def predicate(d):
                    return d.status == DecisionStatus.PENDING and d.claim_token is None and d.decision_type is not None
            return self._swap_decision(decision_id, expected_version, predicate, update)

    def record_refund_reference(
        self,
        decision_id: str,
        claim_token: str,
        donation_id: str,
        reference: str,
        updated_at: datetime,
    ) -> Optional[DonorRefundDecision]:
        with self._lock:
            decision = self._decisions.get(decision_id)
            if decision is None or decision.claim_token != claim_token:
                return None
            references = {**decision.refund_references, donation_id: reference}
            return self._swap_decision(
                decision_id,
                None,
                lambda d: True,
                {"refund_references": references, "updated_at": updated_at},
            )

    def finalize_decision(
        self,
        decision_id: str,
        claim_token: str,
        status: DecisionStatus,
        processed_at: datetime,
        **fields: Any,
    ) -> Optional[DonorRefundDecision]:
        """Move a claimed pending decision to a terminal status and release the claim."""
        with self._lock:
            return self._swap_decision(
                decision_id,
                None,
                lambda d: d.status == DecisionStatus.PENDING and d.claim_token == claim_token,
                {
                    **fields,
                    "status": status,
                    "processed_at": processed_at if status == DecisionStatus.COMPLETED else None,
                    "claim_token": None,
                    "updated_at": processed_at,
                },
            )

    def reset_failed_decision(self, decision_id: str, updated_at: datetime) -> Optional[DonorRefundDecision]:
        """The only failed -> pending transition."""
        with self._lock:
            return self._swap_decision(
                decision_id,
                None,
                lambda d: d.status == DecisionStatus.FAILED,
                {
                    "status": DecisionStatus.PENDING,
                    "claim_token": None,
                    "processing_error": None,
                    "updated_at": updated_at,
                },
            )

    # ── Settings ────────────────────────────────────────────────────────────

    def get_settings(self) -> Optional[PlatformSettings]:
        with self._lock:
            return self._settings

    def save_settings(self, settings: PlatformSettings) -> None:
        with self._lock:
            self._settings = settings

    # ── Audit ────────────────────────────────────────────────────────────────

    def append_audit(self, entry: AuditEntry) -> None:
        """Append-only audit log. No update or delete."""
        with self._lock:
            self._audit_log.append(entry)

    def get_audit_log(
        self,
        refund_request_id: Optional[str] = None,
        decision_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> list[AuditEntry]:
        with self._lock:
            entries = list(self._audit_log)

        if refund_request_id:
            entries = [e for e in entries if e.refund_request_id == refund_request_id]
        if decision_id:
            entries = [e for e in entries if e.decision_id == decision_id]
        if actor_id:
            entries = [e for e in entries if e.actor_id == actor_id]
        return entries


# Global singleton, initialized at startup and populated by seed_data
store = InMemoryStore()
