"""
Deadline service: time-driven jobs.

Nothing here runs on its own; the jobs are invoked by the admin sweep
endpoint or by the scheduler entry point.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from milestone_refunds.engine.eligibility import check_campaign_refund_eligibility
from milestone_refunds.engine.fees import _quantize
from milestone_refunds.models.refund import (
    DecisionStatus,
    ProcessingResult,
    RefundRequest,
    RefundRequestStatus,
    SweepResult,
)
from milestone_refunds.repository.store import store
from milestone_refunds.services import settings_service
from milestone_refunds.services.processing_service import execute_decision, process_refund_request
from milestone_refunds.services.refund_request_service import initiate_campaign_refund, recompute_status
from milestone_refunds.validators.refund_validator import ValidationError

logger = logging.getLogger(__name__)

SCHEDULER_ACTOR = "scheduler"


def sweep_expired_decisions(request_id: str = SCHEDULER_ACTOR, now: Optional[datetime] = None) -> SweepResult:
    """
    Apply the refund default to every undecided decision whose deadline has passed.

    Each decision goes through execute_decision, so a decision already claimed
    by an admin run is skipped rather than executed twice. Afterwards every
    request whose deadline passed is recomputed.
    """
    now = now or datetime.now(timezone.utc)
    outcomes = []
    total = Decimal("0")

    for decision in store.list_expired_undecided(now):
        outcome = execute_decision(decision.id, request_id, now)
        outcomes.append(outcome)
        if outcome.executed:
            total += decision.refund_amount

    recomputed = 0
    for refund_request in store.list_refund_requests():
        if refund_request.decision_deadline <= now and refund_request.status != RefundRequestStatus.COMPLETED:
            recompute_status(refund_request.id, now)
            recomputed += 1

    processed = sum(1 for o in outcomes if o.executed)
    if outcomes:
        logger.info("Deadline sweep executed %d of %d expired decision(s), total %s", processed, len(outcomes), total)
    return SweepResult(
        processed_count=processed,
        total_amount=_quantize(total),
        outcomes=outcomes,
        requests_recomputed=recomputed,
    )


def process_due_requests(request_id: str = SCHEDULER_ACTOR, now: Optional[datetime] = None) -> list[ProcessingResult]:
    """Execute the remaining decided-but-pending decisions of requests whose deadline has passed."""
    now = now or datetime.now(timezone.utc)
    results = []
    for refund_request in store.list_refund_requests():
        if refund_request.decision_deadline > now:
            continue
        if not store.list_decisions(refund_request_id=refund_request.id, status=DecisionStatus.PENDING):
            continue
        results.append(process_refund_request(refund_request.id, SCHEDULER_ACTOR, request_id, now))
    return results


def initiate_expired_campaign_refunds(
    request_id: str = SCHEDULER_ACTOR,
    now: Optional[datetime] = None,
) -> list[RefundRequest]:
    """
    Open a campaign-level refund request for every cancelled campaign and every
    campaign past its end date plus the grace period without reaching its goal.
    """
    now = now or datetime.now(timezone.utc)
    grace_days = settings_service.get_expiration_grace_days()
    created = []
    for campaign in store.list_campaigns():
        trigger = check_campaign_refund_eligibility(campaign, now, grace_days)
        if trigger is None:
            continue
        try:
            refund_request, replayed = initiate_campaign_refund(
                campaign.id, trigger, None, SCHEDULER_ACTOR, request_id, now
            )
        except ValidationError as exc:
            logger.warning("Campaign %s qualifies for %s but was not refunded: %s", campaign.id, trigger.value, exc.code)
            continue
        if not replayed:
            created.append(refund_request)
    return created


def run_scheduled_jobs(request_id: str = SCHEDULER_ACTOR, now: Optional[datetime] = None) -> dict:
    """Run every time-driven job once, in dependency order."""
    now = now or datetime.now(timezone.utc)
    campaign_requests = initiate_expired_campaign_refunds(request_id, now)
    sweep = sweep_expired_decisions(request_id, now)
    processed = process_due_requests(request_id, now)
    return {
        "campaign_refunds_initiated": [r.id for r in campaign_requests],
        "sweep": sweep,
        "requests_processed": [p.refund_request_id for p in processed],
    }
