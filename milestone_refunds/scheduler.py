"""
Scheduler CLI for this process's own in-memory store (demo and local runs).

    python -m milestone_refunds.scheduler --seed [--interval N]

The store is not shared with a running API server, so without --seed there is
nothing to process. A deployed service is driven by calling
POST /api/v1/refund-requests/scheduled-jobs from an external cron instead; that
runs the same jobs (campaign expiration refunds, the decision deadline sweep,
processing of due requests) against the server's store.
"""
import argparse
import json
import logging
import time

from milestone_refunds.config import configure_logging
from milestone_refunds.repository.store import store
from milestone_refunds.services.deadline_service import run_scheduled_jobs

logger = logging.getLogger(__name__)


def run_once() -> dict:
    summary = run_scheduled_jobs()
    summary["sweep"] = summary["sweep"].model_dump(mode="json")
    logger.info("Scheduled jobs finished: %s", json.dumps(summary))
    return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the refund engine's scheduled jobs.")
    parser.add_argument("--interval", type=int, default=0, help="Repeat every N seconds (0 runs once).")
    parser.add_argument("--seed", action="store_true", help="Load the demo seed data first.")
    args = parser.parse_args(argv)

    configure_logging()
    if args.seed:
        from seed_data import load_seed_data
        load_seed_data()
    elif not store.list_campaigns():
        logger.warning("In-process store is empty; pass --seed or call the scheduled-jobs endpoint of the API")

    run_once()
    while args.interval > 0:
        time.sleep(args.interval)
        run_once()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
