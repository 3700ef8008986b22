"""
FastAPI application entry point.

Registers middleware (in order), routes, and exception handlers.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from milestone_refunds.config import configure_logging, is_production, get_cors_origins
from milestone_refunds.middleware import RequestIDMiddleware, StructuredLoggingMiddleware
from milestone_refunds.routes.refund_requests import router as refund_requests_router
from milestone_refunds.routes.decisions import router as decisions_router
from milestone_refunds.routes.ledger import router as ledger_router
from milestone_refunds.routes.fees import router as fees_router
from milestone_refunds.routes.settings import router as settings_router
from milestone_refunds.routes.audit import router as audit_router
from seed_data import load_seed_data

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging()

    docs_url = None if is_production() else "/docs"
    redoc_url = None if is_production() else "/redoc"

    application = FastAPI(
        title="Milestone Refund Resolution Service",
        description="Donor refund decisions for rejected milestones and failed campaigns.",
        version="1.0.0",
        docs_url=docs_url,
        redoc_url=redoc_url,
    )

    # ── Middleware stack (order matters) ────────────────────────────────────
    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(StructuredLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type", "X-API-Key", "X-Request-ID", "X-Donor-ID"],
    )

    # ── Routes ──────────────────────────────────────────────────────────────
    application.include_router(refund_requests_router)
    application.include_router(decisions_router)
    application.include_router(ledger_router)
    application.include_router(fees_router)
    application.include_router(settings_router)
    application.include_router(audit_router)

    # ── Exception handlers ───────────────────────────────────────────────────
    @application.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Never leak stack traces to clients."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
        )

    # ── Startup ──────────────────────────────────────────────────────────────
    @application.on_event("startup")
    async def on_startup():
        load_seed_data()

    return application


app = create_app()
