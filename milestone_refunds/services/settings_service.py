"""
Settings provider: admin-editable platform configuration.

Values are read from the store on every call so a change takes effect for the
next operation without a restart. Defaults come from config.
"""
from decimal import Decimal

from milestone_refunds import config
from milestone_refunds.models.audit import AuditAction
from milestone_refunds.models.settings import PlatformSettings, SettingsUpdate
from milestone_refunds.repository.store import store
from milestone_refunds.services.audit_service import record


def default_settings() -> PlatformSettings:
    return PlatformSettings(
        platform_fee_percent=config.DEFAULT_PLATFORM_FEE_PERCENT,
        minimum_donation=config.DEFAULT_MIN_DONATION,
        minimum_net_amount=config.DEFAULT_MIN_NET_AMOUNT,
        channel_limit=config.DEFAULT_CHANNEL_LIMIT,
        decision_window_days=config.DEFAULT_DECISION_WINDOW_DAYS,
        min_campaign_days_remaining=config.DEFAULT_MIN_CAMPAIGN_DAYS_REMAINING,
        minimum_refund_amount=config.DEFAULT_MINIMUM_REFUND_AMOUNT,
        expiration_grace_days=config.DEFAULT_EXPIRATION_GRACE_DAYS,
    )


def get_settings() -> PlatformSettings:
    settings = store.get_settings()
    if settings is None:
        settings = default_settings()
        store.save_settings(settings)
    return settings


def get_fee_rate() -> Decimal:
    return get_settings().platform_fee_percent


def get_decision_window_days() -> int:
    return get_settings().decision_window_days


def get_min_campaign_days_remaining() -> int:
    return get_settings().min_campaign_days_remaining


def get_minimum_refund_amount() -> Decimal:
    return get_settings().minimum_refund_amount


def get_expiration_grace_days() -> int:
    return get_settings().expiration_grace_days


def update_settings(update: SettingsUpdate, request_id: str) -> PlatformSettings:
    """
    Apply a partial settings update and record it in the audit log.

    Only the fields present in the body change; the previous and new values
    of each changed field are kept in the audit detail.
    """
    current = get_settings()
    changes = update.model_dump(exclude_unset=True, exclude={"operator_id"})
    updated = PlatformSettings.model_validate({**current.model_dump(), **changes})
    store.save_settings(updated)

    record(
        action=AuditAction.SETTINGS_UPDATED,
        actor_id=update.operator_id,
        reasoning=f"Platform settings updated by operator '{update.operator_id}': {sorted(changes)}.",
        detail={
            field: {"previous": str(getattr(current, field)), "current": str(value)}
            for field, value in changes.items()
        },
        request_id=request_id,
    )
    return updated
