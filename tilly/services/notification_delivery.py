"""Scheduled delivery of "reminders due today" push notifications.

One run walks every account from the user source and, for each, goes through
load settings -> gate -> count due reminders -> pick enabled devices ->
fan out -> persist. Accounts are processed concurrently under a fixed
ceiling. Anything that goes wrong for one account is logged and contained;
only a failure to enumerate accounts aborts the run.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime

from tilly.config import PushConfig
from tilly.core.concurrency import ConcurrencyLimiter
from tilly.core.datetime_utils import local_date_str, utc_now
from tilly.core.logging import get_logger
from tilly.pipeline.due import count_due_reminders
from tilly.pipeline.gate import check_delivery_gate
from tilly.schemas.notifications import DeliveryResult, NotificationSettings, PushDeviceInfo
from tilly.services.localization import build_due_reminders_payload, build_test_payload
from tilly.services.notification_store import (
    NotificationStore,
    mark_delivered,
    remove_device_by_endpoint,
)
from tilly.services.push_service import (
    FanoutResult,
    PushSender,
    SendResult,
    get_enabled_devices,
    send_to_devices,
)
from tilly.services.user_source import UserSource

logger = get_logger(__name__)


class OutcomeStatus(str, enum.Enum):
    """Terminal state of one account's pass through the pipeline."""

    GATED = "gated"
    ZERO_DUE = "zero_due"
    NO_DEVICES = "no_devices"
    DELIVERED = "delivered"


@dataclass
class AccountOutcome:
    """Result of processing one account."""

    user_id: str
    status: OutcomeStatus
    notification_count: int = 0
    success: bool = False
    reason: str | None = None

    @property
    def is_reported(self) -> bool:
        """Skips are logged but left out of the run's results."""
        return self.status in (OutcomeStatus.ZERO_DUE, OutcomeStatus.DELIVERED)

    def to_result(self) -> DeliveryResult:
        return DeliveryResult(
            user_id=self.user_id,
            notification_count=self.notification_count,
            success=self.success,
        )


@dataclass
class DeliveryRun:
    """Aggregated outcome of one delivery run."""

    results: list[DeliveryResult] = field(default_factory=list)
    skipped_count: int = 0
    error_count: int = 0
    peak_in_flight: int = 0

    @property
    def message(self) -> str:
        return f"Processed {len(self.results)} notification deliveries"


class DeviceNotFoundError(Exception):
    """Raised when a test notification targets a device that is not enabled."""


# --- Pipeline stages ---


async def count_due_for_account(
    store: NotificationStore,
    settings: NotificationSettings,
    now_utc: datetime,
) -> int:
    """Load the account's people and count reminders due in its local today."""
    people = await store.load_people(settings.account_id)
    today_local = local_date_str(now_utc, settings.timezone)
    return count_due_reminders(people, today_local)


async def fan_out_and_prune(
    store: NotificationStore,
    sender: PushSender,
    settings: NotificationSettings,
    devices: list[PushDeviceInfo],
    due_count: int,
    push_config: PushConfig,
) -> FanoutResult:
    """Send the due-reminders payload to every device and prune dead ones."""
    payload = build_due_reminders_payload(
        settings.account_id, settings.language, due_count, push_config
    )
    fanout = await send_to_devices(sender, settings.account_id, devices, payload)

    for device in fanout.devices_to_remove:
        await remove_device_by_endpoint(store, settings.account_id, device.endpoint)

    return fanout


async def process_account(
    account_id: str,
    store: NotificationStore,
    sender: PushSender,
    push_config: PushConfig,
    now_utc: datetime,
) -> AccountOutcome:
    """Run the delivery pipeline for one account.

    Stages are strictly sequential. Raises on storage failures; the caller
    contains them.
    """
    log = logger.bind(user_id=account_id)

    settings = await store.load_settings(account_id)

    skip_reason = check_delivery_gate(settings, now_utc)
    if skip_reason:
        return AccountOutcome(account_id, OutcomeStatus.GATED, reason=skip_reason)

    due_count = await count_due_for_account(store, settings, now_utc)
    if due_count == 0:
        # Marked so later runs today skip the evaluation entirely
        await mark_delivered(store, account_id, now_utc)
        log.debug("no_due_reminders")
        return AccountOutcome(account_id, OutcomeStatus.ZERO_DUE, success=True)

    devices = get_enabled_devices(settings.push_devices)
    if not devices:
        # Not marked: a device enabled before the next run still gets today's push
        return AccountOutcome(
            account_id,
            OutcomeStatus.NO_DEVICES,
            notification_count=due_count,
            reason="No enabled devices",
        )

    log.bind(devices=len(devices), due=due_count).info("notifying_devices")
    fanout = await fan_out_and_prune(store, sender, settings, devices, due_count, push_config)

    # Marked even when every device failed; the user is not retried until tomorrow
    await mark_delivered(store, account_id, now_utc)

    if fanout.success:
        log.bind(sent=fanout.sent_count, devices=len(devices)).info("notification_delivered")
    else:
        log.bind(devices=len(devices)).warning("all_device_sends_failed")

    return AccountOutcome(
        account_id,
        OutcomeStatus.DELIVERED,
        notification_count=due_count,
        success=fanout.success,
    )


# --- Orchestration ---


async def _run_account(
    account_id: str,
    store: NotificationStore,
    sender: PushSender,
    push_config: PushConfig,
    now_utc: datetime,
    run: DeliveryRun,
) -> None:
    """Task boundary: every per-account failure stops here."""
    try:
        outcome = await process_account(account_id, store, sender, push_config, now_utc)
    except Exception as e:
        run.error_count += 1
        logger.bind(user_id=account_id, error=repr(e)).error("account_processing_failed")
        return

    if outcome.is_reported:
        run.results.append(outcome.to_result())
    else:
        run.skipped_count += 1
        logger.bind(
            user_id=account_id, status=outcome.status.value, reason=outcome.reason
        ).debug("delivery_skipped")


async def deliver_notifications(
    source: UserSource,
    store: NotificationStore,
    sender: PushSender,
    push_config: PushConfig,
    now_utc: datetime | None = None,
) -> DeliveryRun:
    """Run one delivery pass over every account.

    Args:
        source: Account enumeration; its failure is the only one that propagates
        store: Storage collaborator
        sender: Push transport
        push_config: Concurrency limit and payload settings
        now_utc: Clock override, defaults to the current time

    Returns:
        DeliveryRun with results for accounts that reached a delivery decision

    Raises:
        UserSourceError: If accounts cannot be enumerated
    """
    now_utc = now_utc or utc_now()
    run = DeliveryRun()
    limiter = ConcurrencyLimiter(push_config.max_concurrent_users)

    logger.bind(
        now_utc=now_utc.isoformat(), max_concurrent=push_config.max_concurrent_users
    ).info("notification_delivery_started")

    try:
        async for account_id in source.iter_account_ids():
            await limiter.submit(
                _run_account(account_id, store, sender, push_config, now_utc, run)
            )
    finally:
        # Accounts already admitted finish even if enumeration fails
        await limiter.drain()

    run.peak_in_flight = limiter.peak_in_flight
    logger.bind(
        delivered=len(run.results),
        skipped=run.skipped_count,
        errors=run.error_count,
        peak_in_flight=run.peak_in_flight,
    ).info("notification_delivery_completed")
    return run


async def send_test_notification(
    store: NotificationStore,
    sender: PushSender,
    push_config: PushConfig,
    account_id: str,
    endpoint: str | None = None,
) -> list[tuple[PushDeviceInfo, SendResult]]:
    """Send the localized test notification to one or all enabled devices.

    Raises:
        AccountNotFoundError: If the account does not exist
        DeviceNotFoundError: If no matching enabled device exists
    """
    settings = await store.load_settings(account_id)
    devices = get_enabled_devices(settings.push_devices)
    if endpoint is not None:
        devices = [device for device in devices if device.endpoint == endpoint]
    if not devices:
        raise DeviceNotFoundError("device is not in the list of enabled devices")

    payload = build_test_payload(account_id, settings.language, push_config)
    fanout = await send_to_devices(sender, account_id, devices, payload)
    return fanout.outcomes
