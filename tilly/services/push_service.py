"""Web Push transport and per-user device fan-out.

Sends go through pywebpush, which is synchronous, so each request runs in the
default executor. The request timeout is passed to pywebpush and starts when
the request is actually made, so time spent waiting for a worker thread never
counts against it.

Status 404/410 (subscription gone) and 403 (stale credentials) mark a device
for removal; anything else is treated as transient and the device is kept for
the next run.
"""

import asyncio
from dataclasses import dataclass, field
from functools import partial

from pywebpush import WebPushException, webpush

from tilly.config import PushConfig, Settings
from tilly.core.logging import get_logger
from tilly.schemas.notifications import NotificationPayload, PushDeviceInfo

logger = get_logger(__name__)

REMOVABLE_STATUS_CODES = frozenset({403, 404, 410})


@dataclass
class SendResult:
    """Outcome of one push request."""

    ok: bool
    error: str | None = None
    status_code: int | None = None
    should_remove: bool = False


@dataclass
class FanoutResult:
    """Aggregated outcome of sending to all of a user's devices."""

    outcomes: list[tuple[PushDeviceInfo, SendResult]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return any(result.ok for _, result in self.outcomes)

    @property
    def sent_count(self) -> int:
        return sum(1 for _, result in self.outcomes if result.ok)

    @property
    def devices_to_remove(self) -> list[PushDeviceInfo]:
        return [device for device, result in self.outcomes if result.should_remove]


def get_enabled_devices(devices: list[PushDeviceInfo]) -> list[PushDeviceInfo]:
    return [device for device in devices if device.is_enabled]


class PushSender:
    """Sends payloads to push subscriptions with VAPID authentication."""

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        timeout_seconds: float = 10,
        ttl_seconds: int = 86400,
    ) -> None:
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings, push_config: PushConfig) -> "PushSender":
        return cls(
            vapid_private_key=settings.vapid_private_key,
            vapid_subject=settings.vapid_subject,
            timeout_seconds=push_config.push_timeout_seconds,
            ttl_seconds=push_config.ttl_seconds,
        )

    def _send_sync(self, device: PushDeviceInfo, data: str) -> None:
        webpush(
            subscription_info=device.subscription_info,
            data=data,
            vapid_private_key=self.vapid_private_key,
            vapid_claims={"sub": self.vapid_subject},
            ttl=self.ttl_seconds,
            timeout=self.timeout_seconds,
        )

    async def send(self, device: PushDeviceInfo, payload: NotificationPayload) -> SendResult:
        """Send a payload to one device. Never raises for transport failures."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._send_sync, device, payload.to_json()))
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            return SendResult(
                ok=False,
                error=str(e),
                status_code=status_code,
                should_remove=status_code in REMOVABLE_STATUS_CODES,
            )
        except Exception as e:
            # Timeouts and connection errors from requests are transient
            return SendResult(ok=False, error=repr(e))

        return SendResult(ok=True)


async def send_to_devices(
    sender: PushSender,
    user_id: str,
    devices: list[PushDeviceInfo],
    payload: NotificationPayload,
) -> FanoutResult:
    """Send the same payload to every device concurrently.

    Args:
        sender: Push transport
        user_id: Owner of the devices, for logging
        devices: Devices to notify
        payload: Notification payload

    Returns:
        FanoutResult with one outcome per device, in input order
    """
    results = await asyncio.gather(*(sender.send(device, payload) for device in devices))

    fanout = FanoutResult(outcomes=list(zip(devices, results, strict=True)))
    for device, result in fanout.outcomes:
        log = logger.bind(user_id=user_id, endpoint=device.endpoint[-10:])
        if result.ok:
            log.debug("push_sent")
        else:
            log.bind(
                error=result.error,
                status_code=result.status_code,
                should_remove=result.should_remove,
            ).warning("push_failed")
    return fanout
