from tilly.schemas.notifications import (
    DeliveryResponse,
    DeliveryResult,
    NotificationPayload,
    NotificationSettings,
    PushDeviceInfo,
)

__all__ = [
    "DeliveryResponse",
    "DeliveryResult",
    "NotificationPayload",
    "NotificationSettings",
    "PushDeviceInfo",
]
