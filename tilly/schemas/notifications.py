from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PushDeviceInfo(BaseModel):
    """A push subscription detached from the database session."""

    endpoint: str
    p256dh: str
    auth: str
    is_enabled: bool = True
    device_name: str = ""

    @property
    def subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


class NotificationSettings(BaseModel):
    """Per-account settings the delivery pipeline reads."""

    account_id: str
    timezone: str = "UTC"
    notification_time: str = "12:00"
    language: str = "en"
    last_delivered_at: datetime | None = None
    push_devices: list[PushDeviceInfo] = Field(default_factory=list)


class NotificationPayload(BaseModel):
    """JSON body delivered to the service worker on the device."""

    title: str
    body: str
    icon: str
    badge: str
    url: str | None = None
    user_id: str = Field(serialization_alias="userId")
    count: int | None = None
    is_test: bool | None = Field(default=None, serialization_alias="isTest")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class DeliveryResult(BaseModel):
    """Outcome for one account that reached a delivery decision."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userID")
    notification_count: int = Field(alias="notificationCount")
    success: bool


class DeliveryResponse(BaseModel):
    """Response of a delivery run."""

    message: str
    results: list[DeliveryResult]
