from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tilly.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tilly.models.account import Account


class PushDevice(Base, TimestampMixin):
    """A registered Web Push subscription for one of an account's devices."""

    __tablename__ = "push_devices"
    __table_args__ = (UniqueConstraint("account_id", "endpoint", name="uq_account_endpoint"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    endpoint: Mapped[str] = mapped_column(Text)
    p256dh: Mapped[str] = mapped_column(String(255))
    auth: Mapped[str] = mapped_column(String(255))
    device_name: Mapped[str] = mapped_column(String(255), default="")
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relationships
    account: Mapped[Account] = relationship(back_populates="push_devices")

    @property
    def subscription_info(self) -> dict:
        """Subscription in the shape the Web Push client expects."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }

    def __repr__(self) -> str:
        return f"<PushDevice ...{self.endpoint[-10:]}>"
