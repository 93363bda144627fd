from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tilly.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tilly.models.person import Person
    from tilly.models.push_device import PushDevice


class Account(Base, TimestampMixin):
    """End-user account with its notification settings."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    notification_time: Mapped[str] = mapped_column(String(5), default="12:00")
    language: Mapped[str] = mapped_column(String(8), default="en")
    # Naive UTC
    last_delivered_at: Mapped[datetime | None] = mapped_column(default=None)

    # Relationships
    push_devices: Mapped[list[PushDevice]] = relationship(
        back_populates="account",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PushDevice.id",
    )
    people: Mapped[list[Person]] = relationship(
        back_populates="account",
        lazy="noload",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Account {self.id}>"
