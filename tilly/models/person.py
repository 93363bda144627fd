from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tilly.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tilly.models.account import Account


class RepeatUnit(str, enum.Enum):
    """Calendar unit a repeating reminder advances by."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class Repeat:
    """Recurrence rule: every ``interval`` ``unit``s."""

    interval: int
    unit: RepeatUnit

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise ValueError("repeat interval must be a positive integer")


class Person(Base, TimestampMixin):
    """Someone the user keeps in touch with; owns reminders."""

    __tablename__ = "people"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    updated_at: Mapped[datetime] = mapped_column(default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(default=None)
    permanently_deleted_at: Mapped[datetime | None] = mapped_column(default=None)

    # Relationships
    account: Mapped[Account] = relationship(back_populates="people")
    reminders: Mapped[list[Reminder]] = relationship(
        back_populates="person",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Person {self.name}>"


class Reminder(Base, TimestampMixin):
    """A dated reminder about a person, optionally repeating."""

    __tablename__ = "reminders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    person_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), index=True
    )
    text: Mapped[str] = mapped_column(Text, default="")
    # Calendar date, yyyy-MM-dd, no time component
    due_at_date: Mapped[str] = mapped_column(String(10))
    repeat_interval: Mapped[int | None] = mapped_column(Integer, default=None)
    repeat_unit: Mapped[RepeatUnit | None] = mapped_column(
        Enum(RepeatUnit, name="repeat_unit", values_callable=lambda e: [m.value for m in e]),
        default=None,
    )
    done: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(default=None)
    permanently_deleted_at: Mapped[datetime | None] = mapped_column(default=None)

    # Relationships
    person: Mapped[Person] = relationship(back_populates="reminders")

    @property
    def repeat(self) -> Repeat | None:
        if self.repeat_interval is None or self.repeat_unit is None:
            return None
        return Repeat(interval=self.repeat_interval, unit=RepeatUnit(self.repeat_unit))

    @repeat.setter
    def repeat(self, value: Repeat | None) -> None:
        if value is None:
            self.repeat_interval = None
            self.repeat_unit = None
        else:
            self.repeat_interval = value.interval
            self.repeat_unit = value.unit

    def __repr__(self) -> str:
        return f"<Reminder {self.due_at_date} done={self.done}>"
