"""Reminder completion and recurrence.

Marking a repeating reminder done never leaves it done: its due date moves
forward by the repeat rule and it stays active. Only non-repeating reminders
reach the terminal done state.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Any

from tilly.core.datetime_utils import DATE_FORMAT, to_naive_utc, utc_now
from tilly.models.person import Person, Reminder, Repeat, RepeatUnit

_UNSET: Any = object()


class ReminderAlreadyDoneError(Exception):
    """Raised when marking a reminder done that is already done."""

    def __init__(self) -> None:
        super().__init__("cannot set reminder to done. is already done.")


def _add_months(day: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def advance(due_at_date: str, repeat: Repeat | None) -> str:
    """Compute the next due date of a repeating reminder.

    Args:
        due_at_date: Current due date as ``yyyy-MM-dd``
        repeat: Recurrence rule, or None for a one-off reminder

    Returns:
        The next due date as ``yyyy-MM-dd``; unchanged when there is no repeat

    Example:
        >>> advance("2025-01-31", Repeat(1, RepeatUnit.MONTH))
        '2025-02-28'
    """
    if repeat is None:
        return due_at_date

    current = datetime.strptime(due_at_date, DATE_FORMAT).date()
    interval = repeat.interval

    match repeat.unit:
        case RepeatUnit.DAY:
            next_date = current + timedelta(days=interval)
        case RepeatUnit.WEEK:
            next_date = current + timedelta(weeks=interval)
        case RepeatUnit.MONTH:
            next_date = _add_months(current, interval)
        case RepeatUnit.YEAR:
            next_date = _add_months(current, 12 * interval)
        case _:
            next_date = current + timedelta(days=1)

    return next_date.strftime(DATE_FORMAT)


def mark_done(reminder: Reminder) -> Reminder:
    """Complete a reminder, rescheduling it if it repeats."""
    if reminder.done:
        raise ReminderAlreadyDoneError()

    repeat = reminder.repeat
    if repeat is None:
        reminder.done = True
    else:
        reminder.due_at_date = advance(reminder.due_at_date, repeat)
        reminder.done = False
    return reminder


def mark_undone(reminder: Reminder) -> Reminder:
    """Reopen a completed one-off reminder. No-op for active reminders."""
    if reminder.done:
        reminder.done = False
    return reminder


def soft_delete(reminder: Reminder, now: datetime | None = None) -> Reminder:
    reminder.deleted_at = to_naive_utc(now or utc_now())
    return reminder


def restore(reminder: Reminder) -> Reminder:
    reminder.deleted_at = None
    return reminder


def permanently_delete(reminder: Reminder, now: datetime | None = None) -> Reminder:
    reminder.permanently_deleted_at = to_naive_utc(now or utc_now())
    return reminder


def apply_reminder_update(
    reminder: Reminder,
    person: Person,
    *,
    text: str | None = None,
    due_at_date: str | None = None,
    repeat: Repeat | None = _UNSET,
    done: bool | None = None,
    deleted_at: datetime | None = _UNSET,
    permanently_deleted_at: datetime | None = None,
    now: datetime | None = None,
) -> Reminder:
    """Apply a partial update to a reminder.

    Field updates are applied before the done transition, so a request that
    changes the repeat rule and marks the reminder done reschedules with the
    new rule. Passing ``repeat=None`` clears the rule; passing
    ``deleted_at=None`` restores a soft-deleted reminder. Omitted arguments
    leave the field untouched.
    """
    if text is not None:
        reminder.text = text
    if due_at_date is not None:
        reminder.due_at_date = due_at_date
    if repeat is not _UNSET:
        reminder.repeat = repeat

    if done is True and not reminder.done:
        mark_done(reminder)
    elif done is False:
        mark_undone(reminder)

    if deleted_at is not _UNSET:
        if deleted_at is None:
            restore(reminder)
        else:
            soft_delete(reminder, deleted_at)
    if permanently_deleted_at is not None:
        permanently_delete(reminder, permanently_deleted_at)

    timestamp = to_naive_utc(now or utc_now())
    reminder.updated_at = timestamp
    person.updated_at = timestamp
    return reminder
