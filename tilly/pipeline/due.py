"""Due-reminder evaluation.

A reminder counts as due when it is active (not done, not deleted), its person
is not deleted, and its calendar due date is today or earlier in the account's
timezone. Due dates carry no time component, so the comparison is on
``yyyy-MM-dd`` strings and never on instants.
"""

from collections.abc import Iterable

from tilly.models.person import Person, Reminder


def is_person_deleted(person: Person) -> bool:
    """Whether a person is soft- or permanently deleted."""
    return person.deleted_at is not None or person.permanently_deleted_at is not None


def is_reminder_active(reminder: Reminder) -> bool:
    """Whether a reminder can count at all: not done and not deleted."""
    if reminder.done:
        return False
    return reminder.deleted_at is None and reminder.permanently_deleted_at is None


def is_due(reminder: Reminder, person: Person, today_local: str) -> bool:
    """Check whether a reminder is due on or before the user's local today.

    Args:
        reminder: Reminder to evaluate
        person: The person owning the reminder
        today_local: The account's local date as ``yyyy-MM-dd``

    Returns:
        True if the reminder should be counted in the notification
    """
    if is_person_deleted(person) or not is_reminder_active(reminder):
        return False
    if not reminder.due_at_date:
        return False
    return reminder.due_at_date <= today_local


def count_due_reminders(people: Iterable[Person], today_local: str) -> int:
    """Count due reminders across every non-deleted person."""
    count = 0
    for person in people:
        if is_person_deleted(person):
            continue
        count += sum(1 for reminder in person.reminders if is_due(reminder, person, today_local))
    return count
