"""Server-side push notification messages (English and German)."""

from tilly.config import PushConfig
from tilly.schemas.notifications import NotificationPayload

DEFAULT_LANGUAGE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "push.test.title": "Test Notification",
        "push.test.body": "This is a test push notification. Your device is configured correctly! 🚀",
        "push.dueReminders.title.one": "You have one reminder due today",
        "push.dueReminders.title.other": "You have {count} reminders due today",
        "push.dueReminders.body": "A few moments to reach out could brighten someone's day ✨",
    },
    "de": {
        "push.test.title": "Test-Benachrichtigung",
        "push.test.body": "Das ist eine Test-Push-Benachrichtigung. Dein Gerät ist korrekt konfiguriert!",
        "push.dueReminders.title.one": "Du hast eine Erinnerung heute",
        "push.dueReminders.title.other": "Du hast {count} Erinnerungen heute",
        "push.dueReminders.body": "Manchmal reicht ein kleiner Moment, um jemandem den Tag zu versüßen ✨",
    },
}


def get_messages(language: str | None) -> dict[str, str]:
    """Message catalog for a language, falling back to English."""
    return MESSAGES.get(language or DEFAULT_LANGUAGE, MESSAGES[DEFAULT_LANGUAGE])


def due_reminders_title(language: str | None, count: int) -> str:
    messages = get_messages(language)
    key = "push.dueReminders.title.one" if count == 1 else "push.dueReminders.title.other"
    return messages[key].format(count=count)


def build_due_reminders_payload(
    user_id: str,
    language: str | None,
    count: int,
    push_config: PushConfig,
) -> NotificationPayload:
    """Create the localized payload announcing due reminders."""
    messages = get_messages(language)
    return NotificationPayload(
        title=due_reminders_title(language, count),
        body=messages["push.dueReminders.body"],
        icon=push_config.icon,
        badge=push_config.badge,
        url=push_config.url,
        user_id=user_id,
        count=count,
    )


def build_test_payload(
    user_id: str,
    language: str | None,
    push_config: PushConfig,
) -> NotificationPayload:
    """Create the localized payload for a device test notification."""
    messages = get_messages(language)
    return NotificationPayload(
        title=messages["push.test.title"],
        body=messages["push.test.body"],
        icon=push_config.icon,
        badge=push_config.badge,
        url=push_config.test_url,
        user_id=user_id,
        is_test=True,
    )
