"""Tests for the scheduled notification delivery run."""

from datetime import datetime

import pytest

from tilly.config import PushConfig
from tilly.services.notification_delivery import (
    DeviceNotFoundError,
    OutcomeStatus,
    deliver_notifications,
    process_account,
    send_test_notification,
)
from tilly.services.notification_store import AccountNotFoundError
from tilly.services.push_service import SendResult
from tilly.services.user_source import UserSourceError

pytestmark = pytest.mark.asyncio

NOW = datetime.fromisoformat("2025-06-01T10:00:00+00:00")


@pytest.fixture
def due_person(make_person, make_reminder):
    """Person with two reminders due today and one due next week."""

    def _make():
        return make_person(
            reminders=[
                make_reminder(due_at_date="2025-06-01"),
                make_reminder(due_at_date="2025-05-20"),
                make_reminder(due_at_date="2025-06-08"),
            ]
        )

    return _make


class TestProcessAccount:
    """Tests for the per-account pipeline."""

    async def test_delivers_to_every_enabled_device(
        self, fake_store, fake_sender, push_config, make_settings, due_person
    ):
        settings = make_settings(endpoints=["https://push.example.com/a", "https://push.example.com/b"])
        fake_store.add_account(settings, [due_person()])

        outcome = await process_account("user_1", fake_store, fake_sender, push_config, NOW)

        assert outcome.status == OutcomeStatus.DELIVERED
        assert outcome.notification_count == 2
        assert outcome.success is True
        assert [endpoint for endpoint, _ in fake_sender.sent] == [
            "https://push.example.com/a",
            "https://push.example.com/b",
        ]
        payload = fake_sender.sent[0][1]
        assert payload.title == "You have 2 reminders due today"
        assert payload.count == 2
        assert fake_store.delivered["user_1"] == NOW

    async def test_gated_before_notification_time(
        self, fake_store, fake_sender, push_config, make_settings, due_person
    ):
        fake_store.add_account(make_settings(notification_time="11:00"), [due_person()])

        outcome = await process_account("user_1", fake_store, fake_sender, push_config, NOW)

        assert outcome.status == OutcomeStatus.GATED
        assert outcome.reason.startswith("Not past notification time")
        assert fake_sender.sent == []
        assert fake_store.delivered == {}

    async def test_gated_when_already_delivered_today(
        self, fake_store, fake_sender, push_config, make_settings, due_person
    ):
        settings = make_settings(last_delivered_at=datetime(2025, 6, 1, 9, 30))
        fake_store.add_account(settings, [due_person()])

        outcome = await process_account("user_1", fake_store, fake_sender, push_config, NOW)

        assert outcome.status == OutcomeStatus.GATED
        assert outcome.reason == "Already delivered today (last delivered: 2025-06-01 09:30)"
        assert fake_sender.sent == []

    async def test_zero_due_marks_delivered_without_sending(
        self, fake_store, fake_sender, push_config, make_settings, make_person, make_reminder
    ):
        person = make_person(reminders=[make_reminder(due_at_date="2025-06-02")])
        fake_store.add_account(make_settings(), [person])

        outcome = await process_account("user_1", fake_store, fake_sender, push_config, NOW)

        assert outcome.status == OutcomeStatus.ZERO_DUE
        assert outcome.success is True
        assert outcome.notification_count == 0
        assert fake_sender.sent == []
        assert fake_store.delivered["user_1"] == NOW

    async def test_no_enabled_devices_is_not_marked(
        self, fake_store, fake_sender, push_config, make_settings, make_device, due_person
    ):
        settings = make_settings(endpoints=[])
        settings.push_devices = [make_device(is_enabled=False)]
        fake_store.add_account(settings, [due_person()])

        outcome = await process_account("user_1", fake_store, fake_sender, push_config, NOW)

        assert outcome.status == OutcomeStatus.NO_DEVICES
        assert outcome.is_reported is False
        assert fake_store.delivered == {}

    async def test_partial_failure_prunes_gone_device(
        self, fake_store, make_sender, push_config, make_settings, due_person
    ):
        gone = "https://push.example.com/gone"
        alive = "https://push.example.com/alive"
        sender = make_sender({gone: SendResult(ok=False, status_code=410, should_remove=True)})
        fake_store.add_account(make_settings(endpoints=[gone, alive]), [due_person()])

        outcome = await process_account("user_1", fake_store, sender, push_config, NOW)

        assert outcome.success is True
        assert fake_store.removed == [("user_1", gone)]
        assert [d.endpoint for d in fake_store.settings["user_1"].push_devices] == [alive]
        assert "user_1" in fake_store.delivered

    async def test_all_devices_failing_still_marks_delivered(
        self, fake_store, make_sender, push_config, make_settings, due_person
    ):
        endpoint = "https://push.example.com/flaky"
        sender = make_sender({endpoint: SendResult(ok=False, status_code=500, error="server error")})
        fake_store.add_account(make_settings(endpoints=[endpoint]), [due_person()])

        outcome = await process_account("user_1", fake_store, sender, push_config, NOW)

        assert outcome.status == OutcomeStatus.DELIVERED
        assert outcome.success is False
        assert fake_store.removed == []
        assert fake_store.delivered["user_1"] == NOW

    async def test_german_payload(
        self, fake_store, fake_sender, push_config, make_settings, make_person, make_reminder
    ):
        person = make_person(reminders=[make_reminder(due_at_date="2025-06-01")])
        fake_store.add_account(make_settings(language="de"), [person])

        await process_account("user_1", fake_store, fake_sender, push_config, NOW)

        assert fake_sender.sent[0][1].title == "Du hast eine Erinnerung heute"


class TestDeliverNotifications:
    """Tests for the full delivery run."""

    async def test_reports_delivered_and_zero_due_accounts(
        self, fake_store, fake_sender, push_config, make_settings, make_source, due_person
    ):
        fake_store.add_account(make_settings("due_user"), [due_person()])
        fake_store.add_account(make_settings("idle_user"), [])
        fake_store.add_account(make_settings("late_user", notification_time="18:00"), [due_person()])
        source = make_source(["due_user", "idle_user", "late_user"])

        run = await deliver_notifications(source, fake_store, fake_sender, push_config, NOW)

        results = {r.user_id: r for r in run.results}
        assert set(results) == {"due_user", "idle_user"}
        assert results["due_user"].notification_count == 2
        assert results["idle_user"].notification_count == 0
        assert results["idle_user"].success is True
        assert run.skipped_count == 1
        assert run.message == "Processed 2 notification deliveries"

    async def test_due_date_follows_account_timezone(
        self, fake_store, fake_sender, push_config, make_settings, make_source, make_person, make_reminder
    ):
        """At 00:30 UTC it is already 09:30 on the due date in Tokyo."""
        tokyo_person = make_person(reminders=[make_reminder(due_at_date="2025-06-01")])
        utc_person = make_person(reminders=[make_reminder(due_at_date="2025-06-01")])
        fake_store.add_account(make_settings("tokyo_user", timezone="Asia/Tokyo"), [tokyo_person])
        fake_store.add_account(make_settings("utc_user"), [utc_person])
        source = make_source(["tokyo_user", "utc_user"])

        now = datetime.fromisoformat("2025-06-01T00:30:00+00:00")
        run = await deliver_notifications(source, fake_store, fake_sender, push_config, now)

        assert [(r.user_id, r.notification_count) for r in run.results] == [("tokyo_user", 1)]
        assert run.skipped_count == 1

    async def test_second_run_same_day_sends_nothing(
        self, fake_store, fake_sender, push_config, make_settings, make_source, due_person
    ):
        fake_store.add_account(make_settings(), [due_person()])
        source = make_source(["user_1"])

        first = await deliver_notifications(source, fake_store, fake_sender, push_config, NOW)
        later = datetime.fromisoformat("2025-06-01T15:00:00+00:00")
        second = await deliver_notifications(source, fake_store, fake_sender, push_config, later)

        assert len(first.results) == 1
        assert second.results == []
        assert len(fake_sender.sent) == 1

    async def test_account_failure_is_contained(
        self, fake_store, fake_sender, push_config, make_settings, make_source, due_person
    ):
        for account_id in ("user_1", "user_2", "user_3"):
            fake_store.add_account(make_settings(account_id), [due_person()])
        fake_store.fail_for.add("user_2")
        source = make_source(["user_1", "user_2", "user_3", "missing_user"])

        run = await deliver_notifications(source, fake_store, fake_sender, push_config, NOW)

        assert sorted(r.user_id for r in run.results) == ["user_1", "user_3"]
        assert run.error_count == 2

    async def test_user_source_failure_propagates_after_drain(
        self, fake_store, fake_sender, push_config, make_settings, make_source
    ):
        for account_id in ("user_1", "user_2", "user_3"):
            fake_store.add_account(make_settings(account_id), [])
        source = make_source(["user_1", "user_2", "user_3"], fail_after=2)

        with pytest.raises(UserSourceError):
            await deliver_notifications(source, fake_store, fake_sender, push_config, NOW)

        assert set(fake_store.delivered) == {"user_1", "user_2"}

    async def test_concurrency_is_bounded(self, make_store, fake_sender, make_settings, make_source):
        store = make_store(delay=0.01)
        account_ids = [f"user_{i:03d}" for i in range(200)]
        for account_id in account_ids:
            store.add_account(make_settings(account_id), [])

        run = await deliver_notifications(
            make_source(account_ids),
            store,
            fake_sender,
            PushConfig({"max_concurrent_users": 50}),
            NOW,
        )

        assert len(run.results) == 200
        assert run.peak_in_flight == 50
        assert store.peak_active == 50

    async def test_empty_source(self, fake_store, fake_sender, push_config, make_source):
        run = await deliver_notifications(make_source([]), fake_store, fake_sender, push_config, NOW)

        assert run.results == []
        assert run.message == "Processed 0 notification deliveries"


class TestSendTestNotification:
    """Tests for send_test_notification."""

    async def test_sends_to_all_enabled_devices(
        self, fake_store, fake_sender, push_config, make_settings
    ):
        settings = make_settings(endpoints=["https://push.example.com/a", "https://push.example.com/b"])
        fake_store.add_account(settings)

        outcomes = await send_test_notification(fake_store, fake_sender, push_config, "user_1")

        assert len(outcomes) == 2
        payload = fake_sender.sent[0][1]
        assert payload.is_test is True
        assert payload.url == push_config.test_url
        assert payload.title == "Test Notification"

    async def test_targets_single_endpoint(self, fake_store, fake_sender, push_config, make_settings):
        settings = make_settings(endpoints=["https://push.example.com/a", "https://push.example.com/b"])
        fake_store.add_account(settings)

        await send_test_notification(
            fake_store, fake_sender, push_config, "user_1", endpoint="https://push.example.com/b"
        )

        assert [endpoint for endpoint, _ in fake_sender.sent] == ["https://push.example.com/b"]

    async def test_unknown_endpoint(self, fake_store, fake_sender, push_config, make_settings):
        fake_store.add_account(make_settings())

        with pytest.raises(DeviceNotFoundError):
            await send_test_notification(
                fake_store, fake_sender, push_config, "user_1", endpoint="https://elsewhere"
            )

    async def test_unknown_account(self, fake_store, fake_sender, push_config):
        with pytest.raises(AccountNotFoundError):
            await send_test_notification(fake_store, fake_sender, push_config, "nobody")
