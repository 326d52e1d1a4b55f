"""Tests for change notification and inbox refresh."""

import threading
import time
import uuid
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.signals import user_logged_out
from django.db import OperationalError, transaction

from django_facility_dm.exceptions import TransientStoreError
from django_facility_dm.identity import Identity
from django_facility_dm.realtime import (
    ChangeEvent,
    ChangeKind,
    ConversationListRefresher,
    ConversationNotifier,
    notifier,
)
from django_facility_dm.services.channel import send_message
from django_facility_dm.services.directory import get_or_create_conversation

User = get_user_model()


def _event(*party_ids, kind=ChangeKind.MESSAGE):
    return ChangeEvent(kind=kind, conversation_id=uuid.uuid4(), party_ids=frozenset(party_ids))


class TestSubscription:
    """Tests for subscription queues without a database."""

    def test_publish_reaches_parties_only(self):
        hub = ConversationNotifier()
        alice = hub.subscribe(Identity(user_id=1))
        bob = hub.subscribe(Identity(user_id=2))
        carol = hub.subscribe(Identity(user_id=3))

        delivered = hub.publish(_event(1, 2))

        assert delivered == 2
        assert alice.pending == 1
        assert bob.pending == 1
        assert carol.pending == 0

    def test_closed_subscription_receives_nothing(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))

        sub.close()

        assert hub.publish(_event(1)) == 0
        assert not sub.is_active
        assert sub.get(timeout=0.01) is None
        assert hub.subscription_count == 0

    def test_close_is_idempotent(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))

        sub.close()
        sub.close()

        assert hub.subscription_count == 0

    def test_context_manager_releases(self):
        hub = ConversationNotifier()

        with hub.subscribe(Identity(user_id=1)) as sub:
            assert hub.subscription_count == 1

        assert not sub.is_active
        assert hub.subscription_count == 0

    def test_full_queue_drops_event(self, settings):
        settings.FACILITY_DM = {"SUBSCRIPTION_QUEUE_SIZE": 1}
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))

        assert hub.publish(_event(1)) == 1
        assert hub.publish(_event(1)) == 0
        assert sub.pending == 1

    def test_get_times_out(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))

        assert sub.get(timeout=0.01) is None

    def test_drain_takes_everything(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))
        for _ in range(3):
            hub.publish(_event(1))

        assert len(sub.drain()) == 3
        assert sub.pending == 0

    def test_close_wakes_waiting_consumer(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))
        results = []

        waiter = threading.Thread(target=lambda: results.append(sub.get(timeout=5)))
        waiter.start()
        time.sleep(0.05)
        sub.close()
        waiter.join(timeout=2)

        assert not waiter.is_alive()
        assert results == [None]

    def test_release_user(self):
        hub = ConversationNotifier()
        hub.subscribe(Identity(user_id=1))
        hub.subscribe(Identity(user_id=1))
        other = hub.subscribe(Identity(user_id=2))

        assert hub.release_user(1) == 2
        assert hub.subscription_count == 1
        assert other.is_active


@pytest.mark.django_db
class TestSignals:
    """Tests for events published from model inserts."""

    def test_message_insert_notifies_both_parties(
        self, conversation, consumer, consumer_identity, operator_identity, django_capture_on_commit_callbacks
    ):
        consumer_sub = notifier.subscribe(consumer_identity)
        operator_sub = notifier.subscribe(operator_identity)

        with django_capture_on_commit_callbacks(execute=True):
            send_message(conversation.pk, consumer.pk, "Hello")

        event = operator_sub.get(timeout=0.1)
        assert event.kind == ChangeKind.MESSAGE
        assert event.conversation_id == conversation.pk
        assert consumer_sub.pending == 1

    def test_outsiders_not_notified(
        self, conversation, consumer, consumer2, django_capture_on_commit_callbacks
    ):
        outsider = notifier.subscribe(Identity.for_user(consumer2))

        with django_capture_on_commit_callbacks(execute=True):
            send_message(conversation.pk, consumer.pk, "Hello")

        assert outsider.pending == 0

    def test_conversation_insert_notifies(
        self, consumer, facility, operator_identity, django_capture_on_commit_callbacks
    ):
        sub = notifier.subscribe(operator_identity)

        with django_capture_on_commit_callbacks(execute=True):
            conversation_id = get_or_create_conversation(consumer.pk, facility.pk)

        event = sub.get(timeout=0.1)
        assert event.kind == ChangeKind.CONVERSATION
        assert event.conversation_id == conversation_id

    def test_existing_conversation_does_not_notify(
        self, conversation, consumer, facility, operator_identity, django_capture_on_commit_callbacks
    ):
        sub = notifier.subscribe(operator_identity)

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            get_or_create_conversation(consumer.pk, facility.pk)

        assert callbacks == []
        assert sub.pending == 0

    def test_rolled_back_insert_does_not_notify(
        self, conversation, consumer, operator_identity, django_capture_on_commit_callbacks
    ):
        sub = notifier.subscribe(operator_identity)

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(RuntimeError):
                with transaction.atomic():
                    send_message(conversation.pk, consumer.pk, "Never committed")
                    raise RuntimeError("abort")

        assert callbacks == []
        assert sub.pending == 0

    def test_logout_releases_subscriptions(self, consumer, consumer_identity, operator_identity):
        consumer_sub = notifier.subscribe(consumer_identity)
        operator_sub = notifier.subscribe(operator_identity)

        user_logged_out.send(sender=User, request=None, user=consumer)

        assert not consumer_sub.is_active
        assert operator_sub.is_active


class TestConversationListRefresher:
    """Tests for the refresh consumer with a stub loader."""

    @pytest.mark.django_db
    def test_refresh_loads_list(self):
        sub = ConversationNotifier().subscribe(Identity(user_id=1))
        loader = MagicMock(return_value=["conv-a"])
        refresher = ConversationListRefresher(sub, loader=loader)

        assert refresher.refresh() is True

        assert refresher.conversations == ["conv-a"]
        loader.assert_called_once_with(Identity(user_id=1))

    @pytest.mark.django_db
    def test_poll_coalesces_queued_events(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))
        loader = MagicMock(return_value=["conv-a"])
        refresher = ConversationListRefresher(sub, loader=loader)
        for _ in range(3):
            hub.publish(_event(1))

        assert refresher.poll(timeout=0.1) is True

        assert loader.call_count == 1
        assert sub.pending == 0

    def test_poll_without_events(self):
        sub = ConversationNotifier().subscribe(Identity(user_id=1))
        loader = MagicMock()
        refresher = ConversationListRefresher(sub, loader=loader)

        assert refresher.poll(timeout=0.01) is False
        loader.assert_not_called()

    @pytest.mark.django_db
    def test_failed_refresh_keeps_previous_list(self):
        sub = ConversationNotifier().subscribe(Identity(user_id=1))
        error = TransientStoreError("list_conversations", OperationalError("down"))
        loader = MagicMock(side_effect=[["conv-a"], error, ["conv-a", "conv-b"]])
        refresher = ConversationListRefresher(sub, loader=loader)

        refresher.refresh()
        assert refresher.refresh() is False
        assert refresher.conversations == ["conv-a"]
        assert refresher.error is error

        assert refresher.refresh() is True
        assert refresher.conversations == ["conv-a", "conv-b"]
        assert refresher.error is None

    def test_refresh_discards_broken_connection_before_loading(self):
        """After a dropped connection the next refresh starts from a fresh one."""
        sub = ConversationNotifier().subscribe(Identity(user_id=1))
        error = TransientStoreError("list_conversations", OperationalError("server closed the connection"))
        loader = MagicMock(side_effect=[error, ["conv-a"]])
        refresher = ConversationListRefresher(sub, loader=loader)

        with patch("django_facility_dm.realtime.close_old_connections") as close_old:
            assert refresher.refresh() is False
            assert refresher.refresh() is True

        assert close_old.call_count == 2
        assert refresher.conversations == ["conv-a"]
        assert refresher.error is None

    def test_run_stops_when_subscription_closes(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))
        loader = MagicMock(return_value=[])
        refresher = ConversationListRefresher(sub, loader=loader)
        stop = threading.Event()

        worker = threading.Thread(target=refresher.run, args=(stop,), kwargs={"poll_interval": 0.05})
        worker.start()
        hub.publish(_event(1))

        deadline = time.monotonic() + 2
        while refresher.refresh_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        sub.close()
        worker.join(timeout=2)

        assert refresher.refresh_count == 1
        assert not worker.is_alive()

    def test_run_returns_when_stopped(self):
        sub = ConversationNotifier().subscribe(Identity(user_id=1))
        refresher = ConversationListRefresher(sub, loader=MagicMock())
        stop = threading.Event()
        stop.set()

        refresher.run(stop, poll_interval=0.01)

        assert refresher.refresh_count == 0

    def test_run_closes_thread_connection(self):
        sub = ConversationNotifier().subscribe(Identity(user_id=1))
        refresher = ConversationListRefresher(sub, loader=MagicMock())
        stop = threading.Event()
        stop.set()

        with patch("django_facility_dm.realtime.connection") as conn:
            conn.in_atomic_block = False
            refresher.run(stop, poll_interval=0.01)

        conn.close.assert_called_once_with()

    def test_run_closes_connection_when_loader_raises(self):
        hub = ConversationNotifier()
        sub = hub.subscribe(Identity(user_id=1))
        refresher = ConversationListRefresher(sub, loader=MagicMock(side_effect=RuntimeError("boom")))
        hub.publish(_event(1))

        with patch("django_facility_dm.realtime.connection") as conn, patch(
            "django_facility_dm.realtime.close_old_connections"
        ):
            conn.in_atomic_block = False
            with pytest.raises(RuntimeError):
                refresher.run(threading.Event(), poll_interval=0.01)

        conn.close.assert_called_once_with()


@pytest.mark.django_db
class TestRefresherWithDatabase:
    """End-to-end: a send by one party refreshes the other's inbox."""

    def test_counterpart_inbox_shows_new_message(
        self, conversation, consumer, operator_identity, django_capture_on_commit_callbacks
    ):
        with notifier.subscribe(operator_identity) as sub:
            refresher = ConversationListRefresher(sub)
            refresher.refresh()
            assert refresher.conversations[0].last_message is None

            with django_capture_on_commit_callbacks(execute=True):
                send_message(conversation.pk, consumer.pk, "Hello")

            assert refresher.poll(timeout=0.1) is True

        summary = refresher.conversations[0]
        assert summary.last_message.content == "Hello"
        assert summary.unread_count == 1
