"""Realtime change notification for conversations and messages.

Inserts of Message and Conversation rows publish a ChangeEvent once the
surrounding transaction commits. Each subscriber owns a bounded queue;
a ConversationListRefresher consumes it and re-reads the inbox from the
database. Events are only a trigger: their payload is never applied to
displayed state, so duplicate or dropped events cannot corrupt it.

Usage:
    from django_facility_dm.realtime import ConversationListRefresher, notifier

    with notifier.subscribe(identity) as subscription:
        refresher = ConversationListRefresher(subscription)
        refresher.refresh()
        refresher.run(stop_event)
"""

import logging
import queue
import threading
import uuid
from dataclasses import dataclass

from django.contrib.auth.signals import user_logged_out
from django.db import close_old_connections, connection, transaction
from django.db.models.signals import post_save

from .conf import get_setting
from .exceptions import TransientStoreError
from .identity import Identity

logger = logging.getLogger(__name__)


class ChangeKind:
    MESSAGE = "message"
    CONVERSATION = "conversation"


@dataclass(frozen=True)
class ChangeEvent:
    """Something changed in a conversation; re-query to find out what."""

    kind: str
    conversation_id: uuid.UUID
    party_ids: frozenset


class Subscription:
    """A subscriber's queue of change events.

    Thread-safe: events are put from whichever thread committed the write
    and taken by the consumer thread. Release with close() or by using the
    subscription as a context manager.
    """

    def __init__(self, notifier: "ConversationNotifier", identity: Identity, maxsize: int):
        self.identity = identity
        self._notifier = notifier
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        state = "active" if self.is_active else "closed"
        return f"<Subscription user={self.identity.user_id} {state}>"

    @property
    def is_active(self) -> bool:
        return not self._closed.is_set()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def matches(self, event: ChangeEvent) -> bool:
        return self.identity.user_id in event.party_ids

    def deliver(self, event: ChangeEvent) -> bool:
        """Queue an event without blocking. Returns False if not queued."""
        if not self.is_active:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            # A refresh is already pending; it will pick this change up.
            logger.warning("Subscription queue full for user %s, dropping event", self.identity.user_id)
            return False
        return True

    def get(self, timeout: float = None) -> ChangeEvent | None:
        """Wait for the next event. Returns None on timeout or after close()."""
        if not self.is_active:
            return None
        try:
            event = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if event is None or not self.is_active:
            return None
        return event

    def drain(self) -> list[ChangeEvent]:
        """Take every queued event without waiting."""
        events = []
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            if event is not None:
                events.append(event)
        return events

    def close(self) -> None:
        """Stop receiving events and wake any waiting consumer."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._notifier._remove(self)
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        logger.debug("Subscription closed for user %s", self.identity.user_id)


class ConversationNotifier:
    """Fans change events out to the subscriptions of the affected parties."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, identity: Identity) -> Subscription:
        subscription = Subscription(
            self, identity, maxsize=get_setting("SUBSCRIPTION_QUEUE_SIZE")
        )
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Subscription opened for user %s", identity.user_id)
        return subscription

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching subscription.

        Returns:
            Number of subscriptions the event was queued on
        """
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        delivered = sum(1 for s in targets if s.deliver(event))
        logger.debug(
            "Published %s change for conversation %s to %d subscriber(s)",
            event.kind,
            event.conversation_id,
            delivered,
        )
        return delivered

    def release_user(self, user_id) -> int:
        """Close every subscription held by a user. Returns how many."""
        with self._lock:
            owned = [s for s in self._subscriptions if s.identity.user_id == user_id]
        for subscription in owned:
            subscription.close()
        return len(owned)

    def close_all(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


notifier = ConversationNotifier()


class ConversationListRefresher:
    """Keeps an identity's inbox current by re-querying on change events.

    The last successfully loaded list stays in `conversations` when a
    refresh fails; the failure is kept in `error` until the next success.
    """

    def __init__(self, subscription: Subscription, loader=None):
        if loader is None:
            from .services.directory import list_conversations

            loader = list_conversations
        self.subscription = subscription
        self.conversations = []
        self.error = None
        self.refresh_count = 0
        self._loader = loader

    def refresh(self) -> bool:
        """Reload the inbox. Returns False if the store was unavailable."""
        # A worker thread has no request cycle to discard a dropped connection.
        if not connection.in_atomic_block:
            close_old_connections()
        try:
            conversations = self._loader(self.subscription.identity)
        except TransientStoreError as e:
            self.error = e
            logger.warning(
                "Inbox refresh failed for user %s: %s",
                self.subscription.identity.user_id,
                e,
            )
            return False
        self.conversations = conversations
        self.error = None
        self.refresh_count += 1
        return True

    def poll(self, timeout: float = None) -> bool:
        """Wait for a change and refresh once for everything queued.

        Returns:
            True if a refresh ran and succeeded
        """
        event = self.subscription.get(timeout=timeout)
        if event is None:
            return False
        coalesced = self.subscription.drain()
        logger.debug(
            "Refreshing inbox for user %s after %d event(s)",
            self.subscription.identity.user_id,
            len(coalesced) + 1,
        )
        return self.refresh()

    def run(self, stop_event: threading.Event, poll_interval: float = 1.0) -> None:
        """Refresh on every change until stop_event is set or the subscription closes.

        Closes this thread's database connection on exit.
        """
        try:
            while not stop_event.is_set() and self.subscription.is_active:
                self.poll(timeout=poll_interval)
        finally:
            if not connection.in_atomic_block:
                connection.close()


def _publish_on_commit(event: ChangeEvent) -> None:
    transaction.on_commit(lambda: notifier.publish(event))


def message_saved(sender, instance, created, raw=False, **kwargs):
    """post_save receiver for Message inserts."""
    if not created or raw:
        return
    _publish_on_commit(
        ChangeEvent(
            kind=ChangeKind.MESSAGE,
            conversation_id=instance.conversation_id,
            party_ids=frozenset((instance.sender_id, instance.recipient_id)),
        )
    )


def conversation_saved(sender, instance, created, raw=False, **kwargs):
    """post_save receiver for Conversation inserts."""
    if not created or raw:
        return
    _publish_on_commit(
        ChangeEvent(
            kind=ChangeKind.CONVERSATION,
            conversation_id=instance.pk,
            party_ids=instance.party_ids,
        )
    )


def release_on_logout(sender, request, user, **kwargs):
    """user_logged_out receiver: drop the user's subscriptions."""
    if user is None:
        return
    released = notifier.release_user(user.pk)
    if released:
        logger.info("Released %d subscription(s) for user %s on logout", released, user.pk)


def connect_signals() -> None:
    from .models import Conversation, Message

    post_save.connect(message_saved, sender=Message, dispatch_uid="facility_dm_message_saved")
    post_save.connect(
        conversation_saved, sender=Conversation, dispatch_uid="facility_dm_conversation_saved"
    )
    user_logged_out.connect(release_on_logout, dispatch_uid="facility_dm_release_on_logout")
