"""Unit tests for MessageChannel.

Tests:
- send() - canonical conversation, unread insert, summary update, live publish,
  chat notification, self-message, validation, persistence failures
- history() / history_between() - ascending order, cursor paging
- subscribe() - topic and decoding
- mark_read() - flips only the reader's messages, idempotent
"""

import pytest

from mintchat.core.constants import MESSAGE_MAX_LENGTH
from mintchat.core.event_store import PersistenceFailure
from mintchat.core.identity import InvalidIdentityError
from mintchat.models.message import (
    EmptyMessageError,
    InvalidMessageKindError,
    Message,
    MessageTooLongError,
)

ALICE = "alice"
BOB = "bob"
CAROL = "carol"


def _messages_for(store, conversation_id):
    return [r for r in store.rows("messages") if r["conversation_id"] == conversation_id]


@pytest.mark.unit
class TestSend:
    """Tests for send()."""

    def test_first_message_creates_canonical_conversation(self, channel, store):
        """Alice sends "hi" to Bob: conversation (alice, bob) with last_message "hi"."""
        message = channel.send(ALICE, BOB, "hi")

        conversations = store.rows("conversations")
        assert len(conversations) == 1
        assert conversations[0]["participant_low"] == ALICE
        assert conversations[0]["participant_high"] == BOB
        assert conversations[0]["last_message"] == "hi"
        assert message.conversation_id == conversations[0]["id"]

    def test_message_stored_unread(self, channel, store):
        message = channel.send(ALICE, BOB, "hi")

        assert message.is_read is False
        assert message.sender == ALICE
        assert message.recipient == BOB
        assert message.kind.value == "text"
        assert store.rows("messages")[0]["is_read"] is False

    def test_reply_reuses_conversation(self, channel, store):
        first = channel.send(ALICE, BOB, "hi")
        reply = channel.send(BOB, ALICE, "hey")

        assert first.conversation_id == reply.conversation_id
        assert store.rows("conversations")[0]["last_message"] == "hey"

    def test_identities_are_normalized(self, channel):
        message = channel.send("ALICE", " Bob ", "hi")

        assert message.sender == ALICE
        assert message.recipient == BOB

    def test_publishes_on_conversation_topic(self, channel, publisher):
        message = channel.send(ALICE, BOB, "hi")

        topic, payload = next(
            (t, p) for t, p in publisher.published if t.startswith("messages:")
        )
        assert topic == f"messages:{message.conversation_id}"
        assert payload["id"] == message.id
        assert payload["content"] == "hi"

    def test_emits_chat_notification_to_recipient(self, channel, store, publisher):
        channel.send(ALICE, BOB, "hi")

        notifications = store.rows("notifications")
        assert len(notifications) == 1
        assert notifications[0]["recipient"] == BOB
        assert notifications[0]["type"] == "chat"
        assert notifications[0]["from_identity"] == ALICE
        assert notifications[0]["title"] == "New Message"
        assert notifications[0]["message"] == "You have unread messages from User ice.stark"
        assert f"notifications:{BOB}" in publisher.topics()

    def test_self_message_does_not_notify(self, channel, store):
        message = channel.send(ALICE, ALICE, "note to self")

        assert message.sender == message.recipient == ALICE
        assert store.rows("notifications") == []

    def test_asset_reference_kind(self, channel):
        message = channel.send(ALICE, BOB, "asset:42", kind="asset-ref")

        assert message.kind.value == "asset-ref"

    def test_blank_content_rejected(self, channel, store):
        with pytest.raises(EmptyMessageError):
            channel.send(ALICE, BOB, "   ")

        assert store.rows("conversations") == []

    def test_too_long_content_rejected(self, channel):
        with pytest.raises(MessageTooLongError):
            channel.send(ALICE, BOB, "x" * (MESSAGE_MAX_LENGTH + 1))

    def test_unknown_kind_rejected(self, channel, store):
        with pytest.raises(InvalidMessageKindError):
            channel.send(ALICE, BOB, "hi", kind="sticker")

        assert store.rows("messages") == []

    def test_invalid_recipient_rejected(self, channel):
        with pytest.raises(InvalidIdentityError):
            channel.send(ALICE, "", "hi")

    def test_insert_failure_surfaces(self, channel, store, publisher):
        store.fail_on.add(("messages", "insert"))

        with pytest.raises(PersistenceFailure):
            channel.send(ALICE, BOB, "hi")

        assert publisher.published == []
        assert store.rows("notifications") == []

    def test_summary_failure_keeps_message(self, channel, store):
        """The message and the summary are separate writes; the summary may lag."""
        store.fail_on.add(("conversations", "update"))

        message = channel.send(ALICE, BOB, "hi")

        assert [r["id"] for r in store.rows("messages")] == [message.id]
        assert store.rows("conversations")[0]["last_message"] is None

    def test_summary_self_heals_on_next_send(self, channel, store):
        store.fail_on.add(("conversations", "update"))
        channel.send(ALICE, BOB, "hi")
        store.fail_on.clear()

        channel.send(ALICE, BOB, "again")

        assert store.rows("conversations")[0]["last_message"] == "again"

    def test_notification_failure_does_not_fail_send(self, channel, store):
        store.fail_on.add(("notifications", "insert"))

        message = channel.send(ALICE, BOB, "hi")

        assert message.content == "hi"
        assert len(store.rows("messages")) == 1


@pytest.mark.unit
class TestHistory:
    """Tests for history() and history_between()."""

    def _seed(self, store, conversation_id, count):
        for i in range(count):
            store.insert(
                "messages",
                {
                    "conversation_id": conversation_id,
                    "sender": ALICE,
                    "recipient": BOB,
                    "content": f"m{i}",
                    "kind": "text",
                    "is_read": False,
                    "created_at": f"2026-03-01T10:00:{i:02d}+00:00",
                },
            )

    def test_ascending_order(self, channel, conversations, store):
        conversation = conversations.get_or_create(ALICE, BOB)
        self._seed(store, conversation.id, 3)

        page = channel.history(conversation.id)

        assert [m.content for m in page.messages] == ["m0", "m1", "m2"]
        assert page.has_more is False
        assert page.next_cursor is None

    def test_paging_backwards_with_cursor(self, channel, conversations, store):
        conversation = conversations.get_or_create(ALICE, BOB)
        self._seed(store, conversation.id, 5)

        newest = channel.history(conversation.id, limit=2)
        assert [m.content for m in newest.messages] == ["m3", "m4"]
        assert newest.has_more is True

        older = channel.history(conversation.id, limit=2, before=newest.next_cursor)
        assert [m.content for m in older.messages] == ["m1", "m2"]

        oldest = channel.history(conversation.id, limit=2, before=older.next_cursor)
        assert [m.content for m in oldest.messages] == ["m0"]
        assert oldest.has_more is False

    def test_shared_timestamp_not_skipped_between_pages(self, channel, conversations, store):
        conversation = conversations.get_or_create(ALICE, BOB)
        for i in range(4):
            store.insert(
                "messages",
                {
                    "conversation_id": conversation.id,
                    "sender": ALICE,
                    "recipient": BOB,
                    "content": f"m{i}",
                    "kind": "text",
                    "is_read": False,
                    "created_at": "2026-03-01T10:00:00+00:00",
                },
            )

        newest = channel.history(conversation.id, limit=2)
        older = channel.history(conversation.id, limit=2, before=newest.next_cursor)

        seen = [m.content for m in older.messages + newest.messages]
        assert sorted(seen) == ["m0", "m1", "m2", "m3"]
        assert len(set(seen)) == 4

    def test_bare_timestamp_cursor(self, channel, conversations, store):
        conversation = conversations.get_or_create(ALICE, BOB)
        self._seed(store, conversation.id, 3)

        page = channel.history(conversation.id, before="2026-03-01T10:00:02+00:00")

        assert [m.content for m in page.messages] == ["m0", "m1"]

    def test_history_between_either_order(self, channel, store):
        channel.send(ALICE, BOB, "hi")
        channel.send(BOB, ALICE, "hey")

        page = channel.history_between(BOB, ALICE)

        assert [m.content for m in page.messages] == ["hi", "hey"]

    def test_history_between_creates_empty_conversation(self, channel, store):
        page = channel.history_between(ALICE, CAROL)

        assert page.messages == []
        assert len(store.rows("conversations")) == 1


@pytest.mark.unit
class TestSubscribe:
    """Tests for subscribe()."""

    @pytest.mark.asyncio
    async def test_delivers_decoded_messages(self, channel, bus):
        received = []
        subscription = await channel.subscribe("conv-1", received.append)

        assert subscription.topic == "messages:conv-1"
        await bus.deliver(
            "messages:conv-1",
            {
                "id": "m-1",
                "conversation_id": "conv-1",
                "sender": ALICE,
                "recipient": BOB,
                "content": "hi",
                "kind": "text",
                "is_read": False,
                "created_at": "2026-03-01T10:00:00+00:00",
            },
        )

        assert len(received) == 1
        assert isinstance(received[0], Message)
        assert received[0].id == "m-1"

    @pytest.mark.asyncio
    async def test_no_delivery_after_unsubscribe(self, channel, bus):
        received = []
        subscription = await channel.subscribe("conv-1", received.append)
        await subscription.unsubscribe()

        delivered = await bus.deliver("messages:conv-1", {"id": "m-1"})

        assert delivered == 0
        assert received == []


@pytest.mark.unit
class TestMarkRead:
    """Tests for mark_read()."""

    def test_flips_only_messages_addressed_to_reader(self, channel, store):
        sent = channel.send(ALICE, BOB, "hi")
        channel.send(BOB, ALICE, "hey")

        flipped = channel.mark_read(sent.conversation_id, BOB)

        assert flipped == 1
        by_content = {r["content"]: r["is_read"] for r in store.rows("messages")}
        assert by_content == {"hi": True, "hey": False}

    def test_no_unread_is_noop(self, channel):
        sent = channel.send(ALICE, BOB, "hi")
        channel.mark_read(sent.conversation_id, BOB)

        assert channel.mark_read(sent.conversation_id, BOB) == 0

    def test_reader_identity_is_normalized(self, channel):
        sent = channel.send(ALICE, BOB, "hi")

        assert channel.mark_read(sent.conversation_id, "BOB") == 1
