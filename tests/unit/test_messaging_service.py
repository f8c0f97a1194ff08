# tests/unit/test_messaging_service.py
"""Unit tests for MessagingApplicationService against an in-memory repository.

The fake hands out copies of stored rows, so the service only sees state it
explicitly wrote back, as with the real database.
"""
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bm_common.errors import (
    InvalidMessageTargetError,
    MessageNotFoundError,
    NotConversationParticipantError,
    NotMessageSenderError,
    TradeNotFoundError,
    UserNotFoundError,
)
from src.bm_messaging.application.schemas import SendMessageRequest
from src.bm_messaging.application.service import MessagingApplicationService
from src.bm_messaging.domain.models import (
    Conversation,
    Message,
    ParticipantSummary,
    TradeSummary,
    ordered_pair,
)


class InMemoryConversationRepo:
    def __init__(self, reverse_storage_order: bool = False) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, Message] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)
        self._reverse = reverse_storage_order
        self.locked: list[str] = []

    def _copy_conv(self, conv: Conversation) -> Conversation:
        return replace(conv, unread_counts=dict(conv.unread_counts))

    def _copy_msg(self, msg: Message) -> Message:
        return replace(msg, read_by=list(msg.read_by), metadata=dict(msg.metadata))

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    async def find_or_create(self, db, user_a, user_b, trade_id):
        low, high = ordered_pair(user_a, user_b)
        for conv in self.conversations.values():
            if (conv.user_low_id, conv.user_high_id, conv.trade_id) == (low, high, trade_id):
                return self._copy_conv(conv), False
        now = self._tick()
        conv = Conversation(
            id=str(uuid.uuid4()), trade_id=trade_id, user_low_id=low, user_high_id=high,
            unread_counts={low: 0, high: 0}, created_at=now, updated_at=now,
        )
        self.conversations[conv.id] = conv
        return self._copy_conv(conv), True

    async def get_conversation(self, db, conversation_id, for_update=False):
        if for_update:
            self.locked.append(conversation_id)
        conv = self.conversations.get(conversation_id)
        return self._copy_conv(conv) if conv else None

    async def save_conversation_state(self, db, conv):
        conv.updated_at = self._tick()
        self.conversations[conv.id] = self._copy_conv(conv)

    async def reset_unread(self, db, conversation_id, user_id):
        self.conversations[conversation_id].unread_counts[user_id] = 0

    async def list_for_user(self, db, user_id):
        mine = [c for c in self.conversations.values() if user_id in c.participant_ids]
        return [self._copy_conv(c) for c in sorted(mine, key=lambda c: c.updated_at, reverse=True)]

    async def insert_message(self, db, message):
        message.created_at = self._tick()
        self.messages[message.id] = self._copy_msg(message)
        return message

    async def list_messages(self, db, conversation_id):
        rows = [m for m in self.messages.values() if m.conversation_id == conversation_id]
        rows.sort(key=lambda m: m.created_at, reverse=self._reverse)
        return [self._copy_msg(m) for m in rows]

    async def mark_thread_read(self, db, conversation_id, user_id):
        for msg in self.messages.values():
            if msg.conversation_id == conversation_id and msg.sender_id != user_id:
                msg.mark_read(user_id)

    async def get_message(self, db, message_id):
        msg = self.messages.get(message_id)
        return self._copy_msg(msg) if msg else None

    async def delete_message(self, db, message_id):
        self.messages.pop(message_id, None)


ALICE = "11111111-1111-4111-8111-111111111111"
BOB = "22222222-2222-4222-8222-222222222222"
EVE = "33333333-3333-4333-8333-333333333333"
TRADE = "44444444-4444-4444-8444-444444444444"


@pytest.fixture
def db():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def repo():
    return InMemoryConversationRepo()


@pytest.fixture
def notifier():
    n = MagicMock()
    n.notify_new_message = AsyncMock()
    return n


@pytest.fixture
def trade_repo():
    r = MagicMock()
    r.get_trade_by_id = AsyncMock(return_value=MagicMock(id=TRADE))
    return r


@pytest.fixture
def user_service():
    s = MagicMock()
    s.get_by_id = AsyncMock(return_value=MagicMock())
    return s


@pytest.fixture
def svc(repo, notifier, trade_repo, user_service):
    return MessagingApplicationService(
        repo=repo, notifier=notifier, trade_repo=trade_repo, user_service=user_service
    )


async def _open(svc, db, sender=ALICE, recipient=BOB) -> str:
    resp = await svc.start_conversation(db, sender, recipient, TRADE)
    return resp.conversation.id


def _send(conversation_id: str, content: str = "hello") -> SendMessageRequest:
    return SendMessageRequest(conversation_id=conversation_id, content=content)


class TestStartConversation:
    async def test_reuses_for_same_triple(self, svc, db):
        first = await svc.start_conversation(db, ALICE, BOB, TRADE)
        second = await svc.start_conversation(db, ALICE, BOB, TRADE)
        reversed_pair = await svc.start_conversation(db, BOB, ALICE, TRADE)

        assert first.created is True
        assert second.created is False
        assert first.conversation.id == second.conversation.id == reversed_pair.conversation.id
        assert first.conversation.status == "pending"
        assert first.conversation.participant_ids == [BOB]

    async def test_cannot_message_self(self, svc, db):
        with pytest.raises(InvalidMessageTargetError):
            await svc.start_conversation(db, ALICE, ALICE, TRADE)
        db.rollback.assert_awaited_once()

    async def test_unknown_trade(self, svc, db, trade_repo):
        trade_repo.get_trade_by_id = AsyncMock(return_value=None)
        with pytest.raises(TradeNotFoundError):
            await svc.start_conversation(db, ALICE, BOB, TRADE)

    async def test_unknown_recipient(self, svc, db, user_service):
        user_service.get_by_id = AsyncMock(return_value=None)
        with pytest.raises(UserNotFoundError):
            await svc.start_conversation(db, ALICE, BOB, TRADE)


class TestSendMessage:
    async def test_three_messages_then_fetch_clears_unread(self, svc, db, repo):
        conv_id = await _open(svc, db)
        for i in range(3):
            await svc.send_message(db, ALICE, _send(conv_id, f"msg {i}"))

        assert repo.conversations[conv_id].unread_counts[BOB] == 3
        assert repo.conversations[conv_id].unread_counts[ALICE] == 0

        thread = await svc.get_thread(db, BOB, conv_id)

        assert thread.conversation.unread_count == 0
        assert repo.conversations[conv_id].unread_counts[BOB] == 0
        assert len(thread.messages) == 3
        assert all(BOB in m.read_by for m in thread.messages)
        assert all(BOB in m.read_by for m in repo.messages.values())

    async def test_send_updates_conversation_state(self, svc, db, repo):
        conv_id = await _open(svc, db)

        resp = await svc.send_message(db, ALICE, _send(conv_id))

        stored = repo.conversations[conv_id]
        assert stored.status == "active"
        assert stored.last_message_id == resp.message.id
        assert resp.message.read_by == [ALICE]
        assert resp.message.type == "text"
        assert resp.conversation.last_message.content == "hello"
        assert resp.conversation.last_message.sender_id == ALICE

    async def test_notifies_other_participant(self, svc, db, notifier):
        conv_id = await _open(svc, db)

        resp = await svc.send_message(db, ALICE, _send(conv_id))

        notifier.notify_new_message.assert_awaited_once()
        recipient, conv, message = notifier.notify_new_message.call_args.args
        assert recipient == BOB
        assert conv.id == conv_id
        assert message.id == resp.message.id

    async def test_notifier_failure_does_not_fail_send(self, svc, db, notifier, repo):
        notifier.notify_new_message = AsyncMock(side_effect=ConnectionError("redis down"))
        conv_id = await _open(svc, db)

        resp = await svc.send_message(db, ALICE, _send(conv_id))

        assert resp.message.id in repo.messages

    async def test_start_by_recipient_and_trade(self, svc, db, repo):
        req = SendMessageRequest(
            recipient_id=uuid.UUID(BOB), trade_id=uuid.UUID(TRADE), content="Still available?"
        )

        resp = await svc.send_message(db, ALICE, req)

        assert len(repo.conversations) == 1
        conv = next(iter(repo.conversations.values()))
        assert resp.message.conversation_id == conv.id
        assert conv.unread_counts[BOB] == 1

    async def test_non_participant_forbidden(self, svc, db, repo):
        conv_id = await _open(svc, db)

        with pytest.raises(NotConversationParticipantError):
            await svc.send_message(db, EVE, _send(conv_id))

        assert repo.messages == {}
        db.rollback.assert_awaited()

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"recipient_id": uuid.UUID(BOB)},
            {"trade_id": uuid.UUID(TRADE)},
            {"conversation_id": uuid.uuid4(), "recipient_id": uuid.UUID(BOB),
             "trade_id": uuid.UUID(TRADE)},
        ],
    )
    async def test_invalid_target(self, svc, db, fields):
        with pytest.raises(InvalidMessageTargetError):
            await svc.send_message(db, ALICE, SendMessageRequest(content="hi", **fields))


class TestGetThread:
    async def test_ascending_regardless_of_storage_order(self, db, notifier, trade_repo, user_service):
        repo = InMemoryConversationRepo(reverse_storage_order=True)
        svc = MessagingApplicationService(
            repo=repo, notifier=notifier, trade_repo=trade_repo, user_service=user_service
        )
        conv_id = await _open(svc, db)
        for text_ in ("first", "second", "third"):
            await svc.send_message(db, ALICE, _send(conv_id, text_))

        thread = await svc.get_thread(db, ALICE, conv_id)

        assert [m.content for m in thread.messages] == ["first", "second", "third"]

    async def test_sender_fetch_does_not_add_self_twice(self, svc, db):
        conv_id = await _open(svc, db)
        await svc.send_message(db, ALICE, _send(conv_id))

        thread = await svc.get_thread(db, ALICE, conv_id)

        assert thread.messages[0].read_by == [ALICE]

    async def test_non_participant_forbidden(self, svc, db):
        conv_id = await _open(svc, db)
        with pytest.raises(NotConversationParticipantError):
            await svc.get_thread(db, EVE, conv_id)

    async def test_fetch_locks_conversation(self, svc, db, repo):
        conv_id = await _open(svc, db)
        repo.locked.clear()

        await svc.get_thread(db, BOB, conv_id)

        assert repo.locked == [conv_id]


class TestListConversations:
    async def test_unread_and_participants_from_viewer(self, svc, db):
        conv_id = await _open(svc, db)
        await svc.send_message(db, ALICE, _send(conv_id))
        await svc.send_message(db, ALICE, _send(conv_id))

        bob_view = await svc.list_conversations(db, BOB)
        alice_view = await svc.list_conversations(db, ALICE)

        assert bob_view.count == 1
        assert bob_view.conversations[0].unread_count == 2
        assert bob_view.conversations[0].participant_ids == [ALICE]
        assert alice_view.conversations[0].unread_count == 0

    async def test_most_recent_first(self, svc, db, trade_repo):
        older = await _open(svc, db)
        newer = (await svc.start_conversation(db, ALICE, EVE, TRADE)).conversation.id
        await svc.send_message(db, ALICE, _send(older))

        resp = await svc.list_conversations(db, ALICE)

        assert [c.id for c in resp.conversations] == [older, newer]


class TestDeleteMessage:
    async def test_sender_can_delete(self, svc, db, repo):
        conv_id = await _open(svc, db)
        msg = (await svc.send_message(db, ALICE, _send(conv_id))).message

        await svc.delete_message(db, ALICE, msg.id)

        assert msg.id not in repo.messages

    async def test_other_user_forbidden(self, svc, db, repo):
        conv_id = await _open(svc, db)
        msg = (await svc.send_message(db, ALICE, _send(conv_id))).message

        with pytest.raises(NotMessageSenderError):
            await svc.delete_message(db, BOB, msg.id)
        assert msg.id in repo.messages

    async def test_missing(self, svc, db):
        with pytest.raises(MessageNotFoundError):
            await svc.delete_message(db, ALICE, str(uuid.uuid4()))


class TestConversationSummaries:
    async def test_inbox_row_carries_names_trade_and_preview(self, svc, db, repo):
        conv_id = await _open(svc, db)
        stored = repo.conversations[conv_id]
        stored.participants = {
            ALICE: ParticipantSummary(id=ALICE, name="Alice", profile_image="a.png"),
            BOB: ParticipantSummary(id=BOB, name="Bob"),
        }
        stored.trade = TradeSummary(id=TRADE, title="Road bike", image_url="bike.png")
        await svc.send_message(db, ALICE, _send(conv_id, "Is it still available?"))

        row = (await svc.list_conversations(db, BOB)).conversations[0]

        assert [p.name for p in row.participants] == ["Alice"]
        assert row.participants[0].profile_image == "a.png"
        assert row.trade.title == "Road bike"
        assert row.last_message.content == "Is it still available?"

    async def test_missing_details_fall_back_to_ids(self, svc, db):
        conv_id = await _open(svc, db)

        row = (await svc.list_conversations(db, ALICE)).conversations[0]

        assert row.id == conv_id
        assert row.participants[0].id == BOB
        assert row.participants[0].name is None
        assert row.trade is None
        assert row.last_message is None
