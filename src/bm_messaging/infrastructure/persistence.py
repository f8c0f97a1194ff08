"""ConversationRepository — concrete implementation of ConversationRepositoryProtocol.

All queries use raw text() SQL (no ORM).
Participant pairs are stored as (user_low_id, user_high_id) so the UNIQUE
(user_low_id, user_high_id, trade_id) constraint covers both orderings.
unread_counts is JSONB keyed by user id string; read_by is TEXT[].

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.enums import ConversationStatus
from src.bm_messaging.domain.models import (
    Conversation,
    LastMessagePreview,
    Message,
    ParticipantSummary,
    TradeSummary,
    ordered_pair,
)

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_CONV_COLUMNS = """
    c.id, c.trade_id, c.user_low_id, c.user_high_id, c.status, c.last_message_id,
    c.unread_counts, c.created_at, c.updated_at,
    ul.name AS low_name, ul.profile_image AS low_profile_image,
    uh.name AS high_name, uh.profile_image AS high_profile_image,
    t.title AS trade_title, t.images AS trade_images, t.status AS trade_status,
    lm.sender_id AS last_sender_id, lm.content AS last_content,
    lm.type AS last_type, lm.created_at AS last_created_at
"""

_CONV_FROM = """
    FROM conversations c
    LEFT JOIN users ul ON ul.id = c.user_low_id
    LEFT JOIN users uh ON uh.id = c.user_high_id
    LEFT JOIN trades t ON t.id = c.trade_id
    LEFT JOIN messages lm ON lm.id = c.last_message_id
"""

_MSG_COLUMNS = """
    id, conversation_id, sender_id, content, type, read_by, metadata, created_at
"""

_INSERT_CONVERSATION_SQL = text("""
    INSERT INTO conversations (trade_id, user_low_id, user_high_id, status, unread_counts)
    VALUES (
        CAST(:trade_id AS UUID), CAST(:user_low_id AS UUID), CAST(:user_high_id AS UUID),
        :status, CAST(:unread_counts AS JSONB)
    )
    ON CONFLICT (user_low_id, user_high_id, trade_id) DO NOTHING
    RETURNING id
""")

_FIND_CONVERSATION_SQL = text(f"""
    SELECT {_CONV_COLUMNS}
    {_CONV_FROM}
    WHERE c.user_low_id = CAST(:user_low_id AS UUID)
      AND c.user_high_id = CAST(:user_high_id AS UUID)
      AND c.trade_id = CAST(:trade_id AS UUID)
""")

_GET_CONVERSATION_SQL = text(f"""
    SELECT {_CONV_COLUMNS}
    {_CONV_FROM}
    WHERE c.id = CAST(:id AS UUID)
""")

# Outer-joined rows cannot be locked; only the conversation row is.
_GET_CONVERSATION_FOR_UPDATE_SQL = text(f"""
    SELECT {_CONV_COLUMNS}
    {_CONV_FROM}
    WHERE c.id = CAST(:id AS UUID)
    FOR UPDATE OF c
""")

_SAVE_CONVERSATION_STATE_SQL = text("""
    UPDATE conversations
    SET status = :status,
        last_message_id = CAST(:last_message_id AS UUID),
        unread_counts = CAST(:unread_counts AS JSONB),
        updated_at = NOW()
    WHERE id = CAST(:id AS UUID)
    RETURNING updated_at
""")

# Reading a thread does not touch updated_at: list order reflects the last message.
_RESET_UNREAD_SQL = text("""
    UPDATE conversations
    SET unread_counts = jsonb_set(
        COALESCE(unread_counts, CAST('{}' AS JSONB)),
        ARRAY[CAST(:user_id AS TEXT)],
        CAST('0' AS JSONB)
    )
    WHERE id = CAST(:id AS UUID)
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_CONV_COLUMNS}
    {_CONV_FROM}
    WHERE c.user_low_id = CAST(:user_id AS UUID) OR c.user_high_id = CAST(:user_id AS UUID)
    ORDER BY c.updated_at DESC, c.id DESC
""")

_INSERT_MESSAGE_SQL = text("""
    INSERT INTO messages (id, conversation_id, sender_id, content, type, read_by, metadata)
    VALUES (
        CAST(:id AS UUID), CAST(:conversation_id AS UUID), CAST(:sender_id AS UUID),
        :content, :type, CAST(:read_by AS TEXT[]), CAST(:metadata AS JSONB)
    )
    RETURNING created_at
""")

_LIST_MESSAGES_SQL = text(f"""
    SELECT {_MSG_COLUMNS}
    FROM messages
    WHERE conversation_id = CAST(:conversation_id AS UUID)
    ORDER BY created_at ASC, id ASC
""")

# Set semantics: only rows missing the reader are touched.
_MARK_THREAD_READ_SQL = text("""
    UPDATE messages
    SET read_by = array_append(read_by, CAST(:user_id AS TEXT))
    WHERE conversation_id = CAST(:conversation_id AS UUID)
      AND sender_id <> CAST(:user_id AS UUID)
      AND NOT (CAST(:user_id AS TEXT) = ANY(read_by))
""")

_GET_MESSAGE_SQL = text(f"""
    SELECT {_MSG_COLUMNS} FROM messages WHERE id = CAST(:id AS UUID)
""")

_DELETE_MESSAGE_SQL = text("DELETE FROM messages WHERE id = CAST(:id AS UUID)")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _load_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _main_image_url(images: list[dict[str, Any]]) -> str | None:
    for img in images:
        if img.get("is_main"):
            return img.get("url")
    return images[0].get("url") if images else None


def _row_to_conversation(row: Any) -> Conversation:
    counts = _load_json(row.unread_counts, {})
    low_id, high_id = str(row.user_low_id), str(row.user_high_id)
    trade = None
    if row.trade_title is not None:
        trade = TradeSummary(
            id=str(row.trade_id),
            title=row.trade_title,
            image_url=_main_image_url(_load_json(row.trade_images, [])),
            status=row.trade_status,
        )
    last_message = None
    if row.last_message_id and row.last_sender_id is not None:
        last_message = LastMessagePreview(
            id=str(row.last_message_id),
            sender_id=str(row.last_sender_id),
            content=row.last_content,
            type=row.last_type,
            created_at=row.last_created_at,
        )
    return Conversation(
        id=str(row.id),
        trade_id=str(row.trade_id),
        user_low_id=low_id,
        user_high_id=high_id,
        status=row.status,
        last_message_id=str(row.last_message_id) if row.last_message_id else None,
        unread_counts={str(k): int(v) for k, v in counts.items()},
        created_at=row.created_at,
        updated_at=row.updated_at,
        participants={
            low_id: ParticipantSummary(
                id=low_id, name=row.low_name, profile_image=row.low_profile_image
            ),
            high_id: ParticipantSummary(
                id=high_id, name=row.high_name, profile_image=row.high_profile_image
            ),
        },
        trade=trade,
        last_message=last_message,
    )


def _row_to_message(row: Any) -> Message:
    return Message(
        id=str(row.id),
        conversation_id=str(row.conversation_id),
        sender_id=str(row.sender_id),
        content=row.content,
        type=row.type,
        read_by=list(row.read_by or []),
        metadata=_load_json(row.metadata, {}),
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ConversationRepository:
    async def find_or_create(
        self, db: AsyncSession, user_a: str, user_b: str, trade_id: str
    ) -> tuple[Conversation, bool]:
        """Return (conversation, created). Concurrent creators converge on one row."""
        low, high = ordered_pair(user_a, user_b)
        key = {"user_low_id": low, "user_high_id": high, "trade_id": trade_id}
        result = await db.execute(
            _INSERT_CONVERSATION_SQL,
            {
                **key,
                "status": ConversationStatus.PENDING.value,
                "unread_counts": json.dumps({low: 0, high: 0}),
            },
        )
        inserted = result.fetchone()
        if inserted is not None:
            result = await db.execute(_GET_CONVERSATION_SQL, {"id": str(inserted.id)})
        else:
            result = await db.execute(_FIND_CONVERSATION_SQL, key)
        return _row_to_conversation(result.fetchone()), inserted is not None

    async def get_conversation(
        self, db: AsyncSession, conversation_id: str, for_update: bool = False
    ) -> Conversation | None:
        sql = _GET_CONVERSATION_FOR_UPDATE_SQL if for_update else _GET_CONVERSATION_SQL
        result = await db.execute(sql, {"id": conversation_id})
        row = result.fetchone()
        return _row_to_conversation(row) if row else None

    async def save_conversation_state(self, db: AsyncSession, conv: Conversation) -> None:
        result = await db.execute(
            _SAVE_CONVERSATION_STATE_SQL,
            {
                "id": conv.id,
                "status": conv.status,
                "last_message_id": conv.last_message_id,
                "unread_counts": json.dumps(conv.unread_counts),
            },
        )
        row = result.fetchone()
        if row is not None:
            conv.updated_at = row.updated_at

    async def reset_unread(self, db: AsyncSession, conversation_id: str, user_id: str) -> None:
        await db.execute(_RESET_UNREAD_SQL, {"id": conversation_id, "user_id": user_id})

    async def list_for_user(self, db: AsyncSession, user_id: str) -> list[Conversation]:
        result = await db.execute(_LIST_FOR_USER_SQL, {"user_id": user_id})
        return [_row_to_conversation(row) for row in result.fetchall()]

    async def insert_message(self, db: AsyncSession, message: Message) -> Message:
        result = await db.execute(
            _INSERT_MESSAGE_SQL,
            {
                "id": message.id,
                "conversation_id": message.conversation_id,
                "sender_id": message.sender_id,
                "content": message.content,
                "type": message.type,
                "read_by": message.read_by,
                "metadata": json.dumps(message.metadata),
            },
        )
        message.created_at = result.fetchone().created_at
        return message

    async def list_messages(self, db: AsyncSession, conversation_id: str) -> list[Message]:
        result = await db.execute(_LIST_MESSAGES_SQL, {"conversation_id": conversation_id})
        return [_row_to_message(row) for row in result.fetchall()]

    async def mark_thread_read(
        self, db: AsyncSession, conversation_id: str, user_id: str
    ) -> None:
        await db.execute(
            _MARK_THREAD_READ_SQL, {"conversation_id": conversation_id, "user_id": user_id}
        )

    async def get_message(self, db: AsyncSession, message_id: str) -> Message | None:
        result = await db.execute(_GET_MESSAGE_SQL, {"id": message_id})
        row = result.fetchone()
        return _row_to_message(row) if row else None

    async def delete_message(self, db: AsyncSession, message_id: str) -> None:
        await db.execute(_DELETE_MESSAGE_SQL, {"id": message_id})
