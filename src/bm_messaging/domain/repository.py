"""Repository and notifier Protocols for bm_messaging.

Unit tests inject in-memory fakes conforming to these Protocols.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_messaging.domain.models import Conversation, Message


class ConversationRepositoryProtocol(Protocol):
    async def find_or_create(
        self, db: AsyncSession, user_a: str, user_b: str, trade_id: str
    ) -> tuple[Conversation, bool]: ...

    async def get_conversation(
        self, db: AsyncSession, conversation_id: str, for_update: bool = False
    ) -> Conversation | None: ...

    async def save_conversation_state(self, db: AsyncSession, conv: Conversation) -> None: ...

    async def reset_unread(self, db: AsyncSession, conversation_id: str, user_id: str) -> None: ...

    async def list_for_user(self, db: AsyncSession, user_id: str) -> list[Conversation]: ...

    async def insert_message(self, db: AsyncSession, message: Message) -> Message: ...

    async def list_messages(self, db: AsyncSession, conversation_id: str) -> list[Message]: ...

    async def mark_thread_read(
        self, db: AsyncSession, conversation_id: str, user_id: str
    ) -> None: ...

    async def get_message(self, db: AsyncSession, message_id: str) -> Message | None: ...

    async def delete_message(self, db: AsyncSession, message_id: str) -> None: ...


class MessageNotifierProtocol(Protocol):
    async def notify_new_message(
        self, recipient_id: str, conversation: Conversation, message: Message
    ) -> None: ...
