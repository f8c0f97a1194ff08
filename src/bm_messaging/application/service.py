"""MessagingApplicationService — conversations and messages between traders.

Mutating methods commit on success and roll back on any error.
Participant and sender checks happen here; the verified-account gate is
applied by the router.

Send ordering: the conversation row is locked FOR UPDATE, the message is
inserted, the conversation state (status, last message, unread counters) is
written and committed, and only then are recipients notified. A notifier
failure never fails the send.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.errors import (
    ConversationNotFoundError,
    InvalidMessageTargetError,
    MessageNotFoundError,
    NotConversationParticipantError,
    NotMessageSenderError,
    TradeNotFoundError,
    UserNotFoundError,
)
from src.bm_gateway.user.service import UserService
from src.bm_messaging.application.schemas import (
    ConversationListResponse,
    ConversationOut,
    MessageOut,
    SendMessageRequest,
    SendMessageResponse,
    StartConversationResponse,
    ThreadResponse,
)
from src.bm_messaging.domain.models import Conversation, Message
from src.bm_messaging.domain.repository import (
    ConversationRepositoryProtocol,
    MessageNotifierProtocol,
)
from src.bm_messaging.infrastructure.notifier import RedisMessageNotifier
from src.bm_messaging.infrastructure.persistence import ConversationRepository
from src.bm_trade.domain.repository import TradeRepositoryProtocol
from src.bm_trade.infrastructure.persistence import TradeRepository

logger = logging.getLogger(__name__)


class MessagingApplicationService:
    def __init__(
        self,
        repo: ConversationRepositoryProtocol | None = None,
        notifier: MessageNotifierProtocol | None = None,
        trade_repo: TradeRepositoryProtocol | None = None,
        user_service: UserService | None = None,
    ) -> None:
        self._repo: ConversationRepositoryProtocol = repo or ConversationRepository()
        self._notifier: MessageNotifierProtocol = notifier or RedisMessageNotifier()
        self._trade_repo: TradeRepositoryProtocol = trade_repo or TradeRepository()
        self._users = user_service or UserService()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def start_conversation(
        self, db: AsyncSession, user_id: str, recipient_id: str, trade_id: str
    ) -> StartConversationResponse:
        try:
            conv, created = await self._start_or_reuse(db, user_id, recipient_id, trade_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return StartConversationResponse(
            conversation=ConversationOut.for_viewer(conv, user_id), created=created
        )

    async def list_conversations(
        self, db: AsyncSession, user_id: str
    ) -> ConversationListResponse:
        conversations = await self._repo.list_for_user(db, user_id)
        return ConversationListResponse(
            conversations=[ConversationOut.for_viewer(c, user_id) for c in conversations],
            count=len(conversations),
        )

    async def get_thread(
        self, db: AsyncSession, user_id: str, conversation_id: str
    ) -> ThreadResponse:
        """Return all messages oldest first; marks them read for the caller."""
        try:
            # Sends queue behind this lock: every message marked read is in the response.
            conv = await self._load_as_participant(
                db, user_id, conversation_id, for_update=True
            )
            messages = await self._repo.list_messages(db, conversation_id)
            await self._repo.mark_thread_read(db, conversation_id, user_id)
            await self._repo.reset_unread(db, conversation_id, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        for message in messages:
            if not message.is_sent_by(user_id):
                message.mark_read(user_id)
        conv.reset_unread(user_id)
        messages.sort(key=lambda m: (m.created_at, m.id))
        return ThreadResponse(
            conversation=ConversationOut.for_viewer(conv, user_id),
            messages=[MessageOut.from_domain(m) for m in messages],
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_message(
        self, db: AsyncSession, sender_id: str, req: SendMessageRequest
    ) -> SendMessageResponse:
        try:
            conv = await self._resolve_target(db, sender_id, req)
            message = Message(
                id=str(uuid.uuid4()),
                conversation_id=conv.id,
                sender_id=sender_id,
                content=req.content,
                type=req.type.value,
                read_by=[sender_id],
                metadata=req.metadata.to_domain() if req.metadata else {},
            )
            message = await self._repo.insert_message(db, message)
            recipients = conv.record_message(sender_id, message.id)
            conv.last_message = message.preview()
            await self._repo.save_conversation_state(db, conv)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Message %s sent by %s in conversation %s", message.id, sender_id, conv.id
        )
        for recipient_id in recipients:
            await self._notify(recipient_id, conv, message)
        return SendMessageResponse(
            message=MessageOut.from_domain(message),
            conversation=ConversationOut.for_viewer(conv, sender_id),
        )

    async def delete_message(self, db: AsyncSession, user_id: str, message_id: str) -> None:
        try:
            message = await self._repo.get_message(db, message_id)
            if message is None:
                raise MessageNotFoundError(message_id)
            if not message.is_sent_by(user_id):
                raise NotMessageSenderError()
            await self._repo.delete_message(db, message_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Message %s deleted by sender %s", message_id, user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _start_or_reuse(
        self, db: AsyncSession, user_id: str, recipient_id: str, trade_id: str
    ) -> tuple[Conversation, bool]:
        if recipient_id == user_id:
            raise InvalidMessageTargetError("Cannot start a conversation with yourself")
        if await self._trade_repo.get_trade_by_id(db, trade_id) is None:
            raise TradeNotFoundError(trade_id)
        if await self._users.get_by_id(recipient_id, db) is None:
            raise UserNotFoundError(recipient_id)

        conv, created = await self._repo.find_or_create(db, user_id, recipient_id, trade_id)
        if created:
            logger.info(
                "Conversation %s created between %s and %s for trade %s",
                conv.id, user_id, recipient_id, trade_id,
            )
        return conv, created

    async def _resolve_target(
        self, db: AsyncSession, sender_id: str, req: SendMessageRequest
    ) -> Conversation:
        """Locked conversation for a send: by id, or start-or-reuse by (recipient, trade)."""
        by_id = req.conversation_id is not None
        by_pair = req.recipient_id is not None and req.trade_id is not None
        partial_pair = (req.recipient_id is None) != (req.trade_id is None)
        if by_id == by_pair or partial_pair:
            raise InvalidMessageTargetError(
                "Provide either conversation_id or recipient_id and trade_id"
            )

        if by_id:
            conversation_id = str(req.conversation_id)
        else:
            conv, _ = await self._start_or_reuse(
                db, sender_id, str(req.recipient_id), str(req.trade_id)
            )
            conversation_id = conv.id
        return await self._load_as_participant(db, sender_id, conversation_id, for_update=True)

    async def _load_as_participant(
        self,
        db: AsyncSession,
        user_id: str,
        conversation_id: str,
        for_update: bool = False,
    ) -> Conversation:
        conv = await self._repo.get_conversation(db, conversation_id, for_update=for_update)
        if conv is None:
            raise ConversationNotFoundError(conversation_id)
        if not conv.is_participant(user_id):
            raise NotConversationParticipantError()
        return conv

    async def _notify(self, recipient_id: str, conv: Conversation, message: Message) -> None:
        try:
            await self._notifier.notify_new_message(recipient_id, conv, message)
        except Exception:
            logger.warning(
                "Notifier raised for message %s to %s", message.id, recipient_id, exc_info=True
            )
