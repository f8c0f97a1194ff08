"""Redis pub/sub notifier for new messages.

One channel per recipient: `notifications:{user_id}`. Publishing is best
effort; failures are logged and never propagate to the send path.
"""

import json
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis

from src.bm_common.datetime_utils import isoformat_or_none
from src.bm_common.redis_client import get_redis
from src.bm_messaging.domain.models import Conversation, Message

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "new-message"


def channel_for(user_id: str) -> str:
    return f"notifications:{user_id}"


class RedisMessageNotifier:
    def __init__(
        self, redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis
    ) -> None:
        self._redis_factory = redis_factory

    async def notify_new_message(
        self, recipient_id: str, conversation: Conversation, message: Message
    ) -> None:
        payload = json.dumps({
            "event": NEW_MESSAGE_EVENT,
            "conversation_id": conversation.id,
            "trade_id": conversation.trade_id,
            "message": {
                "id": message.id,
                "sender_id": message.sender_id,
                "content": message.content,
                "type": message.type,
                "created_at": isoformat_or_none(message.created_at),
            },
        })
        try:
            redis = await self._redis_factory()
            await redis.publish(channel_for(recipient_id), payload)
        except Exception:
            logger.warning(
                "Notification to %s for message %s failed",
                recipient_id, message.id, exc_info=True,
            )
