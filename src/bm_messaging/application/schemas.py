"""Pydantic request/response schemas for bm_messaging.

All responses are wrapped in ApiResponse at the router layer.
Ids arrive as UUIDs and leave as canonical lowercase strings.
"""

import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from config.settings import settings
from src.bm_common.enums import MessageType
from src.bm_messaging.domain.models import Conversation, Message, ParticipantSummary

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class MessageMetadataIn(BaseModel):
    trade_offer_id: uuid.UUID | None = None
    image_url: str | None = Field(None, max_length=1024)

    def to_domain(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class StartConversationRequest(BaseModel):
    recipient_id: uuid.UUID
    trade_id: uuid.UUID


class SendMessageRequest(BaseModel):
    """Target is either `conversation_id` or `recipient_id` + `trade_id`."""

    model_config = ConfigDict(str_strip_whitespace=True)

    conversation_id: uuid.UUID | None = None
    recipient_id: uuid.UUID | None = None
    trade_id: uuid.UUID | None = None
    content: str = Field(..., min_length=1, max_length=settings.MESSAGE_MAX_LENGTH)
    type: MessageType = MessageType.TEXT
    metadata: MessageMetadataIn | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class MessageOut(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    type: str
    read_by: list[str]
    metadata: dict[str, Any]
    created_at: datetime | None

    @classmethod
    def from_domain(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            content=message.content,
            type=message.type,
            read_by=list(message.read_by),
            metadata=dict(message.metadata),
            created_at=message.created_at,
        )


class ParticipantOut(BaseModel):
    id: str
    name: str | None
    profile_image: str | None


class TradeSummaryOut(BaseModel):
    id: str
    title: str
    image_url: str | None
    status: str | None


class LastMessageOut(BaseModel):
    id: str
    sender_id: str
    content: str
    type: str
    created_at: datetime | None


class ConversationOut(BaseModel):
    """Conversation as seen by one participant (the viewer).

    `participants` lists the other side(s) with display details, enough for
    an inbox row without extra lookups.
    """

    id: str
    trade_id: str
    participant_ids: list[str]
    participants: list[ParticipantOut]
    trade: TradeSummaryOut | None
    status: str
    last_message_id: str | None
    last_message: LastMessageOut | None
    unread_count: int
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def for_viewer(cls, conv: Conversation, viewer_id: str) -> "ConversationOut":
        others = conv.other_participants(viewer_id)
        participants = [
            conv.participants.get(uid) or ParticipantSummary(id=uid) for uid in others
        ]
        return cls(
            id=conv.id,
            trade_id=conv.trade_id,
            participant_ids=others,
            participants=[ParticipantOut(**asdict(p)) for p in participants],
            trade=TradeSummaryOut(**asdict(conv.trade)) if conv.trade else None,
            status=conv.status,
            last_message_id=conv.last_message_id,
            last_message=(
                LastMessageOut(**asdict(conv.last_message)) if conv.last_message else None
            ),
            unread_count=conv.unread_for(viewer_id),
            created_at=conv.created_at,
            updated_at=conv.updated_at,
        )


class StartConversationResponse(BaseModel):
    conversation: ConversationOut
    created: bool


class SendMessageResponse(BaseModel):
    message: MessageOut
    conversation: ConversationOut


class ThreadResponse(BaseModel):
    conversation: ConversationOut
    messages: list[MessageOut]


class ConversationListResponse(BaseModel):
    conversations: list[ConversationOut]
    count: int
