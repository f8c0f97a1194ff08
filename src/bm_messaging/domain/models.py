"""Domain models for bm_messaging.

A Conversation is keyed by (unordered participant pair, trade). Its
`unread_counts` maps every participant id to the number of messages that
participant has not yet fetched; a send bumps each non-sender counter by
exactly one and a thread fetch resets the fetcher's counter to zero.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.bm_common.enums import ConversationStatus


def ordered_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Canonical (low, high) storage order for a participant pair."""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


@dataclass
class ParticipantSummary:
    id: str
    name: str | None = None
    profile_image: str | None = None


@dataclass
class TradeSummary:
    id: str
    title: str
    image_url: str | None = None
    status: str | None = None


@dataclass
class LastMessagePreview:
    id: str
    sender_id: str
    content: str
    type: str
    created_at: datetime | None = None


@dataclass
class Conversation:
    id: str
    trade_id: str
    user_low_id: str
    user_high_id: str
    status: str = ConversationStatus.PENDING.value
    last_message_id: str | None = None
    unread_counts: dict[str, int] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # read-side joins; never written back
    participants: dict[str, ParticipantSummary] = field(default_factory=dict)
    trade: TradeSummary | None = None
    last_message: LastMessagePreview | None = None

    @property
    def participant_ids(self) -> list[str]:
        return [self.user_low_id, self.user_high_id]

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.user_low_id, self.user_high_id)

    def other_participants(self, user_id: str) -> list[str]:
        return [uid for uid in self.participant_ids if uid != user_id]

    def unread_for(self, user_id: str) -> int:
        return int(self.unread_counts.get(user_id, 0))

    def record_message(self, sender_id: str, message_id: str) -> list[str]:
        """Apply a sent message to the conversation state.

        Returns the recipients whose unread counter was incremented.
        """
        recipients = self.other_participants(sender_id)
        counts = dict(self.unread_counts)
        for uid in recipients:
            counts[uid] = int(counts.get(uid, 0)) + 1
        counts.setdefault(sender_id, 0)
        self.unread_counts = counts
        self.last_message_id = message_id
        self.status = ConversationStatus.ACTIVE.value
        return recipients

    def reset_unread(self, user_id: str) -> None:
        self.unread_counts = {**self.unread_counts, user_id: 0}


@dataclass
class Message:
    id: str
    conversation_id: str
    sender_id: str
    content: str
    type: str
    read_by: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    def is_sent_by(self, user_id: str) -> bool:
        return self.sender_id == user_id

    def mark_read(self, user_id: str) -> bool:
        """Add user_id to read_by (set semantics). Returns True if it was added."""
        if user_id in self.read_by:
            return False
        self.read_by = [*self.read_by, user_id]
        return True

    def preview(self) -> LastMessagePreview:
        return LastMessagePreview(
            id=self.id,
            sender_id=self.sender_id,
            content=self.content,
            type=self.type,
            created_at=self.created_at,
        )
