"""Global enums — must match DB CHECK constraints exactly.

See alembic/versions/002-005 for the corresponding constraints.
"""

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    MERCHANT = "merchant"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class TradeCategory(str, Enum):
    ELECTRONICS = "Electronics"
    FASHION = "Fashion"
    BOOKS = "Books"
    SPORTS = "Sports"
    ART = "Art"
    MUSIC = "Music"
    GAMING = "Gaming"
    JEWELRY = "Jewelry"
    TOOLS = "Tools"
    FURNITURE = "Furniture"
    COLLECTIBLES = "Collectibles"
    TOYS = "Toys"
    HOME_DECOR = "Home Decor"
    OUTDOOR_GEAR = "Outdoor Gear"
    VEHICLES = "Vehicles"
    SERVICES = "Services"
    SKILLS = "Skills"
    OTHER = "Other"


class ItemCondition(str, Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class TradeType(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"
    SKILL = "skill"


class TradeStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ExchangeMode(str, Enum):
    """How the owner prefers to hand over the item."""
    IN_PERSON = "in_person"
    ONLINE = "online"
    BOTH = "both"


class ConversationStatus(str, Enum):
    # finished/archived are set outside the messaging flows; kept for the DB constraint
    PENDING = "pending"
    ACTIVE = "active"
    FINISHED = "finished"
    ARCHIVED = "archived"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    TRADE_OFFER = "trade_offer"
    SYSTEM = "system"
