"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Trade
  3xxx: Messaging
  9xxx: System

Every AppError is translated to the ApiResponse envelope by the handler
registered in src/main.py. `error` carries optional structured detail.
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        error: Any = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.error = error
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UnauthenticatedError(AppError):
    def __init__(self, detail: str = "Missing or invalid bearer token") -> None:
        super().__init__(1001, detail, 401)


class UserNotSyncedError(AppError):
    def __init__(self) -> None:
        super().__init__(
            1002,
            "User not found. Call POST /users/sync to complete registration",
            404,
        )


class UserExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "User already exists", 409)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class VerificationRequiredError(AppError):
    def __init__(self, verification_status: str) -> None:
        super().__init__(
            1005,
            "Account verification required to perform this action",
            403,
            error={"verification_status": verification_status},
        )


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Admin access required", 403)


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1007, f"User not found: {user_id}", 404)


class InvalidVerificationTransitionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1008, detail, 400)


# --- 2xxx: Trade ---

class TradeNotFoundError(AppError):
    def __init__(self, trade_id: str) -> None:
        super().__init__(2001, f"Trade not found: {trade_id}", 404)


class NotTradeOwnerError(AppError):
    def __init__(self, action: str = "modify") -> None:
        super().__init__(2002, f"Not authorized to {action} this trade", 403)


class InvalidTradeFilterError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Invalid filter: {detail}", 400)


# --- 3xxx: Messaging ---

class ConversationNotFoundError(AppError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(3001, f"Conversation not found: {conversation_id}", 404)


class NotConversationParticipantError(AppError):
    def __init__(self) -> None:
        super().__init__(3002, "Not a participant of this conversation", 403)


class MessageNotFoundError(AppError):
    def __init__(self, message_id: str) -> None:
        super().__init__(3003, f"Message not found: {message_id}", 404)


class NotMessageSenderError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "Not authorized to delete this message", 403)


class InvalidMessageTargetError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3005, detail, 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class RequestValidationFailed(AppError):
    def __init__(self, field_errors: list[dict[str, str]]) -> None:
        super().__init__(9003, "Validation failed", 400, error=field_errors)
