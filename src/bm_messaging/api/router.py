"""bm_messaging REST endpoints.

GET    /messages/conversations                  — caller's conversations
POST   /messages/conversations                  — start or reuse (verified)
GET    /messages/thread/{conversation_id}       — thread, marks read (participant)
POST   /messages                                — send (verified + participant)
DELETE /messages/{message_id}                   — delete (verified + sender)
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.response import ApiResponse, respond
from src.bm_gateway.auth.dependencies import get_current_user, require_verified
from src.bm_gateway.user.db_models import UserModel
from src.bm_messaging.application.schemas import SendMessageRequest, StartConversationRequest
from src.bm_messaging.application.service import MessagingApplicationService

router = APIRouter(prefix="/messages", tags=["messages"])

_service = MessagingApplicationService()


@router.get("/conversations")
async def list_conversations(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_conversations(db, str(current_user.id))
    return respond(request, result.model_dump(mode="json"))


@router.post("/conversations")
async def start_conversation(
    request: Request,
    body: StartConversationRequest,
    current_user: Annotated[UserModel, Depends(require_verified)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.start_conversation(
        db, str(current_user.id), str(body.recipient_id), str(body.trade_id)
    )
    return respond(request, result.model_dump(mode="json"))


@router.get("/thread/{conversation_id}")
async def get_thread(
    conversation_id: uuid.UUID,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_thread(db, str(current_user.id), str(conversation_id))
    return respond(request, result.model_dump(mode="json"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    request: Request,
    body: SendMessageRequest,
    current_user: Annotated[UserModel, Depends(require_verified)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.send_message(db, str(current_user.id), body)
    return respond(request, result.model_dump(mode="json"), message="Message sent")


@router.delete("/{message_id}")
async def delete_message(
    message_id: uuid.UUID,
    request: Request,
    current_user: Annotated[UserModel, Depends(require_verified)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _service.delete_message(db, str(current_user.id), str(message_id))
    return respond(request, message="Message deleted")
