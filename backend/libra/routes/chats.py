import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from libra.db import get_db
from libra.models import Chat, ChatTurn
from libra.services.agent.loop import DEFAULT_USER_ID
from libra.services.chat_history import create_chat, get_chat, list_chats, list_turns
from libra.utils import validate_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatCreate(BaseModel):
    user_id: str | None = None
    title: str | None = None


class ChatResponse(BaseModel):
    id: str
    title: str
    created_at: str | None = None
    updated_at: str | None = None


class TurnResponse(BaseModel):
    id: str
    task: str
    steps: list
    final_answer: dict | None = None
    tools_used: list[str]
    token_usage: int
    created_at: str | None = None


def _chat_response(chat: Chat) -> ChatResponse:
    return ChatResponse(
        id=str(chat.id),
        title=chat.title,
        created_at=chat.created_at.isoformat() if chat.created_at else None,
        updated_at=chat.updated_at.isoformat() if chat.updated_at else None,
    )


def _turn_response(turn: ChatTurn) -> TurnResponse:
    return TurnResponse(
        id=str(turn.id),
        task=turn.task,
        steps=turn.steps or [],
        final_answer=turn.final_answer,
        tools_used=turn.tools_used or [],
        token_usage=turn.token_usage or 0,
        created_at=turn.created_at.isoformat() if turn.created_at else None,
    )


@router.get("", response_model=list[ChatResponse])
async def get_chats(user_id: str = DEFAULT_USER_ID, db: AsyncSession = Depends(get_db)):
    """List the user's chats, most recently active first."""
    return [_chat_response(chat) for chat in await list_chats(db, user_id)]


@router.post("", response_model=ChatResponse)
async def new_chat(request: ChatCreate, db: AsyncSession = Depends(get_db)):
    chat = await create_chat(db, request.user_id or DEFAULT_USER_ID, request.title)
    return _chat_response(chat)


@router.get("/{chat_id}/turns", response_model=list[TurnResponse])
async def get_turns(
    chat_id: str,
    user_id: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    chat = await get_chat(db, validate_uuid(chat_id, "chat ID"), user_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return [_turn_response(turn) for turn in await list_turns(db, chat.id)]


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    user_id: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    chat = await get_chat(db, validate_uuid(chat_id, "chat ID"), user_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    await db.delete(chat)
    return {"success": True}
