"""Per-user chat history: recording agent runs and replaying them as context."""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libra.config import settings
from libra.enums import PARSE_ERROR_TOOL, StepType
from libra.models import DEFAULT_CHAT_TITLE, Chat, ChatTurn
from libra.services.agent.types import AgentRunResult, AgentStep

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50


def title_from_task(task: str) -> str:
    title = task[:TITLE_MAX_CHARS]
    return title + "…" if len(task) > TITLE_MAX_CHARS else title


def tools_used(steps: list[AgentStep]) -> list[str]:
    """Distinct tool names in first-use order, excluding internal pseudo-tools."""
    names: dict[str, None] = {}
    for step in steps:
        if step.type != StepType.TOOL_CALL or not step.tool_name:
            continue
        if step.tool_name != PARSE_ERROR_TOOL:
            names[step.tool_name] = None
    return list(names)


def _answer_text(final_answer: dict | None) -> str:
    if not final_answer:
        return ""
    return str(final_answer.get("detailed_answer") or final_answer.get("summary") or "")


def format_history(turns: list[ChatTurn], task: str) -> str:
    """Prefix ``task`` with prior turns. Returns the bare task when there are none."""
    if not turns:
        return task
    history = "\n\n".join(
        f"User: {turn.task}\nAssistant: {_answer_text(turn.final_answer)}" for turn in turns
    )
    return f"Conversation so far:\n{history}\n\nNew user question: {task}"


async def build_task_with_history(
    db: AsyncSession,
    chat_id: uuid.UUID,
    task: str,
    limit: int = settings.chat_history_turns,
) -> str:
    """
    Build the agent task for a follow-up question in a chat.

    Loads the ``limit`` most recent turns (presented oldest first). If the
    history cannot be loaded the bare task is returned, so a database hiccup
    degrades to a single-turn question instead of failing the request.
    """
    try:
        result = await db.execute(
            select(ChatTurn)
            .where(ChatTurn.chat_id == chat_id)
            .order_by(ChatTurn.created_at.desc())
            .limit(limit)
        )
        turns = list(reversed(result.scalars().all()))
    except SQLAlchemyError as e:
        logger.warning(f"Could not load history for chat {chat_id}: {e}")
        return task
    return format_history(turns, task)


async def create_chat(db: AsyncSession, user_id: str, title: str | None = None) -> Chat:
    chat = Chat(user_id=user_id, title=title or DEFAULT_CHAT_TITLE)
    db.add(chat)
    await db.flush()
    return chat


async def get_chat(db: AsyncSession, chat_id: uuid.UUID, user_id: str | None = None) -> Chat | None:
    """Fetch a chat; when ``user_id`` is given, chats of other users are not returned."""
    chat = await db.get(Chat, chat_id)
    if chat is None or (user_id is not None and chat.user_id != user_id):
        return None
    return chat


async def list_chats(db: AsyncSession, user_id: str) -> list[Chat]:
    result = await db.execute(
        select(Chat).where(Chat.user_id == user_id).order_by(Chat.updated_at.desc())
    )
    return list(result.scalars().all())


async def list_turns(db: AsyncSession, chat_id: uuid.UUID) -> list[ChatTurn]:
    result = await db.execute(
        select(ChatTurn).where(ChatTurn.chat_id == chat_id).order_by(ChatTurn.created_at.asc())
    )
    return list(result.scalars().all())


async def record_turn(
    db: AsyncSession,
    chat: Chat,
    task: str,
    result: AgentRunResult,
) -> ChatTurn:
    """
    Store an agent run as a turn of ``chat``.

    A chat still carrying the default title is renamed after the task.
    """
    turn = ChatTurn(
        chat_id=chat.id,
        task=task,
        steps=[step.to_dict() for step in result.steps],
        final_answer=result.final_answer.to_dict(),
        tools_used=tools_used(result.steps),
        token_usage=result.token_usage,
    )
    db.add(turn)

    chat.updated_at = datetime.now(UTC)
    if chat.title == DEFAULT_CHAT_TITLE:
        chat.title = title_from_task(task)

    await db.flush()
    return turn
