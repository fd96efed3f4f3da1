import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from libra.config import settings
from libra.db import get_db
from libra.dependencies import ServiceContainer, get_services
from libra.services.agent.loop import DEFAULT_USER_ID
from libra.services.chat_history import build_task_with_history, get_chat, record_turn
from libra.utils import clamp, validate_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


class AgentRequest(BaseModel):
    task: str
    max_steps: int | None = None
    chat_id: str | None = None
    user_id: str | None = None


def resolve_max_steps(requested: int | None) -> int:
    if requested is None or requested <= 0:
        return settings.agent_default_max_steps
    return clamp(requested, 1, settings.agent_max_steps_limit)


@router.post("")
async def run_agent(
    request: AgentRequest,
    services: ServiceContainer = Depends(get_services),
    db: AsyncSession = Depends(get_db),
):
    """Run the agent on a task.

    With a chat id, prior turns of the chat are used as context and the run is
    recorded as a new turn.
    """
    task = request.task.strip()
    if not task:
        raise HTTPException(status_code=400, detail="Missing or invalid 'task' string")

    user_id = request.user_id or DEFAULT_USER_ID
    chat = None
    agent_task = task

    if request.chat_id:
        chat = await get_chat(db, validate_uuid(request.chat_id, "chat ID"), user_id)
        if chat is None:
            raise HTTPException(status_code=404, detail="Chat not found")
        agent_task = await build_task_with_history(db, chat.id, task)

    result = await services.agent.run(
        agent_task,
        max_steps=resolve_max_steps(request.max_steps),
        user_id=user_id,
    )

    if chat is not None:
        await record_turn(db, chat, task, result)

    return result.to_dict()
