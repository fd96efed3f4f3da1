"""Tests for chat history recording and replay."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from libra.enums import PARSE_ERROR_TOOL, StepType
from libra.models import DEFAULT_CHAT_TITLE, Chat
from libra.services.agent.types import AgentRunResult, AgentStep, FinalAnswer
from libra.services.chat_history import (
    build_task_with_history,
    format_history,
    record_turn,
    title_from_task,
    tools_used,
)


def tool_step(index: int, name: str) -> AgentStep:
    return AgentStep(step_index=index, thought="t", type=StepType.TOOL_CALL, tool_name=name)


def turn(task: str, summary: str, detailed: str | None = None):
    return SimpleNamespace(
        task=task,
        final_answer={"summary": summary, "detailed_answer": detailed, "sources": []},
    )


class TestTitleFromTask:
    def test_short_task(self):
        assert title_from_task("What is pgvector?") == "What is pgvector?"

    def test_long_task_truncated(self):
        title = title_from_task("x" * 80)
        assert title == "x" * 50 + "…"


class TestToolsUsed:
    def test_distinct_in_first_use_order(self):
        steps = [
            tool_step(0, "web_search"),
            tool_step(1, PARSE_ERROR_TOOL),
            tool_step(2, "web_scrape"),
            tool_step(3, "web_search"),
            AgentStep(step_index=4, thought="done", type=StepType.FINAL_ANSWER),
        ]
        assert tools_used(steps) == ["web_search", "web_scrape"]


class TestFormatHistory:
    def test_no_turns_returns_task(self):
        assert format_history([], "Next?") == "Next?"

    def test_includes_prior_turns_in_order(self):
        text = format_history(
            [turn("First question", "s1", "First answer"), turn("Second question", "Only summary")],
            "Third question",
        )
        assert text.index("First question") < text.index("Second question")
        assert "Assistant: First answer" in text
        assert "Assistant: Only summary" in text
        assert text.endswith("New user question: Third question")


class TestBuildTaskWithHistory:
    @pytest.mark.asyncio
    async def test_most_recent_turns_oldest_first(self):
        newest_first = [turn("q3", "a3"), turn("q2", "a2")]
        db = MagicMock()
        result = MagicMock()
        result.scalars.return_value.all.return_value = newest_first
        db.execute = AsyncMock(return_value=result)

        text = await build_task_with_history(db, uuid.uuid4(), "q4", limit=2)

        assert text.index("q2") < text.index("q3") < text.index("q4")

    @pytest.mark.asyncio
    async def test_database_error_falls_back_to_task(self):
        db = MagicMock()
        db.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down")))

        assert await build_task_with_history(db, uuid.uuid4(), "question") == "question"


class TestRecordTurn:
    @pytest.mark.asyncio
    async def test_records_turn_and_renames_default_chat(self):
        db = MagicMock()
        db.flush = AsyncMock()
        chat = Chat(id=uuid.uuid4(), user_id="user-1", title=DEFAULT_CHAT_TITLE)
        answer = FinalAnswer(summary="S", detailed_answer="D", sources=["https://x.example"])
        result = AgentRunResult(
            success=True,
            steps=[tool_step(0, "web_search")],
            final_answer=answer,
            token_usage=42,
        )

        recorded = await record_turn(db, chat, "Look up pgvector", result)

        db.add.assert_called_once_with(recorded)
        db.flush.assert_awaited_once()
        assert recorded.chat_id == chat.id
        assert recorded.tools_used == ["web_search"]
        assert recorded.token_usage == 42
        assert recorded.final_answer == answer.to_dict()
        assert recorded.steps[0]["toolName"] == "web_search"
        assert chat.title == "Look up pgvector"

    @pytest.mark.asyncio
    async def test_keeps_custom_title(self):
        db = MagicMock()
        db.flush = AsyncMock()
        chat = Chat(id=uuid.uuid4(), user_id="user-1", title="Research")
        result = AgentRunResult(
            success=False, steps=[], final_answer=FinalAnswer(summary="Incomplete", detailed_answer="")
        )

        await record_turn(db, chat, "Another question", result)

        assert chat.title == "Research"
