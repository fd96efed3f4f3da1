"""Enums for status values used throughout the application."""

from enum import StrEnum


class StepType(StrEnum):
    """Kind of a single agent step."""

    TOOL_CALL = "tool_call"
    FINAL_ANSWER = "final_answer"


class ToolName(StrEnum):
    """Names of the tools registered for the agent."""

    WEB_SEARCH = "web_search"
    WEB_SCRAPE = "web_scrape"
    DRIVE_SEARCH = "drive_search"
    VECTOR_SEARCH = "vector_search"


# Pseudo-tool recorded when the model's response could not be parsed
PARSE_ERROR_TOOL = "_parse_error"
