"""Conversation data models: messages, tool invocations, turns and summaries."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator


UNKNOWN_TOOL_NAME = "unknown"


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class SummaryTier(int, Enum):
    """Compaction tier of a summary record."""
    L1 = 1
    L2 = 2


# Confidence is a property of the tier, not computed per record
TIER_CONFIDENCE = {
    0: 1.0,
    SummaryTier.L1: 0.7,
    SummaryTier.L2: 0.5,
}


class ToolInvocation(BaseModel):
    """One tool call and its result, attached to a message."""
    tool_name: str = UNKNOWN_TOOL_NAME
    arguments: str = ""  # Serialized arguments
    success: bool = True
    result: Optional[str] = None  # Serialized result payload
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    result_size: int = 0

    @field_validator("tool_name", mode="before")
    @classmethod
    def _default_tool_name(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return UNKNOWN_TOOL_NAME
        return str(value)

    def describe(self, max_chars: int = 200) -> str:
        """One-line rendering used in compaction requests."""
        outcome = "ok" if self.success else f"failed: {self.error or 'error'}"
        args = self.arguments if len(self.arguments) <= max_chars else self.arguments[:max_chars] + "..."
        return f"{self.tool_name}({args}) -> {outcome}"


class Message(BaseModel):
    """An immutable entry in a conversation's append-only message log."""
    message_id: str
    conversation_id: str
    sequence: int
    role: Role
    content: str = ""
    tool_invocations: List[ToolInvocation] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}

    @field_validator("content", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> str:
        return value or ""

    @property
    def char_count(self) -> int:
        return len(self.content)


class ConversationTurn(BaseModel):
    """Logical turn derived from the message log: one user message and its final reply.

    Not persisted. Tool invocations from every assistant message in the
    turn's span are kept in call order.
    """
    turn_index: int
    user_message: str
    assistant_message: str
    tool_invocations: List[ToolInvocation] = Field(default_factory=list)
    timestamp: datetime
    message_ids: List[str] = Field(default_factory=list)

    @property
    def char_count(self) -> int:
        return len(self.user_message) + len(self.assistant_message)

    def to_dialogue(self) -> str:
        lines = [f"User: {self.user_message}"]
        if self.tool_invocations:
            lines.append("Tools: " + "; ".join(t.describe() for t in self.tool_invocations))
        lines.append(f"Assistant: {self.assistant_message}")
        return "\n".join(lines)


class Summary(BaseModel):
    """Compacted record covering the half-open turn range [start_turn_index, end_turn_index)."""
    summary_id: str
    conversation_id: str
    tier: SummaryTier
    confidence: float
    conversation_summary: str
    actions_summary: str = ""
    files_mentioned: List[str] = Field(default_factory=list)
    start_turn_index: int
    end_turn_index: int
    created_at: datetime = Field(default_factory=datetime.now)
    consolidated_summary_ids: List[str] = Field(default_factory=list)  # L2 only

    @property
    def char_count(self) -> int:
        return len(self.conversation_summary) + len(self.actions_summary)

    def to_text(self) -> str:
        lines = [
            f"[Turns {self.start_turn_index}-{self.end_turn_index - 1}]",
            f"Summary: {self.conversation_summary}",
        ]
        if self.actions_summary:
            lines.append(f"Actions: {self.actions_summary}")
        if self.files_mentioned:
            lines.append(f"Files: {', '.join(self.files_mentioned)}")
        return "\n".join(lines)


class SummaryResult(BaseModel):
    """Structured output of the summarization collaborator."""
    conversation_summary: str
    actions_summary: str = ""
    files_mentioned: List[str] = Field(default_factory=list)


class Conversation(BaseModel):
    """Conversation header record."""
    conversation_id: str
    title: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
