"""Pydantic schemas for the conversation memory layer."""

from .conversation import (
    Conversation,
    ConversationTurn,
    Message,
    Role,
    Summary,
    SummaryResult,
    SummaryTier,
    TIER_CONFIDENCE,
    ToolInvocation,
)
from .search import CODE_CONFIDENCE, CodeLocation, SearchResult, SourceKind
from .context import EnrichedContext, SectionBudget, UserQuery

__all__ = [
    "Conversation",
    "ConversationTurn",
    "Message",
    "Role",
    "Summary",
    "SummaryResult",
    "SummaryTier",
    "TIER_CONFIDENCE",
    "ToolInvocation",
    "CODE_CONFIDENCE",
    "CodeLocation",
    "SearchResult",
    "SourceKind",
    "EnrichedContext",
    "SectionBudget",
    "UserQuery",
]
