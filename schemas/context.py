"""Enriched context schemas."""

from typing import List
from pydantic import BaseModel, Field

from .conversation import ConversationTurn, Summary
from .search import SearchResult


class SectionBudget(BaseModel):
    """Character caps for each context section."""
    total_chars: int
    last_queries_chars: int
    recent_turns_chars: int
    search_results_chars: int
    l1_summaries_chars: int

    @property
    def section_sum(self) -> int:
        return (
            self.last_queries_chars
            + self.recent_turns_chars
            + self.search_results_chars
            + self.l1_summaries_chars
        )


class UserQuery(BaseModel):
    """A prior user question and the turn it opened."""
    turn_index: int
    text: str


class EnrichedContext(BaseModel):
    """Budgeted context assembled for one query. Rebuilt on every query."""
    conversation_id: str
    query: str
    budget: SectionBudget
    last_user_queries: List[UserQuery] = Field(default_factory=list)
    recent_turns: List[ConversationTurn] = Field(default_factory=list)
    search_results: List[SearchResult] = Field(default_factory=list)
    recent_l1_summaries: List[Summary] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.last_user_queries
            or self.recent_turns
            or self.search_results
            or self.recent_l1_summaries
        )
