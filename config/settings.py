"""Memory layer settings."""

import os
from typing import Literal, Optional
from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Configuration for conversation memory, compaction and context assembly."""

    # LLM Provider settings (summarization)
    llm_provider: str = "openai"  # "openai" or "anthropic"
    llm_model: Optional[str] = None  # Override default model

    # API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Embeddings
    embedding_model: str = "text-embedding-3-small"

    # Graph store
    db_path: str = "data/memory.db"

    # Compaction thresholds (percent of max_context_chars)
    max_context_chars: int = Field(100_000, gt=0)
    l1_threshold_percent: float = Field(10.0, gt=0.0, le=100.0)
    l2_threshold_percent: float = Field(10.0, gt=0.0, le=100.0)
    l2_trigger: Literal["chars", "count"] = "chars"
    l2_count_threshold: int = Field(5, ge=1)
    max_compactions_per_cycle: int = Field(10, ge=1)

    # Retrieval settings
    semantic_min_score: float = Field(0.3, ge=0.0, le=1.0)
    conversation_search_limit: int = 10
    code_search_limit: int = 20
    fuzzy_max_results: int = 30
    code_search_initial_limit: int = 100
    source_timeout_seconds: float = 10.0

    # Context budget slices (percent of the total)
    budget_last_queries_percent: float = 5.0
    budget_recent_turns_percent: float = 5.0
    budget_search_results_percent: float = 10.0
    budget_l1_summaries_percent: float = 10.0

    recent_turns_limit: int = 5
    last_queries_limit: int = 5
    recent_l1_limit: int = 5
    snippet_max_chars: int = 500
    priority_section_min_chars: int = Field(120, ge=0)

    def __init__(self, **data):
        # Auto-load API keys from environment if not provided
        if "openai_api_key" not in data or data["openai_api_key"] is None:
            data["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

        if "anthropic_api_key" not in data or data["anthropic_api_key"] is None:
            data["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

        super().__init__(**data)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured LLM provider."""
        if self.llm_provider == "openai":
            return self.openai_api_key
        elif self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return None

    def threshold_chars(self, tier: int) -> int:
        """Character threshold that triggers compaction into the given tier."""
        percent = self.l1_threshold_percent if tier == 1 else self.l2_threshold_percent
        return int(self.max_context_chars * percent / 100)
