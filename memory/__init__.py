"""Memory system for conversation persistence and compaction."""

from .errors import CompactionError, ContextMemoryError, ConversationSearchError
from .turn_assembler import assemble_turns
from .retention_policy import RetentionPolicy
from .conversation_store import ConversationStore
from .summarizer import BaseSummarizer, LLMSummarizer
from .summary_compactor import SummaryCompactor

__all__ = [
    "CompactionError",
    "ContextMemoryError",
    "ConversationSearchError",
    "assemble_turns",
    "RetentionPolicy",
    "ConversationStore",
    "BaseSummarizer",
    "LLMSummarizer",
    "SummaryCompactor",
]
