"""Errors raised at the I/O boundaries of the memory layer."""


class ContextMemoryError(RuntimeError):
    """Base class for memory layer failures."""


class ConversationSearchError(ContextMemoryError):
    """Conversation-history retrieval failed; the retrieval call cannot proceed."""


class CompactionError(ContextMemoryError):
    """A compaction cycle was abandoned. Nothing was written for the failed range."""
