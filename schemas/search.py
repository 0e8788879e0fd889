"""Transient search result schemas."""

from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, Field


CODE_CONFIDENCE = 0.5


class SourceKind(str, Enum):
    """Where a search result came from."""
    CONVERSATION_L0 = "conversation-L0"
    CONVERSATION_L1 = "conversation-L1"
    CONVERSATION_L2 = "conversation-L2"
    CODE_SEMANTIC = "code-semantic"
    CODE_FUZZY = "code-fuzzy"

    @property
    def is_code(self) -> bool:
        return self in (SourceKind.CODE_SEMANTIC, SourceKind.CODE_FUZZY)


class CodeLocation(BaseModel):
    """Locator of a code snippet."""
    file_path: str
    start_line: int
    end_line: int


class SearchResult(BaseModel):
    """A single candidate produced by one retrieval strategy."""
    source: SourceKind
    score: float = Field(0.0, ge=0.0, le=1.0, description="Relevance score")
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    content: str = ""
    record_id: Optional[str] = None  # Turn or summary ID for conversation results
    location: Optional[CodeLocation] = None  # Code results only
    name: Optional[str] = None  # Scope name, when known
    turn_index: Optional[int] = None

    def dedup_key(self) -> Tuple:
        """Key under which two results name the same thing."""
        if self.location is not None:
            loc = self.location
            return ("code", loc.file_path, loc.start_line, loc.end_line)
        return ("conversation", self.record_id)
