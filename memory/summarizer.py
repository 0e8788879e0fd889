"""Summarization collaborator: turns a range of history into a tier summary."""

import json
import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError

from llm.base_client import BaseLLMClient, ChatMessage
from schemas.conversation import SummaryResult, SummaryTier

logger = logging.getLogger(__name__)


TIER_INSTRUCTIONS = {
    SummaryTier.L1: (
        "You are condensing raw turns of a conversation between a developer and a "
        "coding assistant. Keep decisions, open problems, and the concrete results "
        "of tool calls. Drop greetings and repetition."
    ),
    SummaryTier.L2: (
        "You are consolidating several short-term summaries of the same conversation "
        "into one long-term summary. Keep the overall goal, what was built or changed, "
        "and what is still unresolved. Merge overlapping points."
    ),
}


class BaseSummarizer(ABC):
    """Produces a structured summary of a range of conversation history."""

    @abstractmethod
    async def summarize(self, range_text: str, instructions: str) -> SummaryResult:
        """
        Summarize a range of history.

        Args:
            range_text: Rendered turns (L1) or summaries (L2)
            instructions: Tier-specific instructions

        Returns:
            SummaryResult. Raises on any failure; callers never get a partial result.
        """
        pass


class LLMSummarizer(BaseSummarizer):
    """Summarizer backed by a chat LLM returning JSON."""

    SYSTEM_PROMPT = """{instructions}

Respond with a JSON object:
{{
  "conversation_summary": "What was discussed and decided, in a few sentences",
  "actions_summary": "Tools used and actions taken, with their outcomes",
  "files_mentioned": ["path/to/file.py"]
}}"""

    def __init__(self, llm_client: BaseLLMClient, max_tokens: int = 1500):
        """
        Initialize LLM summarizer.

        Args:
            llm_client: LLM client used for summarization
            max_tokens: Maximum tokens for the summary response
        """
        self.llm_client = llm_client
        self.max_tokens = max_tokens

    async def summarize(self, range_text: str, instructions: str) -> SummaryResult:
        messages = [
            ChatMessage(role="system", content=self.SYSTEM_PROMPT.format(instructions=instructions)),
            ChatMessage(role="user", content=f"Summarize this:\n\n{range_text}")
        ]

        response = await self.llm_client.chat(
            messages=messages,
            temperature=0.2,
            max_tokens=self.max_tokens,
            json_mode=True
        )

        return self.parse_response(response.content)

    @staticmethod
    def parse_response(content: str) -> SummaryResult:
        """Parse the model output into a SummaryResult, raising ValueError when malformed."""
        content = content.strip()

        # Handle potential markdown code blocks
        if content.startswith("```"):
            content = content.split("```")[1]
            if content.startswith("json"):
                content = content[4:]
            content = content.strip()

        try:
            parsed = json.loads(content)
            result = SummaryResult.model_validate(parsed)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to parse summary response: {e}")
            raise ValueError(f"Malformed summary response: {e}") from e

        if not result.conversation_summary.strip():
            raise ValueError("Summary response has an empty conversation_summary")

        return result
