"""Budgeted assembly and formatting of the enriched context block."""

import logging
from typing import Callable, List, Optional, Sequence, TypeVar

from config.settings import Settings
from retrieval.eligibility import SearchEligibility
from retrieval.multi_source import MultiSourceRetriever
from schemas.context import EnrichedContext, SectionBudget, UserQuery
from schemas.conversation import ConversationTurn, Summary
from schemas.search import SearchResult, SourceKind

from .conversation_store import ConversationStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRUNCATION_MARKER = "..."
SECTION_SEPARATOR = "\n\n"
MIN_ENTRY_CHARS = 20

HEADER_LAST_QUERIES = "## Last User Queries"
HEADER_RECENT_TURNS = "## Recent Conversation (Raw)"
HEADER_PAST_CONTEXT = "## Relevant Past Context"
HEADER_CODE_CONTEXT = "## Relevant Code Context"
HEADER_L1_SUMMARIES = "## Recent L1 Summaries"

TIER_HEADERS = [
    (SourceKind.CONVERSATION_L0, "### Recent Turns (L0)"),
    (SourceKind.CONVERSATION_L1, "### Short-Term Summaries (L1)"),
    (SourceKind.CONVERSATION_L2, "### Long-Term Summaries (L2)"),
]


def truncate_text(text: str, max_chars: int, marker: str = TRUNCATION_MARKER) -> str:
    """
    Cut text to at most ``max_chars`` characters, ending with a marker when cut.

    Args:
        text: Text to truncate
        max_chars: Maximum length of the result
        marker: Suffix appended to truncated text

    Returns:
        Text no longer than ``max_chars``
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(marker):
        return text[:max_chars]
    return text[:max_chars - len(marker)] + marker


def _fit(items: Sequence[T], render: Callable[[T], str], cap: int) -> List[T]:
    """Leading items whose rendered size fits in ``cap``. The first item is always kept."""
    kept: List[T] = []
    used = 0
    for item in items:
        size = len(render(item)) + 1
        if kept and used + size > cap:
            break
        kept.append(item)
        used += size
    return kept


def _render_query(query: UserQuery) -> str:
    return f"- [Turn {query.turn_index}] {query.text}"


def _render_turn(turn: ConversationTurn) -> str:
    return f"**Turn {turn.turn_index}**\n{turn.to_dialogue()}"


def _render_summary(summary: Summary) -> str:
    return summary.to_text()


def _percent(value: float) -> str:
    return f"{round(value * 100)}%"


def _render_result(result: SearchResult) -> str:
    scores = f"(relevance {_percent(result.score)}, confidence {_percent(result.confidence)})"
    if result.location is not None:
        loc = result.location
        name = f" `{result.name}`" if result.name else ""
        return (
            f"- {loc.file_path}:{loc.start_line}-{loc.end_line}{name} {scores}\n"
            f"```\n{result.content.rstrip()}\n```"
        )
    label = f"Turn {result.turn_index}" if result.turn_index is not None else result.record_id
    return f"- [{label}] {scores}\n{result.content}"


class ContextBudgetAssembler:
    """
    Builds the per-query EnrichedContext under a character budget.

    Sections are filled in priority order: last user queries, recent raw
    turns, merged search results, unconsolidated L1 summaries. Each one
    is truncated to its own slice of the total; the remainder of the
    budget is left to the prompt builder.
    """

    def __init__(
        self,
        store: ConversationStore,
        retriever: Optional[MultiSourceRetriever] = None,
        settings: Optional[Settings] = None
    ):
        self.store = store
        self.retriever = retriever
        self.settings = settings or Settings()

    def compute_budget(self, total_chars: int) -> SectionBudget:
        """
        Split a total character budget into per-section caps.

        The last-queries and recent-turns slices never drop below
        ``priority_section_min_chars``, so they keep showing content on
        very small budgets.
        """
        s = self.settings

        def share(percent: float) -> int:
            return int(total_chars * percent / 100)

        def priority_share(percent: float) -> int:
            return max(share(percent), s.priority_section_min_chars)

        return SectionBudget(
            total_chars=total_chars,
            last_queries_chars=priority_share(s.budget_last_queries_percent),
            recent_turns_chars=priority_share(s.budget_recent_turns_percent),
            search_results_chars=share(s.budget_search_results_percent),
            l1_summaries_chars=share(s.budget_l1_summaries_percent)
        )

    async def build(
        self,
        conversation_id: str,
        query: str,
        allotted_total_chars: Optional[int] = None,
        eligibility: Optional[SearchEligibility] = None,
        include_search: bool = True
    ) -> EnrichedContext:
        """
        Assemble the enriched context for one query.

        Args:
            conversation_id: Conversation ID
            query: Current user query
            allotted_total_chars: Total budget (default: settings.max_context_chars)
            eligibility: Code semantic search eligibility state
            include_search: Whether to run multi-source retrieval

        Returns:
            EnrichedContext with every section already fitted to its cap

        Raises:
            ConversationSearchError: If conversation-history search fails
        """
        total = allotted_total_chars if allotted_total_chars is not None else self.settings.max_context_chars
        budget = self.compute_budget(total)

        # Newest entries win the slice, then display order is restored
        queries = await self.store.get_last_user_queries(conversation_id, self.settings.last_queries_limit)
        queries = list(reversed(_fit(list(reversed(queries)), _render_query, budget.last_queries_chars)))

        turns = (await self.store.get_turns(conversation_id))[-self.settings.recent_turns_limit:]
        turns = list(reversed(_fit(list(reversed(turns)), _render_turn, budget.recent_turns_chars)))

        results: List[SearchResult] = []
        if include_search and self.retriever is not None and query.strip():
            retrieved = await self.retriever.retrieve(conversation_id, query, eligibility)
            results = _fit(
                [self._clip_snippet(r) for r in retrieved],
                _render_result,
                budget.search_results_chars
            )

        summaries = await self.store.get_unconsolidated_l1_summaries(conversation_id)
        summaries.sort(key=lambda s: s.end_turn_index, reverse=True)
        summaries = _fit(summaries[:self.settings.recent_l1_limit], _render_summary, budget.l1_summaries_chars)

        logger.debug(
            f"Context for {conversation_id}: {len(queries)} queries, {len(turns)} turns, "
            f"{len(results)} results, {len(summaries)} L1 summaries (budget {total} chars)"
        )

        return EnrichedContext(
            conversation_id=conversation_id,
            query=query,
            budget=budget,
            last_user_queries=queries,
            recent_turns=turns,
            search_results=results,
            recent_l1_summaries=summaries
        )

    def _clip_snippet(self, result: SearchResult) -> SearchResult:
        if result.source.is_code and len(result.content) > self.settings.snippet_max_chars:
            return result.model_copy(update={
                "content": truncate_text(result.content, self.settings.snippet_max_chars)
            })
        return result

    @staticmethod
    def _section(header: str, lines: List[str], cap: int) -> str:
        room = cap - len(SECTION_SEPARATOR)
        if not lines or room <= 0:
            return ""
        block = "\n".join(lines)
        # Header only when some entry text still fits under it
        if len(header) + 1 + MIN_ENTRY_CHARS <= room:
            block = header + "\n" + block
        return truncate_text(block, room) + SECTION_SEPARATOR

    @staticmethod
    def format(context: EnrichedContext) -> str:
        """
        Render the context as a Markdown block with fixed section order.

        Each section, headers included, is cut to its cap, so the output
        never exceeds the sum of the section caps.

        Args:
            context: Assembled context

        Returns:
            Formatted text, empty when there is no context
        """
        budget = context.budget
        parts = [
            ContextBudgetAssembler._section(
                HEADER_LAST_QUERIES,
                [_render_query(q) for q in context.last_user_queries],
                budget.last_queries_chars
            ),
            ContextBudgetAssembler._section(
                HEADER_RECENT_TURNS,
                [_render_turn(t) for t in context.recent_turns],
                budget.recent_turns_chars
            ),
        ]

        search_lines = []
        past = [r for r in context.search_results if not r.source.is_code]
        if past:
            search_lines.append(HEADER_PAST_CONTEXT)
            for source, header in TIER_HEADERS:
                group = [r for r in past if r.source == source]
                if group:
                    search_lines.append(header)
                    search_lines.extend(_render_result(r) for r in group)
        code = [r for r in context.search_results if r.source.is_code]
        if code:
            search_lines.append(HEADER_CODE_CONTEXT)
            search_lines.extend(_render_result(r) for r in code)
        if search_lines:
            # Past and code context share one slice
            block = "\n".join(search_lines)
            cap = budget.search_results_chars - len(SECTION_SEPARATOR)
            parts.append(truncate_text(block, cap) + SECTION_SEPARATOR if cap > 0 else "")

        parts.append(ContextBudgetAssembler._section(
            HEADER_L1_SUMMARIES,
            [_render_summary(s) for s in context.recent_l1_summaries],
            budget.l1_summaries_chars
        ))

        return "".join(parts).rstrip("\n")
