"""Keyword-based code search composed from grep, glob and directory listing."""

import asyncio
import logging
import re
from typing import Dict, List, Optional, Set

from schemas.search import CODE_CONFIDENCE, CodeLocation, SearchResult, SourceKind
from .file_tools import FileSystemTools, IGNORED_DIRECTORIES
from .query_terms import extract_search_terms

logger = logging.getLogger(__name__)


class _Window:
    """A run of lines in one file that matched one or more terms."""

    def __init__(self, start: int, end: int, term: str):
        self.start = start
        self.end = end
        self.terms: Set[str] = {term}


def _merge_windows(hits: List[tuple], context_lines: int) -> List[_Window]:
    windows: List[_Window] = []
    for line_number, term in sorted(hits):
        start = max(1, line_number - context_lines)
        end = line_number + context_lines
        if windows and start <= windows[-1].end + 1:
            windows[-1].end = max(windows[-1].end, end)
            windows[-1].terms.add(term)
        else:
            windows.append(_Window(start, end, term))
    return windows


class FuzzyCodeSearcher:
    """
    Grep-style search over a project tree, guided by terms extracted from the query.

    Content hits are grouped into line windows per file and scored by the
    fraction of query terms each window contains. Files whose names match
    a term are added with a lower score.
    """

    FILENAME_SCORE_WEIGHT = 0.5
    FILENAME_SNIPPET_LINES = 20

    def __init__(
        self,
        project_root: str,
        tools: Optional[FileSystemTools] = None,
        max_results: int = 30,
        context_lines: int = 3,
        max_terms: int = 8,
        snippet_max_chars: int = 500
    ):
        """
        Initialize fuzzy searcher.

        Args:
            project_root: Directory to search
            tools: File-system tools (default: FileSystemTools())
            max_results: Maximum results per search
            context_lines: Lines of context around each hit
            max_terms: Maximum query terms to search for
            snippet_max_chars: Maximum characters kept per snippet
        """
        self.project_root = project_root
        self.tools = tools or FileSystemTools()
        self.max_results = max_results
        self.context_lines = context_lines
        self.max_terms = max_terms
        self.snippet_max_chars = snippet_max_chars

    async def _search_paths(self) -> List[str]:
        entries = await self.tools.list_directory(self.project_root)
        return [
            e.path for e in entries
            if not e.name.startswith(".") and not (e.is_dir and e.name in IGNORED_DIRECTORIES)
        ]

    async def search(self, query: str) -> List[SearchResult]:
        """
        Search code for the query's terms.

        Args:
            query: User query

        Returns:
            code-fuzzy results sorted by descending score
        """
        terms = extract_search_terms(query, self.max_terms)
        if not terms:
            return []

        paths = await self._search_paths()
        if not paths:
            return []

        grep_results = await asyncio.gather(*[
            self.tools.grep(re.escape(term), paths, max_results=self.max_results * 4)
            for term in terms
        ])
        glob_results = await asyncio.gather(*[
            self.tools.glob(f"*{term}*", self.project_root, max_results=self.max_results)
            for term in terms
        ])

        hits_by_file: Dict[str, List[tuple]] = {}
        for term, matches in zip(terms, grep_results):
            for match in matches:
                hits_by_file.setdefault(match.file_path, []).append((match.line_number, term.lower()))

        results: List[SearchResult] = []
        line_counts: Dict[str, int] = {}

        for file_path, hits in hits_by_file.items():
            line_counts[file_path] = await self.tools.count_lines(file_path)
            for window in _merge_windows(hits, self.context_lines):
                end = min(window.end, line_counts[file_path])
                results.append(await self._make_result(
                    file_path, window.start, end, len(window.terms) / len(terms)
                ))

        name_terms: Dict[str, Set[str]] = {}
        for term, files in zip(terms, glob_results):
            for file_path in files:
                name_terms.setdefault(file_path, set()).add(term.lower())

        for file_path, matched in name_terms.items():
            if file_path not in line_counts:
                line_counts[file_path] = await self.tools.count_lines(file_path)
            end = max(1, min(self.FILENAME_SNIPPET_LINES, line_counts[file_path]))
            score = self.FILENAME_SCORE_WEIGHT * len(matched) / len(terms)
            results.append(await self._make_result(file_path, 1, end, score))

        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug(f"Fuzzy search for {terms} found {len(results)} snippets")
        return results[:self.max_results]

    async def _make_result(self, file_path: str, start: int, end: int, score: float) -> SearchResult:
        snippet = await self.tools.read_lines(file_path, start, end)
        return SearchResult(
            source=SourceKind.CODE_FUZZY,
            score=min(1.0, score),
            confidence=CODE_CONFIDENCE,
            content=snippet[:self.snippet_max_chars],
            location=CodeLocation(file_path=file_path, start_line=start, end_line=end)
        )
