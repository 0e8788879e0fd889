"""File-system tools used by fuzzy code search: grep, glob, list and read."""

import asyncio
import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import List, Optional, Sequence

IGNORED_DIRECTORIES = {
    "node_modules", "__pycache__", "dist", "build", "venv", ".venv",
    "target", "coverage", "site-packages",
}

SOURCE_EXTENSIONS = {
    ".py", ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".go", ".rs", ".java",
    ".kt", ".rb", ".php", ".c", ".h", ".cpp", ".hpp", ".cs", ".swift", ".scala",
    ".sh", ".sql", ".md", ".json", ".yaml", ".yml", ".toml", ".css", ".html", ".vue",
}

MAX_FILE_BYTES = 1_000_000


@dataclass
class GrepMatch:
    """A single line matching a grep pattern."""
    file_path: str
    line_number: int  # 1-based
    line_content: str


@dataclass
class DirectoryEntry:
    """An entry of a directory listing."""
    name: str
    path: str
    is_dir: bool


def _skip_dir(name: str) -> bool:
    return name.startswith(".") or name in IGNORED_DIRECTORIES


def _searchable_file(path: Path) -> bool:
    if path.name.startswith(".") or path.suffix.lower() not in SOURCE_EXTENSIONS:
        return False
    try:
        return path.stat().st_size <= MAX_FILE_BYTES
    except OSError:
        return False


def _iter_files(paths: Sequence[str]):
    for entry in paths:
        path = Path(entry)
        if path.is_file():
            if _searchable_file(path):
                yield path
            continue
        for root, dirs, files in os.walk(path):
            dirs[:] = sorted(d for d in dirs if not _skip_dir(d))
            for file_name in sorted(files):
                file_path = Path(root) / file_name
                if _searchable_file(file_path):
                    yield file_path


class FileSystemTools:
    """Async wrappers over blocking file-system scans."""

    def _grep_sync(
        self,
        pattern: str,
        paths: Sequence[str],
        max_results: int,
        case_sensitive: bool
    ) -> List[GrepMatch]:
        regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        matches: List[GrepMatch] = []

        for file_path in _iter_files(paths):
            try:
                with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                    for i, line in enumerate(f, 1):
                        if regex.search(line):
                            matches.append(GrepMatch(
                                file_path=str(file_path),
                                line_number=i,
                                line_content=line.rstrip("\n")
                            ))
                            if len(matches) >= max_results:
                                return matches
            except (PermissionError, OSError):
                continue

        return matches

    async def grep(
        self,
        pattern: str,
        paths: Sequence[str],
        max_results: int = 200,
        case_sensitive: bool = False
    ) -> List[GrepMatch]:
        """Lines matching a regex across files under ``paths``."""
        return await asyncio.to_thread(self._grep_sync, pattern, list(paths), max_results, case_sensitive)

    def _glob_sync(self, pattern: str, root: str, max_results: int, case_sensitive: bool) -> List[str]:
        if not case_sensitive:
            pattern = pattern.lower()
        found = []
        for file_path in _iter_files([root]):
            rel = file_path.relative_to(root).as_posix()
            name = file_path.name
            if not case_sensitive:
                rel, name = rel.lower(), name.lower()
            if fnmatchcase(rel, pattern) or fnmatchcase(name, pattern):
                found.append(str(file_path))
                if len(found) >= max_results:
                    break
        return found

    async def glob(
        self,
        pattern: str,
        root: str,
        max_results: int = 100,
        case_sensitive: bool = False
    ) -> List[str]:
        """Searchable files under ``root`` whose relative path or name matches ``pattern``."""
        return await asyncio.to_thread(self._glob_sync, pattern, root, max_results, case_sensitive)

    def _list_directory_sync(self, path: str) -> List[DirectoryEntry]:
        entries = []
        with os.scandir(path) as it:
            for entry in it:
                entries.append(DirectoryEntry(name=entry.name, path=entry.path, is_dir=entry.is_dir()))
        entries.sort(key=lambda e: e.name)
        return entries

    async def list_directory(self, path: str) -> List[DirectoryEntry]:
        return await asyncio.to_thread(self._list_directory_sync, path)

    def _read_lines_sync(self, path: str, start: int, end: int) -> str:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
        return "".join(lines[max(0, start - 1):end])

    async def read_lines(self, path: str, start: int, end: Optional[int] = None) -> str:
        """Text of lines ``start``..``end`` (1-based, inclusive)."""
        return await asyncio.to_thread(self._read_lines_sync, path, start, end if end is not None else start)

    async def count_lines(self, path: str) -> int:
        text = await asyncio.to_thread(Path(path).read_text, encoding="utf-8", errors="replace")
        return text.count("\n") + (0 if text.endswith("\n") or not text else 1)
