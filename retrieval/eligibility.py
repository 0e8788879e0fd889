"""Eligibility of code semantic search, and the advisory locks it checks."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AdvisoryLock:
    """A named flag marking that an index is being written.

    Writers (embedding generation, project ingestion) hold it; readers only
    look at ``is_held`` and never wait on it.
    """

    def __init__(self, name: str):
        self.name = name
        self._holders = 0

    @property
    def is_held(self) -> bool:
        return self._holders > 0

    def acquire(self):
        self._holders += 1

    def release(self):
        if self._holders == 0:
            raise RuntimeError(f"Lock {self.name!r} released more times than acquired")
        self._holders -= 1

    @asynccontextmanager
    async def hold(self):
        self.acquire()
        try:
            yield self
        finally:
            self.release()


class SearchEligibility(BaseModel):
    """Point-in-time state that decides whether code semantic search may run."""
    project_root: Optional[str] = None  # Currently loaded project, if any
    registered_project_roots: List[str] = Field(default_factory=list)
    cwd: Optional[str] = None
    embedding_lock_held: bool = False
    ingestion_lock_held: bool = False


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def can_run_semantic_search(eligibility: SearchEligibility) -> bool:
    """
    Check whether the code index may be queried.

    All must hold: a project is loaded, neither the embedding nor the
    ingestion lock is held, and the working directory is inside the loaded
    project or contains at least one registered project.
    """
    if not eligibility.project_root:
        return False

    if eligibility.embedding_lock_held or eligibility.ingestion_lock_held:
        logger.debug("Semantic search skipped: index is being written")
        return False

    cwd = Path(os.path.abspath(eligibility.cwd or os.getcwd()))
    if _is_within(cwd, Path(os.path.abspath(eligibility.project_root))):
        return True

    return any(
        _is_within(Path(os.path.abspath(root)), cwd)
        for root in eligibility.registered_project_roots
    )


class ProjectContext:
    """Loaded/registered projects and the two index locks, owned by the caller."""

    def __init__(
        self,
        loaded_project_root: Optional[str] = None,
        registered_project_roots: Optional[List[str]] = None
    ):
        self.loaded_project_root = loaded_project_root
        self.registered_project_roots = list(registered_project_roots or [])
        self.embedding_lock = AdvisoryLock("embedding")
        self.ingestion_lock = AdvisoryLock("ingestion")

    def snapshot(self, cwd: Optional[str] = None) -> SearchEligibility:
        return SearchEligibility(
            project_root=self.loaded_project_root,
            registered_project_roots=self.registered_project_roots,
            cwd=cwd or os.getcwd(),
            embedding_lock_held=self.embedding_lock.is_held,
            ingestion_lock_held=self.ingestion_lock.is_held
        )
