"""
Codebase context for the system prompt.

A container's filesystem is exposed to this service through a host
directory (``<workspace_root>/<container_id>``, typically a bind mount).
The context tree is a nested mapping of names to either a sub-mapping
(directory) or the file's text.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from codechat.core.errors import ContextUnavailableError
from codechat.core.telemetry import get_tracer

logger = logging.getLogger(__name__)

IGNORED_DIRECTORIES = frozenset(
    {".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build", ".next"}
)


class ContextProvider(Protocol):
    async def get_context_tree(self, container_id: str) -> Any:
        ...


class WorkspaceContextProvider:
    """Reads a container's files from its host-side workspace directory."""

    def __init__(self, root: str | Path, max_file_bytes: int = 256_000) -> None:
        self._root = Path(root)
        self._max_file_bytes = max_file_bytes
        self._tracer = get_tracer()

    async def get_context_tree(self, container_id: str) -> dict[str, Any]:
        """
        Build the file tree for a container.

        Raises:
            ContextUnavailableError: If the container has no readable workspace.
        """
        with self._tracer.start_as_current_span("context.tree") as span:
            span.set_attribute("context.container_id", container_id)
            workspace = self._workspace(container_id)
            tree = await asyncio.to_thread(self._walk, workspace)
            logger.debug("Built context tree for %s (%d top-level entries)", container_id, len(tree))
            return tree

    def _workspace(self, container_id: str) -> Path:
        root = self._root.resolve()
        workspace = (root / container_id).resolve()
        if workspace == root or root not in workspace.parents:
            raise ContextUnavailableError(container_id, "invalid container id")
        if not workspace.is_dir():
            raise ContextUnavailableError(container_id, f"no workspace at {workspace}")
        return workspace

    def _walk(self, directory: Path) -> dict[str, Any]:
        tree: dict[str, Any] = {}
        for entry in sorted(os.scandir(directory), key=lambda e: e.name):
            if entry.is_symlink():
                continue
            if entry.is_dir():
                if entry.name in IGNORED_DIRECTORIES:
                    continue
                tree[entry.name] = self._walk(Path(entry.path))
            elif entry.is_file():
                content = self._read_text(Path(entry.path))
                if content is not None:
                    tree[entry.name] = content
        return tree

    def _read_text(self, path: Path) -> str | None:
        if path.stat().st_size > self._max_file_bytes:
            logger.debug("Skipping %s: larger than %d bytes", path, self._max_file_bytes)
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping %s: not UTF-8 text", path)
            return None
