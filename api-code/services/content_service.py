from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from domain import ContentPathError
from models import Author, ContentFile, ContentMutationResult, SiteConfig

from .content_commit import ContentCommitCoordinator, default_commit_message
from .site_locks import SiteLockRegistry


logger = logging.getLogger("site-engine.content")

FILE_TYPES: Dict[str, str] = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".txt": "text",
    ".html": "html",
    ".htm": "html",
    ".css": "stylesheet",
    ".scss": "stylesheet",
    ".js": "javascript",
    ".ts": "javascript",
    ".xml": "xml",
    ".sqlite": "sqlite",
    ".sqlite3": "sqlite",
    ".db": "sqlite",
    ".png": "asset",
    ".jpg": "asset",
    ".jpeg": "asset",
    ".gif": "asset",
    ".svg": "asset",
    ".webp": "asset",
    ".pdf": "asset",
}


def normalize_content_path(path: str) -> str:
    cleaned = (path or "").replace("\\", "/").strip()
    parts = [part for part in PurePosixPath(cleaned).parts if part not in ("", ".", "/")]
    if not parts:
        raise ContentPathError("content path is empty")
    if cleaned.startswith("/") or ".." in parts:
        raise ContentPathError(f"content path escapes the working tree: {path}")
    if parts[0] == ".git":
        raise ContentPathError("the .git directory is not editable")
    return "/".join(parts)


def file_type(path: str) -> str:
    return FILE_TYPES.get(PurePosixPath(path).suffix.lower(), "other")


def is_editable(relative_path: str, editable_paths: Iterable[str]) -> bool:
    """Prefix match against the site's editable paths; an empty list allows everything."""
    prefixes = [p.replace("\\", "/").strip().strip("/") for p in editable_paths or []]
    prefixes = [p for p in prefixes if p]
    if not prefixes:
        return True
    for prefix in prefixes:
        if relative_path == prefix or relative_path.startswith(prefix + "/"):
            return True
    return False


class ContentService:
    """Edits text files inside a site's working tree and commits each change.

    The site lock is held from the local write through the push so a
    concurrent pull never stashes a half-persisted edit.
    """

    def __init__(self, coordinator: ContentCommitCoordinator, locks: SiteLockRegistry) -> None:
        self.coordinator = coordinator
        self.locks = locks

    def resolve(self, site: SiteConfig, path: str) -> Tuple[str, Path]:
        relative = normalize_content_path(path)
        if not is_editable(relative, site.editable_paths):
            raise ContentPathError(f"path is outside the editable paths of site {site.id}: {relative}")
        root = site.working_path.resolve()
        target = (root / relative).resolve()
        if target != root and root not in target.parents:
            raise ContentPathError(f"content path escapes the working tree: {path}")
        return relative, target

    async def list_files(self, site: SiteConfig) -> List[ContentFile]:
        """Every file under the editable paths, sorted by path; empty before the first clone."""
        return await asyncio.to_thread(_scan_files, site.working_path, list(site.editable_paths))

    async def read_file(self, site: SiteConfig, path: str) -> str:
        _, target = self.resolve(site, path)
        if not target.is_file():
            raise FileNotFoundError(path)
        return await asyncio.to_thread(target.read_text, encoding="utf-8")

    async def write_file(
        self,
        site: SiteConfig,
        path: str,
        content: str,
        *,
        create: bool = False,
        message: Optional[str] = None,
        author: Optional[Author] = None,
    ) -> ContentMutationResult:
        relative, target = self.resolve(site, path)
        operation = "create" if create else "update"
        async with self.locks.for_site(site.id):
            if create and target.exists():
                raise FileExistsError(relative)
            if not create and not target.is_file():
                raise FileNotFoundError(relative)
            await asyncio.to_thread(_write_text, target, content)
            logger.info("%s %s on site=%s", operation.capitalize(), relative, site.id)
            return await self._persist(site, relative, operation, message, author)

    async def delete_file(
        self,
        site: SiteConfig,
        path: str,
        *,
        message: Optional[str] = None,
        author: Optional[Author] = None,
    ) -> ContentMutationResult:
        relative, target = self.resolve(site, path)
        async with self.locks.for_site(site.id):
            if not target.is_file():
                raise FileNotFoundError(relative)
            await asyncio.to_thread(target.unlink)
            logger.info("Deleted %s on site=%s", relative, site.id)
            return await self._persist(site, relative, "delete", message, author)

    async def _persist(
        self,
        site: SiteConfig,
        relative: str,
        operation: str,
        message: Optional[str],
        author: Optional[Author],
    ) -> ContentMutationResult:
        commit_message = (message or "").strip() or default_commit_message(operation, [relative])
        result = await self.coordinator.persist(
            site, [relative], commit_message, author, operation=operation
        )
        return ContentMutationResult(
            path=relative,
            operation=operation,
            committed=result.success,
            commit_hash=result.hash,
            commit_message=commit_message,
            commit_error=result.error,
        )


def _write_text(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def _scan_files(root: Path, editable_paths: List[str]) -> List[ContentFile]:
    if not root.is_dir():
        return []
    files: List[ContentFile] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name != ".git")
        base = Path(current)
        for name in filenames:
            full = base / name
            relative = full.relative_to(root).as_posix()
            if full.is_symlink() or not full.is_file() or not is_editable(relative, editable_paths):
                continue
            stats = full.stat()
            files.append(
                ContentFile(
                    path=relative,
                    type=file_type(relative),
                    size=stats.st_size,
                    last_modified=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                )
            )
    files.sort(key=lambda item: item.path)
    return files
