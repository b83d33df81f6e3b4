from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from models import Author, GitOperationResult, SiteConfig

from .git_sync import RepositorySynchronizer


logger = logging.getLogger("site-engine.content")

COMMIT_MESSAGE_TEMPLATES: Dict[str, str] = {
    "update": "Update {path}",
    "create": "Create {path}",
    "delete": "Delete {path}",
    "upload": "Upload asset {path}",
    "insert_row": "Add row to {table}",
    "update_row": "Update row in {table}",
    "delete_row": "Delete row from {table}",
}


def default_commit_message(
    operation: str, changed_paths: Sequence[str], subject: Optional[str] = None
) -> str:
    template = COMMIT_MESSAGE_TEMPLATES.get(operation, COMMIT_MESSAGE_TEMPLATES["update"])
    path = subject or (changed_paths[0] if len(changed_paths) == 1 else f"{len(changed_paths)} files")
    return template.format(path=path, table=subject or path)


class ContentCommitCoordinator:
    """Turns a finished local content mutation into one commit-and-push.

    The local mutation is never rolled back; a failed push is reported as a
    partial success to the caller.
    """

    def __init__(self, synchronizer: RepositorySynchronizer) -> None:
        self.synchronizer = synchronizer

    async def persist(
        self,
        site: SiteConfig,
        changed_paths: Sequence[str],
        message: Optional[str] = None,
        author: Optional[Author] = None,
        *,
        operation: str = "update",
        subject: Optional[str] = None,
    ) -> GitOperationResult:
        paths = list(changed_paths)
        commit_message = (message or "").strip() or default_commit_message(operation, paths, subject)
        result = await self.synchronizer.commit_and_push(site, paths, commit_message, author)
        if not result.success:
            logger.warning(
                "Local %s on site=%s kept but not pushed: %s", operation, site.id, result.error
            )
        return result
