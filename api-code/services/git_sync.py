from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from domain import RepositoryError
from models import (
    Author,
    CommandExecutionResult,
    CommitSummary,
    GitOperationResult,
    RepositoryStatus,
    RepositoryStatusResult,
    SiteConfig,
    utc_now,
)

from .command_runner import CommandRunner
from .credentials import (
    build_authenticated_url,
    build_remote_url,
    credential_environment,
    redact,
)
from .site_locks import SiteLockRegistry


logger = logging.getLogger("site-engine.git")

DEFAULT_BRANCH = "main"
AUTH_REMOTE = "auth-origin"
RECENT_COMMIT_LIMIT = 10
FALLBACK_IDENTITY = {
    "GIT_AUTHOR_NAME": "Site Engine",
    "GIT_AUTHOR_EMAIL": "site-engine@localhost",
    "GIT_COMMITTER_NAME": "Site Engine",
    "GIT_COMMITTER_EMAIL": "site-engine@localhost",
}


@dataclass
class GitHandle:
    """Cached per-site view of a working copy and its credential-free remote."""

    site_id: str
    working_path: Path
    remote_url: str

    @property
    def has_repository(self) -> bool:
        return (self.working_path / ".git").exists()


class RepositorySynchronizer:
    """Owns clone/pull/commit/push for each site's working copy.

    Every public method holds the site's lock for its whole duration and
    returns a result object instead of raising.
    """

    def __init__(
        self,
        runner: CommandRunner,
        locks: SiteLockRegistry,
        *,
        default_host: str = "github.com",
        credential_mode: str = "header",
        dirty_tree_policy: str = "stash",
        git_timeout: float = 300.0,
    ) -> None:
        self.runner = runner
        self.locks = locks
        self.default_host = default_host
        self.credential_mode = credential_mode
        self.dirty_tree_policy = dirty_tree_policy
        self.git_timeout = git_timeout
        self._handles: Dict[str, GitHandle] = {}

    # ------------------------------------------------------------------
    # Handle cache
    # ------------------------------------------------------------------
    def handle_for(self, site: SiteConfig) -> GitHandle:
        remote_url = build_remote_url(site.github_repository_url, self.default_host)
        working_path = site.working_path
        handle = self._handles.get(site.id)
        if handle is None or handle.working_path != working_path or handle.remote_url != remote_url:
            if handle is not None:
                logger.info("Refreshing git handle for site=%s", site.id)
            handle = GitHandle(site_id=site.id, working_path=working_path, remote_url=remote_url)
            self._handles[site.id] = handle
        return handle

    def evict(self, site_id: str) -> None:
        if self._handles.pop(site_id, None) is not None:
            logger.info("Evicted git handle for site=%s", site_id)
        self.locks.discard(site_id)

    def evict_all(self) -> None:
        for site_id in list(self._handles):
            self.evict(site_id)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    async def initialize_repository(self, site: SiteConfig) -> GitOperationResult:
        async with self.locks.for_site(site.id):
            if not self.handle_for(site).has_repository:
                return await self.clone_repository(site)
            return await self.ensure_clean_and_pull(site)

    async def clone_repository(self, site: SiteConfig) -> GitOperationResult:
        async with self.locks.for_site(site.id):
            handle = self.handle_for(site)
            try:
                handle.working_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Cloning %s into %s", handle.remote_url, handle.working_path)
                await self._git(
                    site,
                    "clone",
                    "--branch",
                    DEFAULT_BRANCH,
                    self._network_target(site, handle.remote_url),
                    str(handle.working_path),
                    cwd=handle.working_path.parent,
                    network=True,
                )
                if self.credential_mode == "url":
                    await self._git(
                        site, "remote", "set-url", "origin", handle.remote_url, cwd=handle.working_path
                    )
            except (RepositoryError, OSError) as exc:
                return self._failure(site, "clone", exc)
            return GitOperationResult.ok(f"Cloned {handle.remote_url} into {handle.working_path}")

    async def ensure_clean_and_pull(self, site: SiteConfig) -> GitOperationResult:
        async with self.locks.for_site(site.id):
            handle = self.handle_for(site)
            try:
                self._require_repository(handle)
                cwd = handle.working_path
                stash_ref = await self._stash_local_changes(site, cwd)

                before = await self._rev_parse(site, cwd, "HEAD")
                await self._sync_remote(site, cwd, "origin", handle.remote_url)
                await self._git(
                    site,
                    "pull",
                    "--no-rebase",
                    "--no-edit",
                    self._network_target(site, "origin"),
                    DEFAULT_BRANCH,
                    cwd=cwd,
                    network=True,
                    env=await self._identity_env(site, cwd),
                )
                after = await self._rev_parse(site, cwd, "HEAD")
                changed = await self._changed_file_count(site, cwd, before, after)
            except (RepositoryError, OSError) as exc:
                return self._failure(site, "pull", exc)

            message = f"Pulled latest changes: {changed} files changed"
            if stash_ref:
                message += f"; local edits kept in {stash_ref} and not re-applied"
            return GitOperationResult.ok(message, hash=after)

    async def commit_and_push(
        self,
        site: SiteConfig,
        file_paths: Sequence[str],
        message: str,
        author: Optional[Author] = None,
    ) -> GitOperationResult:
        async with self.locks.for_site(site.id):
            handle = self.handle_for(site)
            paths = [path for path in file_paths if path]
            try:
                self._require_repository(handle)
                if not paths:
                    raise RepositoryError("no file paths given to commit")
                cwd = handle.working_path
                if author:
                    await self._git(site, "config", "user.name", author.name, cwd=cwd)
                    await self._git(site, "config", "user.email", author.email, cwd=cwd)

                for path in paths:
                    await self._git(site, "add", "--", path, cwd=cwd)
                await self._git(
                    site,
                    "commit",
                    "-m",
                    message,
                    "--",
                    *paths,
                    cwd=cwd,
                    env=await self._identity_env(site, cwd),
                )
                commit_hash = await self._rev_parse(site, cwd, "HEAD")
                committed = await self._git(
                    site, "show", "--name-only", "--pretty=format:", commit_hash, cwd=cwd
                )
                file_count = len([line for line in committed.stdout.splitlines() if line.strip()])

                await self._ensure_auth_remote(site, cwd, handle.remote_url)
                await self._git(
                    site,
                    "push",
                    self._network_target(site, AUTH_REMOTE),
                    f"HEAD:{DEFAULT_BRANCH}",
                    cwd=cwd,
                    network=True,
                )
            except (RepositoryError, OSError) as exc:
                return self._failure(site, "commit/push", exc)

            logger.info(
                "Committed and pushed site=%s commit=%s files=%d", site.id, commit_hash, file_count
            )
            return GitOperationResult.ok(
                f"Committed and pushed {file_count} file(s)", hash=commit_hash
            )

    async def get_repository_status(self, site: SiteConfig) -> RepositoryStatusResult:
        async with self.locks.for_site(site.id):
            handle = self.handle_for(site)
            try:
                self._require_repository(handle)
                cwd = handle.working_path
                status = await self._git(site, "status", "--porcelain=v1", "--branch", cwd=cwd)
                data = parse_porcelain_status(status.stdout)
                log = await self._git(
                    site,
                    "log",
                    f"-{RECENT_COMMIT_LIMIT}",
                    "--pretty=format:%H%x1f%s%x1f%aI%x1f%an",
                    cwd=cwd,
                    check=False,
                )
                if log.success:
                    data.recent_commits = parse_commit_log(log.stdout)
            except (RepositoryError, OSError) as exc:
                failure = self._failure(site, "status", exc)
                return RepositoryStatusResult(success=False, error=failure.error)
            return RepositoryStatusResult(success=True, data=data)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _stash_local_changes(self, site: SiteConfig, cwd: Path) -> Optional[str]:
        status = await self._git(site, "status", "--porcelain", cwd=cwd)
        if not status.stdout.strip():
            return None
        if self.dirty_tree_policy == "fail":
            raise RepositoryError(
                "working tree has uncommitted changes; commit or discard them before pulling"
            )
        await self._git(site, "add", "-A", cwd=cwd)
        label = f"Auto-stash before pull at {utc_now().isoformat()}"
        await self._git(
            site,
            "stash",
            "push",
            "-m",
            label,
            cwd=cwd,
            env=await self._identity_env(site, cwd),
        )
        stash_hash = await self._rev_parse(site, cwd, "stash@{0}")
        stash_ref = f"stash@{{0}} ({stash_hash[:12]})"
        logger.warning(
            "Uncommitted edits in site=%s were stashed as %s before pulling; they are not re-applied",
            site.id,
            stash_ref,
        )
        return stash_ref

    async def _ensure_auth_remote(self, site: SiteConfig, cwd: Path, remote_url: str) -> None:
        added = await self._git(site, "remote", "add", AUTH_REMOTE, remote_url, cwd=cwd, check=False)
        if added.success:
            return
        if "already exists" not in added.stderr:
            raise RepositoryError(self._describe(site, "remote", added))
        await self._sync_remote(site, cwd, AUTH_REMOTE, remote_url)

    async def _sync_remote(self, site: SiteConfig, cwd: Path, name: str, remote_url: str) -> None:
        current = await self._git(site, "remote", "get-url", name, cwd=cwd, check=False)
        if not current.success:
            await self._git(site, "remote", "add", name, remote_url, cwd=cwd)
        elif current.stdout.strip() != remote_url:
            await self._git(site, "remote", "set-url", name, remote_url, cwd=cwd)

    def _network_target(self, site: SiteConfig, remote: str) -> str:
        """Remote name or URL for a network call; url mode embeds the token here only."""
        if self.credential_mode == "url":
            return build_authenticated_url(
                site.github_repository_url, site.github_pat, self.default_host
            )
        return remote

    async def _identity_env(self, site: SiteConfig, cwd: Path) -> Dict[str, str]:
        configured = await self._git(site, "config", "user.email", cwd=cwd, check=False)
        if configured.success and configured.stdout.strip():
            return {}
        return dict(FALLBACK_IDENTITY)

    async def _rev_parse(self, site: SiteConfig, cwd: Path, ref: str) -> str:
        result = await self._git(site, "rev-parse", ref, cwd=cwd)
        return result.stdout.strip()

    async def _changed_file_count(self, site: SiteConfig, cwd: Path, before: str, after: str) -> int:
        if before == after:
            return 0
        diff = await self._git(site, "diff", "--name-only", before, after, cwd=cwd)
        return len([line for line in diff.stdout.splitlines() if line.strip()])

    @staticmethod
    def _require_repository(handle: GitHandle) -> None:
        if not handle.has_repository:
            raise RepositoryError(f"no git working copy at {handle.working_path}")

    async def _git(
        self,
        site: SiteConfig,
        *args: str,
        cwd: Path,
        network: bool = False,
        check: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandExecutionResult:
        child_env: Dict[str, str] = {"GIT_TERMINAL_PROMPT": "0"}
        if network and self.credential_mode == "header":
            child_env.update(
                credential_environment(site.github_repository_url, site.github_pat, self.default_host)
            )
        if env:
            child_env.update(env)
        result = await self.runner.run(["git", *args], cwd, self.git_timeout, env=child_env)
        if check and not result.success:
            raise RepositoryError(self._describe(site, args[0], result))
        return result

    @staticmethod
    def _describe(site: SiteConfig, subcommand: str, result: CommandExecutionResult) -> str:
        detail = result.stderr or result.stdout or f"return code {result.return_code}"
        return redact(
            f"git {subcommand} failed (exit {result.return_code}): {detail}", site.github_pat
        )

    @staticmethod
    def _failure(site: SiteConfig, operation: str, exc: Exception) -> GitOperationResult:
        error = redact(str(exc), site.github_pat) or f"{operation} failed"
        logger.warning("Git %s failed for site=%s: %s", operation, site.id, error)
        return GitOperationResult.failed(error)


def parse_porcelain_status(output: str) -> RepositoryStatus:
    """Parse ``git status --porcelain=v1 --branch`` output."""
    status = RepositoryStatus(is_clean=True)
    for line in output.splitlines():
        if line.startswith("## "):
            _parse_branch_line(line[3:], status)
            continue
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        if code == "??":
            status.untracked.append(path)
        elif "R" in code:
            status.renamed.append(path.split(" -> ", 1)[-1])
        elif "A" in code:
            status.created.append(path)
        elif "D" in code:
            status.deleted.append(path)
        else:
            status.modified.append(path)
        status.is_clean = False
    return status


def _parse_branch_line(header: str, status: RepositoryStatus) -> None:
    if header.startswith("No commits yet on "):
        status.branch = header[len("No commits yet on "):].strip()
        return
    branch_part, _, tracking = header.partition(" [")
    status.branch = branch_part.split("...", 1)[0].strip()
    for item in tracking.rstrip("]").split(","):
        item = item.strip()
        if item.startswith("ahead "):
            status.ahead = int(item[len("ahead "):])
        elif item.startswith("behind "):
            status.behind = int(item[len("behind "):])


def parse_commit_log(output: str) -> List[CommitSummary]:
    commits: List[CommitSummary] = []
    for line in output.splitlines():
        parts = (line.split("\x1f") + ["", "", "", ""])[:4]
        if not parts[0]:
            continue
        commits.append(
            CommitSummary(hash=parts[0], message=parts[1], date=parts[2], author=parts[3])
        )
    return commits
