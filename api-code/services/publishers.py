from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from domain import ConfigurationError
from models import PublishResult, SiteConfig, utc_now

from .command_runner import CommandRunner
from .credentials import (
    build_authenticated_url,
    build_remote_url,
    credential_environment,
    redact,
)


logger = logging.getLogger("site-engine.publish")

LogCallback = Callable[[str], None]
PAGES_BRANCH = "gh-pages"
PAGES_AUTHOR = {
    "GIT_AUTHOR_NAME": "Site Engine",
    "GIT_AUTHOR_EMAIL": "site-engine@localhost",
    "GIT_COMMITTER_NAME": "Site Engine",
    "GIT_COMMITTER_EMAIL": "site-engine@localhost",
}


class Publisher(Protocol):
    async def publish(self, site: SiteConfig, *, log: LogCallback) -> PublishResult:
        ...


def resolve_build_output(site: SiteConfig) -> Optional[Path]:
    subdir = (site.build_output_dir or "").strip()
    if not subdir:
        return None
    candidate = Path(subdir)
    if candidate.is_absolute():
        return candidate
    return (site.working_path / candidate).resolve()


class NullPublisher:
    """Used when publishing is switched off; the deploying phase only records that."""

    async def publish(self, site: SiteConfig, *, log: LogCallback) -> PublishResult:
        log("Publishing is disabled; build output left in place")
        return PublishResult(success=True, skipped=True, message="publishing disabled")


class DirectoryPublisher:
    """Blue/green cutover of the build output into per-site slots behind a symlink."""

    def __init__(self, publish_root: Path | str) -> None:
        self.publish_root = Path(publish_root)

    def slot_paths(self, site_id: str) -> tuple[Path, Path, Path]:
        base = self.publish_root / site_id
        return base / "green", base / "blue", base / "current"

    async def publish(self, site: SiteConfig, *, log: LogCallback) -> PublishResult:
        started = time.monotonic()
        build_dir = resolve_build_output(site)
        if build_dir is None:
            log("No build output directory configured; skipping publish")
            return PublishResult(
                success=True,
                skipped=True,
                message="No build output directory configured; skipping publish",
            )
        if not build_dir.is_dir():
            raise ConfigurationError(f"build output directory missing: {site.build_output_dir}")

        green, blue, live_symlink = self.slot_paths(site.id)
        current_target = self._resolve_live_target(live_symlink)
        next_target = self._select_next_target(current_target, green, blue)
        log(f"Publishing {build_dir.name} to {next_target.name} slot")
        await asyncio.to_thread(self._cutover, build_dir, next_target, live_symlink)

        return PublishResult(
            success=True,
            message=f"Switched {live_symlink} to {next_target.name}",
            target=str(next_target),
            deploy_time_ms=int((time.monotonic() - started) * 1000),
        )

    @staticmethod
    def _cutover(build_dir: Path, next_target: Path, live_symlink: Path) -> None:
        next_target.parent.mkdir(parents=True, exist_ok=True)
        if next_target.exists():
            shutil.rmtree(next_target)
        shutil.copytree(build_dir, next_target)

        staged_link = live_symlink.with_name(f".{live_symlink.name}.next")
        if staged_link.exists() or staged_link.is_symlink():
            staged_link.unlink()
        staged_link.symlink_to(next_target, target_is_directory=True)
        os.replace(staged_link, live_symlink)

    @staticmethod
    def _normalize_path(path: Path) -> Path:
        return path.resolve(strict=False)

    def _resolve_live_target(self, symlink: Path) -> Optional[Path]:
        if not symlink.is_symlink():
            return None
        target = Path(os.readlink(symlink))
        if not target.is_absolute():
            target = symlink.parent / target
        return self._normalize_path(target)

    def _select_next_target(self, current: Optional[Path], green: Path, blue: Path) -> Path:
        if current is None:
            return green
        if current == self._normalize_path(green):
            return blue
        return green

    def describe_slots(self, site_id: str) -> dict:
        green, blue, live_symlink = self.slot_paths(site_id)
        current = self._resolve_live_target(live_symlink)
        if current is None:
            active = "none"
        elif current == self._normalize_path(green):
            active = "green"
        elif current == self._normalize_path(blue):
            active = "blue"
        else:
            active = "unknown"
        return {
            "active_slot": active,
            "next_cutover_target": self._select_next_target(current, green, blue).name,
        }


class GitHubPagesPublisher:
    """Force-pushes the build output as a single commit to the site's gh-pages branch."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        default_host: str = "github.com",
        credential_mode: str = "header",
        timeout: float = 300.0,
    ) -> None:
        self.runner = runner
        self.default_host = default_host
        self.credential_mode = credential_mode
        self.timeout = timeout

    async def publish(self, site: SiteConfig, *, log: LogCallback) -> PublishResult:
        started = time.monotonic()
        build_dir = resolve_build_output(site) or (site.working_path / "dist")
        if not build_dir.is_dir():
            raise ConfigurationError(f"build output directory missing: {build_dir.name}")

        if self.credential_mode == "url":
            target = build_authenticated_url(
                site.github_repository_url, site.github_pat, self.default_host
            )
        else:
            target = build_remote_url(site.github_repository_url, self.default_host)
        env = {
            **PAGES_AUTHOR,
            **credential_environment(site.github_repository_url, site.github_pat, self.default_host),
        }

        log(f"Publishing {build_dir.name} to {PAGES_BRANCH}")
        with tempfile.TemporaryDirectory(prefix="site-engine-pages-") as scratch:
            scratch_path = Path(scratch)
            await asyncio.to_thread(
                shutil.copytree, build_dir, scratch_path / "site", dirs_exist_ok=True
            )
            work = scratch_path / "site"
            steps = [
                ["git", "init", "--quiet"],
                ["git", "symbolic-ref", "HEAD", f"refs/heads/{PAGES_BRANCH}"],
                ["git", "add", "-A"],
                ["git", "commit", "--quiet", "--allow-empty", "-m", f"Deploy at {utc_now().isoformat()}"],
                ["git", "push", "--force", target, f"HEAD:{PAGES_BRANCH}"],
            ]
            for argv in steps:
                result = await self.runner.run(argv, work, self.timeout, env=env)
                if not result.success:
                    detail = result.stderr or result.stdout or f"exit code {result.return_code}"
                    error = redact(f"git {argv[1]} failed: {detail}", site.github_pat)
                    return PublishResult(success=False, error=error)

        return PublishResult(
            success=True,
            message=f"Published to {PAGES_BRANCH}",
            target=PAGES_BRANCH,
            deploy_time_ms=int((time.monotonic() - started) * 1000),
        )


def build_publisher(
    kind: str,
    *,
    runner: CommandRunner,
    publish_root: str,
    default_host: str = "github.com",
    credential_mode: str = "header",
    git_timeout: float = 300.0,
) -> Publisher:
    if kind == "none":
        return NullPublisher()
    if kind == "gh-pages":
        return GitHubPagesPublisher(
            runner,
            default_host=default_host,
            credential_mode=credential_mode,
            timeout=git_timeout,
        )
    return DirectoryPublisher(publish_root)
