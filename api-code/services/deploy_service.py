from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from domain import (
    CommandExecutionError,
    ConfigurationError,
    DeploymentInProgressError,
    DeployStatus,
    RepositoryError,
    TaskNotFoundError,
)
from models import DeployLogEntry, DeployTask, DeployTaskUpdate, SiteConfig, utc_now
from models.deploy import LogLevel, LogSource
from repositories import TaskRegistry
from schemas import DeployTaskResponse

from .command_runner import CommandRunner
from .credentials import redact
from .git_sync import RepositorySynchronizer
from .publishers import Publisher
from .site_locks import SiteLockRegistry


logger = logging.getLogger("site-engine.deploy")

PHASE_SOURCES: Dict[DeployStatus, LogSource] = {
    DeployStatus.PENDING: "deploy",
    DeployStatus.PULLING: "git",
    DeployStatus.BUILDING: "build",
    DeployStatus.DEPLOYING: "deploy",
}

PHASE_MESSAGES: Dict[DeployStatus, str] = {
    DeployStatus.PULLING: "Pulling latest changes",
    DeployStatus.BUILDING: "Starting build",
    DeployStatus.DEPLOYING: "Publishing build output",
}

OUTPUT_TAIL_LINES = 200
OUTPUT_TAIL_CHARS = 4000
EXPECTED_FAILURES = (RepositoryError, CommandExecutionError, ConfigurationError)


class PublishError(RuntimeError):
    """Raised when the publisher reports a failed deploying phase."""


class DeployService:
    """Drives deploy tasks through pull -> build -> deploy on a site's working tree.

    Each task runs as a supervised asyncio task while holding the site's lock,
    so content commits for the same site wait for it to finish.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        synchronizer: RepositorySynchronizer,
        runner: CommandRunner,
        publisher: Publisher,
        locks: SiteLockRegistry,
        *,
        build_timeout: float = 1800.0,
        max_concurrent: int = 4,
        retention: timedelta = timedelta(hours=24),
        history_per_site: int = 50,
    ) -> None:
        self.registry = registry
        self.synchronizer = synchronizer
        self.runner = runner
        self.publisher = publisher
        self.locks = locks
        self.build_timeout = build_timeout
        self.retention = retention
        self.history_per_site = history_per_site
        self._slots = asyncio.Semaphore(max(1, max_concurrent))
        self._trigger_lock = asyncio.Lock()
        self._running: Dict[str, asyncio.Task[None]] = {}
        self._sites: Dict[str, SiteConfig] = {}
        logger.info(
            "DeployService initialized (build_timeout=%ss, max_concurrent=%s, publisher=%s)",
            build_timeout,
            max_concurrent,
            type(publisher).__name__,
        )

    # ------------------------------------------------------------------
    # Triggering and supervision
    # ------------------------------------------------------------------
    async def create_deployment_task(
        self, site: SiteConfig, triggered_by: Optional[str] = None
    ) -> DeployTask:
        """Register a task and start it in the background; returns immediately."""
        async with self._trigger_lock:
            active = await self.registry.find_active(site.id)
            if active is not None:
                raise DeploymentInProgressError(site.id, active.task_id)
            await self.registry.prune(max_age=self.retention, keep_per_site=self.history_per_site)

            task = await self.registry.create(site.id, triggered_by)
            suffix = f" (triggered by {triggered_by})" if triggered_by else ""
            await self._append(task.task_id, site, f"Deployment task created{suffix}")
            self._sites[task.task_id] = site
            self._running[task.task_id] = asyncio.create_task(
                self._supervise(task.task_id, site), name=f"deploy-{task.task_id}"
            )
        logger.info("Queued deploy task=%s site=%s", task.task_id, site.id)
        return await self.get_task(task.task_id)

    async def trigger_deployment(self, site: SiteConfig, triggered_by: Optional[str] = None) -> str:
        task = await self.create_deployment_task(site, triggered_by)
        return task.task_id

    async def _supervise(self, task_id: str, site: SiteConfig) -> None:
        try:
            async with self._slots:
                await self.run_pipeline(task_id, site)
        except asyncio.CancelledError:
            logger.warning("Deploy task=%s cancelled", task_id)
            await self._fail(task_id, site, "Deployment cancelled", source="deploy", level="warn")
            raise
        finally:
            self._running.pop(task_id, None)
            self._sites.pop(task_id, None)

    async def cancel_task(self, task_id: str) -> bool:
        runner = self._running.get(task_id)
        if runner is None or runner.done():
            return False
        site = self._sites.get(task_id)
        runner.cancel()
        await asyncio.wait({runner})
        await self._finalize_interrupted(task_id, site, "Deployment cancelled")
        return True

    async def wait_for(self, task_id: str, timeout: Optional[float] = None) -> DeployTask:
        runner = self._running.get(task_id)
        if runner is not None:
            await asyncio.wait({runner}, timeout=timeout)
        return await self.get_task(task_id)

    async def shutdown(self) -> None:
        pending = [(task_id, runner, self._sites.get(task_id)) for task_id, runner in self._running.items()]
        for _, runner, _ in pending:
            runner.cancel()
        if pending:
            await asyncio.gather(*(runner for _, runner, _ in pending), return_exceptions=True)
        for task_id, _, site in pending:
            await self._finalize_interrupted(task_id, site, "Deployment interrupted by shutdown")

    async def _finalize_interrupted(
        self, task_id: str, site: Optional[SiteConfig], message: str
    ) -> None:
        # A runner cancelled before its first step never reaches its own handler.
        self._running.pop(task_id, None)
        self._sites.pop(task_id, None)
        if site is not None:
            await self._fail(task_id, site, message, source="deploy", level="warn")

    @property
    def running_count(self) -> int:
        return len(self._running)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def run_pipeline(self, task_id: str, site: SiteConfig) -> None:
        async with self.locks.for_site(site.id):
            logger.info("Starting deploy pipeline task=%s site=%s", task_id, site.id)
            phase = DeployStatus.PENDING
            try:
                phase = DeployStatus.PULLING
                await self._advance(task_id, site, phase)
                pull = await self.synchronizer.initialize_repository(site)
                if not pull.success:
                    raise RepositoryError(f"Pull failed: {pull.error}")
                await self._append(task_id, site, pull.message or "Repository is up to date", source="git")

                phase = DeployStatus.BUILDING
                await self._advance(task_id, site, phase)
                await self._run_build_stage(task_id, site)

                phase = DeployStatus.DEPLOYING
                await self._advance(task_id, site, phase)
                await self._run_publish_stage(task_id, site)

                await self.registry.update(
                    task_id,
                    DeployTaskUpdate(
                        status=DeployStatus.COMPLETED,
                        completed_at=utc_now(),
                        append_logs=[self._entry(site, "Deployment completed")],
                    ),
                )
                logger.info("Deploy pipeline succeeded task=%s", task_id)
            except EXPECTED_FAILURES + (PublishError,) as exc:
                logger.warning(
                    "Deploy pipeline failed task=%s phase=%s error=%s",
                    task_id,
                    phase.value,
                    redact(str(exc), site.github_pat),
                )
                await self._fail(task_id, site, exc, source=PHASE_SOURCES.get(phase, "deploy"))
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Deploy pipeline crashed task=%s phase=%s", task_id, phase.value)
                await self._fail(task_id, site, exc, source=PHASE_SOURCES.get(phase, "deploy"))

    async def _run_build_stage(self, task_id: str, site: SiteConfig) -> None:
        command = (site.build_command or "").strip()
        if not command:
            await self._append(task_id, site, "No build command configured; skipping build", source="build")
            return

        await self._append(task_id, site, f"Running build command: {command}", source="build")
        result = await self.runner.run(command, site.working_path, self.build_timeout)
        if not result.success:
            raise CommandExecutionError(
                result.command,
                site.working_path,
                result.return_code,
                result.stdout,
                result.stderr,
                timed_out=result.timed_out,
            )

        entries = self._output_entries(site, result.stdout, result.stderr)
        entries.append(self._entry(site, f"Build succeeded in {result.execution_time_ms}ms", source="build"))
        await self.registry.update(task_id, DeployTaskUpdate(append_logs=entries))

    async def _run_publish_stage(self, task_id: str, site: SiteConfig) -> None:
        lines: List[str] = []
        try:
            result = await self.publisher.publish(site, log=lines.append)
        finally:
            if lines:
                await self.registry.update(
                    task_id,
                    DeployTaskUpdate(append_logs=[self._entry(site, line) for line in lines]),
                )
        if not result.success:
            raise PublishError(f"Publish failed: {result.error or 'unknown error'}")
        if not result.skipped:
            await self._append(
                task_id, site, f"{result.message or 'Published'} in {result.deploy_time_ms}ms"
            )

    # ------------------------------------------------------------------
    # Task updates
    # ------------------------------------------------------------------
    async def _advance(self, task_id: str, site: SiteConfig, status: DeployStatus) -> None:
        await self.registry.update(
            task_id,
            DeployTaskUpdate(
                status=status,
                started_at=utc_now() if status == DeployStatus.PULLING else None,
                append_logs=[self._entry(site, PHASE_MESSAGES[status], source=PHASE_SOURCES[status])],
            ),
        )

    async def _append(
        self,
        task_id: str,
        site: SiteConfig,
        message: str,
        *,
        level: LogLevel = "info",
        source: LogSource = "deploy",
    ) -> None:
        await self.registry.update(
            task_id,
            DeployTaskUpdate(append_logs=[self._entry(site, message, level=level, source=source)]),
        )

    async def _fail(
        self,
        task_id: str,
        site: SiteConfig,
        error: Exception | str,
        *,
        source: LogSource,
        level: LogLevel = "error",
    ) -> None:
        task = await self.registry.get(task_id)
        if task is None or task.is_terminal:
            return
        message = redact(str(error), site.github_pat)
        entries: List[DeployLogEntry] = []
        if isinstance(error, CommandExecutionError):
            summary = f"Build failed with exit code {error.returncode}"
            if error.timed_out:
                summary = f"Build timed out after {self.build_timeout:.0f}s (exit code {error.returncode})"
            entries.append(self._entry(site, summary, level="error", source=source))
            entries.extend(
                self._output_entries(site, error.stdout, error.stderr, stderr_level="error")
            )
        entries.append(self._entry(site, message, level=level, source=source))
        await self.registry.update(
            task_id,
            DeployTaskUpdate(
                status=DeployStatus.FAILED,
                completed_at=utc_now(),
                error=message,
                append_logs=entries,
            ),
        )

    @staticmethod
    def _entry(
        site: SiteConfig,
        message: str,
        *,
        level: LogLevel = "info",
        source: LogSource = "deploy",
    ) -> DeployLogEntry:
        return DeployLogEntry(level=level, source=source, message=redact(message, site.github_pat))

    def _output_entries(
        self,
        site: SiteConfig,
        stdout: str,
        stderr: str,
        *,
        stderr_level: LogLevel = "warn",
    ) -> List[DeployLogEntry]:
        entries: List[DeployLogEntry] = []
        for text, level, label in ((stdout, "info", "stdout"), (stderr, stderr_level, "stderr")):
            tail = (text or "")[-OUTPUT_TAIL_CHARS:]
            lines = [line for line in tail.splitlines() if line.strip()][-OUTPUT_TAIL_LINES:]
            for line in lines:
                entries.append(self._entry(site, f"[{label}] {line}", level=level, source="build"))  # type: ignore[arg-type]
        return entries

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_task(self, task_id: str) -> DeployTask:
        task = await self.registry.get(task_id)
        if not task:
            raise TaskNotFoundError(task_id)
        return task

    async def get_task_status(self, task_id: str) -> DeployTaskResponse:
        return DeployTaskResponse.from_task(await self.get_task(task_id))

    async def list_tasks(self, site_id: Optional[str] = None) -> List[DeployTask]:
        tasks = await self.registry.list_tasks(site_id)
        tasks.sort(key=lambda task: task.created_at, reverse=True)
        return tasks

    async def list_active_tasks(self, site_id: Optional[str] = None) -> List[DeployTask]:
        return [task for task in await self.list_tasks(site_id) if not task.is_terminal]
