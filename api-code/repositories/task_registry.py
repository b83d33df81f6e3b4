from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import uuid4

from domain import DeployStatus, InvalidTransitionError, is_valid_transition
from models import DeployTask, DeployTaskUpdate, utc_now


logger = logging.getLogger("site-engine.tasks")


def generate_task_id() -> str:
    return f"deploy_{int(utc_now().timestamp() * 1000)}_{uuid4().hex[:9]}"


class TaskRegistry:
    """In-memory deploy task store indexed by task id and by site id.

    Tasks do not survive a process restart. ``update`` is the only mutation
    path; readers receive copies.
    """

    def __init__(self, *, log_limit: int = 1000) -> None:
        self.log_limit = max(2, log_limit)
        self._tasks: Dict[str, DeployTask] = {}
        self._by_site: Dict[str, List[str]] = defaultdict(list)

    async def create(self, site_id: str, triggered_by: Optional[str] = None) -> DeployTask:
        task = DeployTask(
            task_id=generate_task_id(),
            site_id=site_id,
            status=DeployStatus.PENDING,
            triggered_by=triggered_by,
        )
        self._tasks[task.task_id] = task
        self._by_site[site_id].append(task.task_id)
        return task.model_copy(deep=True)

    async def get(self, task_id: str) -> Optional[DeployTask]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def list_tasks(self, site_id: Optional[str] = None) -> List[DeployTask]:
        if site_id is None:
            tasks = list(self._tasks.values())
        else:
            tasks = [self._tasks[task_id] for task_id in self._by_site.get(site_id, [])]
        return [task.model_copy(deep=True) for task in tasks]

    async def find_active(self, site_id: str) -> Optional[DeployTask]:
        for task_id in self._by_site.get(site_id, []):
            task = self._tasks[task_id]
            if not task.is_terminal:
                return task.model_copy(deep=True)
        return None

    def count_active(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.is_terminal)

    async def update(self, task_id: str, update: DeployTaskUpdate) -> Optional[DeployTask]:
        task = self._tasks.get(task_id)
        if not task:
            return None

        if update.status is not None and update.status != task.status:
            if not is_valid_transition(task.status, update.status):
                raise InvalidTransitionError(
                    f"invalid status transition from {DeployStatus(task.status).value} "
                    f"to {update.status.value}"
                )
            task.status = update.status
            if update.status.is_terminal:
                task.completed_at = update.completed_at or utc_now()
        if update.started_at is not None and task.started_at is None:
            task.started_at = update.started_at
        if update.completed_at is not None and task.is_terminal:
            task.completed_at = update.completed_at
        if update.error is not None:
            task.error = update.error
        if update.append_logs:
            task.logs.extend(update.append_logs)
            if len(task.logs) > self.log_limit:
                task.logs = task.logs[-(self.log_limit // 2):]

        return task.model_copy(deep=True)

    async def prune(
        self,
        *,
        max_age: timedelta,
        keep_per_site: int,
        now: Optional[datetime] = None,
    ) -> int:
        """Evict finished tasks that are too old or beyond the per-site history size."""
        cutoff = (now or utc_now()) - max_age
        evicted: List[str] = []
        for site_id, task_ids in self._by_site.items():
            finished = [
                self._tasks[task_id] for task_id in task_ids if self._tasks[task_id].is_terminal
            ]
            finished.sort(key=lambda task: task.created_at, reverse=True)
            for index, task in enumerate(finished):
                expired = task.completed_at is not None and task.completed_at < cutoff
                if expired or index >= keep_per_site:
                    evicted.append(task.task_id)

        for task_id in evicted:
            task = self._tasks.pop(task_id)
            self._by_site[task.site_id].remove(task_id)
            if not self._by_site[task.site_id]:
                del self._by_site[task.site_id]
        if evicted:
            logger.info("Evicted %d finished deploy tasks", len(evicted))
        return len(evicted)
