from __future__ import annotations

import re
import sys
import unittest
from datetime import timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from domain import DeployStatus, InvalidTransitionError, is_valid_transition, progress_for  # noqa: E402
from models import DeployLogEntry, DeployTaskUpdate, utc_now  # noqa: E402
from repositories import TaskRegistry  # noqa: E402
from repositories.task_registry import generate_task_id  # noqa: E402


class DeployStatesTest(unittest.TestCase):
    def test_progress_contract(self) -> None:
        self.assertEqual(
            [progress_for(status) for status in DeployStatus],
            [0, 20, 50, 80, 100, 100],
        )
        self.assertEqual(progress_for("unknown"), 0)

    def test_forward_steps_only(self) -> None:
        self.assertTrue(is_valid_transition(DeployStatus.PENDING, DeployStatus.PULLING))
        self.assertTrue(is_valid_transition(DeployStatus.DEPLOYING, DeployStatus.COMPLETED))
        self.assertFalse(is_valid_transition(DeployStatus.PENDING, DeployStatus.BUILDING))
        self.assertFalse(is_valid_transition(DeployStatus.BUILDING, DeployStatus.PULLING))
        self.assertFalse(is_valid_transition(DeployStatus.BUILDING, DeployStatus.COMPLETED))

    def test_failure_from_any_non_terminal_state(self) -> None:
        for status in (DeployStatus.PENDING, DeployStatus.PULLING, DeployStatus.BUILDING, DeployStatus.DEPLOYING):
            with self.subTest(status=status):
                self.assertTrue(is_valid_transition(status, DeployStatus.FAILED))
        self.assertFalse(is_valid_transition(DeployStatus.COMPLETED, DeployStatus.FAILED))
        self.assertFalse(is_valid_transition(DeployStatus.FAILED, DeployStatus.PULLING))


class TaskRegistryTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:  # noqa: N802
        self.registry = TaskRegistry(log_limit=10)

    async def test_task_id_format(self) -> None:
        self.assertRegex(generate_task_id(), re.compile(r"^deploy_\d+_[0-9a-f]{9}$"))

    async def test_create_starts_pending(self) -> None:
        task = await self.registry.create("docs", "alice")
        self.assertEqual(task.status, DeployStatus.PENDING)
        self.assertEqual(task.triggered_by, "alice")
        self.assertIsNone(task.started_at)
        self.assertIsNone(task.completed_at)
        self.assertEqual(task.logs, [])

    async def test_full_sequence_sets_timestamps(self) -> None:
        task = await self.registry.create("docs")
        await self.registry.update(
            task.task_id, DeployTaskUpdate(status=DeployStatus.PULLING, started_at=utc_now())
        )
        for status in (DeployStatus.BUILDING, DeployStatus.DEPLOYING, DeployStatus.COMPLETED):
            await self.registry.update(task.task_id, DeployTaskUpdate(status=status))

        stored = await self.registry.get(task.task_id)
        assert stored is not None
        self.assertEqual(stored.status, DeployStatus.COMPLETED)
        self.assertIsNotNone(stored.started_at)
        self.assertIsNotNone(stored.completed_at)
        self.assertLessEqual(stored.created_at, stored.started_at)
        self.assertLessEqual(stored.started_at, stored.completed_at)

    async def test_started_at_is_set_once(self) -> None:
        task = await self.registry.create("docs")
        first = utc_now()
        await self.registry.update(task.task_id, DeployTaskUpdate(status=DeployStatus.PULLING, started_at=first))
        await self.registry.update(
            task.task_id, DeployTaskUpdate(started_at=first + timedelta(seconds=5))
        )
        stored = await self.registry.get(task.task_id)
        assert stored is not None
        self.assertEqual(stored.started_at, first)

    async def test_invalid_transition_rejected(self) -> None:
        task = await self.registry.create("docs")
        with self.assertRaises(InvalidTransitionError):
            await self.registry.update(task.task_id, DeployTaskUpdate(status=DeployStatus.COMPLETED))
        await self.registry.update(task.task_id, DeployTaskUpdate(status=DeployStatus.FAILED, error="boom"))
        with self.assertRaises(InvalidTransitionError):
            await self.registry.update(task.task_id, DeployTaskUpdate(status=DeployStatus.PULLING))

    async def test_update_unknown_task_returns_none(self) -> None:
        self.assertIsNone(await self.registry.update("missing", DeployTaskUpdate(error="x")))

    async def test_readers_get_copies(self) -> None:
        task = await self.registry.create("docs")
        task.logs.append(DeployLogEntry(message="tampered"))
        stored = await self.registry.get(task.task_id)
        assert stored is not None
        self.assertEqual(stored.logs, [])

    async def test_logs_are_capped(self) -> None:
        task = await self.registry.create("docs")
        for index in range(12):
            await self.registry.update(
                task.task_id, DeployTaskUpdate(append_logs=[DeployLogEntry(message=f"line {index}")])
            )
        stored = await self.registry.get(task.task_id)
        assert stored is not None
        self.assertLessEqual(len(stored.logs), 10)
        self.assertEqual(stored.logs[-1].message, "line 11")

    async def test_find_active_and_count(self) -> None:
        first = await self.registry.create("docs")
        await self.registry.create("blog")
        self.assertEqual(self.registry.count_active(), 2)
        active = await self.registry.find_active("docs")
        assert active is not None
        self.assertEqual(active.task_id, first.task_id)

        await self.registry.update(first.task_id, DeployTaskUpdate(status=DeployStatus.FAILED))
        self.assertIsNone(await self.registry.find_active("docs"))
        self.assertEqual(self.registry.count_active(), 1)

    async def test_list_by_site(self) -> None:
        await self.registry.create("docs")
        await self.registry.create("docs")
        await self.registry.create("blog")
        self.assertEqual(len(await self.registry.list_tasks("docs")), 2)
        self.assertEqual(len(await self.registry.list_tasks()), 3)
        self.assertEqual(await self.registry.list_tasks("missing"), [])

    async def test_prune_drops_expired_finished_tasks(self) -> None:
        finished = await self.registry.create("docs")
        await self.registry.update(finished.task_id, DeployTaskUpdate(status=DeployStatus.FAILED))
        running = await self.registry.create("docs")

        evicted = await self.registry.prune(
            max_age=timedelta(hours=24), keep_per_site=50, now=utc_now() + timedelta(hours=25)
        )
        self.assertEqual(evicted, 1)
        self.assertIsNone(await self.registry.get(finished.task_id))
        self.assertIsNotNone(await self.registry.get(running.task_id))

    async def test_prune_keeps_newest_history_per_site(self) -> None:
        base = utc_now()
        ids = []
        for offset in range(3):
            task = await self.registry.create("docs")
            self.registry._tasks[task.task_id].created_at = base + timedelta(minutes=offset)
            await self.registry.update(task.task_id, DeployTaskUpdate(status=DeployStatus.FAILED))
            ids.append(task.task_id)

        evicted = await self.registry.prune(max_age=timedelta(hours=24), keep_per_site=1)
        self.assertEqual(evicted, 2)
        remaining = await self.registry.list_tasks("docs")
        self.assertEqual([task.task_id for task in remaining], [ids[-1]])


if __name__ == "__main__":
    unittest.main()
