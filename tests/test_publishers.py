from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from domain import ConfigurationError  # noqa: E402
from models import SiteConfig  # noqa: E402
from services import (  # noqa: E402
    CommandRunner,
    DirectoryPublisher,
    GitHubPagesPublisher,
    NullPublisher,
    build_publisher,
)
from support import RemoteFixture, git  # noqa: E402


class DirectoryPublisherTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:  # noqa: N802
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.work = self.root / "work"
        (self.work / "dist").mkdir(parents=True)
        self.publisher = DirectoryPublisher(self.root / "www")
        self.site = SiteConfig(
            id="docs",
            github_repository_url="acme/docs",
            local_path=str(self.work),
            build_output_dir="dist",
        )
        self.lines: list = []

    def _build(self, body: str) -> None:
        (self.work / "dist" / "index.html").write_text(body, encoding="utf-8")

    async def test_cutover_alternates_slots(self) -> None:
        green, blue, live = self.publisher.slot_paths("docs")

        self._build("v1")
        first = await self.publisher.publish(self.site, log=self.lines.append)
        self.assertTrue(first.success)
        self.assertEqual(Path(first.target or ""), green)
        self.assertEqual((live / "index.html").read_text(encoding="utf-8"), "v1")
        self.assertEqual(self.publisher.describe_slots("docs")["active_slot"], "green")

        self._build("v2")
        second = await self.publisher.publish(self.site, log=self.lines.append)
        self.assertEqual(Path(second.target or ""), blue)
        self.assertEqual((live / "index.html").read_text(encoding="utf-8"), "v2")
        self.assertEqual((green / "index.html").read_text(encoding="utf-8"), "v1")
        self.assertEqual(self.publisher.describe_slots("docs")["next_cutover_target"], "green")
        self.assertTrue(self.lines)

    async def test_skips_without_output_dir(self) -> None:
        site = self.site.model_copy(update={"build_output_dir": None})
        result = await self.publisher.publish(site, log=self.lines.append)
        self.assertTrue(result.success)
        self.assertTrue(result.skipped)

    async def test_missing_output_dir(self) -> None:
        site = self.site.model_copy(update={"build_output_dir": "public"})
        with self.assertRaises(ConfigurationError):
            await self.publisher.publish(site, log=self.lines.append)


class GitHubPagesPublisherTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:  # noqa: N802
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.remote = RemoteFixture(Path(self._tmp.name))
        self.work = Path(self._tmp.name) / "build"
        (self.work / "dist").mkdir(parents=True)
        (self.work / "dist" / "index.html").write_text("<p>pages</p>", encoding="utf-8")
        self.site = self.remote.make_site(local_path=str(self.work), build_output_dir="dist")
        self.publisher = GitHubPagesPublisher(CommandRunner(default_timeout=60))

    async def test_force_pushes_build_output(self) -> None:
        result = await self.publisher.publish(self.site, log=lambda line: None)
        self.assertTrue(result.success, result.error)
        self.assertEqual(git(self.remote.bare, "show", "gh-pages:index.html"), "<p>pages</p>")

        (self.work / "dist" / "index.html").write_text("<p>again</p>", encoding="utf-8")
        again = await self.publisher.publish(self.site, log=lambda line: None)
        self.assertTrue(again.success, again.error)
        self.assertEqual(git(self.remote.bare, "rev-list", "--count", "gh-pages"), "1")
        self.assertEqual(git(self.remote.bare, "show", "gh-pages:index.html"), "<p>again</p>")


class BuildPublisherTest(unittest.TestCase):
    def test_kinds(self) -> None:
        runner = CommandRunner()
        self.assertIsInstance(build_publisher("none", runner=runner, publish_root="/tmp/x"), NullPublisher)
        self.assertIsInstance(
            build_publisher("gh-pages", runner=runner, publish_root="/tmp/x"), GitHubPagesPublisher
        )
        self.assertIsInstance(
            build_publisher("directory", runner=runner, publish_root="/tmp/x"), DirectoryPublisher
        )


if __name__ == "__main__":
    unittest.main()
