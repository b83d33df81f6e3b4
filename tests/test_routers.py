from __future__ import annotations

import shlex
import sys
import tempfile
import time
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parent.parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from repositories import InMemorySiteStore, TaskRegistry  # noqa: E402
from routers import (  # noqa: E402
    build_auth_router,
    build_content_router,
    build_deploy_router,
    build_health_router,
    build_sites_router,
    build_validation_router,
)
from services import (  # noqa: E402
    AuthService,
    CommandRunner,
    ContentCommitCoordinator,
    ContentService,
    DeployService,
    NullPublisher,
    RepositorySynchronizer,
    SiteCatalog,
    SiteLockRegistry,
    ValidationService,
)
from settings import Settings  # noqa: E402
from support import RemoteFixture  # noqa: E402


PYTHON = shlex.quote(sys.executable)
TOKEN = "pat-0123456789"


def build_app(settings: Settings) -> FastAPI:
    locks = SiteLockRegistry()
    runner = CommandRunner(default_timeout=60)
    synchronizer = RepositorySynchronizer(runner, locks)
    catalog = SiteCatalog(InMemorySiteStore(), synchronizer)
    deploy_service = DeployService(TaskRegistry(), synchronizer, runner, NullPublisher(), locks)
    content_service = ContentService(ContentCommitCoordinator(synchronizer), locks)
    validation_service = ValidationService(runner, locks, timeout=30)
    auth_service = AuthService(settings)
    auth_dependency = auth_service.build_auth_dependency()

    app = FastAPI()
    app.include_router(build_auth_router(auth_service))
    app.include_router(build_sites_router(catalog, synchronizer, auth_dependency))
    app.include_router(build_content_router(catalog, content_service, auth_dependency))
    app.include_router(build_deploy_router(catalog, deploy_service, auth_dependency))
    app.include_router(build_validation_router(catalog, validation_service, auth_dependency))
    app.include_router(build_health_router(catalog, deploy_service))

    @app.on_event("shutdown")
    async def stop_deployments() -> None:
        await deploy_service.shutdown()

    return app


class RouterTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.remote = RemoteFixture(Path(self._tmp.name))
        self.remote.peer_commit(
            {
                "docs/guide.md": "guide\n",
                "slow.py": "import time\ntime.sleep(2)\n",
                "check.py": "import sys\nprint('one warning')\nsys.exit(1)\n",
            },
            "Add docs and scripts",
        )
        settings = Settings.model_validate(
            {
                "LOGIN_USER": "operator",
                "LOGIN_PASSWORD": "hunter2",
                "LOGIN_DISPLAY_NAME": "Site Operator",
                "LOGIN_EMAIL": "operator@example.com",
                "JWT_SECRET_KEY": "test-secret",
            }
        )
        self.client = TestClient(build_app(settings))
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def _login(self) -> None:
        response = self.client.post(
            "/api/v1/auth/login", json={"username": "operator", "password": "hunter2"}
        )
        self.assertEqual(response.status_code, 200)

    def _put_site(self, site_id: str = "docs", **extra) -> dict:
        body = {
            "name": "Docs",
            "githubRepositoryUrl": str(self.remote.bare),
            "githubPat": TOKEN,
            "localPath": str(Path(self._tmp.name) / "work" / site_id),
            "editablePaths": ["docs"],
        }
        body.update(extra)
        response = self.client.put(f"/api/v1/sites/{site_id}", json=body)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def _wait_for_terminal(self, site_id: str, task_id: str) -> dict:
        for _ in range(400):
            payload = self.client.get(f"/api/v1/sites/{site_id}/deploy/{task_id}").json()
            if payload["status"] in ("completed", "failed"):
                return payload
            time.sleep(0.05)
        self.fail(f"task {task_id} did not finish")

    def test_requires_authentication(self) -> None:
        self.assertEqual(self.client.get("/api/v1/sites").status_code, 401)
        bad = self.client.post("/api/v1/auth/login", json={"username": "operator", "password": "nope"})
        self.assertEqual(bad.status_code, 401)

    def test_me_reports_commit_identity(self) -> None:
        self._login()
        me = self.client.get("/api/v1/auth/me").json()
        self.assertEqual(
            me,
            {"username": "operator", "display_name": "Site Operator", "email": "operator@example.com"},
        )
        self.client.post("/api/v1/auth/logout")
        self.assertEqual(self.client.get("/api/v1/auth/me").status_code, 401)

    def test_site_crud_never_echoes_token(self) -> None:
        self._login()
        created = self._put_site()
        self.assertTrue(created["has_token"])
        self.assertNotIn(TOKEN, str(created))

        updated = self._put_site(name="Renamed", githubPat=None)
        self.assertEqual(updated["name"], "Renamed")
        self.assertTrue(updated["has_token"])

        listed = self.client.get("/api/v1/sites").json()
        self.assertEqual([site["id"] for site in listed], ["docs"])
        self.assertNotIn(TOKEN, str(listed))

        self.assertEqual(self.client.delete("/api/v1/sites/docs").status_code, 204)
        self.assertEqual(self.client.get("/api/v1/sites/docs").status_code, 404)
        self.assertEqual(self.client.delete("/api/v1/sites/docs").status_code, 404)

    def test_repository_sync_and_status(self) -> None:
        self._login()
        self._put_site()
        synced = self.client.post("/api/v1/sites/docs/repository/sync").json()
        self.assertTrue(synced["success"], synced)

        status = self.client.get("/api/v1/sites/docs/repository").json()
        self.assertTrue(status["success"])
        self.assertTrue(status["data"]["is_clean"])
        self.assertEqual(status["data"]["recent_commits"][0]["message"], "Add docs and scripts")

    def test_file_lifecycle(self) -> None:
        self._login()
        self._put_site()
        self.client.post("/api/v1/sites/docs/repository/sync")

        listing = self.client.get("/api/v1/sites/docs/files").json()
        self.assertEqual([f["path"] for f in listing["files"]], ["docs/guide.md"])
        self.assertEqual(listing["files"][0]["type"], "markdown")

        read = self.client.get("/api/v1/sites/docs/files/docs/guide.md")
        self.assertEqual(read.json(), {"path": "docs/guide.md", "content": "guide\n"})

        updated = self.client.put(
            "/api/v1/sites/docs/files/docs/guide.md", json={"content": "better guide\n"}
        ).json()
        self.assertTrue(updated["committed"], updated)
        self.assertEqual(updated["commit_hash"], self.remote.remote_head())

        created = self.client.post(
            "/api/v1/sites/docs/files", json={"path": "docs/new.md", "content": "new\n"}
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["commit_message"], "Create docs/new.md")
        author = self.remote.remote_subjects()
        self.assertEqual(author[0], "Create docs/new.md")

        duplicate = self.client.post(
            "/api/v1/sites/docs/files", json={"path": "docs/new.md", "content": "again\n"}
        )
        self.assertEqual(duplicate.status_code, 409)

        deleted = self.client.delete("/api/v1/sites/docs/files/docs/new.md").json()
        self.assertTrue(deleted["committed"], deleted)

        self.assertEqual(
            self.client.put("/api/v1/sites/docs/files/slow.py", json={"content": "x"}).status_code,
            400,
        )
        self.assertEqual(self.client.get("/api/v1/sites/docs/files/docs/absent.md").status_code, 404)

    def test_deploy_lifecycle(self) -> None:
        self._login()
        self._put_site(buildCommand=f"{PYTHON} slow.py")

        accepted = self.client.post("/api/v1/sites/docs/deploy")
        self.assertEqual(accepted.status_code, 202)
        task_id = accepted.json()["task_id"]

        conflict = self.client.post("/api/v1/sites/docs/deploy")
        self.assertEqual(conflict.status_code, 409)

        finished = self._wait_for_terminal("docs", task_id)
        self.assertEqual(finished["status"], "completed", finished.get("error"))
        self.assertEqual(finished["progress"], 100)
        self.assertEqual(finished["triggered_by"], "operator")
        self.assertTrue(finished["logs"])

        page = self.client.get("/api/v1/sites/docs/deploy", params={"limit": 5}).json()
        self.assertEqual(page["total"], 1)
        self.assertEqual(page["items"][0]["task_id"], task_id)
        self.assertEqual(page["items"][0]["logs"], [])

        cancelled = self.client.post(f"/api/v1/sites/docs/deploy/{task_id}/cancel").json()
        self.assertFalse(cancelled["cancelled"])

        self.assertEqual(self.client.get("/api/v1/sites/docs/deploy/deploy_0_missing").status_code, 404)
        self.assertEqual(self.client.post("/api/v1/sites/ghost/deploy").status_code, 404)

    def test_deploy_task_of_other_site_is_hidden(self) -> None:
        self._login()
        self._put_site("docs")
        self._put_site("blog")
        task_id = self.client.post("/api/v1/sites/docs/deploy").json()["task_id"]
        self.assertEqual(self.client.get(f"/api/v1/sites/blog/deploy/{task_id}").status_code, 404)
        self._wait_for_terminal("docs", task_id)

    def test_validate(self) -> None:
        self._login()
        self._put_site(validateCommand=f"{PYTHON} check.py")
        self.client.post("/api/v1/sites/docs/repository/sync")

        result = self.client.post("/api/v1/sites/docs/validate").json()
        self.assertTrue(result["has_validate_command"])
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["return_code"], 1)
        self.assertEqual(result["stdout"], "one warning")

    def test_healthz(self) -> None:
        payload = self.client.get("/healthz").json()
        self.assertEqual(payload["mongo"], "unreachable")
        self.assertEqual(payload["status"], "degraded")
        self.assertEqual(payload["active_deployments"], 0)


if __name__ == "__main__":
    unittest.main()
