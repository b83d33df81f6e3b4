from __future__ import annotations

import logging
import sys
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


PROJECT_ROOT = Path(__file__).resolve().parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from db.mongo import close_mongo_client  # noqa: E402
from env_loader import load_local_env  # noqa: E402
from repositories import InMemorySiteStore, SiteStore, TaskRegistry  # noqa: E402
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
    RepositorySynchronizer,
    SiteCatalog,
    SiteLockRegistry,
    ValidationService,
    build_publisher,
)
from settings import get_settings  # noqa: E402


load_local_env()
settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("site-engine")

app = FastAPI(
    title="Site Engine API",
    version="0.1.0",
    description="Repository sync, content commits and deployments for git-hosted static sites.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

site_locks = SiteLockRegistry()
command_runner = CommandRunner(default_timeout=settings.build_timeout_seconds)
synchronizer = RepositorySynchronizer(
    command_runner,
    site_locks,
    default_host=settings.git_default_host,
    credential_mode=settings.git_credential_mode,
    dirty_tree_policy=settings.git_dirty_tree_policy,
    git_timeout=settings.git_timeout_seconds,
)
publisher = build_publisher(
    settings.deploy_publisher,
    runner=command_runner,
    publish_root=settings.publish_root,
    default_host=settings.git_default_host,
    credential_mode=settings.git_credential_mode,
    git_timeout=settings.git_timeout_seconds,
)
deploy_service = DeployService(
    TaskRegistry(log_limit=settings.task_log_limit),
    synchronizer,
    command_runner,
    publisher,
    site_locks,
    build_timeout=settings.build_timeout_seconds,
    max_concurrent=settings.max_concurrent_deployments,
    retention=timedelta(hours=settings.task_retention_hours),
    history_per_site=settings.task_history_per_site,
)
content_service = ContentService(ContentCommitCoordinator(synchronizer), site_locks)
validation_service = ValidationService(
    command_runner, site_locks, timeout=settings.validate_timeout_seconds
)
site_catalog = SiteCatalog(SiteStore(), synchronizer)
auth_service = AuthService(settings)
auth_dependency = auth_service.build_auth_dependency()

app.include_router(build_auth_router(auth_service))
app.include_router(build_sites_router(site_catalog, synchronizer, auth_dependency))
app.include_router(build_content_router(site_catalog, content_service, auth_dependency))
app.include_router(build_deploy_router(site_catalog, deploy_service, auth_dependency))
app.include_router(build_validation_router(site_catalog, validation_service, auth_dependency))
app.include_router(build_health_router(site_catalog, deploy_service))


@app.on_event("startup")
async def on_startup() -> None:
    try:
        await site_catalog.store.ensure_indexes()
        logger.info("MongoDB site store initialized successfully.")
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("MongoDB unavailable (%s); falling back to in-memory site store.", exc)
        site_catalog.store = InMemorySiteStore()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await deploy_service.shutdown()
    synchronizer.evict_all()
    close_mongo_client()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app_main:app", host="0.0.0.0", port=9001, reload=True)
