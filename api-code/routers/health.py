from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from services import DeployService, SiteCatalog


def build_health_router(catalog: SiteCatalog, deploy_service: DeployService) -> APIRouter:
    router = APIRouter()

    @router.get("/healthz")
    async def healthcheck() -> Dict[str, Any]:
        mongo_ok = await catalog.store.ping()
        active = deploy_service.registry.count_active()

        issues = []
        if not mongo_ok:
            issues.append("MongoDB ping failed; sites are served from memory.")

        return {
            "status": "healthy" if not issues else "degraded",
            "mongo": "ok" if mongo_ok else "unreachable",
            "active_deployments": active,
            "running_deployments": deploy_service.running_count,
            "issues": issues,
        }

    return router
