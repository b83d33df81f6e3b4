from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, status

from domain import DeploymentInProgressError, TaskNotFoundError
from models import DeployTask, SiteConfig
from schemas import (
    DeployCancelResponse,
    DeployTaskPage,
    DeployTaskResponse,
    DeployTriggerResponse,
)
from services import DeployService, SiteCatalog

from .sites import build_site_dependency


def build_deploy_router(
    catalog: SiteCatalog,
    deploy_service: DeployService,
    auth_dependency: Callable,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1/sites/{site_id}/deploy", tags=["deploy"])
    site_dependency = build_site_dependency(catalog)

    async def load_task(site: SiteConfig, task_id: str) -> DeployTask:
        try:
            task = await deploy_service.get_task(task_id)
        except TaskNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        if task.site_id != site.id:
            raise HTTPException(status_code=404, detail=f"deploy task not found: {task_id}")
        return task

    @router.post(
        "",
        response_model=DeployTriggerResponse,
        status_code=status.HTTP_202_ACCEPTED,
        summary="Pull, build and publish the site in the background.",
    )
    async def trigger_deploy(
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeployTriggerResponse:
        try:
            task = await deploy_service.create_deployment_task(site, triggered_by=user.get("username"))
        except DeploymentInProgressError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return DeployTriggerResponse(
            task_id=task.task_id,
            site_id=task.site_id,
            status=task.status,
            created_at=task.created_at,
        )

    @router.get(
        "",
        response_model=DeployTaskPage,
        summary="List deploy tasks of the site, newest first.",
    )
    async def list_tasks(
        limit: int = Query(default=20, ge=1, le=100),
        offset: int = Query(default=0, ge=0),
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeployTaskPage:
        tasks = await deploy_service.list_tasks(site.id)
        page = tasks[offset : offset + limit]
        return DeployTaskPage(
            items=[DeployTaskResponse.from_task(task, include_logs=False) for task in page],
            total=len(tasks),
            limit=limit,
            offset=offset,
        )

    @router.get(
        "/{task_id}",
        response_model=DeployTaskResponse,
        summary="Get current deployment state with its log.",
    )
    async def get_status(
        task_id: str,
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeployTaskResponse:
        try:
            response = await deploy_service.get_task_status(task_id)
        except TaskNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        if response.site_id != site.id:
            raise HTTPException(status_code=404, detail=f"deploy task not found: {task_id}")
        return response

    @router.post(
        "/{task_id}/cancel",
        response_model=DeployCancelResponse,
        summary="Cancel a running deployment; the task ends as failed.",
    )
    async def cancel(
        task_id: str,
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeployCancelResponse:
        await load_task(site, task_id)
        cancelled = await deploy_service.cancel_task(task_id)
        return DeployCancelResponse(task_id=task_id, cancelled=cancelled)

    return router
