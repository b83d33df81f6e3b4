from __future__ import annotations

from typing import Callable, List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from domain import SiteNotFoundError
from models import GitOperationResult, RepositoryStatusResult, SiteConfig
from schemas import SiteResponse, SiteUpsertRequest
from services import RepositorySynchronizer, SiteCatalog


def build_site_dependency(catalog: SiteCatalog) -> Callable:
    async def dependency(site_id: str) -> SiteConfig:
        try:
            return await catalog.get(site_id)
        except SiteNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    return dependency


def build_sites_router(
    catalog: SiteCatalog,
    synchronizer: RepositorySynchronizer,
    auth_dependency: Callable,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1/sites", tags=["sites"])
    site_dependency = build_site_dependency(catalog)

    @router.get("", response_model=List[SiteResponse], summary="List configured sites.")
    async def list_sites(
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> List[SiteResponse]:
        return [SiteResponse.from_site(site) for site in await catalog.list_sites()]

    @router.get("/{site_id}", response_model=SiteResponse, summary="Show one site.")
    async def get_site(
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> SiteResponse:
        return SiteResponse.from_site(site)

    @router.put(
        "/{site_id}",
        response_model=SiteResponse,
        summary="Create or replace a site; the stored token is kept when none is sent.",
    )
    async def put_site(
        site_id: str,
        payload: SiteUpsertRequest,
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> SiteResponse:
        try:
            existing = await catalog.get(site_id)
        except SiteNotFoundError:
            existing = None
        saved = await catalog.save(payload.to_site(site_id, existing))
        return SiteResponse.from_site(saved)

    @router.delete(
        "/{site_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Remove a site. The working tree on disk is left untouched.",
    )
    async def delete_site(
        site_id: str,
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> Response:
        try:
            await catalog.delete(site_id)
        except SiteNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get(
        "/{site_id}/repository",
        response_model=RepositoryStatusResult,
        summary="Working tree status and the most recent commits.",
    )
    async def repository_status(
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> RepositoryStatusResult:
        return await synchronizer.get_repository_status(site)

    @router.post(
        "/{site_id}/repository/sync",
        response_model=GitOperationResult,
        summary="Clone the repository if missing, otherwise pull the latest main.",
    )
    async def sync_repository(
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> GitOperationResult:
        return await synchronizer.initialize_repository(site)

    return router
