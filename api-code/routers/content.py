from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status

from domain import ContentPathError
from models import Author, ContentMutationResult, SiteConfig
from schemas import FileCreateRequest, FileListResponse, FileReadResponse, FileWriteRequest
from services import ContentService, SiteCatalog

from .sites import build_site_dependency


T = TypeVar("T")


async def _guard(call: Awaitable[T]) -> T:
    try:
        return await call
    except ContentPathError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"file not found: {exc}") from exc
    except FileExistsError as exc:
        raise HTTPException(status_code=409, detail=f"file already exists: {exc}") from exc


def build_content_router(
    catalog: SiteCatalog,
    content_service: ContentService,
    auth_dependency: Callable,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1/sites/{site_id}/files", tags=["content"])
    site_dependency = build_site_dependency(catalog)

    @router.get("", response_model=FileListResponse, summary="List files under the editable paths.")
    async def list_files(
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> FileListResponse:
        return FileListResponse(files=await content_service.list_files(site))

    @router.get("/{path:path}", response_model=FileReadResponse, summary="Read a text file.")
    async def read_file(
        path: str,
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> FileReadResponse:
        content = await _guard(content_service.read_file(site, path))
        return FileReadResponse(path=path, content=content)

    @router.put(
        "/{path:path}",
        response_model=ContentMutationResult,
        summary="Overwrite a file, then commit and push it.",
    )
    async def update_file(
        path: str,
        payload: FileWriteRequest,
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> ContentMutationResult:
        return await _guard(
            content_service.write_file(
                site, path, payload.content, message=payload.message, author=Author.from_user(user)
            )
        )

    @router.post(
        "",
        response_model=ContentMutationResult,
        status_code=status.HTTP_201_CREATED,
        summary="Create a new file, then commit and push it.",
    )
    async def create_file(
        payload: FileCreateRequest,
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> ContentMutationResult:
        return await _guard(
            content_service.write_file(
                site,
                payload.path,
                payload.content,
                create=True,
                message=payload.message,
                author=Author.from_user(user),
            )
        )

    @router.delete(
        "/{path:path}",
        response_model=ContentMutationResult,
        summary="Delete a file, then commit and push the removal.",
    )
    async def delete_file(
        path: str,
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> ContentMutationResult:
        return await _guard(
            content_service.delete_file(site, path, author=Author.from_user(user))
        )

    return router
