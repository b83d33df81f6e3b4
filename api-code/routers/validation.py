from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends

from models import SiteConfig, ValidationResult
from services import SiteCatalog, ValidationService

from .sites import build_site_dependency


def build_validation_router(
    catalog: SiteCatalog,
    validation_service: ValidationService,
    auth_dependency: Callable,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1/sites/{site_id}", tags=["validate"])
    site_dependency = build_site_dependency(catalog)

    @router.post(
        "/validate",
        response_model=ValidationResult,
        summary="Run the site's validate command (0 success, 1 error, anything else warning).",
    )
    async def validate(
        site: SiteConfig = Depends(site_dependency),
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> ValidationResult:
        return await validation_service.execute_validation(site)

    return router
