from .auth import build_auth_router
from .content import build_content_router
from .deploy import build_deploy_router
from .health import build_health_router
from .sites import build_sites_router
from .validation import build_validation_router

__all__ = [
    "build_auth_router",
    "build_content_router",
    "build_deploy_router",
    "build_health_router",
    "build_sites_router",
    "build_validation_router",
]
