from .auth import LoginRequest, LoginResponse, LogoutResponse, MeResponse
from .content import FileCreateRequest, FileListResponse, FileReadResponse, FileWriteRequest
from .deploy import (
    DeployCancelResponse,
    DeployTaskPage,
    DeployTaskResponse,
    DeployTriggerResponse,
)
from .sites import SiteResponse, SiteUpsertRequest

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "MeResponse",
    "FileCreateRequest",
    "FileListResponse",
    "FileReadResponse",
    "FileWriteRequest",
    "DeployCancelResponse",
    "DeployTaskPage",
    "DeployTaskResponse",
    "DeployTriggerResponse",
    "SiteResponse",
    "SiteUpsertRequest",
]
