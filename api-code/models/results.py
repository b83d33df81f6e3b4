from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, computed_field


class CommandExecutionResult(BaseModel):
    command: List[str] = Field(default_factory=list)
    stdout: str = ""
    stderr: str = ""
    return_code: int
    execution_time_ms: int
    timed_out: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        return self.return_code == 0 and not self.timed_out


class GitOperationResult(BaseModel):
    success: bool
    hash: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, *, hash: Optional[str] = None) -> "GitOperationResult":
        return cls(success=True, message=message, hash=hash)

    @classmethod
    def failed(cls, error: str) -> "GitOperationResult":
        return cls(success=False, error=error)


class CommitSummary(BaseModel):
    hash: str
    message: str
    date: str
    author: str


class RepositoryStatus(BaseModel):
    is_clean: bool
    branch: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    modified: List[str] = Field(default_factory=list)
    created: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)
    renamed: List[str] = Field(default_factory=list)
    untracked: List[str] = Field(default_factory=list)
    recent_commits: List[CommitSummary] = Field(default_factory=list)


class RepositoryStatusResult(BaseModel):
    success: bool
    data: Optional[RepositoryStatus] = None
    error: Optional[str] = None


ValidationStatus = Literal["success", "error", "warning"]


class ValidationResult(BaseModel):
    has_validate_command: bool
    success: bool
    status: Optional[ValidationStatus] = None
    return_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    execution_time_ms: int = 0


class PublishResult(BaseModel):
    success: bool
    skipped: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    target: Optional[str] = None
    deploy_time_ms: int = 0


class ContentMutationResult(BaseModel):
    path: str
    operation: str
    committed: bool
    commit_hash: Optional[str] = None
    commit_message: Optional[str] = None
    commit_error: Optional[str] = None


class ContentFile(BaseModel):
    path: str = Field(..., description="Path relative to the working tree, forward slashes.")
    type: str = Field(..., description="Coarse kind derived from the extension.")
    size: int
    last_modified: datetime
