from .deploy import DeployLogEntry, DeployTask, DeployTaskUpdate, utc_now
from .results import (
    CommandExecutionResult,
    CommitSummary,
    ContentFile,
    ContentMutationResult,
    GitOperationResult,
    PublishResult,
    RepositoryStatus,
    RepositoryStatusResult,
    ValidationResult,
)
from .site import Author, SiteConfig

__all__ = [
    "DeployLogEntry",
    "DeployTask",
    "DeployTaskUpdate",
    "utc_now",
    "CommandExecutionResult",
    "CommitSummary",
    "ContentFile",
    "ContentMutationResult",
    "GitOperationResult",
    "PublishResult",
    "RepositoryStatus",
    "RepositoryStatusResult",
    "ValidationResult",
    "Author",
    "SiteConfig",
]
