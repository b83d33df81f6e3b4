from .deploy_states import (
    DEFAULT_STATUS_SEQUENCE,
    PROGRESS_BY_STATUS,
    DeployStatus,
    is_valid_transition,
    progress_for,
)
from .errors import (
    CommandExecutionError,
    ConfigurationError,
    ContentPathError,
    DeploymentInProgressError,
    InvalidTransitionError,
    RepositoryError,
    SiteNotFoundError,
    TaskNotFoundError,
)

__all__ = [
    "DEFAULT_STATUS_SEQUENCE",
    "PROGRESS_BY_STATUS",
    "DeployStatus",
    "is_valid_transition",
    "progress_for",
    "CommandExecutionError",
    "ConfigurationError",
    "ContentPathError",
    "DeploymentInProgressError",
    "InvalidTransitionError",
    "RepositoryError",
    "SiteNotFoundError",
    "TaskNotFoundError",
]
