from .auth_service import AuthService
from .command_runner import CommandRunner
from .content_commit import ContentCommitCoordinator
from .content_service import ContentService
from .deploy_service import DeployService
from .git_sync import RepositorySynchronizer
from .publishers import DirectoryPublisher, GitHubPagesPublisher, NullPublisher, build_publisher
from .site_catalog import SiteCatalog
from .site_locks import SiteLockRegistry
from .validation_service import ValidationService

__all__ = [
    "AuthService",
    "CommandRunner",
    "ContentCommitCoordinator",
    "ContentService",
    "DeployService",
    "RepositorySynchronizer",
    "DirectoryPublisher",
    "GitHubPagesPublisher",
    "NullPublisher",
    "build_publisher",
    "SiteCatalog",
    "SiteLockRegistry",
    "ValidationService",
]
