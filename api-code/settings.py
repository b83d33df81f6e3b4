from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Runtime configuration resolved from environment variables."""

    mongodb_uri: str = Field(
        default="mongodb://127.0.0.1:27017",
        alias="MONGODB_URI",
        description="MongoDB connection string for the site store.",
    )
    mongodb_db_name: str = Field(
        default="site_engine",
        alias="MONGODB_DB_NAME",
        description="MongoDB database name",
    )
    git_default_host: str = Field(
        default="github.com",
        alias="GIT_DEFAULT_HOST",
        description="Host assumed for owner/repo shorthand repository references.",
    )
    git_credential_mode: Literal["header", "url"] = Field(
        default="header",
        alias="GIT_CREDENTIAL_MODE",
        description=(
            "header: pass the token through an environment-injected http.extraHeader. "
            "url: embed the token in the URL of each network git call."
        ),
    )
    git_dirty_tree_policy: Literal["stash", "fail"] = Field(
        default="stash",
        alias="GIT_DIRTY_TREE_POLICY",
        description="What to do with uncommitted edits before a pull.",
    )
    git_timeout_seconds: float = Field(
        default=300,
        alias="GIT_TIMEOUT_SECONDS",
        description="Upper bound for a single git invocation.",
    )
    build_timeout_seconds: float = Field(
        default=1800,
        alias="BUILD_TIMEOUT_SECONDS",
        description="Upper bound for a site build command.",
    )
    validate_timeout_seconds: float = Field(
        default=300,
        alias="VALIDATE_TIMEOUT_SECONDS",
        description="Upper bound for a site validate command.",
    )
    max_concurrent_deployments: int = Field(
        default=4,
        alias="MAX_CONCURRENT_DEPLOYMENTS",
        description="Deployments allowed to run at once across all sites.",
    )
    task_retention_hours: float = Field(
        default=24,
        alias="TASK_RETENTION_HOURS",
        description="Finished deploy tasks older than this are evicted.",
    )
    task_history_per_site: int = Field(
        default=50,
        alias="TASK_HISTORY_PER_SITE",
        description="Finished deploy tasks kept per site.",
    )
    task_log_limit: int = Field(
        default=1000,
        alias="TASK_LOG_LIMIT",
        description="Maximum log lines kept per deploy task.",
    )
    deploy_publisher: Literal["none", "directory", "gh-pages"] = Field(
        default="directory",
        alias="DEPLOY_PUBLISHER",
        description="Publisher invoked in the deploying phase.",
    )
    publish_root: str = Field(
        default="/var/www/site-engine",
        alias="PUBLISH_ROOT",
        description="Root directory holding blue/green slots per site.",
    )
    login_user: str = Field(default="admin", alias="LOGIN_USER")
    login_password: str = Field(default="admin", alias="LOGIN_PASSWORD")
    login_display_name: Optional[str] = Field(default=None, alias="LOGIN_DISPLAY_NAME")
    login_email: Optional[str] = Field(default=None, alias="LOGIN_EMAIL")
    jwt_secret_key: str = Field(default="change-me", alias="JWT_SECRET_KEY")
    jwt_expire_minutes: int = Field(default=60, alias="JWT_EXPIRE_MINUTES")
    auth_cookie_name: str = Field(default="site_engine_token", alias="AUTH_COOKIE_NAME")
    auth_cookie_secure: bool = Field(default=False, alias="AUTH_COOKIE_SECURE")
    auth_cookie_domain: Optional[str] = Field(default=None, alias="AUTH_COOKIE_DOMAIN")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(os.environ)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance built from environment variables."""
    return Settings.from_env()
