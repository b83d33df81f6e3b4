from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from models import SiteConfig


class SiteUpsertRequest(BaseModel):
    name: str = Field(default="", description="Display name.")
    github_repository_url: str = Field(
        ...,
        alias="githubRepositoryUrl",
        min_length=1,
        description="owner/repo, https URL or scp-style git@host:owner/repo reference.",
    )
    github_pat: Optional[str] = Field(
        default=None,
        alias="githubPat",
        description="Access token. Omit on update to keep the stored one.",
    )
    local_path: str = Field(..., alias="localPath", min_length=1)
    build_command: Optional[str] = Field(default=None, alias="buildCommand")
    build_output_dir: Optional[str] = Field(default=None, alias="buildOutputDir")
    validate_command: Optional[str] = Field(default=None, alias="validateCommand")
    editable_paths: List[str] = Field(default_factory=list, alias="editablePaths")

    model_config = {"populate_by_name": True}

    def to_site(self, site_id: str, existing: Optional[SiteConfig] = None) -> SiteConfig:
        token = self.github_pat
        if token is None:
            token = existing.github_pat if existing else ""
        return SiteConfig(
            id=site_id,
            name=self.name,
            github_repository_url=self.github_repository_url,
            github_pat=token,
            local_path=self.local_path,
            build_command=self.build_command,
            build_output_dir=self.build_output_dir,
            validate_command=self.validate_command,
            editable_paths=self.editable_paths,
        )


class SiteResponse(BaseModel):
    id: str
    name: str
    github_repository_url: str
    local_path: str
    build_command: Optional[str] = None
    build_output_dir: Optional[str] = None
    validate_command: Optional[str] = None
    editable_paths: List[str] = Field(default_factory=list)
    has_token: bool = Field(..., description="True when an access token is stored.")

    @classmethod
    def from_site(cls, site: SiteConfig) -> "SiteResponse":
        return cls(
            id=site.id,
            name=site.name,
            github_repository_url=site.github_repository_url,
            local_path=site.local_path,
            build_command=site.build_command,
            build_output_dir=site.build_output_dir,
            validate_command=site.validate_command,
            editable_paths=list(site.editable_paths),
            has_token=bool(site.github_pat),
        )
