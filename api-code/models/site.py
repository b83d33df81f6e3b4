from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SiteConfig(BaseModel):
    """Site settings supplied by site management; read-only to the engine."""

    id: str = Field(..., description="Site identifier.")
    name: str = Field(default="", description="Display name.")
    github_repository_url: str = Field(
        ...,
        alias="githubRepositoryUrl",
        description="owner/repo, https://host/owner/repo[.git] or git@host:owner/repo[.git].",
    )
    github_pat: str = Field(
        default="",
        alias="githubPat",
        repr=False,
        description="Bearer credential, already decrypted.",
    )
    local_path: str = Field(..., alias="localPath", description="Working copy directory.")
    build_command: Optional[str] = Field(default=None, alias="buildCommand")
    build_output_dir: Optional[str] = Field(default=None, alias="buildOutputDir")
    validate_command: Optional[str] = Field(default=None, alias="validateCommand")
    editable_paths: List[str] = Field(default_factory=list, alias="editablePaths")

    model_config = {"populate_by_name": True}

    @property
    def working_path(self) -> Path:
        return Path(self.local_path)

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump(exclude_none=True)
        document["_id"] = document.pop("id")
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "SiteConfig":
        data = {**document}
        if "_id" in data and "id" not in data:
            data["id"] = data.pop("_id")
        return cls.model_validate(data)


class Author(BaseModel):
    name: str
    email: str

    @classmethod
    def from_user(cls, user: Dict[str, Optional[str]]) -> "Author":
        username = user.get("username") or "site-engine"
        name = user.get("display_name") or username
        email = user.get("email") or f"{username}@users.noreply.site-engine"
        return cls(name=name, email=email)
