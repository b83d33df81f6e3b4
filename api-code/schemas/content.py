from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from models import ContentFile


class FileWriteRequest(BaseModel):
    content: str = Field(..., description="Full UTF-8 text of the file.")
    message: Optional[str] = Field(
        default=None, description="Commit message. A default is derived from the operation."
    )


class FileCreateRequest(FileWriteRequest):
    path: str = Field(..., min_length=1, description="Path relative to the working tree.")


class FileReadResponse(BaseModel):
    path: str
    content: str


class FileListResponse(BaseModel):
    files: List[ContentFile] = Field(default_factory=list)
