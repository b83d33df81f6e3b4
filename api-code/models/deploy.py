from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from domain.deploy_states import DeployStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


LogLevel = Literal["info", "warn", "error"]
LogSource = Literal["git", "build", "deploy"]


class EngineModel(BaseModel):
    """Base Pydantic model shared by task and site documents."""

    model_config = {
        "populate_by_name": True,
        "json_encoders": {datetime: lambda dt: dt.isoformat()},
    }


class DeployLogEntry(EngineModel):
    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel = "info"
    message: str
    source: LogSource = "deploy"


class DeployTask(EngineModel):
    task_id: str = Field(..., description="Primary identifier generated at trigger time.")
    site_id: str = Field(..., description="Site whose working tree the task operates on.")
    status: DeployStatus = Field(default=DeployStatus.PENDING, description="Current phase.")
    created_at: datetime = Field(default_factory=utc_now, description="Trigger timestamp.")
    started_at: Optional[datetime] = Field(
        default=None, description="Set on the first phase transition."
    )
    completed_at: Optional[datetime] = Field(
        default=None, description="Set when task reaches a terminal state."
    )
    triggered_by: Optional[str] = Field(default=None, description="Triggering username.")
    error: Optional[str] = Field(default=None, description="Failure summary when failed.")
    logs: List[DeployLogEntry] = Field(
        default_factory=list, description="Append-only, timestamped log lines."
    )

    @property
    def is_terminal(self) -> bool:
        return DeployStatus(self.status).is_terminal


class DeployTaskUpdate(BaseModel):
    status: Optional[DeployStatus] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    append_logs: List[DeployLogEntry] = Field(
        default_factory=list,
        description="Lines appended to the task log in order.",
    )
