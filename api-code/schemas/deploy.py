from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from domain import DeployStatus, progress_for
from models import DeployLogEntry, DeployTask


class DeployTriggerResponse(BaseModel):
    task_id: str = Field(..., description="Identifier for tracking deployment progress.")
    site_id: str = Field(..., description="Site being deployed.")
    status: DeployStatus = Field(..., description="Initial status of the deploy task.")
    created_at: datetime = Field(..., description="Timestamp when the task was registered.")


class DeployTaskResponse(BaseModel):
    task_id: str = Field(..., description="Deployment task identifier.")
    site_id: str
    status: DeployStatus = Field(..., description="Current task status.")
    progress: int = Field(..., ge=0, le=100, description="Percentage derived from the status.")
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = Field(
        default=None, description="UTC timestamp when task reached a terminal state."
    )
    triggered_by: Optional[str] = None
    error: Optional[str] = Field(default=None, description="Failure details when status is failed.")
    logs: List[DeployLogEntry] = Field(default_factory=list)

    @classmethod
    def from_task(cls, task: DeployTask, *, include_logs: bool = True) -> "DeployTaskResponse":
        return cls(
            task_id=task.task_id,
            site_id=task.site_id,
            status=task.status,
            progress=progress_for(task.status),
            created_at=task.created_at,
            started_at=task.started_at,
            completed_at=task.completed_at,
            triggered_by=task.triggered_by,
            error=task.error,
            logs=list(task.logs) if include_logs else [],
        )


class DeployTaskPage(BaseModel):
    items: List[DeployTaskResponse]
    total: int
    limit: int
    offset: int


class DeployCancelResponse(BaseModel):
    task_id: str
    cancelled: bool = Field(..., description="False when the task had already finished.")
