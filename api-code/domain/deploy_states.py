from __future__ import annotations

from enum import Enum
from typing import Dict


class DeployStatus(str, Enum):
    PENDING = "pending"
    PULLING = "pulling"
    BUILDING = "building"
    DEPLOYING = "deploying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {DeployStatus.COMPLETED, DeployStatus.FAILED}


DEFAULT_STATUS_SEQUENCE: tuple[DeployStatus, ...] = (
    DeployStatus.PENDING,
    DeployStatus.PULLING,
    DeployStatus.BUILDING,
    DeployStatus.DEPLOYING,
    DeployStatus.COMPLETED,
)

# Externally observable progress contract; do not change the values.
PROGRESS_BY_STATUS: Dict[DeployStatus, int] = {
    DeployStatus.PENDING: 0,
    DeployStatus.PULLING: 20,
    DeployStatus.BUILDING: 50,
    DeployStatus.DEPLOYING: 80,
    DeployStatus.COMPLETED: 100,
    DeployStatus.FAILED: 100,
}


def progress_for(status: DeployStatus | str) -> int:
    try:
        return PROGRESS_BY_STATUS[DeployStatus(status)]
    except ValueError:
        return 0


def is_valid_transition(current: DeployStatus | str, new: DeployStatus | str) -> bool:
    """Allow only the next forward step, or failure from a non-terminal state."""
    try:
        current = DeployStatus(current)
        new = DeployStatus(new)
    except ValueError:
        return False
    if current.is_terminal:
        return False
    if new == DeployStatus.FAILED:
        return True
    sequence = list(DEFAULT_STATUS_SEQUENCE)
    return sequence.index(new) == sequence.index(current) + 1
