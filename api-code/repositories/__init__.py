from .in_memory import InMemorySiteStore
from .sites import SiteStore
from .task_registry import TaskRegistry

__all__ = ["InMemorySiteStore", "SiteStore", "TaskRegistry"]
