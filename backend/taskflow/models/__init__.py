from taskflow.models.user import User
from taskflow.models.refresh_token import RefreshToken
from taskflow.models.task import Task, TaskStatus

__all__ = ["User", "RefreshToken", "Task", "TaskStatus"]
