import math
from typing import Optional

from sqlalchemy.orm import Session
from taskflow.core.errors import NotFound
from taskflow.models import Task, TaskStatus


class TaskService:
    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def create(self, title: str, description: Optional[str] = None, status: TaskStatus = TaskStatus.PENDING) -> Task:
        task = Task(user_id=self.user_id, title=title, description=description, status=status)
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[TaskStatus] = None,
        search: Optional[str] = None,
    ) -> dict:
        query = self.db.query(Task).filter(Task.user_id == self.user_id)
        if status:
            query = query.filter(Task.status == status)
        if search:
            query = query.filter(Task.title.icontains(search, autoescape=True))
        total = query.count()
        items = (
            query.order_by(Task.created_at.desc(), Task.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        }

    def get(self, task_id: str) -> Task:
        task = self.db.query(Task).filter(Task.id == task_id, Task.user_id == self.user_id).first()
        if not task:
            raise NotFound("Task not found")
        return task

    def update(self, task_id: str, changes: dict) -> Task:
        task = self.get(task_id)
        for field in ("title", "description", "status"):
            if field not in changes:
                continue
            if changes[field] is None and field != "description":
                continue
            setattr(task, field, changes[field])
        self.db.commit()
        self.db.refresh(task)
        return task

    def delete(self, task_id: str) -> None:
        task = self.get(task_id)
        self.db.delete(task)
        self.db.commit()

    def toggle(self, task_id: str) -> Task:
        task = self.get(task_id)
        task.status = TaskStatus.PENDING if task.status == TaskStatus.COMPLETED else TaskStatus.COMPLETED
        self.db.commit()
        self.db.refresh(task)
        return task
