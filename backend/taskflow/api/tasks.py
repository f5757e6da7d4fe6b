from typing import Optional

from fastapi import APIRouter, Depends, Query
from taskflow.core.deps import get_task_service
from taskflow.models import TaskStatus
from taskflow.schemas import PaginatedTasks, StatusResponse, TaskCreate, TaskOut, TaskUpdate
from taskflow.services.tasks import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=PaginatedTasks)
def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[TaskStatus] = None,
    search: Optional[str] = Query(None, max_length=200),
    service: TaskService = Depends(get_task_service),
):
    return service.list(page=page, limit=limit, status=status, search=search.strip() if search else None)


@router.post("", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, service: TaskService = Depends(get_task_service)):
    return service.create(payload.title, payload.description, payload.status)


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, service: TaskService = Depends(get_task_service)):
    return service.get(task_id)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(task_id: str, payload: TaskUpdate, service: TaskService = Depends(get_task_service)):
    return service.update(task_id, payload.model_dump(exclude_unset=True))


@router.delete("/{task_id}", response_model=StatusResponse)
def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    service.delete(task_id)
    return StatusResponse()


@router.post("/{task_id}/toggle", response_model=TaskOut)
def toggle_task(task_id: str, service: TaskService = Depends(get_task_service)):
    return service.toggle(task_id)
