"""任务路由

POST   /api/tasks                       创建任务
GET    /api/tasks                       分页列表（按 created_at 倒序）
GET    /api/tasks/report                按状态统计
GET    /api/tasks/deleted               已软删除的任务（按 deleted_at 倒序）
GET    /api/tasks/{task_id}             任务详情
PATCH  /api/tasks/{task_id}             部分更新
PATCH  /api/tasks/{task_id}/status      设置状态
POST   /api/tasks/{task_id}/toggle-status  循环切换状态
DELETE /api/tasks/{task_id}             软删除
POST   /api/tasks/{task_id}/restore     恢复软删除
DELETE /api/tasks/{task_id}/force       物理删除
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from taskpulse.core.config import (
    DEFAULT_PAGE_LIMIT,
    DESCRIPTION_MAX_LENGTH,
    MAX_PAGE_LIMIT,
    TITLE_MAX_LENGTH,
)
from taskpulse.core.models import Task, TaskStatus

from ..deps import get_store_group
from ..services.task_service import TaskService
from .errors import error_response, task_not_found

router = APIRouter()


class TaskCreateRequest(BaseModel):
    """创建任务请求体"""

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH, description="任务标题")
    description: str | None = Field(
        default=None,
        max_length=DESCRIPTION_MAX_LENGTH,
        description="任务描述",
    )
    due_date: datetime | None = Field(default=None, description="截止时间，ISO-8601")
    status: TaskStatus = Field(default=TaskStatus.OPEN, description="任务状态")


class TaskUpdateRequest(BaseModel):
    """部分更新请求体 -- 只有显式提供的字段会被修改"""

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    due_date: datetime | None = None
    status: TaskStatus | None = None


class StatusUpdateRequest(BaseModel):
    """设置状态请求体"""

    status: TaskStatus


class TaskResponse(BaseModel):
    """任务响应（不暴露 webhook 字段）"""

    task_id: int
    title: str
    description: str | None
    due_date: str | None
    status: str
    created_at: str
    updated_at: str
    deleted_at: str | None

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            task_id=task.task_id,
            title=task.title,
            description=task.description,
            due_date=task.due_date.isoformat() if task.due_date else None,
            status=task.status.value,
            created_at=task.created_at.isoformat(),
            updated_at=task.updated_at.isoformat(),
            deleted_at=task.deleted_at.isoformat() if task.deleted_at else None,
        )


class TaskPageResponse(BaseModel):
    """分页响应"""

    data: list[TaskResponse]
    total: int
    limit: int
    offset: int
    has_next: bool
    has_prev: bool


def _page(tasks: list[Task], total: int, limit: int, offset: int) -> TaskPageResponse:
    return TaskPageResponse(
        data=[TaskResponse.from_task(t) for t in tasks],
        total=total,
        limit=limit,
        offset=offset,
        has_next=offset + limit < total,
        has_prev=offset > 0,
    )


@router.post("/api/tasks", status_code=201, response_model=TaskResponse)
async def create_task(
    body: TaskCreateRequest,
    store_group=Depends(get_store_group),
):
    """创建任务"""
    service = TaskService(store_group)
    task = await service.create_task(
        title=body.title,
        description=body.description,
        due_date=body.due_date,
        status=body.status,
    )
    return TaskResponse.from_task(task)


@router.get("/api/tasks", response_model=TaskPageResponse)
async def list_tasks(
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store_group=Depends(get_store_group),
):
    """分页查询未删除的任务"""
    service = TaskService(store_group)
    tasks, total = await service.list_tasks(limit=limit, offset=offset)
    return _page(tasks, total, limit, offset)


@router.get("/api/tasks/report")
async def task_report(store_group=Depends(get_store_group)):
    """按状态统计未删除的任务"""
    service = TaskService(store_group)
    return await service.get_report()


@router.get("/api/tasks/deleted", response_model=TaskPageResponse)
async def list_deleted_tasks(
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store_group=Depends(get_store_group),
):
    """分页查询已软删除的任务"""
    service = TaskService(store_group)
    tasks, total = await service.list_tasks(limit=limit, offset=offset, deleted=True)
    return _page(tasks, total, limit, offset)


@router.get("/api/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: int, store_group=Depends(get_store_group)):
    """查询任务详情"""
    task = await TaskService(store_group).get_task(task_id)
    if task is None:
        return task_not_found(task_id)
    return TaskResponse.from_task(task)


@router.patch("/api/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    body: TaskUpdateRequest,
    store_group=Depends(get_store_group),
):
    """部分更新任务；修改 due_date 会重新启用到期通知"""
    changes = body.model_dump(exclude_unset=True)
    if "title" in changes and changes["title"] is None:
        return error_response(422, "INVALID_TITLE", "title must not be null")
    if "status" in changes and changes["status"] is None:
        return error_response(422, "INVALID_STATUS", "status must not be null")

    task = await TaskService(store_group).update_task(task_id, changes)
    if task is None:
        return task_not_found(task_id)
    return TaskResponse.from_task(task)


@router.patch("/api/tasks/{task_id}/status", response_model=TaskResponse)
async def set_task_status(
    task_id: int,
    body: StatusUpdateRequest,
    store_group=Depends(get_store_group),
):
    """设置任务状态"""
    task = await TaskService(store_group).set_status(task_id, body.status)
    if task is None:
        return task_not_found(task_id)
    return TaskResponse.from_task(task)


@router.post("/api/tasks/{task_id}/toggle-status", response_model=TaskResponse)
async def toggle_task_status(task_id: int, store_group=Depends(get_store_group)):
    """OPEN -> IN_PROGRESS -> DONE -> OPEN"""
    task = await TaskService(store_group).toggle_status(task_id)
    if task is None:
        return task_not_found(task_id)
    return TaskResponse.from_task(task)


@router.delete("/api/tasks/{task_id}")
async def delete_task(task_id: int, store_group=Depends(get_store_group)):
    """软删除任务（已删除的任务不再参与到期扫描）"""
    deleted = await TaskService(store_group).delete_task(task_id)
    if not deleted:
        return task_not_found(task_id)
    return {"message": "Task successfully deleted"}


@router.post("/api/tasks/{task_id}/restore", response_model=TaskResponse)
async def restore_task(task_id: int, store_group=Depends(get_store_group)):
    """恢复软删除的任务

    - 未删除的任务返回 409 Conflict
    - 不存在的任务返回 404
    """
    try:
        task = await TaskService(store_group).restore_task(task_id)
    except ValueError as e:
        return error_response(409, "TASK_NOT_DELETED", str(e))

    if task is None:
        return task_not_found(task_id)
    return TaskResponse.from_task(task)


@router.delete("/api/tasks/{task_id}/force")
async def force_delete_task(task_id: int, store_group=Depends(get_store_group)):
    """物理删除任务"""
    deleted = await TaskService(store_group).force_delete_task(task_id)
    if not deleted:
        return task_not_found(task_id)
    return {"message": "Task permanently deleted"}
