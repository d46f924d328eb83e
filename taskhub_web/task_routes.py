"""
FastAPI routes for tasks.

Prefix: /tasks (mounted under /api/v1). Every route requires a valid
access token; update/delete additionally require creator-or-admin.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from taskhub.auth.models import User
from taskhub.core.container import Services
from taskhub.core.schema import PageQuery, SortOrder
from taskhub.tasks.models import TaskCreate, TaskUpdate

from .auth_middleware import get_services, require_login
from .errors import envelope


router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_login)])

TaskSortField = Literal["title", "status", "priority", "dueDate", "createdAt"]


def task_page_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: TaskSortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> PageQuery:
    return PageQuery(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


@router.get("")
def list_tasks(
    query: PageQuery = Depends(task_page_query),
    services: Services = Depends(get_services),
) -> JSONResponse:
    return envelope("Tasks retrieved successfully", services.tasks.list_tasks(query))


@router.get("/{task_id}")
def get_task(task_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    return envelope("Task retrieved successfully", services.tasks.get_task(task_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    current_user: User = Depends(require_login),
    services: Services = Depends(get_services),
) -> JSONResponse:
    task = services.tasks.create_task(current_user, payload)
    return envelope("Task created successfully", task, status_code=status.HTTP_201_CREATED)


@router.put("/{task_id}")
def update_task(
    task_id: str,
    payload: TaskUpdate,
    current_user: User = Depends(require_login),
    services: Services = Depends(get_services),
) -> JSONResponse:
    task = services.tasks.update_task(current_user, task_id, payload)
    return envelope("Task updated successfully", task)


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    current_user: User = Depends(require_login),
    services: Services = Depends(get_services),
) -> JSONResponse:
    services.tasks.delete_task(current_user, task_id)
    return envelope("Task deleted successfully")
