"""
FastAPI routes for user administration.

Prefix: /users (mounted under /api/v1)
- Admins: list, update and delete users
- Any authenticated user: look up a single user
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from taskhub.auth.models import UserUpdate
from taskhub.core.container import Services
from taskhub.core.schema import PageQuery, SortOrder

from .auth_middleware import get_services, require_admin, require_login
from .errors import envelope


router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_login)])

UserSortField = Literal["name", "email", "role", "createdAt"]


def user_page_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: UserSortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> PageQuery:
    return PageQuery(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


@router.get("", dependencies=[Depends(require_admin)])
def list_users(
    query: PageQuery = Depends(user_page_query),
    services: Services = Depends(get_services),
) -> JSONResponse:
    return envelope("Users retrieved successfully", services.users.list_users(query))


@router.get("/{user_id}")
def get_user(user_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    return envelope("User retrieved successfully", services.users.get_user(user_id))


@router.put("/{user_id}", dependencies=[Depends(require_admin)])
def update_user(
    user_id: str,
    payload: UserUpdate,
    services: Services = Depends(get_services),
) -> JSONResponse:
    return envelope("User updated successfully", services.users.update_user(user_id, payload))


@router.delete("/{user_id}", dependencies=[Depends(require_admin)])
def delete_user(user_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    services.users.delete_user(user_id)
    return envelope("User deleted successfully")
