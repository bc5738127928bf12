"""
User administration endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from todo_api.api.auth import UserResponse, user_response
from todo_api.core.auth import get_current_admin_user_dependency
from todo_api.core.database import get_db
from todo_api.models.user import User
from todo_api.services import users as user_service

router = APIRouter()


class AdminUserUpdate(BaseModel):
    full_name: Optional[str] = None
    is_active: Optional[bool] = None
    roles: Optional[List[str]] = None  # Replaces the user's roles when present


@router.get("", response_model=List[UserResponse])
async def list_users(
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return [user_response(user) for user in user_service.list_users(db)]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return user_response(user_service.get_user(db, user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    request: AdminUserUpdate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Update profile, active flag or role assignment."""
    user = user_service.update_user(
        db,
        user_id,
        full_name=request.full_name,
        is_active=request.is_active,
        role_names=request.roles,
    )
    return user_response(user)
