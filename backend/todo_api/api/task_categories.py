"""
Task category endpoints (requires the TodoApp feature).
"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.core.auth import require_feature
from todo_api.core.database import get_db
from todo_api.models.task import TaskCategory
from todo_api.models.user import User
from todo_api.services import categories as category_service
from todo_api.services.features import TODO_APP

router = APIRouter()


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    color: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    color: Optional[str] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    color: Optional[str]
    task_count: int = 0
    created_at: Optional[datetime]


def category_response(category: TaskCategory, task_count: int = 0) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        color=category.color,
        task_count=task_count,
        created_at=category.created_at,
    )


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return [
        category_response(category, count)
        for category, count in category_service.list_categories(db, current_user.id)
    ]


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CategoryCreate,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    category = category_service.create_category(db, current_user.id, request.name, request.color)
    return category_response(category)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    category = category_service.get_category(db, category_id, current_user.id)
    return category_response(category, len(category.tasks))


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    request: CategoryUpdate,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    category = category_service.update_category(
        db, category_id, current_user.id, **request.model_dump(exclude_unset=True)
    )
    return category_response(category, len(category.tasks))


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    """Delete the category; its tasks become uncategorized."""
    category_service.delete_category(db, category_id, current_user.id)
