"""
Tag endpoints (requires the TodoApp feature). Tagging a task goes through
PUT /api/tasks/{task_id}/tags.
"""
from typing import List
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.core.auth import require_feature
from todo_api.core.database import get_db
from todo_api.models.user import User
from todo_api.services import tags as tag_service
from todo_api.services.features import TODO_APP

router = APIRouter()


class TagRequest(BaseModel):
    name: str = Field(..., max_length=50)


class TagResponse(BaseModel):
    id: int
    name: str
    task_count: int = 0


@router.get("", response_model=List[TagResponse])
async def list_tags(
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return [
        TagResponse(id=tag.id, name=tag.name, task_count=count)
        for tag, count in tag_service.list_tags(db, current_user.id)
    ]


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    request: TagRequest,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    tag = tag_service.create_tag(db, current_user.id, request.name)
    return TagResponse(id=tag.id, name=tag.name)


@router.put("/{tag_id}", response_model=TagResponse)
async def rename_tag(
    tag_id: int,
    request: TagRequest,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    tag = tag_service.rename_tag(db, tag_id, current_user.id, request.name)
    return TagResponse(id=tag.id, name=tag.name, task_count=len(tag.tasks))


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    tag_service.delete_tag(db, tag_id, current_user.id)
