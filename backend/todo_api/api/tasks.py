"""
Todo task API endpoints (requires the TodoApp feature).
"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.api.recurrence_schemas import (
    RecurrenceRequest,
    RecurrenceResponse,
    ProcessRecurrenceResponse,
    recurrence_response,
)
from todo_api.core.auth import require_feature, get_current_user_dependency
from todo_api.core.database import get_db
from todo_api.models.task import TodoTask, TaskStatus, TaskPriority
from todo_api.models.user import User
from todo_api.services import notes as note_service
from todo_api.services import reminders as reminder_service
from todo_api.services import tags as tag_service
from todo_api.services import tasks as task_service
from todo_api.services.features import TODO_APP

router = APIRouter()


class TaskCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    category_id: Optional[int] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    category_id: Optional[int] = None


class TaskResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str]
    priority: TaskPriority
    status: TaskStatus
    due_date: Optional[datetime]
    category_id: Optional[int]
    tags: List[str] = []
    completed_at: Optional[datetime]
    is_recurring: bool
    source_task_id: Optional[int]
    recurrence: Optional[RecurrenceResponse] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class TaskTagsUpdate(BaseModel):
    tag_ids: List[int]


class NoteRequest(BaseModel):
    content: str


class NoteResponse(BaseModel):
    id: int
    task_id: int
    content: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ReminderCreate(BaseModel):
    reminder_time: datetime


class ReminderResponse(BaseModel):
    id: int
    task_id: int
    reminder_time: datetime
    is_sent: bool
    sent_at: Optional[datetime]

    class Config:
        from_attributes = True


def task_response(task: TodoTask) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        user_id=task.user_id,
        title=task.title,
        description=task.description,
        priority=task.priority,
        status=task.status,
        due_date=task.due_date,
        category_id=task.category_id,
        tags=sorted(tag.name for tag in task.tags),
        completed_at=task.completed_at,
        is_recurring=task.is_recurring,
        source_task_id=task.source_task_id,
        recurrence=recurrence_response(task.recurrence),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    source_task_id: Optional[int] = None,  # Occurrences generated from one recurring task
    category_id: Optional[int] = None,
    tag_id: Optional[int] = None,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    """List the current user's tasks."""
    tasks = task_service.list_tasks(
        db,
        user_id=current_user.id,
        status=status_filter,
        source_task_id=source_task_id,
        category_id=category_id,
        tag_id=tag_id,
    )
    return [task_response(task) for task in tasks]


@router.get("/all", response_model=List[TaskResponse])
async def list_all_tasks(
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    """List every user's tasks (route policy requires Admin + ViewAllTodos)."""
    return [task_response(task) for task in task_service.list_tasks(db)]


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreate,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    task = task_service.create_task(
        db,
        user_id=current_user.id,
        title=request.title,
        description=request.description,
        priority=request.priority,
        due_date=request.due_date,
        category_id=request.category_id,
    )
    return task_response(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return task_response(task_service.get_task(db, task_id, current_user.id))


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    request: TaskUpdate,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    task = task_service.update_task(db, task_id, current_user.id, **request.model_dump(exclude_unset=True))
    return task_response(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    task_service.delete_task(db, task_id, current_user.id)


# Recurrence

@router.put("/{task_id}/recurrence", response_model=Optional[RecurrenceResponse])
async def set_task_recurrence(
    task_id: int,
    request: RecurrenceRequest,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    """Create or replace the task's recurrence; recurrence_type 'none' cancels it."""
    rule = task_service.set_task_recurrence(db, task_id, current_user.id, **request.model_dump())
    return recurrence_response(rule)


@router.delete("/{task_id}/recurrence", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_task_recurrence(
    task_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    task_service.cancel_task_recurrence(db, task_id, current_user.id)


@router.post("/{task_id}/recurrence/process", response_model=ProcessRecurrenceResponse)
async def process_task_recurrence(
    task_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    """Generate every occurrence of the task that is due now."""
    occurrences = task_service.process_task_recurrence(db, task_id, current_user.id)
    return ProcessRecurrenceResponse(occurrences=occurrences, count=len(occurrences))


# Tags

@router.put("/{task_id}/tags", response_model=TaskResponse)
async def set_task_tags(
    task_id: int,
    request: TaskTagsUpdate,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    """Replace the task's tags; an empty list removes them all."""
    task = task_service.get_task(db, task_id, current_user.id)
    return task_response(tag_service.set_task_tags(db, task, request.tag_ids))


# Notes

@router.get("/{task_id}/notes", response_model=List[NoteResponse])
async def list_notes(
    task_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return note_service.list_notes(db, task_id, current_user.id)


@router.post("/{task_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    task_id: int,
    request: NoteRequest,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return note_service.add_note(db, task_id, current_user.id, request.content)


@router.put("/{task_id}/notes/{note_id}", response_model=NoteResponse)
async def update_note(
    task_id: int,
    note_id: int,
    request: NoteRequest,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return note_service.update_note(db, note_id, task_id, current_user.id, request.content)


@router.delete("/{task_id}/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    task_id: int,
    note_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    note_service.delete_note(db, note_id, task_id, current_user.id)


# Reminders

@router.get("/{task_id}/reminders", response_model=List[ReminderResponse])
async def list_reminders(
    task_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return reminder_service.list_reminders(db, task_id, current_user.id)


@router.post("/{task_id}/reminders", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    task_id: int,
    request: ReminderCreate,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    return reminder_service.create_reminder(db, task_id, current_user.id, request.reminder_time)


@router.delete("/{task_id}/reminders/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reminder(
    task_id: int,
    reminder_id: int,
    current_user: User = Depends(require_feature(TODO_APP)),
    db: Session = Depends(get_db)
):
    reminder_service.delete_reminder(db, reminder_id, task_id, current_user.id)
