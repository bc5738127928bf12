"""
Notes attached to a task. Access goes through the task, so only its owner
can read or change them.
"""
import logging
from typing import List
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.task import TodoNote
from todo_api.services.tasks import get_task

logger = logging.getLogger(__name__)


def _validate_content(content) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Note content is required")
    return content


def list_notes(db: Session, task_id: int, user_id: int) -> List[TodoNote]:
    return list(get_task(db, task_id, user_id).notes)


def get_note(db: Session, note_id: int, task_id: int, user_id: int) -> TodoNote:
    task = get_task(db, task_id, user_id)
    note = db.query(TodoNote).filter(
        TodoNote.id == note_id,
        TodoNote.task_id == task.id
    ).first()
    if not note:
        raise NotFoundError("Note not found")
    return note


def add_note(db: Session, task_id: int, user_id: int, content: str) -> TodoNote:
    task = get_task(db, task_id, user_id)
    note = TodoNote(task_id=task.id, content=_validate_content(content))
    db.add(note)
    db.commit()
    db.refresh(note)
    logger.info(f"Added note {note.id} to task {task.id}")
    return note


def update_note(db: Session, note_id: int, task_id: int, user_id: int, content: str) -> TodoNote:
    note = get_note(db, note_id, task_id, user_id)
    note.content = _validate_content(content)
    db.commit()
    db.refresh(note)
    return note


def delete_note(db: Session, note_id: int, task_id: int, user_id: int) -> None:
    note = get_note(db, note_id, task_id, user_id)
    db.delete(note)
    db.commit()
    logger.info(f"Deleted note {note_id} from task {task_id}")
