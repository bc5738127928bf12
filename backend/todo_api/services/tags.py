"""
Tag service: per-user tags and their assignment to tasks.
"""
import logging
from typing import Iterable, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.task import Tag, TodoTask, task_tags

logger = logging.getLogger(__name__)


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Tag name is required")
    if len(name) > 50:
        raise ValidationError("Tag name must be at most 50 characters")
    return name


def _find_by_name(db: Session, user_id: int, name: str) -> Optional[Tag]:
    return db.query(Tag).filter(
        Tag.user_id == user_id,
        func.lower(Tag.name) == name.lower()
    ).first()


def list_tags(db: Session, user_id: int) -> List[Tuple[Tag, int]]:
    """Tags with the number of tasks carrying each, ordered by name."""
    counts = dict(
        db.query(task_tags.c.tag_id, func.count(task_tags.c.task_id))
        .join(Tag, Tag.id == task_tags.c.tag_id)
        .filter(Tag.user_id == user_id)
        .group_by(task_tags.c.tag_id)
        .all()
    )
    tags = db.query(Tag).filter(Tag.user_id == user_id).order_by(Tag.name).all()
    return [(tag, counts.get(tag.id, 0)) for tag in tags]


def get_tag(db: Session, tag_id: int, user_id: int) -> Tag:
    tag = db.query(Tag).filter(Tag.id == tag_id, Tag.user_id == user_id).first()
    if not tag:
        raise NotFoundError("Tag not found")
    return tag


def create_tag(db: Session, user_id: int, name: str) -> Tag:
    name = _validate_name(name)
    if _find_by_name(db, user_id, name):
        raise ValidationError("A tag with this name already exists")

    tag = Tag(user_id=user_id, name=name)
    db.add(tag)
    db.commit()
    db.refresh(tag)
    logger.info(f"Created tag {tag.id} for user {user_id}")
    return tag


def rename_tag(db: Session, tag_id: int, user_id: int, name: str) -> Tag:
    tag = get_tag(db, tag_id, user_id)
    name = _validate_name(name)
    existing = _find_by_name(db, user_id, name)
    if existing and existing.id != tag.id:
        raise ValidationError("A tag with this name already exists")
    tag.name = name
    db.commit()
    db.refresh(tag)
    return tag


def delete_tag(db: Session, tag_id: int, user_id: int) -> None:
    """Delete the tag and drop it from every task that carries it."""
    tag = get_tag(db, tag_id, user_id)
    db.delete(tag)
    db.commit()
    logger.info(f"Deleted tag {tag_id} (user {user_id})")


def set_task_tags(db: Session, task: TodoTask, tag_ids: Iterable[int]) -> TodoTask:
    """
    Replace the task's tags.

    Every id must name one of the task owner's tags; otherwise NotFoundError
    is raised and the task keeps its current tags.
    """
    tags = []
    for tag_id in dict.fromkeys(tag_ids):
        tags.append(get_tag(db, tag_id, task.user_id))
    task.tags = tags
    db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} tagged with {[tag.name for tag in tags]}")
    return task
