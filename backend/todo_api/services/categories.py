"""
Task category service.

Categories are per user and their names are unique per user. Deleting a
category leaves its tasks uncategorized.
"""
import logging
import re
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.task import TaskCategory, TodoTask

logger = logging.getLogger(__name__)

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    if len(name) > 100:
        raise ValidationError("Category name must be at most 100 characters")
    return name


def _validate_color(color: Optional[str]) -> Optional[str]:
    if color is None:
        return None
    if not _COLOR_RE.match(color):
        raise ValidationError("Color must be a hex code like #1E90FF")
    return color.upper()


def _ensure_unique(db: Session, user_id: int, name: str, exclude_id: Optional[int] = None):
    query = db.query(TaskCategory).filter(
        TaskCategory.user_id == user_id,
        func.lower(TaskCategory.name) == name.lower()
    )
    if exclude_id is not None:
        query = query.filter(TaskCategory.id != exclude_id)
    if query.first():
        raise ValidationError("A category with this name already exists")


def list_categories(db: Session, user_id: int) -> List[Tuple[TaskCategory, int]]:
    """Categories with the number of tasks in each, ordered by name."""
    counts = dict(
        db.query(TodoTask.category_id, func.count(TodoTask.id))
        .filter(TodoTask.user_id == user_id, TodoTask.category_id.isnot(None))
        .group_by(TodoTask.category_id)
        .all()
    )
    categories = db.query(TaskCategory).filter(
        TaskCategory.user_id == user_id
    ).order_by(TaskCategory.name).all()
    return [(category, counts.get(category.id, 0)) for category in categories]


def get_category(db: Session, category_id: int, user_id: int) -> TaskCategory:
    category = db.query(TaskCategory).filter(
        TaskCategory.id == category_id,
        TaskCategory.user_id == user_id
    ).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(db: Session, user_id: int, name: str, color: Optional[str] = None) -> TaskCategory:
    name = _validate_name(name)
    color = _validate_color(color)
    _ensure_unique(db, user_id, name)

    category = TaskCategory(user_id=user_id, name=name, color=color)
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info(f"Created task category {category.id} for user {user_id}")
    return category


def update_category(db: Session, category_id: int, user_id: int, **changes) -> TaskCategory:
    category = get_category(db, category_id, user_id)

    if "name" in changes and changes["name"] is not None:
        name = _validate_name(changes["name"])
        _ensure_unique(db, user_id, name, exclude_id=category.id)
        category.name = name
    if "color" in changes:
        category.color = _validate_color(changes["color"])

    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int, user_id: int) -> None:
    category = get_category(db, category_id, user_id)
    # The relationship nulls category_id on the loaded tasks
    db.delete(category)
    db.commit()
    logger.info(f"Deleted task category {category_id} (user {user_id})")
