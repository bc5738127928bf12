"""
Recurrence rule columns shared by recurring tasks and recurring expenses.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func


class RecurrenceType(str, enum.Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"  # Monthly with interval * 3
    YEARLY = "yearly"
    CUSTOM = "custom"  # Driven by custom_cron_expression


class RecurrenceRuleMixin:
    """
    Columns of a recurrence rule.

    Concrete tables add the owner foreign key, an integer ``version_id``
    column and ``__mapper_args__ = {"version_id_col": version_id}`` so that
    two writers advancing the same rule cannot both succeed.
    """

    recurrence_type = Column(
        SQLEnum(RecurrenceType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=RecurrenceType.NONE,
    )
    interval = Column(Integer, nullable=False, default=1)  # Every N days/weeks/months/years
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    custom_cron_expression = Column(String(120), nullable=True)  # Only for CUSTOM
    day_of_month = Column(Integer, nullable=True)  # 1-31, only for MONTHLY/QUARTERLY
    day_of_week = Column(Integer, nullable=True)  # 0=Monday .. 6=Sunday, only for WEEKLY
    last_processed_date = Column(DateTime(timezone=True), nullable=True)
    next_processing_date = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
