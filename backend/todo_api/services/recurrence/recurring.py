"""
Persistence-aware recurrence processing shared by tasks and expenses.

A Recurring binds the pure scheduler to one rule table (TaskRecurrence or
ExpenseRecurrence) and a materializer callback that creates the concrete
occurrence row. Each occurrence is its own transaction: materialize,
advance the rule, commit. The rule's version_id column makes a second
writer starting from the same stale read fail with StaleDataError, which is
surfaced as ConcurrentUpdateConflict.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from todo_api.core.errors import ConcurrentUpdateConflict, NotFoundError
from todo_api.models.recurrence import RecurrenceType
from todo_api.services.clock import Clock, ensure_utc, system_clock
from todo_api.services.recurrence.cron import CronEvaluator, default_cron_evaluator
from todo_api.services.recurrence.rules import RecurrenceRule, apply_to_model, rule_from_model, validate_rule
from todo_api.services.recurrence.scheduler import next_occurrence, process_due

logger = logging.getLogger(__name__)

# materializer(db, rule_row, occurrence_date) -> created owner row
Materializer = Callable[[Session, object, datetime], object]


class Recurring:
    def __init__(
        self,
        rule_model,
        materializer: Materializer,
        cron: Optional[CronEvaluator] = None,
        clock: Clock = system_clock,
        max_retries: int = 3,
        name: Optional[str] = None,
    ):
        self.rule_model = rule_model
        self.materializer = materializer
        self.cron = cron or default_cron_evaluator
        self.clock = clock
        self.max_retries = max(1, max_retries)
        self.name = name or rule_model.__tablename__

    def _owner_column(self):
        return getattr(self.rule_model, self.rule_model.owner_fk)

    def get_rule(self, db: Session, rule_id: int):
        row = db.query(self.rule_model).filter(self.rule_model.id == rule_id).first()
        if not row:
            raise NotFoundError("Recurrence rule not found")
        return row

    def get_rule_for_owner(self, db: Session, owner_id: int):
        return db.query(self.rule_model).filter(self._owner_column() == owner_id).first()

    def process(self, db: Session, rule_id: int, now: Optional[datetime] = None) -> List[datetime]:
        """
        Apply every due occurrence of one rule in chronological order.

        Returns the occurrence dates that were materialized. Raises
        ConcurrentUpdateConflict if another writer advanced the rule first;
        occurrences committed before the conflict stay committed.
        """
        applied: List[datetime] = []
        self._process(db, rule_id, ensure_utc(now or self.clock.now()), applied)
        return applied

    def _process(self, db: Session, rule_id: int, now: datetime, applied: List[datetime]) -> None:
        row = self.get_rule(db, rule_id)
        owner = row.owner
        if owner is None or not owner.is_recurring:
            logger.debug(f"{self.name} rule {rule_id} owner is not recurring, skipping")
            return

        while True:
            due = process_due(rule_from_model(row), now, self.cron)
            if due is None:
                break

            try:
                self.materializer(db, row, due.occurrence_date)
                apply_to_model(due.rule, row)
                db.commit()
            except StaleDataError as e:
                db.rollback()
                logger.warning(f"{self.name} rule {rule_id} was advanced concurrently, occurrence {due.occurrence_date} not applied")
                raise ConcurrentUpdateConflict(f"Recurrence rule {rule_id} was modified concurrently") from e

            applied.append(due.occurrence_date)
            logger.info(f"Materialized {self.name} occurrence {due.occurrence_date.isoformat()} for owner {row.owner_id}")

            if due.rule.next_processing_date is None:
                logger.info(f"{self.name} rule {rule_id} exhausted after {due.occurrence_date.isoformat()}")
                break

    def process_with_retry(self, db: Session, rule_id: int, now: Optional[datetime] = None) -> List[datetime]:
        """process() that re-reads the rule and recomputes on conflict."""
        now = ensure_utc(now or self.clock.now())
        applied: List[datetime] = []
        for attempt in range(1, self.max_retries + 1):
            try:
                self._process(db, rule_id, now, applied)
                return applied
            except ConcurrentUpdateConflict:
                if attempt >= self.max_retries:
                    raise
                # Drop stale state so the next attempt reads the winner's values
                db.expire_all()
                logger.info(f"Retrying {self.name} rule {rule_id} (attempt {attempt + 1}/{self.max_retries})")
        return applied

    def due_rule_ids(self, db: Session, now: Optional[datetime] = None) -> List[int]:
        """Ids of due rules whose owner is recurring. Exhausted rules have no next date and never match."""
        now = ensure_utc(now or self.clock.now())
        rows = db.query(self.rule_model).filter(
            self.rule_model.next_processing_date <= now
        ).order_by(self.rule_model.next_processing_date, self.rule_model.id).all()
        return [row.id for row in rows if row.owner is not None and row.owner.is_recurring]

    def schedule(self, db: Session, row) -> Optional[datetime]:
        """Validate the row and recompute next_processing_date after a create or edit."""
        rule = rule_from_model(row)
        validate_rule(rule, self.cron)
        row.next_processing_date = next_occurrence(rule, self.cron)
        db.flush()
        return row.next_processing_date

    def set_rule(self, db: Session, owner, rule: RecurrenceRule):
        """
        Create or replace the owner's rule from a RecurrenceRule value.

        Editing keeps last_processed_date so occurrences already generated are
        not generated again. Returns the row, or None when ``rule`` is of type
        NONE (the existing rule, if any, is cancelled).
        """
        if rule.recurrence_type == RecurrenceType.NONE:
            if owner.recurrence is not None:
                self.cancel(db, owner.id)
            return None

        validate_rule(rule, self.cron)

        row = owner.recurrence
        if row is None:
            row = self.rule_model()
            owner.recurrence = row
        row.recurrence_type = rule.recurrence_type
        row.start_date = ensure_utc(rule.start_date)
        row.interval = rule.interval
        row.end_date = ensure_utc(rule.end_date)
        row.custom_cron_expression = rule.custom_cron_expression
        row.day_of_month = rule.day_of_month
        row.day_of_week = rule.day_of_week
        owner.is_recurring = True

        self.schedule(db, row)
        db.commit()
        db.refresh(row)
        logger.info(f"{self.name} {owner.id} recurs {rule.recurrence_type.value}, next occurrence {row.next_processing_date}")
        return row

    def cancel(self, db: Session, owner_id: int) -> None:
        """Delete the owner's rule and mark the owner non-recurring."""
        row = self.get_rule_for_owner(db, owner_id)
        if not row:
            raise NotFoundError("Recurrence rule not found")
        owner = row.owner
        db.delete(row)
        if owner is not None:
            owner.is_recurring = False
        db.commit()
        logger.info(f"Cancelled {self.name} recurrence for owner {owner_id}")
