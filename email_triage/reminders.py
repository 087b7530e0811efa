"""
Reminder engine: time-bound nudges attached to an email, at most one
pending per email.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from email_triage.config import config
from email_triage.database import DatabaseManager, EmailReminder, ReminderStatus
from email_triage.database.models import utcnow
from email_triage.errors import ValidationError
from email_triage.logger import get_logger

logger = get_logger(__name__)


class ReminderEngine:
    """Creates, lists and cancels email reminders."""

    def __init__(self, db: DatabaseManager, batch_limit: Optional[int] = None):
        self.db = db
        self.batch_limit = batch_limit or config.scheduler.reminder_batch

    def create(self, user_id: str, email_id: UUID, remind_at: datetime,
               reason: Optional[str] = None, now: Optional[datetime] = None) -> EmailReminder:
        """Schedule a reminder for one of the user's emails.

        Raises:
            ValidationError: If ``remind_at`` is missing, naive or not in the future
            NotFoundError: If the email does not belong to the user
            ConflictError: If the email already has a pending reminder
        """
        if remind_at is None:
            raise ValidationError("Email ID and remind time are required")
        if remind_at.tzinfo is None:
            raise ValidationError("Reminder time must include a timezone")

        now = now or utcnow()
        if remind_at <= now:
            raise ValidationError("Reminder time must be in the future")

        self.db.get_email(email_id, user_id=user_id)

        # The partial unique index is the uniqueness guard
        reminder = self.db.insert_reminder(EmailReminder(
            user_id=user_id,
            email_id=email_id,
            remind_at=remind_at,
            status=ReminderStatus.PENDING,
            reason=reason,
        ))
        logger.info(f"Created reminder {reminder.id} for email {email_id} at {remind_at.isoformat()}")
        return reminder

    def cancel(self, user_id: str, reminder_id: UUID) -> EmailReminder:
        """Mark a pending reminder cancelled. The row is kept for audit."""
        reminder = self.db.get_reminder(reminder_id, user_id=user_id)
        reminder = self.db.update_reminder_status(reminder.id, ReminderStatus.CANCELLED)
        logger.info(f"Cancelled reminder {reminder.id}")
        return reminder

    def list_due(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[EmailReminder]:
        """Pending reminders with ``remind_at <= now``, earliest first, batch-limited."""
        return self.db.list_due_reminders(now or utcnow(), limit=limit or self.batch_limit)

    def list_for_user(self, user_id: str, status=ReminderStatus.PENDING) -> List[EmailReminder]:
        try:
            status = ReminderStatus(status) if status is not None else None
        except ValueError:
            raise ValidationError(f"Invalid reminder status: {status}")
        return self.db.list_reminders(user_id, status=status)
