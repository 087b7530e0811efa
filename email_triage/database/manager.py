from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import create_engine, delete, func, inspect, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import config
from ..errors import ConflictError, DuplicateMessage, NotFoundError
from ..logger import get_logger
from .models import (
    Base, BriefCache, Decision, DecisionStatus, Email, EmailReminder, NotificationState,
    ProcessingStatus, ReminderStatus, Task, Urgency, UserAction, UserActionLog, utcnow
)
from .transitions import transition

logger = get_logger(__name__)


def _make_engine(database_url: str):
    if database_url.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection so every session sees the same in-memory database
            kwargs['poolclass'] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


class DatabaseManager:
    """Repository for emails, decisions, reminders, tasks and notification state.

    Every mutation is a single-row write keyed by a unique id. The two
    uniqueness invariants (external message id, one pending reminder per
    email) are enforced by database indexes and translated into domain
    errors here.
    """

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection and session factory

        Args:
            database_url: Optional SQLAlchemy URL to override config
        """
        self.database_url = database_url or config.db.connection_string
        self.engine = _make_engine(self.database_url)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        """Create database tables if they don't exist"""
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Error creating tables: {e}")
            raise

    def check_tables_exist(self) -> bool:
        """Check if all required database tables exist."""
        try:
            existing_tables = set(inspect(self.engine).get_table_names())
            return set(Base.metadata.tables).issubset(existing_tables)
        except SQLAlchemyError as e:
            logger.error(f"Error checking tables: {e}")
            return False

    def clear_tables(self) -> None:
        """Delete every row in every table. Use only for testing."""
        with self.get_session() as session:
            for table in reversed(Base.metadata.sorted_tables):
                session.execute(table.delete())

    @contextmanager
    def get_session(self) -> Session:
        """Get a database session with automatic commit/rollback and cleanup"""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Emails
    # ------------------------------------------------------------------

    def find_email_by_external_id(self, external_message_id: str) -> Optional[Email]:
        with self.get_session() as session:
            return session.execute(
                select(Email).where(Email.external_message_id == external_message_id)
            ).scalar_one_or_none()

    def insert_email(self, email: Email) -> Email:
        """Insert a new email row.

        Raises:
            DuplicateMessage: If the external message id is already stored
        """
        try:
            with self.get_session() as session:
                session.add(email)
                session.flush()
                return email
        except IntegrityError as e:
            logger.debug(f"Unique violation inserting {email.external_message_id}: {e}")
            raise DuplicateMessage(email.external_message_id) from e

    def get_email(self, email_id: UUID, user_id: Optional[str] = None) -> Email:
        """Fetch an email, optionally scoped to its owner.

        Raises:
            NotFoundError: If no such email exists for the user
        """
        with self.get_session() as session:
            email = session.get(Email, email_id)
            if email is None or (user_id is not None and email.user_id != user_id):
                raise NotFoundError('Email', email_id)
            return email

    def find_email(self, email_id: UUID) -> Optional[Email]:
        with self.get_session() as session:
            return session.get(Email, email_id)

    def email_exists(self, email_id: UUID) -> bool:
        with self.get_session() as session:
            return session.get(Email, email_id) is not None

    def update_email(self, email_id: UUID, **fields) -> Email:
        """Apply field updates to one email. Status fields go through their transition tables."""
        with self.get_session() as session:
            email = session.get(Email, email_id)
            if email is None:
                raise NotFoundError('Email', email_id)
            if 'status' in fields:
                fields['status'] = transition('email_status', email.status, fields['status'])
            if 'user_action' in fields:
                fields['user_action'] = transition('user_action', email.user_action, fields['user_action'])
            for key, value in fields.items():
                setattr(email, key, value)
            return email

    def list_emails(self, user_id: str, urgency: Optional[Urgency] = None,
                    user_action: Optional[UserAction] = None, limit: int = 500) -> List[Email]:
        with self.get_session() as session:
            query = select(Email).where(Email.user_id == user_id)
            if urgency is not None:
                query = query.where(Email.urgency == urgency)
            if user_action is not None:
                query = query.where(Email.user_action == user_action)
            query = query.order_by(Email.received_at.desc()).limit(limit)
            return list(session.execute(query).scalars())

    def list_recent_emails(self, user_id: str, since: datetime, limit: int = 20) -> List[Email]:
        with self.get_session() as session:
            return list(session.execute(
                select(Email)
                .where(Email.user_id == user_id, Email.received_at >= since)
                .order_by(Email.received_at.desc())
                .limit(limit)
            ).scalars())

    def list_failed_emails(self, user_id: str, max_retries: int) -> List[Email]:
        with self.get_session() as session:
            return list(session.execute(
                select(Email)
                .where(
                    Email.user_id == user_id,
                    Email.status == ProcessingStatus.FAILED,
                    Email.retry_count < max_retries,
                )
                .order_by(Email.received_at)
            ).scalars())

    def find_blocking_emails(self, user_id: str, intents: Iterable, limit: int = 5) -> List[Email]:
        """HIGH-urgency emails of the given intents that are unread or awaiting a user action."""
        with self.get_session() as session:
            return list(session.execute(
                select(Email)
                .where(
                    Email.user_id == user_id,
                    Email.intent.in_(list(intents)),
                    Email.urgency == Urgency.HIGH,
                    or_(Email.is_read.is_(False), Email.user_action == UserAction.PENDING),
                )
                .order_by(Email.received_at.desc())
                .limit(limit)
            ).scalars())

    def find_unread_urgent_emails(self, user_id: str, exclude_intents: Iterable,
                                  limit: int = 3) -> List[Email]:
        with self.get_session() as session:
            return list(session.execute(
                select(Email)
                .where(
                    Email.user_id == user_id,
                    Email.urgency == Urgency.HIGH,
                    Email.is_read.is_(False),
                    Email.intent.not_in(list(exclude_intents)),
                )
                .order_by(Email.received_at.desc())
                .limit(limit)
            ).scalars())

    def email_stats(self, user_id: str) -> dict:
        with self.get_session() as session:
            total = session.scalar(select(func.count(Email.id)).where(Email.user_id == user_id))
            pending = session.scalar(
                select(func.count(Email.id))
                .where(Email.user_id == user_id, Email.user_action == UserAction.PENDING)
            )
            rows = session.execute(
                select(Email.urgency, func.count(Email.id))
                .where(Email.user_id == user_id)
                .group_by(Email.urgency)
            ).all()
        by_urgency = {urgency.value.lower(): 0 for urgency in Urgency}
        for urgency, count in rows:
            by_urgency[Urgency(urgency).value.lower()] = count
        return {'total': total or 0, 'pending': pending or 0, 'urgency': by_urgency}

    def delete_email(self, email_id: UUID) -> None:
        """Delete one email after cancelling its pending reminders."""
        self.cancel_reminders_for_email(email_id)
        with self.get_session() as session:
            session.execute(delete(Email).where(Email.id == email_id))

    def disconnect_account(self, user_id: str) -> int:
        """Hard-delete a user's emails and their reminders. Returns deleted email count."""
        with self.get_session() as session:
            session.execute(delete(EmailReminder).where(EmailReminder.user_id == user_id))
            result = session.execute(delete(Email).where(Email.user_id == user_id))
            deleted = result.rowcount or 0
        logger.info(f"Disconnected account {user_id}: deleted {deleted} emails")
        return deleted

    def add_user_action_log(self, user_id: str, email: Email, action: UserAction) -> UserActionLog:
        entry = UserActionLog(
            user_id=user_id,
            email_id=email.id,
            action=action,
            ai_suggestion={
                'intent': str(email.intent),
                'urgency': str(email.urgency),
                'suggestedActions': email.suggested_actions or [],
            },
        )
        with self.get_session() as session:
            session.add(entry)
            session.flush()
            return entry

    def list_user_action_logs(self, email_id: UUID) -> List[UserActionLog]:
        with self.get_session() as session:
            return list(session.execute(
                select(UserActionLog)
                .where(UserActionLog.email_id == email_id)
                .order_by(UserActionLog.created_at)
            ).scalars())

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def insert_decision(self, decision: Decision) -> Decision:
        with self.get_session() as session:
            session.add(decision)
            session.flush()
            return decision

    def get_decision(self, decision_id: UUID, user_id: Optional[str] = None) -> Decision:
        with self.get_session() as session:
            decision = session.get(Decision, decision_id)
            if decision is None or (user_id is not None and decision.user_id != user_id):
                raise NotFoundError('Decision', decision_id)
            return decision

    def update_decision(self, decision_id: UUID, **fields) -> Decision:
        with self.get_session() as session:
            decision = session.get(Decision, decision_id)
            if decision is None:
                raise NotFoundError('Decision', decision_id)
            if 'status' in fields:
                fields['status'] = transition('decision', decision.status, fields['status'])
            for key, value in fields.items():
                setattr(decision, key, value)
            return decision

    def list_due_decisions(self, now: datetime, limit: int = 50,
                           user_id: Optional[str] = None) -> List[Decision]:
        """PENDING decisions whose follow-up time has passed, oldest first."""
        with self.get_session() as session:
            query = select(Decision).where(
                Decision.status == DecisionStatus.PENDING,
                Decision.follow_up_at <= now,
            )
            if user_id is not None:
                query = query.where(Decision.user_id == user_id)
            return list(session.execute(
                query.order_by(Decision.created_at).limit(limit)
            ).scalars())

    def list_task_linked_decisions(self, user_id: Optional[str] = None,
                                   limit: int = 200) -> List[Decision]:
        with self.get_session() as session:
            query = select(Decision).where(
                Decision.status == DecisionStatus.PENDING,
                Decision.task_id.is_not(None),
            )
            if user_id is not None:
                query = query.where(Decision.user_id == user_id)
            return list(session.execute(
                query.order_by(Decision.created_at).limit(limit)
            ).scalars())

    def find_pending_decision_for_email(self, email_id: UUID, decision_type=None) -> Optional[Decision]:
        with self.get_session() as session:
            query = select(Decision).where(
                Decision.email_id == email_id,
                Decision.status == DecisionStatus.PENDING,
            )
            if decision_type is not None:
                query = query.where(Decision.decision_type == decision_type)
            return session.execute(query.order_by(Decision.created_at).limit(1)).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def insert_task(self, task: Task) -> Task:
        with self.get_session() as session:
            session.add(task)
            session.flush()
            return task

    def get_task(self, task_id: UUID, user_id: Optional[str] = None) -> Optional[Task]:
        with self.get_session() as session:
            task = session.get(Task, task_id)
            if task is None or (user_id is not None and task.user_id != user_id):
                return None
            return task

    def update_task(self, task_id: UUID, **fields) -> Task:
        with self.get_session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFoundError('Task', task_id)
            if 'status' in fields:
                fields['status'] = transition('task', task.status, fields['status'])
            for key, value in fields.items():
                setattr(task, key, value)
            return task

    def list_tasks(self, user_id: str, statuses: Optional[Iterable] = None, limit: int = 50) -> List[Task]:
        with self.get_session() as session:
            query = select(Task).where(Task.user_id == user_id)
            if statuses:
                query = query.where(Task.status.in_(list(statuses)))
            return list(session.execute(
                query.order_by(Task.due_date, Task.created_at).limit(limit)
            ).scalars())

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def insert_reminder(self, reminder: EmailReminder) -> EmailReminder:
        """Insert a pending reminder.

        Raises:
            ConflictError: If the email already has a pending reminder
        """
        try:
            with self.get_session() as session:
                session.add(reminder)
                session.flush()
                return reminder
        except IntegrityError as e:
            raise ConflictError(f"A reminder already exists for email {reminder.email_id}") from e

    def get_reminder(self, reminder_id: UUID, user_id: Optional[str] = None) -> EmailReminder:
        with self.get_session() as session:
            reminder = session.get(EmailReminder, reminder_id)
            if reminder is None or (user_id is not None and reminder.user_id != user_id):
                raise NotFoundError('Reminder', reminder_id)
            return reminder

    def update_reminder_status(self, reminder_id: UUID, status: ReminderStatus,
                               triggered_at: Optional[datetime] = None) -> EmailReminder:
        with self.get_session() as session:
            reminder = session.get(EmailReminder, reminder_id)
            if reminder is None:
                raise NotFoundError('Reminder', reminder_id)
            reminder.status = transition('reminder', reminder.status, status)
            if triggered_at is not None:
                reminder.triggered_at = triggered_at
            return reminder

    def list_due_reminders(self, now: datetime, limit: int = 100) -> List[EmailReminder]:
        with self.get_session() as session:
            return list(session.execute(
                select(EmailReminder)
                .where(EmailReminder.status == ReminderStatus.PENDING, EmailReminder.remind_at <= now)
                .order_by(EmailReminder.remind_at)
                .limit(limit)
            ).scalars())

    def list_reminders(self, user_id: str, status: Optional[ReminderStatus] = ReminderStatus.PENDING,
                       due_before: Optional[datetime] = None) -> List[EmailReminder]:
        with self.get_session() as session:
            query = select(EmailReminder).where(EmailReminder.user_id == user_id)
            if status is not None:
                query = query.where(EmailReminder.status == status)
            if due_before is not None:
                query = query.where(EmailReminder.remind_at <= due_before)
            return list(session.execute(query.order_by(EmailReminder.remind_at)).scalars())

    def cancel_reminders_for_email(self, email_id: UUID) -> int:
        with self.get_session() as session:
            result = session.execute(
                update(EmailReminder)
                .where(EmailReminder.email_id == email_id, EmailReminder.status == ReminderStatus.PENDING)
                .values(status=ReminderStatus.CANCELLED)
            )
            cancelled = result.rowcount or 0
        if cancelled:
            logger.info(f"Cancelled {cancelled} reminders for deleted email {email_id}")
        return cancelled

    # ------------------------------------------------------------------
    # Notification state
    # ------------------------------------------------------------------

    def get_notification_state(self, user_id: str) -> Optional[NotificationState]:
        with self.get_session() as session:
            return session.get(NotificationState, user_id)

    def upsert_notification_state(self, user_id: str, **fields) -> NotificationState:
        with self.get_session() as session:
            state = session.get(NotificationState, user_id)
            if state is None:
                state = NotificationState(user_id=user_id)
                session.add(state)
            for key, value in fields.items():
                setattr(state, key, value)
            session.flush()
            return state

    def reset_notification_counter(self, user_id: str, day_start: datetime) -> bool:
        """Zero the daily counter if the last send happened before ``day_start``."""
        with self.get_session() as session:
            result = session.execute(
                update(NotificationState)
                .where(
                    NotificationState.user_id == user_id,
                    NotificationState.notifications_sent_today > 0,
                    or_(
                        NotificationState.last_notification_sent_at.is_(None),
                        NotificationState.last_notification_sent_at < day_start,
                    ),
                )
                .values(notifications_sent_today=0)
            )
            return bool(result.rowcount)

    def reserve_notification_slot(self, user_id: str, daily_cap: int) -> bool:
        """Atomically take one slot of today's notification allowance."""
        with self.get_session() as session:
            result = session.execute(
                update(NotificationState)
                .where(
                    NotificationState.user_id == user_id,
                    NotificationState.notifications_sent_today < daily_cap,
                )
                .values(notifications_sent_today=NotificationState.notifications_sent_today + 1)
            )
            return result.rowcount == 1

    def release_notification_slot(self, user_id: str) -> None:
        with self.get_session() as session:
            session.execute(
                update(NotificationState)
                .where(
                    NotificationState.user_id == user_id,
                    NotificationState.notifications_sent_today > 0,
                )
                .values(notifications_sent_today=NotificationState.notifications_sent_today - 1)
            )

    def stamp_notification_sent(self, user_id: str, sent_at: datetime) -> None:
        with self.get_session() as session:
            session.execute(
                update(NotificationState)
                .where(NotificationState.user_id == user_id)
                .values(last_notification_sent_at=sent_at)
            )

    # ------------------------------------------------------------------
    # Brief cache
    # ------------------------------------------------------------------

    def get_brief_cache(self, user_id: str) -> Optional[BriefCache]:
        with self.get_session() as session:
            return session.get(BriefCache, user_id)

    def save_brief_cache(self, user_id: str, time_of_day: str, payload: dict,
                         generated_at: Optional[datetime] = None) -> BriefCache:
        with self.get_session() as session:
            entry = session.get(BriefCache, user_id)
            if entry is None:
                entry = BriefCache(user_id=user_id)
                session.add(entry)
            entry.time_of_day = time_of_day
            entry.payload = payload
            entry.generated_at = generated_at or utcnow()
            session.flush()
            return entry
