import uuid
from datetime import datetime
from enum import Enum

import pytz
from sqlalchemy import (
    Boolean, Column, DateTime, Enum as SQLAlchemyEnum, Float, Index, Integer, JSON, String, Text,
    TypeDecorator, Uuid, text
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(pytz.UTC)


class UTCDateTime(TypeDecorator):
    """DateTime that always round-trips as a timezone-aware UTC value.

    SQLite drops tzinfo on storage, so values are written as naive UTC and
    re-tagged with UTC on the way out.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("datetime values must be timezone-aware")
        return value.astimezone(pytz.UTC).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return pytz.UTC.localize(value)
        return value.astimezone(pytz.UTC)


class Intent(str, Enum):
    """Coarse category of an email's purpose"""
    MEETING_REQUEST = 'MEETING_REQUEST'
    TASK_REQUEST = 'TASK_REQUEST'
    QUESTION = 'QUESTION'
    FYI = 'FYI'
    URGENT = 'URGENT'
    MARKETING = 'MARKETING'
    NEWSLETTER = 'NEWSLETTER'
    UNKNOWN = 'UNKNOWN'

    def __str__(self) -> str:
        return self.value


class Urgency(str, Enum):
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'

    def __str__(self) -> str:
        return self.value


class ActionType(str, Enum):
    REPLY = 'REPLY'
    CREATE_TASK = 'CREATE_TASK'
    SCHEDULE_MEETING = 'SCHEDULE_MEETING'
    FOLLOW_UP = 'FOLLOW_UP'
    IGNORE = 'IGNORE'

    def __str__(self) -> str:
        return self.value


class ProcessingStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'

    def __str__(self) -> str:
        return self.value


class UserAction(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    IGNORED = 'ignored'

    def __str__(self) -> str:
        return self.value


class DecisionType(str, Enum):
    REPLY = 'REPLY'
    TASK = 'TASK'
    REMINDER = 'REMINDER'

    def __str__(self) -> str:
        return self.value


class DecisionStatus(str, Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    SNOOZED = 'SNOOZED'
    ABANDONED = 'ABANDONED'

    def __str__(self) -> str:
        return self.value


class ReminderStatus(str, Enum):
    PENDING = 'pending'
    TRIGGERED = 'triggered'
    CANCELLED = 'cancelled'

    def __str__(self) -> str:
        return self.value


class TaskStatus(str, Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    def __str__(self) -> str:
        return self.value


def _enum_column_type(enum_cls) -> SQLAlchemyEnum:
    # Persist enum values rather than member names
    return SQLAlchemyEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Email(Base):
    """One externally-sourced message and its classification"""
    __tablename__ = 'emails'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    external_message_id = Column(String(255), unique=True, nullable=False)
    thread_id = Column(String(255), nullable=False, default='')

    sender = Column(String(255), nullable=False, default='')
    sender_name = Column(String(255))
    recipients = Column(JSON, nullable=False, default=list)
    subject = Column(Text, nullable=False, default='(No Subject)')
    body = Column(Text, nullable=False, default='')
    body_html = Column(Text, nullable=False, default='')
    received_at = Column(UTCDateTime, nullable=False, index=True)
    attachments = Column(JSON, nullable=False, default=list)

    intent = Column(_enum_column_type(Intent), nullable=False, default=Intent.UNKNOWN)
    urgency = Column(_enum_column_type(Urgency), nullable=False, default=Urgency.MEDIUM, index=True)
    summary = Column(Text, nullable=False, default='')
    confidence_score = Column(Float, nullable=False, default=0.0)
    reasoning = Column(Text, nullable=False, default='')
    suggested_actions = Column(JSON, nullable=False, default=list)
    draft_reply = Column(Text)
    signal_score = Column(Integer)
    model_version = Column(String(100))

    status = Column(_enum_column_type(ProcessingStatus), nullable=False, default=ProcessingStatus.PENDING)
    retry_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    processed_at = Column(UTCDateTime)

    user_action = Column(_enum_column_type(UserAction), nullable=False, default=UserAction.PENDING)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    last_surfaced_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_emails_user_received', 'user_id', 'received_at'),
        Index('ix_emails_user_urgency', 'user_id', 'urgency'),
    )

    @property
    def primary_action(self):
        """The highest-ranked suggested action, or None."""
        if not self.suggested_actions:
            return None
        return self.suggested_actions[0]

    def __repr__(self):
        return f"<Email(external_message_id='{self.external_message_id}', subject='{self.subject}')>"


class Task(Base):
    """A trackable unit of work, optionally derived from an email"""
    __tablename__ = 'tasks'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default='')
    priority = Column(_enum_column_type(Urgency), nullable=False, default=Urgency.MEDIUM)
    due_date = Column(UTCDateTime)
    source_email_id = Column(Uuid)
    status = Column(_enum_column_type(TaskStatus), nullable=False, default=TaskStatus.PENDING)
    created_by = Column(String(16), nullable=False, default='user')
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    completed_at = Column(UTCDateTime)

    def __repr__(self):
        return f"<Task(title='{self.title}', status='{self.status}')>"


class Decision(Base):
    """A promise to follow up on an approved suggested action"""
    __tablename__ = 'decisions'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    email_id = Column(Uuid, nullable=False)
    task_id = Column(Uuid)
    reminder_id = Column(Uuid)

    decision_type = Column(_enum_column_type(DecisionType), nullable=False)
    decision_text = Column(Text, nullable=False)
    source = Column(String(16), nullable=False, default='EMAIL')

    status = Column(_enum_column_type(DecisionStatus), nullable=False, default=DecisionStatus.PENDING)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    follow_up_at = Column(UTCDateTime, nullable=False, index=True)
    completed_at = Column(UTCDateTime)
    snooze_count = Column(Integer, nullable=False, default=0)
    # Milliseconds between creation and completion
    time_to_complete = Column(Integer)

    __table_args__ = (
        Index('ix_decisions_user_status_follow_up', 'user_id', 'status', 'follow_up_at'),
    )

    def __repr__(self):
        return f"<Decision(decision_text='{self.decision_text}', status='{self.status}')>"


class EmailReminder(Base):
    """A scheduled nudge tied to one email"""
    __tablename__ = 'email_reminders'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    email_id = Column(Uuid, nullable=False, index=True)
    remind_at = Column(UTCDateTime, nullable=False)
    status = Column(_enum_column_type(ReminderStatus), nullable=False, default=ReminderStatus.PENDING)
    reason = Column(Text)
    triggered_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_email_reminders_due', 'remind_at', 'status'),
        # At most one pending reminder per email
        Index(
            'uq_email_reminders_pending',
            'email_id',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self):
        return f"<EmailReminder(email_id='{self.email_id}', status='{self.status}')>"


class NotificationState(Base):
    """Per-user push token, category gates and daily counter"""
    __tablename__ = 'notification_state'

    user_id = Column(String(255), primary_key=True)
    push_token = Column(String(255))
    reminders = Column(Boolean, nullable=False, default=True)
    decision_follow_ups = Column(Boolean, nullable=False, default=True)
    urgent_emails = Column(Boolean, nullable=False, default=True)
    notifications_sent_today = Column(Integer, nullable=False, default=0)
    last_notification_sent_at = Column(UTCDateTime)

    def __repr__(self):
        return f"<NotificationState(user_id='{self.user_id}', sent_today={self.notifications_sent_today})>"


class BriefCache(Base):
    """Most recently generated dashboard brief per user"""
    __tablename__ = 'brief_cache'

    user_id = Column(String(255), primary_key=True)
    time_of_day = Column(String(16), nullable=False)
    payload = Column(JSON, nullable=False)
    generated_at = Column(UTCDateTime, nullable=False)


class UserActionLog(Base):
    """Audit trail of user dispositions against AI suggestions"""
    __tablename__ = 'user_action_log'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    email_id = Column(Uuid, nullable=False)
    action = Column(_enum_column_type(UserAction), nullable=False)
    ai_suggestion = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<UserActionLog(email_id='{self.email_id}', action='{self.action}')>"
