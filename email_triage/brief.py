"""
Daily brief: the rule-based CRITICAL/WARNING/CLEAR state plus an AI
narrative, cached per user.
"""
from datetime import datetime, time as dt_time, timedelta
from typing import Optional

import pytz

from email_triage.config import config
from email_triage.database import DatabaseManager, Intent, ReminderStatus, TaskStatus
from email_triage.database.models import utcnow
from email_triage.errors import ClassifierError, ValidationError
from email_triage.logger import get_logger

logger = get_logger(__name__)

BLOCKING_INTENTS = (Intent.QUESTION, Intent.TASK_REQUEST, Intent.MEETING_REQUEST)

TIMES_OF_DAY = ('morning', 'evening')

FALLBACK_NARRATIVE = {
    'summary': 'Unable to generate AI brief at this time (AI Service Unavailable). Please check your emails manually.',
    'priorities': [],
    'suggestions': [],
}


def end_of_local_day(now: datetime, tz_name: str) -> datetime:
    """Last instant of ``now``'s calendar day in ``tz_name``, in UTC."""
    tz = pytz.timezone(tz_name)
    tomorrow = now.astimezone(tz).date() + timedelta(days=1)
    next_midnight = tz.localize(datetime.combine(tomorrow, dt_time.min))
    return next_midnight.astimezone(pytz.UTC) - timedelta(microseconds=1)


def _sender_label(email) -> str:
    return email.sender_name or email.sender or 'Someone'


class BriefGenerator:
    """Classifies the user's day from current email and reminder state."""

    def __init__(self, db: DatabaseManager, timezone: Optional[str] = None):
        self.db = db
        self.timezone = timezone or config.notifications.timezone

    def generate(self, user_id: str, now: Optional[datetime] = None) -> dict:
        """
        Returns:
            dict with ``state``, ``headline``, ``subtext`` and ``items``
        """
        now = now or utcnow()

        blocking = self.db.find_blocking_emails(user_id, BLOCKING_INTENTS, limit=5)
        if blocking:
            # Blocking items win outright; action items are not evaluated
            who = '1 Person' if len(blocking) == 1 else f"{len(blocking)} People"
            return {
                'state': 'CRITICAL',
                'headline': f"🔥 You're blocking {who}",
                'subtext': 'Critical questions & approvals waiting for you.',
                'items': [
                    {
                        'type': 'BLOCKING',
                        'id': str(email.id),
                        'text': f"{_sender_label(email)} needs {email.intent.value.replace('_', ' ').lower()}",
                        'subtext': email.subject,
                        'intent': email.intent.value,
                    }
                    for email in blocking
                ],
            }

        items = []
        due_today = self.db.list_reminders(
            user_id, status=ReminderStatus.PENDING, due_before=end_of_local_day(now, self.timezone)
        )
        for reminder in due_today:
            items.append({
                'type': 'REMINDER',
                'id': str(reminder.email_id),
                'text': f"Reminder: {reminder.reason or self._email_subject(reminder.email_id)}",
                'subtext': 'Due today',
            })

        for email in self.db.find_unread_urgent_emails(user_id, BLOCKING_INTENTS, limit=3):
            items.append({
                'type': 'URGENT_READ',
                'id': str(email.id),
                'text': f"Read: {email.subject}",
                'subtext': f"From {_sender_label(email)}",
            })

        if items:
            return {
                'state': 'WARNING',
                'headline': f"🟠 {len(items)} Action Items for Today",
                'subtext': 'Reminders and urgent updates.',
                'items': items,
            }

        return {
            'state': 'CLEAR',
            'headline': "☕ You're Clear!",
            'subtext': 'Nothing urgent. Enjoy your focused work.',
            'items': [],
        }

    def _email_subject(self, email_id) -> str:
        email = self.db.find_email(email_id)
        return email.subject if email is not None else 'Task'


class BriefService:
    """Serves the dashboard brief from a per-user cache with a time-to-live.

    The AI narrative degrades to a fixed payload whenever the classifier is
    disabled or fails; the brief itself never fails for that reason.
    """

    def __init__(self, db: DatabaseManager, generator: Optional[BriefGenerator] = None,
                 classifier=None, ai_enabled: Optional[bool] = None, cache_ttl: Optional[int] = None):
        self.db = db
        self.generator = generator or BriefGenerator(db)
        self.classifier = classifier
        self.ai_enabled = config.claude.enabled if ai_enabled is None else ai_enabled
        self.cache_ttl = timedelta(seconds=cache_ttl if cache_ttl is not None else config.brief.cache_ttl)

    def get_brief(self, user_id: str, time_of_day: str = 'morning', force_refresh: bool = False,
                  now: Optional[datetime] = None) -> dict:
        if time_of_day not in TIMES_OF_DAY:
            raise ValidationError("timeOfDay must be 'morning' or 'evening'")
        now = now or utcnow()

        if not force_refresh:
            cached = self.db.get_brief_cache(user_id)
            if (cached is not None and cached.time_of_day == time_of_day
                    and now - cached.generated_at < self.cache_ttl):
                logger.debug(f"Serving cached brief for user {user_id}")
                return dict(cached.payload, cached=True)

        recent_emails = self.db.list_recent_emails(user_id, since=now - timedelta(hours=24), limit=20)
        open_tasks = self.db.list_tasks(
            user_id, statuses=[TaskStatus.PENDING, TaskStatus.IN_PROGRESS], limit=10
        )

        narrative, degraded = self._narrative(recent_emails, open_tasks, time_of_day)
        payload = {
            'timeOfDay': time_of_day,
            'status': self.generator.generate(user_id, now=now),
            'brief': narrative,
            'emailCount': len(recent_emails),
            'taskCount': len(open_tasks),
            'generatedAt': now.isoformat(),
        }
        # A degraded narrative is not cached so the next request retries the AI
        if not degraded:
            self.db.save_brief_cache(user_id, time_of_day, payload, generated_at=now)
        return dict(payload, cached=False)

    def _narrative(self, emails, tasks, time_of_day: str):
        if not self.ai_enabled or self.classifier is None:
            return dict(FALLBACK_NARRATIVE), True

        emails_for_ai = [
            {'from': e.sender, 'subject': e.subject, 'urgency': str(e.urgency), 'intent': str(e.intent)}
            for e in emails
        ]
        tasks_for_ai = [
            {'title': t.title, 'priority': str(t.priority),
             'dueDate': t.due_date.date().isoformat() if t.due_date else None}
            for t in tasks
        ]
        try:
            return self.classifier.daily_brief(emails_for_ai, tasks_for_ai, time_of_day), False
        except ClassifierError as e:
            logger.error(f"Error generating daily brief: {e}")
            return dict(FALLBACK_NARRATIVE), True
