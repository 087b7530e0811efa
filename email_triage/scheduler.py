"""
Periodic jobs: the reminder tick and the decision follow-up tick.

Each job runs on its own ``Ticker`` thread. A tick always runs to completion
before the next tick of the same job starts; the two jobs may overlap with
each other and with request handling.
"""
import threading
from datetime import datetime
from typing import Callable, Optional

from email_triage.config import config
from email_triage.database import DatabaseManager, ReminderStatus
from email_triage.database.models import utcnow
from email_triage.errors import NotFoundError
from email_triage.logger import get_logger
from email_triage.notifications import NotificationCategory

logger = get_logger(__name__)


class Ticker:
    """Runs ``func(now)`` every ``interval`` seconds on a daemon thread.

    ``run_once`` triggers a single tick synchronously, which is how tests
    drive the jobs without waiting on wall-clock time.
    """

    def __init__(self, name: str, interval: float, func: Callable[[datetime], object],
                 clock: Callable[[], datetime] = utcnow):
        self.name = name
        self.interval = interval
        self.func = func
        self.clock = clock
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now: Optional[datetime] = None):
        with self._run_lock:
            try:
                return self.func(now or self.clock())
            except Exception:
                logger.exception(f"[{self.name}] tick failed")
                return None

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"[{self.name}] started, every {self.interval:g}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"[{self.name}] stopped")


class Scheduler:
    """Owns the reminder and decision tickers.

    Attributes:
        db (DatabaseManager): Repository for reminders, emails and decisions
        dispatcher (NotificationDispatcher): Sends the notifications
        decisions (DecisionEngine): Optional, reconciles task-linked decisions each decision tick
    """

    def __init__(self, db: DatabaseManager, dispatcher, decisions=None,
                 reminder_interval: Optional[float] = None, decision_interval: Optional[float] = None,
                 reminder_batch: Optional[int] = None, decision_batch: Optional[int] = None):
        self.db = db
        self.dispatcher = dispatcher
        self.decisions = decisions
        self.reminder_batch = reminder_batch or config.scheduler.reminder_batch
        self.decision_batch = decision_batch or config.scheduler.decision_batch
        self.reminder_ticker = Ticker(
            'Reminder Cron',
            reminder_interval or config.scheduler.reminder_interval,
            self.reminder_tick,
        )
        self.decision_ticker = Ticker(
            'Decision Cron',
            decision_interval or config.scheduler.decision_interval,
            self.decision_tick,
        )

    def start(self) -> None:
        self.reminder_ticker.start()
        self.decision_ticker.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.reminder_ticker.stop(timeout)
        self.decision_ticker.stop(timeout)

    def reminder_tick(self, now: Optional[datetime] = None) -> int:
        """Notify and trigger every due pending reminder.

        A reminder is marked triggered whatever the notification outcome, so
        a failed delivery never re-queues it.

        Returns:
            Number of reminders triggered
        """
        now = now or utcnow()
        due = self.db.list_due_reminders(now, limit=self.reminder_batch)
        if not due:
            logger.debug("[Reminder Cron] No due reminders found")
            return 0

        logger.info(f"[Reminder Cron] Found {len(due)} due reminders")
        triggered = 0
        for reminder in due:
            try:
                self._notify_reminder(reminder, now)
            except Exception as e:
                logger.error(f"[Reminder Cron] Error notifying reminder {reminder.id}: {e}")

            try:
                self.db.update_reminder_status(reminder.id, ReminderStatus.TRIGGERED, triggered_at=now)
                triggered += 1
            except Exception as e:
                logger.error(f"[Reminder Cron] Error triggering reminder {reminder.id}: {e}")

        logger.info(f"[Reminder Cron] Triggered {triggered} reminders")
        return triggered

    def _notify_reminder(self, reminder, now: datetime) -> None:
        try:
            email = self.db.get_email(reminder.email_id)
        except NotFoundError:
            logger.warning(f"[Reminder Cron] Email {reminder.email_id} for reminder {reminder.id} is gone")
            email = None

        subject = email.subject if email is not None else 'an email'
        body = f"{reminder.reason}: {subject}" if reminder.reason else f"Time to follow up on: {subject}"
        result = self.dispatcher.send(
            reminder.user_id,
            '⏰ Email Reminder',
            body,
            NotificationCategory.REMINDER,
            data={'reminderId': str(reminder.id), 'emailId': str(reminder.email_id)},
            now=now,
        )
        if not result.delivered:
            logger.info(f"[Reminder Cron] Reminder {reminder.id} not delivered: {result.reason}")

    def decision_tick(self, now: Optional[datetime] = None) -> int:
        """Send one follow-up notification per due PENDING decision.

        Decision status is left unchanged; only the user resolves decisions.

        Returns:
            Number of notifications attempted
        """
        now = now or utcnow()
        if self.decisions is not None:
            self.decisions.auto_complete_from_tasks(now=now)

        due = self.db.list_due_decisions(now, limit=self.decision_batch)
        if not due:
            logger.debug("[Decision Cron] No decision follow-ups due")
            return 0

        logger.info(f"[Decision Cron] Found {len(due)} decision follow-ups")
        sent = 0
        for decision in due:
            try:
                self.dispatcher.send(
                    decision.user_id,
                    "📋 Yesterday's Decision",
                    f"Did you complete: {decision.decision_text}?",
                    NotificationCategory.DECISION_FOLLOWUP,
                    data={
                        'decisionId': str(decision.id),
                        'decisionText': decision.decision_text,
                        'reason': 'You approved this action yesterday',
                    },
                    now=now,
                )
                sent += 1
            except Exception as e:
                logger.error(f"[Decision Cron] Error sending notification for decision {decision.id}: {e}")
        return sent
