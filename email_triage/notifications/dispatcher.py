"""
Notification dispatcher: category gates and the per-user daily cap in front
of the push transport.
"""
from datetime import datetime, time as dt_time
from enum import Enum
from typing import Optional

import pytz

from ..config import config
from ..database import DatabaseManager
from ..database.models import utcnow
from ..errors import NotifierError
from ..logger import get_logger
from ..models import NotificationResult

logger = get_logger(__name__)

NO_TOKEN = 'NO_TOKEN'
DISABLED = 'DISABLED'
RATE_LIMIT = 'RATE_LIMIT'
EXPO_ERROR = 'EXPO_ERROR'
EXCEPTION = 'EXCEPTION'


class NotificationCategory(str, Enum):
    REMINDER = 'REMINDER'
    DECISION_FOLLOWUP = 'DECISION_FOLLOWUP'
    URGENT_EMAIL = 'URGENT_EMAIL'

    def __str__(self) -> str:
        return self.value


# Category -> NotificationState gate column
CATEGORY_GATES = {
    NotificationCategory.REMINDER: 'reminders',
    NotificationCategory.DECISION_FOLLOWUP: 'decision_follow_ups',
    NotificationCategory.URGENT_EMAIL: 'urgent_emails',
}


def local_day_start(now: datetime, tz_name: str) -> datetime:
    """Midnight of ``now``'s calendar day in ``tz_name``, as an aware UTC datetime."""
    tz = pytz.timezone(tz_name)
    local_now = now.astimezone(tz)
    midnight = tz.localize(datetime.combine(local_now.date(), dt_time.min))
    return midnight.astimezone(pytz.UTC)


class NotificationDispatcher:
    """Applies opt-in gates and the daily cap, then calls the notifier.

    ``send`` never raises: every outcome is reported as a NotificationResult.
    """

    def __init__(self, db: DatabaseManager, notifier, daily_cap: Optional[int] = None,
                 timezone: Optional[str] = None):
        self.db = db
        self.notifier = notifier
        self.daily_cap = daily_cap if daily_cap is not None else config.notifications.daily_cap
        self.timezone = timezone or config.notifications.timezone

    def send(self, user_id: str, title: str, body: str, category,
             data: Optional[dict] = None, now: Optional[datetime] = None) -> NotificationResult:
        try:
            category = NotificationCategory(category)
            now = now or utcnow()

            state = self.db.get_notification_state(user_id)
            if state is None or not state.push_token:
                logger.info(f"No push token for user {user_id}")
                return NotificationResult(delivered=False, reason=NO_TOKEN)

            if not getattr(state, CATEGORY_GATES[category]):
                logger.info(f"{category} notifications disabled for user {user_id}")
                return NotificationResult(delivered=False, reason=DISABLED)

            self.db.reset_notification_counter(user_id, local_day_start(now, self.timezone))
            if not self.db.reserve_notification_slot(user_id, self.daily_cap):
                logger.info(f"Daily notification limit reached for user {user_id}")
                return NotificationResult(delivered=False, reason=RATE_LIMIT)

            payload = dict(data or {})
            payload.setdefault('type', category.value)
            try:
                receipt_id = self.notifier.send(state.push_token, title, body, payload)
            except NotifierError as e:
                self.db.release_notification_slot(user_id)
                logger.error(f"Push notification to user {user_id} rejected: {e}")
                return NotificationResult(delivered=False, reason=EXPO_ERROR)
            except Exception:
                self.db.release_notification_slot(user_id)
                raise

            self.db.stamp_notification_sent(user_id, now)
            logger.info(f"Push notification sent to user {user_id}: {title}")
            return NotificationResult(delivered=True, receipt_id=receipt_id)

        except Exception as e:
            logger.exception(f"Error sending push notification to user {user_id}: {e}")
            return NotificationResult(delivered=False, reason=EXCEPTION)
