import unittest
from datetime import timedelta
from uuid import uuid4

from sqlalchemy.exc import StatementError

from ..database import Intent, ProcessingStatus, ReminderStatus, Urgency, UserAction
from ..errors import DuplicateMessage, IllegalTransitionError, NotFoundError
from ..reminders import ReminderEngine
from .helpers import NOW, add_email, make_db


class TestDatabaseManager(unittest.TestCase):
    """Test cases for DatabaseManager class"""

    def setUp(self):
        self.db_manager = make_db()

    def test_tables_exist(self):
        self.assertTrue(self.db_manager.check_tables_exist())

    def test_duplicate_external_id(self):
        add_email(self.db_manager, external_message_id='m-1')
        with self.assertRaises(DuplicateMessage) as ctx:
            add_email(self.db_manager, external_message_id='m-1')
        self.assertEqual(ctx.exception.external_message_id, 'm-1')

    def test_naive_datetimes_are_rejected(self):
        with self.assertRaises((ValueError, StatementError)):
            add_email(self.db_manager, received_at=NOW.replace(tzinfo=None))

    def test_datetimes_round_trip_as_utc(self):
        email = add_email(self.db_manager, received_at=NOW)
        stored = self.db_manager.get_email(email.id)
        self.assertEqual(stored.received_at, NOW)
        self.assertIsNotNone(stored.received_at.tzinfo)

    def test_status_updates_follow_transitions(self):
        email = add_email(self.db_manager, status=ProcessingStatus.PROCESSING)
        self.db_manager.update_email(email.id, status=ProcessingStatus.COMPLETED)
        with self.assertRaises(IllegalTransitionError):
            self.db_manager.update_email(email.id, status=ProcessingStatus.FAILED)

    def test_get_email_scoped_to_user(self):
        email = add_email(self.db_manager, user_id='user-1')
        with self.assertRaises(NotFoundError):
            self.db_manager.get_email(email.id, user_id='user-2')
        self.assertIsNone(self.db_manager.find_email(uuid4()))

    def test_list_emails_newest_first(self):
        old = add_email(self.db_manager, received_at=NOW - timedelta(days=1))
        new = add_email(self.db_manager, received_at=NOW)
        self.assertEqual([e.id for e in self.db_manager.list_emails('user-1')], [new.id, old.id])

    def test_email_stats(self):
        add_email(self.db_manager, urgency=Urgency.HIGH)
        add_email(self.db_manager, urgency=Urgency.LOW, user_action=UserAction.APPROVED)
        add_email(self.db_manager, user_id='user-2', urgency=Urgency.LOW)

        stats = self.db_manager.email_stats('user-1')

        self.assertEqual(stats, {'total': 2, 'pending': 1, 'urgency': {'high': 1, 'medium': 0, 'low': 1}})

    def test_disconnect_account(self):
        mine = add_email(self.db_manager, intent=Intent.QUESTION)
        theirs = add_email(self.db_manager, user_id='user-2')
        ReminderEngine(self.db_manager).create('user-1', mine.id, NOW + timedelta(hours=1), now=NOW)

        deleted = self.db_manager.disconnect_account('user-1')

        self.assertEqual(deleted, 1)
        self.assertEqual(self.db_manager.list_emails('user-1'), [])
        self.assertEqual(self.db_manager.list_reminders('user-1', status=None), [])
        self.assertTrue(self.db_manager.email_exists(theirs.id))

    def test_cancel_reminders_for_email(self):
        email = add_email(self.db_manager)
        reminder = ReminderEngine(self.db_manager).create('user-1', email.id, NOW + timedelta(hours=1), now=NOW)

        self.assertEqual(self.db_manager.cancel_reminders_for_email(email.id), 1)
        self.assertEqual(self.db_manager.get_reminder(reminder.id).status, ReminderStatus.CANCELLED)

    def test_notification_slots(self):
        self.db_manager.upsert_notification_state('user-1', push_token='ExponentPushToken[x]')

        self.assertTrue(self.db_manager.reserve_notification_slot('user-1', 2))
        self.assertTrue(self.db_manager.reserve_notification_slot('user-1', 2))
        self.assertFalse(self.db_manager.reserve_notification_slot('user-1', 2))

        self.db_manager.release_notification_slot('user-1')
        self.assertEqual(self.db_manager.get_notification_state('user-1').notifications_sent_today, 1)

        self.db_manager.stamp_notification_sent('user-1', NOW)
        self.assertFalse(self.db_manager.reset_notification_counter('user-1', NOW - timedelta(hours=1)))
        self.assertTrue(self.db_manager.reset_notification_counter('user-1', NOW + timedelta(hours=1)))
        self.assertEqual(self.db_manager.get_notification_state('user-1').notifications_sent_today, 0)

    def test_clear_tables(self):
        add_email(self.db_manager)
        self.db_manager.clear_tables()
        self.assertEqual(self.db_manager.list_emails('user-1'), [])


if __name__ == '__main__':
    unittest.main()
