import logging
import unittest
from datetime import timedelta
from unittest.mock import MagicMock

import pytz
import requests

from ..errors import NotifierError
from ..notifications import (
    DISABLED, EXCEPTION, EXPO_ERROR, NO_TOKEN, RATE_LIMIT, ExpoNotifier, NotificationCategory,
    NotificationDispatcher, is_expo_push_token
)
from ..notifications.dispatcher import local_day_start
from .helpers import NOW, enable_push, make_db

logging.getLogger('email_triage').setLevel(logging.CRITICAL)


class TestNotificationDispatcher(unittest.TestCase):
    """Test cases for category gates and the daily cap"""

    def setUp(self):
        self.db = make_db()
        self.notifier = MagicMock()
        self.notifier.send.return_value = 'ticket-1'
        self.dispatcher = NotificationDispatcher(self.db, self.notifier, daily_cap=4, timezone='UTC')

    def send(self, category=NotificationCategory.REMINDER, now=NOW, user_id='user-1'):
        return self.dispatcher.send(user_id, 'Title', 'Body', category, data={'emailId': 'e-1'}, now=now)

    def test_delivers(self):
        enable_push(self.db)

        result = self.send()

        self.assertTrue(result.delivered)
        self.assertEqual(result.receipt_id, 'ticket-1')
        token, title, body, data = self.notifier.send.call_args.args
        self.assertEqual(token, 'ExponentPushToken[abc123]')
        self.assertEqual(data, {'emailId': 'e-1', 'type': 'REMINDER'})

        state = self.db.get_notification_state('user-1')
        self.assertEqual(state.notifications_sent_today, 1)
        self.assertEqual(state.last_notification_sent_at, NOW)

    def test_fifth_send_is_rate_limited(self):
        enable_push(self.db)

        results = [self.send(now=NOW + timedelta(minutes=i)) for i in range(5)]

        self.assertEqual([r.delivered for r in results], [True, True, True, True, False])
        self.assertEqual(results[4].reason, RATE_LIMIT)
        self.assertEqual(self.notifier.send.call_count, 4)

    def test_counter_resets_next_day(self):
        enable_push(self.db)
        for i in range(4):
            self.send(now=NOW + timedelta(minutes=i))

        result = self.send(now=NOW + timedelta(days=1))

        self.assertTrue(result.delivered)
        self.assertEqual(self.db.get_notification_state('user-1').notifications_sent_today, 1)

    def test_day_boundary_follows_timezone(self):
        enable_push(self.db)
        # 01:00 and 21:00 on 2 March, Los Angeles time
        dispatcher = NotificationDispatcher(self.db, self.notifier, daily_cap=1, timezone='America/Los_Angeles')
        self.assertTrue(dispatcher.send('user-1', 'T', 'B', 'REMINDER', now=NOW).delivered)
        same_local_day = NOW + timedelta(hours=20)
        self.assertEqual(dispatcher.send('user-1', 'T', 'B', 'REMINDER', now=same_local_day).reason, RATE_LIMIT)

    def test_no_token(self):
        self.assertEqual(self.send().reason, NO_TOKEN)
        self.db.upsert_notification_state('user-1', push_token=None)
        self.assertEqual(self.send().reason, NO_TOKEN)
        self.notifier.send.assert_not_called()

    def test_category_gate(self):
        enable_push(self.db, urgent_emails=False)

        self.assertEqual(self.send(NotificationCategory.URGENT_EMAIL).reason, DISABLED)
        self.assertTrue(self.send(NotificationCategory.DECISION_FOLLOWUP).delivered)
        self.assertEqual(self.db.get_notification_state('user-1').notifications_sent_today, 1)

    def test_transport_rejection_releases_slot(self):
        enable_push(self.db)
        self.notifier.send.side_effect = NotifierError('DeviceNotRegistered')

        result = self.send()

        self.assertFalse(result.delivered)
        self.assertEqual(result.reason, EXPO_ERROR)
        self.assertEqual(self.db.get_notification_state('user-1').notifications_sent_today, 0)

    def test_unexpected_error_is_reported(self):
        enable_push(self.db)
        self.notifier.send.side_effect = RuntimeError('socket closed')

        result = self.send()

        self.assertEqual(result.reason, EXCEPTION)
        self.assertEqual(self.db.get_notification_state('user-1').notifications_sent_today, 0)

    def test_unknown_category_never_raises(self):
        enable_push(self.db)
        self.assertEqual(self.send(category='NEWSLETTER').reason, EXCEPTION)

    def test_local_day_start(self):
        start = local_day_start(NOW, 'America/New_York')
        # 09:00 UTC is 04:00 EST, so the local day began at 05:00 UTC
        self.assertEqual(start, NOW.replace(hour=5))
        self.assertEqual(start.tzinfo, pytz.UTC)


class TestExpoNotifier(unittest.TestCase):
    """Test cases for the Expo push transport"""

    def setUp(self):
        self.session = MagicMock()
        self.response = MagicMock()
        self.session.post.return_value = self.response
        self.notifier = ExpoNotifier(push_url='https://push.example.com/send', timeout=5, session=self.session)

    def test_token_format(self):
        self.assertTrue(is_expo_push_token('ExponentPushToken[xxx]'))
        self.assertTrue(is_expo_push_token('ExpoPushToken[xxx]'))
        self.assertFalse(is_expo_push_token('fcm-token'))
        self.assertFalse(is_expo_push_token('ExponentPushToken[xxx'))
        self.assertFalse(is_expo_push_token(None))

    def test_send_ok(self):
        self.response.json.return_value = {'data': [{'status': 'ok', 'id': 'ticket-9'}]}

        receipt = self.notifier.send('ExponentPushToken[xxx]', 'Title', 'Body', {'type': 'REMINDER'})

        self.assertEqual(receipt, 'ticket-9')
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], 'https://push.example.com/send')
        self.assertEqual(kwargs['timeout'], 5)
        message = kwargs['json'][0]
        self.assertEqual(message['to'], 'ExponentPushToken[xxx]')
        self.assertIsNone(message['sound'])
        self.assertEqual(message['priority'], 'default')
        self.assertEqual(message['data'], {'type': 'REMINDER'})

    def test_invalid_token(self):
        with self.assertRaises(NotifierError):
            self.notifier.send('not-a-token', 'Title', 'Body')
        self.session.post.assert_not_called()

    def test_ticket_error(self):
        self.response.json.return_value = {
            'data': [{'status': 'error', 'message': 'DeviceNotRegistered'}]
        }

        with self.assertRaises(NotifierError) as ctx:
            self.notifier.send('ExponentPushToken[xxx]', 'Title', 'Body')

        self.assertIn('DeviceNotRegistered', str(ctx.exception))
        self.assertIsNotNone(ctx.exception.details)

    def test_http_failure(self):
        self.response.raise_for_status.side_effect = requests.HTTPError('503 Server Error')

        with self.assertRaises(NotifierError):
            self.notifier.send('ExponentPushToken[xxx]', 'Title', 'Body')

    def test_non_json_response(self):
        self.response.json.side_effect = ValueError('Expecting value')

        with self.assertRaises(NotifierError):
            self.notifier.send('ExponentPushToken[xxx]', 'Title', 'Body')


if __name__ == '__main__':
    unittest.main()
