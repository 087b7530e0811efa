import logging
import unittest
from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

from fastapi.testclient import TestClient

from ..analyzer import Classification
from ..analyzer.models import SuggestedAction
from ..api import Services, create_app
from ..database import Intent, Urgency
from ..database.models import utcnow
from .helpers import make_db

logging.getLogger('email_triage').setLevel(logging.CRITICAL)

USER = {'X-User-Id': 'user-1'}


def raw(message_id, subject='Please approve budget by EOD today'):
    return {
        'externalMessageId': message_id,
        'threadId': f"thread-{message_id}",
        'from': 'bob@example.com',
        'subject': subject,
        'body': '',
    }


class TestApi(unittest.TestCase):
    """Test cases for the HTTP surface"""

    def setUp(self):
        self.db = make_db()
        self.classifier = MagicMock()
        self.classifier.classify.return_value = Classification(
            intent=Intent.TASK_REQUEST,
            urgency=Urgency.HIGH,
            confidence=0.9,
            summary='Bob needs budget approval.',
            suggested_actions=[SuggestedAction('CREATE_TASK', 'Approve Q3 budget', 1)],
            model_version='claude-test',
        )
        self.classifier.daily_brief.return_value = {'summary': 'Busy day.', 'priorities': [], 'suggestions': []}
        self.classifier.draft_reply.return_value = 'Approved.'
        self.mail_source = MagicMock()
        self.mail_source.fetch_messages.return_value = [raw('m-1'), raw('m-1')]
        self.mail_source.create_draft_reply.return_value = 'draft-1'
        self.notifier = MagicMock()
        self.notifier.send.return_value = 'ticket-1'

        self.services = Services.build(
            self.db,
            classifier=self.classifier,
            notifier=self.notifier,
            mail_source=self.mail_source,
            ai_enabled=True,
            sleep=MagicMock(),
        )
        self.client = TestClient(create_app(self.services))

    def sync(self):
        response = self.client.post('/emails/sync', headers=USER, json={'maxResults': 5})
        self.assertEqual(response.status_code, 200)
        return response.json()

    def first_email_id(self):
        return self.client.get('/emails', headers=USER).json()['emails'][0]['id']

    def test_health(self):
        self.assertEqual(self.client.get('/health').json(), {'status': 'ok'})

    def test_requires_user(self):
        self.assertEqual(self.client.get('/emails').status_code, 401)

    def test_sync_counts(self):
        body = self.sync()

        self.assertTrue(body['success'])
        self.assertEqual(body['emailsProcessed'], 1)
        self.assertEqual(body['emailsSkipped'], 1)
        self.assertEqual(body['emailsFailed'], 0)
        self.mail_source.fetch_messages.assert_called_once_with(max_results=5)

    def test_sync_default_batch(self):
        response = self.client.post('/emails/sync', headers=USER)
        self.assertEqual(response.status_code, 200)
        self.mail_source.fetch_messages.assert_called_once_with(max_results=10)

    def test_list_and_get_emails(self):
        self.sync()

        listing = self.client.get('/emails', headers=USER, params={'urgency': 'high'}).json()
        self.assertEqual(listing['count'], 1)
        email = listing['emails'][0]
        self.assertEqual(email['aiAnalysis']['urgency'], 'HIGH')
        self.assertEqual(email['aiProcessingStatus'], 'completed')
        self.assertEqual(email['userAction'], 'pending')

        detail = self.client.get(f"/emails/{email['id']}", headers=USER).json()
        self.assertEqual(detail['email']['externalMessageId'], 'm-1')

        other_user = self.client.get(f"/emails/{email['id']}", headers={'X-User-Id': 'user-2'})
        self.assertEqual(other_user.status_code, 404)

    def test_bad_input_is_400(self):
        self.assertEqual(self.client.get('/emails', headers=USER, params={'urgency': 'soon'}).status_code, 400)
        self.assertEqual(self.client.get('/emails/not-a-uuid', headers=USER).status_code, 400)
        response = self.client.get(f"/emails/{uuid4()}", headers=USER)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['success'], False)

    def test_stats(self):
        self.sync()
        stats = self.client.get('/emails/stats/overview', headers=USER).json()['stats']
        self.assertEqual(stats, {'total': 1, 'pending': 1, 'urgency': {'high': 1, 'medium': 0, 'low': 0}})

    def test_approve_creates_decision(self):
        self.sync()
        email_id = self.first_email_id()

        response = self.client.post(f"/emails/{email_id}/action", headers=USER, json={'action': 'approved'})

        self.assertEqual(response.status_code, 200)
        decision = response.json()['decision']
        self.assertEqual(decision['decisionType'], 'TASK')
        self.assertEqual(decision['status'], 'PENDING')

        again = self.client.post(f"/emails/{email_id}/action", headers=USER, json={'action': 'rejected'})
        self.assertEqual(again.status_code, 409)

        invalid = self.client.post(f"/emails/{email_id}/action", headers=USER, json={'action': 'pending'})
        self.assertEqual(invalid.status_code, 400)

    def test_resolve_decision(self):
        self.sync()
        email_id = self.first_email_id()
        decision = self.client.post(
            f"/emails/{email_id}/action", headers=USER, json={'action': 'approved'}
        ).json()['decision']

        snoozed = self.client.post(
            f"/decisions/{decision['id']}/resolve", headers=USER, json={'resolution': 'SNOOZED'}
        ).json()['decision']
        self.assertEqual(snoozed['snoozeCount'], 1)
        self.assertEqual(snoozed['status'], 'PENDING')

        done = self.client.post(
            f"/decisions/{decision['id']}/resolve", headers=USER, json={'resolution': 'COMPLETED'}
        )
        self.assertEqual(done.json()['decision']['status'], 'COMPLETED')

        again = self.client.post(
            f"/decisions/{decision['id']}/resolve", headers=USER, json={'resolution': 'ABANDONED'}
        )
        self.assertEqual(again.status_code, 409)

        self.assertEqual(self.client.get('/decisions/pending', headers=USER).json()['decisions'], [])

    def test_reminders(self):
        self.sync()
        email_id = self.first_email_id()
        remind_at = (utcnow() + timedelta(hours=1)).isoformat()

        created = self.client.post('/reminders', headers=USER, json={'emailId': email_id, 'remindAt': remind_at})
        self.assertEqual(created.status_code, 201)
        reminder_id = created.json()['reminder']['id']

        duplicate = self.client.post('/reminders', headers=USER, json={'emailId': email_id, 'remindAt': remind_at})
        self.assertEqual(duplicate.status_code, 409)

        past = (utcnow() - timedelta(hours=1)).isoformat()
        self.assertEqual(
            self.client.post('/reminders', headers=USER, json={'emailId': email_id, 'remindAt': past}).status_code,
            400
        )

        listing = self.client.get('/reminders', headers=USER).json()['reminders']
        self.assertEqual(len(listing), 1)
        self.assertEqual(listing[0]['email']['subject'], 'Please approve budget by EOD today')

        cancelled = self.client.delete(f"/reminders/{reminder_id}", headers=USER)
        self.assertEqual(cancelled.json()['reminder']['status'], 'cancelled')
        self.assertEqual(self.client.get('/reminders', headers=USER).json()['reminders'], [])

    def test_tasks(self):
        created = self.client.post('/tasks', headers=USER, json={'title': 'Write report', 'priority': 'high'})
        self.assertEqual(created.status_code, 201)
        task_id = created.json()['task']['id']

        updated = self.client.put(f"/tasks/{task_id}", headers=USER, json={'status': 'completed'})
        self.assertEqual(updated.json()['task']['status'], 'completed')
        self.assertIsNotNone(updated.json()['task']['completedAt'])

        reopened = self.client.put(f"/tasks/{task_id}", headers=USER, json={'status': 'pending'})
        self.assertEqual(reopened.status_code, 409)

        self.assertEqual(self.client.post('/tasks', headers=USER, json={'title': ''}).status_code, 400)
        self.assertEqual(self.client.get('/tasks', headers=USER).json()['count'], 1)

    def test_task_from_email(self):
        self.sync()
        email_id = self.first_email_id()

        response = self.client.post(f"/tasks/from-email/{email_id}", headers=USER)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['task']['title'], 'Approve Q3 budget')

    def test_notification_settings(self):
        defaults = self.client.get('/notifications/settings', headers=USER).json()['settings']
        self.assertEqual(defaults['reminders'], True)

        bad = self.client.post('/notifications/token', headers=USER, json={'pushToken': 'abc'})
        self.assertEqual(bad.status_code, 400)
        good = self.client.post('/notifications/token', headers=USER, json={'pushToken': 'ExponentPushToken[abc]'})
        self.assertEqual(good.status_code, 200)

        settings = self.client.put(
            '/notifications/settings', headers=USER, json={'urgentEmails': False}
        ).json()['settings']
        self.assertEqual(settings['pushToken'], 'ExponentPushToken[abc]')
        self.assertFalse(settings['urgentEmails'])
        self.assertTrue(settings['reminders'])

        self.client.delete('/notifications/token', headers=USER)
        self.assertIsNone(self.client.get('/notifications/settings', headers=USER).json()['settings']['pushToken'])

    def test_urgent_sync_pushes_notification(self):
        self.client.post('/notifications/token', headers=USER, json={'pushToken': 'ExponentPushToken[abc]'})

        self.sync()

        self.notifier.send.assert_called_once()
        token, title, _, data = self.notifier.send.call_args.args
        self.assertEqual(title, '🔴 Urgent Email')
        self.assertEqual(data['type'], 'URGENT_EMAIL')

    def test_dashboard_brief(self):
        self.sync()

        body = self.client.get('/dashboard/brief', headers=USER, params={'timeOfDay': 'evening'}).json()

        self.assertEqual(body['timeOfDay'], 'evening')
        self.assertEqual(body['status']['state'], 'CRITICAL')
        self.assertEqual(body['brief']['summary'], 'Busy day.')
        self.assertFalse(body['cached'])

        bad = self.client.get('/dashboard/brief', headers=USER, params={'timeOfDay': 'noon'})
        self.assertEqual(bad.status_code, 400)

    def test_draft_reply(self):
        self.sync()
        email_id = self.first_email_id()

        body = self.client.post(f"/emails/{email_id}/draft-reply", headers=USER).json()

        self.assertEqual(body['draftReply'], 'Approved.')
        self.assertEqual(body['draftId'], 'draft-1')

    def test_delete_email(self):
        self.sync()
        email_id = self.first_email_id()

        self.assertEqual(self.client.delete(f"/emails/{email_id}", headers=USER).status_code, 200)
        self.assertEqual(self.client.get(f"/emails/{email_id}", headers=USER).status_code, 404)

    def test_unexpected_error_is_500(self):
        self.services.briefs = MagicMock()
        self.services.briefs.get_brief.side_effect = RuntimeError('boom')
        client = TestClient(create_app(self.services), raise_server_exceptions=False)

        response = client.get('/dashboard/brief', headers=USER)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False, 'message': 'Internal server error'})


if __name__ == '__main__':
    unittest.main()
