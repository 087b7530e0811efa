import logging
import unittest
from unittest.mock import MagicMock, patch

import httpx
from anthropic import APIConnectionError, BadRequestError, RateLimitError

from ..analyzer import EmailClassifier, extract_json_object
from ..database import Intent, Urgency
from ..errors import ClassificationParseError, ClassificationProviderError, QuotaExhausted

# Set log level for all loggers to reduce noise during tests
logging.getLogger('email_triage').setLevel(logging.CRITICAL)

API_URL = 'https://api.anthropic.com/v1/messages'

CLASSIFICATION_REPLY = '''Here is my analysis:
```json
{
  "intent": "task_request",
  "urgency": "HIGH",
  "confidence": 0.92,
  "summary": "Bob needs budget approval today.",
  "reasoning": "Explicit deadline and approval request.",
  "suggestedActions": [
    {"type": "reply", "description": "Confirm the approval", "priority": 2},
    {"type": "CREATE_TASK", "description": "Approve Q3 budget", "priority": 1}
  ]
}
```
Let me know if you need anything else.'''


def reply(text):
    response = MagicMock()
    response.content = [MagicMock(text=text, type='text')]
    return response


def rate_limit_error():
    response = httpx.Response(429, request=httpx.Request('POST', API_URL))
    return RateLimitError('rate limited', response=response, body=None)


class TestExtractJson(unittest.TestCase):
    def test_plain_object(self):
        self.assertEqual(extract_json_object('{"a": 1}'), {'a': 1})

    def test_code_fence_and_commentary(self):
        data = extract_json_object(CLASSIFICATION_REPLY)
        self.assertEqual(data['urgency'], 'HIGH')

    def test_skips_stray_braces(self):
        self.assertEqual(extract_json_object('Use {curly} braces: {"ok": true}'), {'ok': True})

    def test_no_object(self):
        with self.assertRaises(ClassificationParseError):
            extract_json_object('I cannot classify this email.')
        with self.assertRaises(ClassificationParseError):
            extract_json_object(None)


class TestEmailClassifier(unittest.TestCase):
    """Test cases for the Claude-backed classifier"""

    def setUp(self):
        self.client = MagicMock()
        self.sleep = MagicMock()
        self.classifier = EmailClassifier(
            self.client,
            model='claude-test',
            max_tokens=500,
            retry_attempts=3,
            retry_initial_delay=2,
            sleep=self.sleep,
        )

    def test_classify_normalizes_reply(self):
        self.client.messages.create.return_value = reply(CLASSIFICATION_REPLY)

        result = self.classifier.classify('bob@example.com', 'Budget', 'Please approve by EOD today')

        self.client.messages.create.assert_called_once()
        kwargs = self.client.messages.create.call_args.kwargs
        self.assertEqual(kwargs['model'], 'claude-test')
        self.assertEqual(kwargs['max_tokens'], 500)
        self.assertEqual(kwargs['messages'][0]['role'], 'user')

        self.assertEqual(result.intent, Intent.TASK_REQUEST)
        self.assertEqual(result.urgency, Urgency.HIGH)
        self.assertAlmostEqual(result.confidence, 0.92)
        self.assertEqual(result.model_version, 'claude-test')
        # Sorted by priority, types uppercased
        self.assertEqual([a.type for a in result.suggested_actions], ['CREATE_TASK', 'REPLY'])

    def test_classify_tolerates_odd_values(self):
        self.client.messages.create.return_value = reply(
            '{"intent": "SPAM", "urgency": "whenever", "confidenceScore": "1.7", "actions": "none"}'
        )

        result = self.classifier.classify('a@example.com', 'Hi', '')

        self.assertEqual(result.intent, Intent.UNKNOWN)
        self.assertEqual(result.urgency, Urgency.MEDIUM)
        self.assertEqual(result.confidence, 1.0)
        self.assertEqual(result.suggested_actions, [])

    def test_classify_parse_error(self):
        self.client.messages.create.return_value = reply('Sorry, I cannot help with that.')

        with self.assertRaises(ClassificationParseError):
            self.classifier.classify('a@example.com', 'Hi', '')

    def test_rate_limit_is_retried_with_backoff(self):
        self.client.messages.create.side_effect = [
            rate_limit_error(),
            rate_limit_error(),
            reply(CLASSIFICATION_REPLY),
        ]

        result = self.classifier.classify('bob@example.com', 'Budget', '')

        self.assertEqual(result.intent, Intent.TASK_REQUEST)
        self.assertEqual(self.client.messages.create.call_count, 3)
        self.assertEqual(self.sleep.call_count, 2)
        first, second = [c.args[0] for c in self.sleep.call_args_list]
        self.assertEqual(second, first * 2)

    def test_rate_limit_gives_up_after_attempts(self):
        self.client.messages.create.side_effect = [rate_limit_error() for _ in range(3)]

        with self.assertRaises(ClassificationProviderError) as ctx:
            self.classifier.classify('bob@example.com', 'Budget', '')

        self.assertTrue(ctx.exception.rate_limited)
        self.assertEqual(self.client.messages.create.call_count, 3)

    def test_other_errors_not_retried(self):
        self.client.messages.create.side_effect = APIConnectionError(
            request=httpx.Request('POST', API_URL)
        )

        with self.assertRaises(ClassificationProviderError) as ctx:
            self.classifier.classify('bob@example.com', 'Budget', '')

        self.assertFalse(ctx.exception.rate_limited)
        self.assertEqual(self.client.messages.create.call_count, 1)
        self.sleep.assert_not_called()

    def test_credit_exhaustion_fails_fast_afterwards(self):
        response = httpx.Response(400, request=httpx.Request('POST', API_URL))
        self.client.messages.create.side_effect = BadRequestError(
            'Your credit balance is too low to access the Anthropic API.',
            response=response,
            body=None,
        )

        with self.assertRaises(QuotaExhausted):
            self.classifier.classify('a@example.com', 'Hi', '')
        with self.assertRaises(QuotaExhausted):
            self.classifier.classify('a@example.com', 'Hi again', '')

        self.assertEqual(self.client.messages.create.call_count, 1)

    def test_draft_reply(self):
        self.client.messages.create.return_value = reply('  Thanks Bob, approved.\n')

        text = self.classifier.draft_reply('bob@example.com', 'Budget', 'Approve?', Intent.QUESTION)

        self.assertEqual(text, 'Thanks Bob, approved.')

    def test_daily_brief(self):
        self.client.messages.create.return_value = reply(
            '{"summary": "Quiet day.", "priorities": ["Reply to Bob"], "suggestions": "none"}'
        )

        brief = self.classifier.daily_brief([{'subject': 'Budget'}], [], 'morning')

        self.assertEqual(brief, {'summary': 'Quiet day.', 'priorities': ['Reply to Bob'], 'suggestions': []})

    @patch('email_triage.analyzer.analyzer.Anthropic')
    def test_default_client_uses_configured_key(self, mock_anthropic_class):
        classifier = EmailClassifier(model='claude-test')

        mock_anthropic_class.assert_called_once()
        self.assertIs(classifier.client, mock_anthropic_class.return_value)


if __name__ == '__main__':
    unittest.main()
