import json
import logging
import time
from typing import Any, Callable, Iterable, Optional

from anthropic import Anthropic, APIError, RateLimitError
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import config
from ..database.models import Intent, Urgency
from ..errors import ClassificationParseError, ClassificationProviderError, QuotaExhausted
from ..logger import get_logger
from .models import Classification, SuggestedAction
from .prompts import get_classification_prompt, get_daily_brief_prompt, get_reply_draft_prompt

logger = get_logger(__name__)

_decoder = json.JSONDecoder()


def extract_json_object(text: str) -> dict:
    """Return the first well-formed JSON object embedded in free-form text.

    Tolerates surrounding commentary and markdown code fences.

    Raises:
        ClassificationParseError: If no JSON object can be decoded
    """
    if not isinstance(text, str):
        raise ClassificationParseError("Classifier reply is not text")

    start = text.find('{')
    while start != -1:
        try:
            data, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find('{', start + 1)
            continue
        if isinstance(data, dict):
            return data
        start = text.find('{', start + 1)

    logger.debug(f"No JSON object in classifier reply: {text!r}")
    raise ClassificationParseError("No JSON object found in classifier reply")


def _parse_enum(enum_cls, value, default):
    try:
        return enum_cls(str(value).strip().upper())
    except (ValueError, AttributeError):
        return default


def _parse_confidence(value) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(max(confidence, 0.0), 1.0)


def _parse_actions(raw_actions) -> list:
    if not isinstance(raw_actions, list):
        return []
    actions = []
    for index, item in enumerate(raw_actions):
        if not isinstance(item, dict) or not item.get('type'):
            continue
        try:
            priority = int(item.get('priority', index + 1))
        except (TypeError, ValueError):
            priority = index + 1
        actions.append(SuggestedAction(
            type=str(item['type']).strip().upper(),
            description=str(item.get('description') or ''),
            priority=priority,
        ))
    return sorted(actions, key=lambda action: action.priority)


def parse_classification(data: dict, model_version: Optional[str] = None) -> Classification:
    """Normalize a decoded classifier reply into a Classification."""
    return Classification(
        intent=_parse_enum(Intent, data.get('intent'), Intent.UNKNOWN),
        urgency=_parse_enum(Urgency, data.get('urgency'), Urgency.MEDIUM),
        confidence=_parse_confidence(data.get('confidence', data.get('confidenceScore'))),
        summary=str(data.get('summary') or ''),
        reasoning=str(data.get('reasoning') or ''),
        suggested_actions=_parse_actions(data.get('suggestedActions', data.get('actions'))),
        model_version=model_version,
    )


class EmailClassifier:
    """Classifies emails with a single composite Claude prompt.

    The Claude client is injected so tests can substitute a stub. Rate-limit
    responses are retried with bounded exponential backoff; every other
    provider error is raised immediately.
    """

    def __init__(
        self,
        claude_client: Optional[Anthropic] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        retry_initial_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if claude_client:
            self.client = claude_client
        else:
            self.client = Anthropic(api_key=config.claude.api_key)

        self.model = model or config.claude.model
        self.max_tokens = max_tokens or config.claude.max_tokens
        self._credits_exhausted = False

        attempts = retry_attempts or config.pipeline.retry_attempts
        initial_delay = retry_initial_delay or config.pipeline.retry_initial_delay
        self._retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=initial_delay, exp_base=2, max=60),
            retry=retry_if_exception_type(RateLimitError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=sleep,
            reraise=True,
        )

    def _complete(self, prompt: str) -> str:
        """Send one prompt and return the reply text."""
        if self._credits_exhausted:
            logger.error("Credits already exhausted, failing fast")
            raise QuotaExhausted("Claude API credits are exhausted")

        logger.debug(f"Sending prompt: {prompt}")
        try:
            response = self._retrying(
                self.client.messages.create,
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}]
            )
        except RateLimitError as e:
            logger.error(f"Claude rate limit persisted after retries: {e}")
            raise ClassificationProviderError(f"Rate limited: {e}", rate_limited=True) from e
        except APIError as e:
            error_message = str(e)
            if 'credit balance is too low' in error_message.lower():
                self._credits_exhausted = True
                logger.error("Claude API credits exhausted. Please recharge your account.")
                raise QuotaExhausted("Claude API credits are exhausted") from e
            logger.error(f"Claude API error: {error_message}")
            raise ClassificationProviderError(error_message) from e

        response_text = response.content[0].text if isinstance(response.content, list) else response.content
        logger.debug(f"Extracted response text: {response_text}")
        return response_text

    def classify(self, sender: str, subject: str, body: str) -> Classification:
        """Classify one message in a single round trip.

        Raises:
            ClassificationParseError: If the reply holds no JSON object
            ClassificationProviderError: On provider failure
            QuotaExhausted: If the account has no credits left
        """
        response_text = self._complete(get_classification_prompt(sender, subject, body))
        data = extract_json_object(response_text)
        return parse_classification(data, model_version=self.model)

    def draft_reply(self, sender: str, subject: str, body: str, intent: Any) -> str:
        """Generate a short reply draft as plain text."""
        response_text = self._complete(get_reply_draft_prompt(sender, subject, body, str(intent)))
        return response_text.strip()

    def daily_brief(self, emails: Iterable[dict], tasks: Iterable[dict], time_of_day: str = 'morning') -> dict:
        """Generate the narrative part of the dashboard brief."""
        response_text = self._complete(get_daily_brief_prompt(list(emails), list(tasks), time_of_day))
        data = extract_json_object(response_text)
        return {
            'summary': str(data.get('summary') or ''),
            'priorities': data.get('priorities') if isinstance(data.get('priorities'), list) else [],
            'suggestions': data.get('suggestions') if isinstance(data.get('suggestions'), list) else [],
        }
