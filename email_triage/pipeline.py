"""
Ingestion and processing pipeline.

Pulls raw messages from the mail source, skips anything already stored,
classifies the rest one at a time and persists every message, including
the ones whose classification failed.
"""
import time
from typing import Callable, Iterable, Optional, Tuple, Union

from email_triage.analyzer import apply_policy, fallback_classification, score
from email_triage.analyzer.models import Classification
from email_triage.config import config
from email_triage.database import DatabaseManager, Email, ProcessingStatus, Urgency
from email_triage.database.models import utcnow
from email_triage.errors import DuplicateMessage, ValidationError
from email_triage.logger import get_logger
from email_triage.models import IngestFailure, IngestResult, RawMessage
from email_triage.notifications import NotificationCategory

logger = get_logger(__name__)


class IngestionPipeline:
    """Orchestrates dedup, classification, policy and persistence for a batch.

    Classifier calls are serialized and separated by a fixed delay to stay
    under the provider's per-minute request ceiling.

    Attributes:
        db (DatabaseManager): Repository for emails
        classifier (EmailClassifier): Classifier adapter, unused when AI is disabled
        dispatcher (NotificationDispatcher): Optional, sends urgent-email alerts
        mail_source (GmailService): Optional, used by ``sync``
    """

    def __init__(
        self,
        db: DatabaseManager,
        classifier=None,
        dispatcher=None,
        mail_source=None,
        sleep: Callable[[float], None] = time.sleep,
        delay: Optional[float] = None,
        ai_enabled: Optional[bool] = None,
    ):
        self.db = db
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.mail_source = mail_source
        self.sleep = sleep
        self.delay = config.pipeline.inter_message_delay if delay is None else delay
        self.ai_enabled = config.claude.enabled if ai_enabled is None else ai_enabled
        if self.ai_enabled and self.classifier is None:
            raise ValueError("A classifier is required while AI is enabled")
        self._calls_in_batch = 0

    def sync(self, user_id: str, max_results: int = 10) -> IngestResult:
        """Fetch up to ``max_results`` messages from the mail source and ingest them."""
        if self.mail_source is None:
            raise ValidationError("Mail source not connected")
        logger.info(f"Fetching {max_results} emails for user {user_id}")
        raw_messages = self.mail_source.fetch_messages(max_results=max_results)
        return self.ingest(user_id, raw_messages)

    def ingest(self, user_id: str, raw_messages: Iterable[Union[RawMessage, dict]]) -> IngestResult:
        """Ingest a batch in mail-source order.

        Returns:
            IngestResult whose processed/skipped/failed lists preserve input order
        """
        result = IngestResult()
        self._calls_in_batch = 0

        for raw in raw_messages:
            if isinstance(raw, dict):
                message_id = raw.get('externalMessageId')
            else:
                message_id = raw.external_message_id

            try:
                if isinstance(raw, dict):
                    raw = RawMessage.from_dict(raw)
                if self.db.find_email_by_external_id(message_id) is not None:
                    logger.info(f"Email {message_id} already processed, skipping")
                    result.skipped.append(message_id)
                    continue

                try:
                    email = self.db.insert_email(self._new_email(user_id, raw))
                except DuplicateMessage:
                    # Lost a race with a concurrent ingest of the same message
                    logger.info(f"Email {message_id} inserted concurrently, skipping")
                    result.skipped.append(message_id)
                    continue

                error = self._process(email)
            except Exception as e:
                logger.exception(f"Unexpected failure ingesting {message_id}: {e}")
                error = str(e)

            if error is None:
                result.processed.append(message_id)
            else:
                result.failed.append(IngestFailure(message_id, error))

        logger.info(
            f"Ingest for {user_id}: {len(result.processed)} processed, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result

    def retry_failed(self, user_id: str) -> IngestResult:
        """Re-classify failed emails that have retries left."""
        result = IngestResult()
        self._calls_in_batch = 0

        for email in self.db.list_failed_emails(user_id, config.pipeline.max_ai_retries):
            try:
                email = self.db.update_email(email.id, status=ProcessingStatus.PROCESSING)
                error = self._process(email)
            except Exception as e:
                logger.exception(f"Unexpected failure retrying {email.external_message_id}: {e}")
                error = str(e)

            if error is None:
                result.processed.append(email.external_message_id)
            else:
                result.failed.append(IngestFailure(email.external_message_id, error))
        return result

    def _new_email(self, user_id: str, raw: RawMessage) -> Email:
        return Email(
            user_id=user_id,
            external_message_id=raw.external_message_id,
            thread_id=raw.thread_id,
            sender=raw.sender,
            sender_name=raw.sender_name,
            recipients=list(raw.recipients),
            subject=raw.subject,
            body=raw.body,
            body_html=raw.body_html,
            received_at=raw.received_at,
            attachments=list(raw.attachments),
            status=ProcessingStatus.PROCESSING,
            retry_count=0,
        )

    def _classify(self, email: Email) -> Tuple[Classification, int]:
        signal_score = score(email.sender, email.subject, email.body)

        if self.ai_enabled:
            if self._calls_in_batch:
                self.sleep(self.delay)
            self._calls_in_batch += 1
            logger.info(f"Analyzing: {email.subject}")
            raw = self.classifier.classify(email.sender, email.subject, email.body)
        else:
            raw = fallback_classification()

        verdict = apply_policy(raw, signal_score)
        return verdict, signal_score

    def _process(self, email: Email) -> Optional[str]:
        """Classify one stored email. Returns the error string on failure."""
        try:
            verdict, signal_score = self._classify(email)
        except Exception as e:
            logger.error(f"AI analysis failed for {email.external_message_id}: {e}")
            self._mark_failed(email, str(e))
            return str(e)

        try:
            self.db.update_email(
                email.id,
                status=ProcessingStatus.COMPLETED,
                intent=verdict.intent,
                urgency=verdict.urgency,
                summary=verdict.summary,
                confidence_score=verdict.confidence,
                reasoning=verdict.reasoning,
                suggested_actions=[action.to_dict() for action in verdict.suggested_actions],
                signal_score=signal_score,
                model_version=verdict.model_version,
                last_error=None,
                processed_at=utcnow(),
            )
        except Exception as e:
            logger.error(f"Could not store classification for {email.external_message_id}: {e}")
            self._mark_failed(email, str(e))
            return str(e)
        logger.info(f"Processed: {email.subject} ({verdict.intent}, {verdict.urgency})")

        if verdict.urgency == Urgency.HIGH:
            self._alert_urgent(email)
        return None

    def _mark_failed(self, email: Email, error: str) -> None:
        try:
            self.db.update_email(
                email.id,
                status=ProcessingStatus.FAILED,
                retry_count=(email.retry_count or 0) + 1,
                last_error=error,
            )
        except Exception as e:
            logger.error(f"Could not mark {email.external_message_id} as failed: {e}")

    def _alert_urgent(self, email: Email) -> None:
        if self.dispatcher is None:
            return
        self.dispatcher.send(
            email.user_id,
            '🔴 Urgent Email',
            f"{email.sender_name or email.sender}: {email.subject}",
            NotificationCategory.URGENT_EMAIL,
            data={'emailId': str(email.id)},
        )
