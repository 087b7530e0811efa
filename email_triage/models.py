from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import List, Optional

import pytz

from email_triage.database.models import utcnow
from email_triage.errors import ValidationError
from email_triage.logger import get_logger

logger = get_logger(__name__)


def _parse_date_string(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        pass
    # RFC 2822, as in a Date header
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else pytz.UTC.localize(value)
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as Gmail's internalDate
        return datetime.fromtimestamp(value / 1000, tz=pytz.UTC)
    if isinstance(value, str) and value:
        parsed = _parse_date_string(value)
        if parsed is None:
            logger.warning(f"Unparseable timestamp {value!r}, using current time")
            return utcnow()
        return parsed if parsed.tzinfo else pytz.UTC.localize(parsed)
    return utcnow()


@dataclass
class RawMessage:
    """Data class for a message as yielded by the mail source"""
    external_message_id: str
    thread_id: str = ''
    sender: str = ''
    recipients: List[str] = field(default_factory=list)
    subject: str = '(No Subject)'
    body: str = ''
    body_html: str = ''
    received_at: datetime = field(default_factory=utcnow)
    attachments: List[dict] = field(default_factory=list)
    sender_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'RawMessage':
        """Build from the mail-source record shape (camelCase keys)."""
        if not data.get('externalMessageId'):
            raise ValidationError("Raw message has no externalMessageId")
        recipients = data.get('to') or []
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(',') if r.strip()]
        return cls(
            external_message_id=data['externalMessageId'],
            thread_id=data.get('threadId') or '',
            sender=data.get('from') or '',
            recipients=list(recipients),
            subject=data.get('subject') or '(No Subject)',
            body=data.get('body') or '',
            body_html=data.get('bodyHtml') or '',
            received_at=parse_timestamp(data.get('receivedAt')),
            attachments=list(data.get('attachments') or []),
            sender_name=data.get('fromName'),
        )


@dataclass
class IngestFailure:
    external_message_id: Optional[str]
    error: str


@dataclass
class IngestResult:
    """Outcome of one ingestion batch, each list in mail-source order"""
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[IngestFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'processed': len(self.processed),
            'skipped': len(self.skipped),
            'failed': len(self.failed),
            'errors': [{'externalMessageId': f.external_message_id, 'error': f.error} for f in self.failed],
        }


@dataclass
class NotificationResult:
    """Data class for a dispatch outcome"""
    delivered: bool
    reason: Optional[str] = None
    receipt_id: Optional[str] = None
