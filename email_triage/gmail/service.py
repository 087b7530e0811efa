"""
Gmail mail source: yields raw message records and saves reply drafts.
"""
import base64
from email.mime.text import MIMEText
from email.utils import getaddresses, parseaddr
from typing import List, Optional

from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from ..logger import get_logger
from ..models import RawMessage, parse_timestamp
from .auth import GmailAuthenticator

logger = get_logger(__name__)


def _decode(data: str) -> str:
    if not data:
        return ''
    return base64.urlsafe_b64decode(data).decode('utf-8', errors='replace')


def _walk_parts(payload: dict):
    yield payload
    for part in payload.get('parts', []) or []:
        yield from _walk_parts(part)


def parse_gmail_message(msg: dict) -> RawMessage:
    """Convert a Gmail API message resource (format=full) into a RawMessage."""
    payload = msg.get('payload', {})
    headers = {header['name'].lower(): header['value'] for header in payload.get('headers', [])}

    body, body_html = '', ''
    attachments = []
    for part in _walk_parts(payload):
        mime_type = part.get('mimeType', '')
        part_body = part.get('body', {})
        if part.get('filename'):
            attachments.append({
                'filename': part['filename'],
                'mimeType': mime_type,
                'size': part_body.get('size', 0),
            })
        elif mime_type == 'text/plain':
            body += _decode(part_body.get('data', ''))
        elif mime_type == 'text/html':
            body_html += _decode(part_body.get('data', ''))

    sender_name, sender = parseaddr(headers.get('from', ''))
    recipients = [address for _, address in getaddresses([headers.get('to', '')]) if address]

    return RawMessage(
        external_message_id=msg['id'],
        thread_id=msg.get('threadId', ''),
        sender=sender or headers.get('from', 'Unknown Sender'),
        sender_name=sender_name or None,
        recipients=recipients,
        subject=headers.get('subject', '(No Subject)'),
        body=body or msg.get('snippet', ''),
        body_html=body_html,
        received_at=parse_timestamp(int(msg.get('internalDate', 0)) or None),
        attachments=attachments,
    )


class GmailService:
    """Mail source backed by the Gmail API."""

    def __init__(self, service: Optional[Resource] = None):
        """Initialize with an authenticated Gmail resource, authenticating if none is given."""
        self.service: Resource = service or GmailAuthenticator().get_gmail_service()

    def fetch_messages(self, max_results: int = 10, query: str = 'is:unread') -> List[RawMessage]:
        """
        Fetch messages matching ``query`` in the order Gmail lists them.

        Args:
            max_results: Maximum number of messages to fetch
            query: Gmail search query

        Returns:
            List of RawMessage records
        """
        try:
            results = self.service.users().messages().list(
                userId='me',
                q=query,
                maxResults=max_results
            ).execute()

            messages = results.get('messages', [])
            logger.info(f"Found {len(messages)} messages matching '{query}'")

            raw_messages = []
            for message in messages:
                msg = self.service.users().messages().get(
                    userId='me',
                    id=message['id'],
                    format='full'
                ).execute()
                raw_messages.append(parse_gmail_message(msg))
            return raw_messages

        except HttpError as error:
            logger.error(f'Error fetching emails: {error}')
            raise

    def create_draft_reply(self, thread_id: str, to: str, subject: str, text: str) -> Optional[str]:
        """Save ``text`` as a draft reply on a thread. Returns the draft id."""
        message = MIMEText(text)
        message['to'] = to
        message['subject'] = subject if subject.lower().startswith('re:') else f"Re: {subject}"
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode()

        try:
            draft = self.service.users().drafts().create(
                userId='me',
                body={'message': {'raw': raw, 'threadId': thread_id}}
            ).execute()
            logger.info(f"Created Gmail draft {draft.get('id')} on thread {thread_id}")
            return draft.get('id')
        except HttpError as error:
            logger.error(f"Error creating draft on thread {thread_id}: {error}")
            raise

    def mark_as_read(self, message_id: str) -> bool:
        """Mark an email as read."""
        try:
            self.service.users().messages().modify(
                userId='me',
                id=message_id,
                body={'removeLabelIds': ['UNREAD']}
            ).execute()
            return True
        except HttpError as error:
            logger.error(f"Error marking email {message_id} as read: {error}")
            return False
