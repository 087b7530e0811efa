"""
Lazily generated reply drafts.
"""
from typing import Optional
from uuid import UUID

from email_triage.config import config
from email_triage.database import DatabaseManager, Intent
from email_triage.errors import ClassifierError, ValidationError
from email_triage.logger import get_logger

logger = get_logger(__name__)

DRAFTABLE_INTENTS = frozenset({Intent.MEETING_REQUEST, Intent.QUESTION, Intent.TASK_REQUEST})


class DraftReplyService:
    """Generates a reply draft on first request and stores it on the email.

    When the mail source supports drafts the new text is also saved once to
    the email's thread in the mailbox; later requests return the stored text.
    """

    def __init__(self, db: DatabaseManager, classifier=None, mail_source=None,
                 ai_enabled: Optional[bool] = None):
        self.db = db
        self.classifier = classifier
        self.mail_source = mail_source
        self.ai_enabled = config.claude.enabled if ai_enabled is None else ai_enabled

    def draft(self, user_id: str, email_id: UUID) -> dict:
        """
        Returns:
            dict with ``draftReply`` (None when the AI is unavailable) and ``draftId``

        Raises:
            NotFoundError: If the email does not belong to the user
            ValidationError: If the email's intent does not call for a reply
        """
        email = self.db.get_email(email_id, user_id=user_id)
        if email.intent not in DRAFTABLE_INTENTS:
            raise ValidationError(f"No draft reply available for {email.intent} emails")

        text = email.draft_reply
        if text:
            # Already saved to the mailbox when first generated
            return {'draftReply': text, 'draftId': None}

        if not self.ai_enabled or self.classifier is None:
            return {'draftReply': None, 'draftId': None, 'message': 'AI service unavailable'}
        try:
            text = self.classifier.draft_reply(email.sender, email.subject, email.body, email.intent)
        except ClassifierError as e:
            logger.error(f"Error generating draft reply for email {email.id}: {e}")
            return {'draftReply': None, 'draftId': None, 'message': 'AI service unavailable'}
        self.db.update_email(email.id, draft_reply=text)

        draft_id = None
        if self.mail_source is not None and hasattr(self.mail_source, 'create_draft_reply'):
            draft_id = self.mail_source.create_draft_reply(email.thread_id, email.sender, email.subject, text)

        return {'draftReply': text, 'draftId': draft_id}
