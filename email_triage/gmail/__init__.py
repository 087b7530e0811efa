from .service import GmailService, parse_gmail_message

__all__ = [
    'GmailService',
    'parse_gmail_message'
]
