"""
Gmail OAuth2 authentication for the mail source.
"""
from pathlib import Path
from typing import List, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from ..config import config
from ..logger import get_logger

logger = get_logger(__name__)


class GmailAuthenticator:
    """Loads, refreshes and persists the OAuth token for one mailbox.

    The consent flow opens a local browser, so it only runs when there is no
    usable token on disk.
    """

    def __init__(self, credentials_file: Optional[str] = None, token_file: Optional[str] = None,
                 scopes: Optional[List[str]] = None):
        credentials_file = credentials_file or config.gmail.credentials_file
        if not credentials_file:
            raise ValueError("GMAIL_CREDENTIALS_FILE is not configured")
        self.client_secrets = Path(credentials_file)
        self.token_path = Path(token_file or config.gmail.token_file or 'token.json')
        self.scopes = scopes or config.gmail.scopes

    def get_gmail_service(self):
        """Build an authenticated Gmail v1 resource."""
        return build('gmail', 'v1', credentials=self.credentials(), cache_discovery=False)

    def credentials(self) -> Credentials:
        creds = self._stored_token()
        if creds is not None and creds.valid:
            return creds

        if creds is not None and creds.expired and creds.refresh_token:
            logger.info(f"Refreshing expired Gmail token {self.token_path}")
            creds.refresh(Request())
        else:
            logger.info("No usable Gmail token, starting the consent flow")
            flow = InstalledAppFlow.from_client_secrets_file(str(self.client_secrets), self.scopes)
            creds = flow.run_local_server(port=0)

        self._store_token(creds)
        return creds

    def _stored_token(self) -> Optional[Credentials]:
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path), self.scopes)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable Gmail token {self.token_path}: {e}")
            return None

    def _store_token(self, creds: Credentials) -> None:
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_text(creds.to_json())
            # Token grants mailbox access
            self.token_path.chmod(0o600)
            logger.info(f"Saved Gmail token to {self.token_path}")
        except OSError as e:
            logger.error(f"Could not save Gmail token {self.token_path}: {e}")
