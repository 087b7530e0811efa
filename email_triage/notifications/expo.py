"""
Expo push notification transport.
"""
from typing import Optional

import requests

from ..config import config
from ..errors import NotifierError
from ..logger import get_logger

logger = get_logger(__name__)

_TOKEN_PREFIXES = ('ExponentPushToken[', 'ExpoPushToken[')


def is_expo_push_token(token) -> bool:
    return isinstance(token, str) and token.startswith(_TOKEN_PREFIXES) and token.endswith(']')


class ExpoNotifier:
    """Sends one push message per call to the Expo push service."""

    def __init__(self, push_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.push_url = push_url or config.notifications.expo_push_url
        self.timeout = timeout or config.notifications.request_timeout
        self.session = session or requests.Session()

    def send(self, token: str, title: str, body: str, data: Optional[dict] = None) -> str:
        """
        Deliver a notification to one device.

        Returns:
            The Expo ticket id

        Raises:
            NotifierError: If the token is invalid or Expo rejects the message
        """
        if not is_expo_push_token(token):
            raise NotifierError(f"Invalid Expo push token: {token!r}")

        message = {
            'to': token,
            # Calm notifications: no sound, normal priority
            'sound': None,
            'title': title,
            'body': body,
            'data': data or {},
            'priority': 'default',
        }

        try:
            response = self.session.post(
                self.push_url,
                json=[message],
                headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()
        except requests.RequestException as e:
            raise NotifierError(f"Expo request failed: {e}") from e
        except ValueError as e:
            raise NotifierError("Expo returned a non-JSON response") from e

        tickets = result.get('data') if isinstance(result, dict) else None
        ticket = tickets[0] if isinstance(tickets, list) and tickets else None
        if ticket and ticket.get('status') == 'ok':
            return ticket.get('id')

        logger.error(f"Expo rejected push notification: {result}")
        message_text = (ticket or {}).get('message') or 'Expo rejected the notification'
        raise NotifierError(message_text, details=result)
