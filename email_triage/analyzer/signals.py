"""
Deterministic keyword signal score, computed independently of the AI classifier.

The weight table is a read-only mapping: changing a weight is a policy change
and has to happen here, in code, not at runtime.
"""
import re
from types import MappingProxyType

from ..logger import get_logger

logger = get_logger(__name__)

SIGNAL_WEIGHTS = MappingProxyType({
    'QUESTION': 3,
    'ACTION': 4,
    'DEADLINE': 3,
    'URGENCY': 3,
    'UNSUBSCRIBE': -4,
    'SALE': -6,
    'PROMO': -6,
    'NEWSLETTER': -8,
    'NO_REPLY': -5,
})

# Each signal contributes its weight at most once per message
_CONTENT_PATTERNS = (
    ('QUESTION', re.compile(r'\?')),
    ('ACTION', re.compile(r'\b(approve|approval|review)\b')),
    ('DEADLINE', re.compile(r'\b(deadline|due|today|tomorrow|by eod|end of day|by (monday|tuesday|wednesday|thursday|friday))\b')),
    ('URGENCY', re.compile(r'\b(urgent|asap|immediately|eod|right away)\b')),
    ('UNSUBSCRIBE', re.compile(r'unsubscribe')),
    ('SALE', re.compile(r'\bsale\b|%\s*off\b')),
    ('PROMO', re.compile(r'limited[- ]time|\boffers?\b')),
    ('NEWSLETTER', re.compile(r'\b(newsletter|digest)\b')),
)

_NO_REPLY_PATTERN = re.compile(r'no-?reply')


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='ignore').lower()
    if isinstance(value, str):
        return value.lower()
    return ''


def matched_signals(sender, subject, body) -> list:
    """Names of the signals present in a message, in table order."""
    content = f"{_text(subject)}\n{_text(body)}"
    signals = [name for name, pattern in _CONTENT_PATTERNS if pattern.search(content)]
    if _NO_REPLY_PATTERN.search(_text(sender)):
        signals.append('NO_REPLY')
    return signals


def score(sender, subject, body) -> int:
    """Compute the signal score for a message.

    Malformed input (None, non-text values) scores as empty text; the
    function never raises.
    """
    try:
        return sum(SIGNAL_WEIGHTS[name] for name in matched_signals(sender, subject, body))
    except Exception as e:
        logger.warning(f"Signal scoring failed, defaulting to 0: {e}")
        return 0
