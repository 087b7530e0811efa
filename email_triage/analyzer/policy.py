"""
Priority rule engine: bounds the classifier's urgency with deterministic rules.

Rules run in a fixed order. Each later rule sees the urgency produced by the
earlier ones, and the reasoning of the final verdict is the note of the last
rule that fired (or the classifier's own reasoning if none fired). The
confidence gate is terminal: once it fires no other rule runs.
"""
from typing import Callable, Optional, Tuple

from ..database.models import Intent, Urgency
from ..logger import get_logger
from .models import Classification

logger = get_logger(__name__)

CONFIDENCE_THRESHOLD = 0.6
NOISE_THRESHOLD = -5
HIGH_MIN_SIGNAL = 5
MEDIUM_MIN_SIGNAL = 0

LOW_FLOOR_INTENTS = frozenset({Intent.MARKETING, Intent.NEWSLETTER, Intent.FYI})

# A rule returns (new urgency, system note) when it fires, else None
Rule = Callable[[Classification, int], Optional[Tuple[Urgency, str]]]


def confidence_gate(verdict: Classification, signal_score: int):
    if verdict.confidence < CONFIDENCE_THRESHOLD:
        return Urgency.LOW, (
            f"System: low confidence ({verdict.confidence:.2f} < {CONFIDENCE_THRESHOLD}), "
            "priority set to LOW pending manual review."
        )
    return None


def noise_override(verdict: Classification, signal_score: int):
    if signal_score <= NOISE_THRESHOLD:
        return Urgency.LOW, (
            f"System: marketing/newsletter keyword signal (score {signal_score}), priority set to LOW."
        )
    return None


def intent_floor(verdict: Classification, signal_score: int):
    if verdict.intent in LOW_FLOOR_INTENTS:
        return Urgency.LOW, f"System: {verdict.intent.value} emails are always LOW priority."
    return None


def high_strictness(verdict: Classification, signal_score: int):
    if verdict.urgency == Urgency.HIGH and signal_score < HIGH_MIN_SIGNAL:
        return Urgency.MEDIUM, (
            f"System: classifier said HIGH but keyword signal is only {signal_score} "
            f"(needs {HIGH_MIN_SIGNAL}), downgraded to MEDIUM."
        )
    return None


def medium_floor(verdict: Classification, signal_score: int):
    if verdict.urgency == Urgency.MEDIUM and signal_score <= MEDIUM_MIN_SIGNAL:
        return Urgency.LOW, (
            f"System: no positive keyword signal (score {signal_score}), MEDIUM downgraded to LOW."
        )
    return None


# Order matters: swapping entries changes outcomes
RULES: Tuple[Tuple[str, Rule, bool], ...] = (
    ('confidence_gate', confidence_gate, True),
    ('noise_override', noise_override, False),
    ('intent_floor', intent_floor, False),
    ('high_strictness', high_strictness, False),
    ('medium_floor', medium_floor, False),
)


def apply_policy(raw: Classification, signal_score: int) -> Classification:
    """Apply the rule chain to a raw classification.

    Args:
        raw: Classification as returned by the classifier
        signal_score: Output of ``signals.score`` for the same message

    Returns:
        A new Classification with the final urgency, reasoning and the
        names of the rules that fired
    """
    verdict = raw.with_changes(rules_fired=[])
    fired = []
    for name, rule, terminal in RULES:
        outcome = rule(verdict, signal_score)
        if outcome is None:
            continue
        urgency, note = outcome
        fired.append(name)
        verdict = verdict.with_changes(urgency=urgency, reasoning=note, rules_fired=list(fired))
        if terminal:
            break

    if fired:
        logger.debug(f"Policy rules fired {fired}: {raw.urgency} -> {verdict.urgency}")
    return verdict
