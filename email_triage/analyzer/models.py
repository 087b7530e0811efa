from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..database.models import ActionType, Intent, Urgency


@dataclass
class SuggestedAction:
    type: str
    description: str = ''
    priority: int = 1

    @property
    def action_type(self) -> Optional[ActionType]:
        """The known action type, or None for anything the model invented."""
        try:
            return ActionType(self.type)
        except ValueError:
            return None

    def to_dict(self) -> dict:
        return {'type': self.type, 'description': self.description, 'priority': self.priority}


@dataclass
class Classification:
    """Classifier verdict, before or after the priority policy is applied"""
    intent: Intent
    urgency: Urgency
    confidence: float
    summary: str = ''
    reasoning: str = ''
    suggested_actions: List[SuggestedAction] = field(default_factory=list)
    rules_fired: List[str] = field(default_factory=list)
    model_version: Optional[str] = None

    def with_changes(self, **changes) -> 'Classification':
        return replace(self, **changes)


FALLBACK_REASONING = 'AI analysis unavailable - manual review needed'


def fallback_classification() -> Classification:
    """Fixed verdict used when the AI is switched off."""
    return Classification(
        intent=Intent.UNKNOWN,
        urgency=Urgency.MEDIUM,
        confidence=0.0,
        reasoning=FALLBACK_REASONING,
        model_version='fallback',
    )
