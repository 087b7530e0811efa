from .analyzer import EmailClassifier, extract_json_object
from .models import Classification, SuggestedAction, fallback_classification
from .policy import apply_policy
from .signals import SIGNAL_WEIGHTS, score

__all__ = [
    'EmailClassifier',
    'extract_json_object',
    'Classification',
    'SuggestedAction',
    'fallback_classification',
    'apply_policy',
    'SIGNAL_WEIGHTS',
    'score'
]
