"""
Error taxonomy shared by the pipeline, the engines and the HTTP surface.
"""


class TriageError(Exception):
    """Base exception for the email triage service."""
    pass


class DuplicateMessage(TriageError):
    """Raised when a message with the same external id is already stored.

    Not a failure: the pipeline records the message as skipped.
    """

    def __init__(self, external_message_id: str):
        super().__init__(f"Message {external_message_id} already ingested")
        self.external_message_id = external_message_id


class ClassifierError(TriageError):
    """Base exception for classifier failures."""
    pass


class ClassificationParseError(ClassifierError):
    """Raised when the classifier reply contains no usable JSON object."""
    pass


class ClassificationProviderError(ClassifierError):
    """Raised when the classifier provider call fails."""

    def __init__(self, message: str, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited


class QuotaExhausted(ClassifierError):
    """Raised when the provider quota or credits are used up."""
    pass


class ValidationError(TriageError):
    """Raised for bad input such as a reminder time in the past."""
    pass


class NotFoundError(TriageError):
    """Raised when an Email, Decision, Reminder or Task does not exist."""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(TriageError):
    """Raised when a write conflicts with existing state."""
    pass


class IllegalTransitionError(ConflictError):
    """Raised when an entity is asked to move to a state it cannot reach."""

    def __init__(self, entity: str, current, target):
        super().__init__(f"Illegal {entity} transition: {current} -> {target}")
        self.entity = entity
        self.current = current
        self.target = target


class NotifierError(TriageError):
    """Raised when the push transport rejects a notification."""

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details
