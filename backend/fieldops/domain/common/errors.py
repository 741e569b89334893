"""Domain error types."""
from typing import Optional


class DomainError(Exception):
    """Base domain error."""
    pass


class NotFoundError(DomainError):
    """Resource not found."""
    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Validation error."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConflictError(DomainError):
    """Resource conflict error (e.g. mutating a call that already ended)."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidReorderError(ValidationError):
    """Reorder request whose ids do not match the current active checklist set."""
    def __init__(self, message: str, missing: Optional[list[str]] = None, unexpected: Optional[list[str]] = None):
        self.missing = missing or []
        self.unexpected = unexpected or []
        super().__init__(message)


class MatchEvaluationError(DomainError):
    """Coverage matching failed for a single checklist item."""
    def __init__(self, item_id: str, cause: Exception):
        self.item_id = item_id
        self.cause = cause
        super().__init__(f"Coverage evaluation failed for checklist item {item_id}: {cause}")


class StaleSnapshotError(DomainError):
    """Coverage or prompts refer to transcript sequences the snapshot does not contain."""
    def __init__(self, call_id: str, detail: str):
        self.call_id = call_id
        self.message = detail
        super().__init__(f"Inconsistent snapshot for call {call_id}: {detail}")


class TransientFetchError(DomainError):
    """A single poll tick failed; the next scheduled tick retries."""
    def __init__(self, call_id: str, cause: Exception):
        self.call_id = call_id
        self.cause = cause
        super().__init__(f"Fetching call {call_id} failed: {cause}")
