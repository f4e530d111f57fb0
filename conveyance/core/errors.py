# conveyance/core/errors.py

from typing import List, Optional


class ConveyanceError(Exception):
    """Base class for real-time core errors."""
    pass


class PersistenceError(ConveyanceError):
    """Raised when the key-value store cannot be read or written."""
    pass


class ConcurrentWriteConflict(PersistenceError):
    """Raised when an optimistic write keeps losing to another writer."""
    pass


class NotFoundError(ConveyanceError):
    """Raised when a transition targets a document, proposal or request that does not exist."""
    pass


class ForbiddenTransition(ConveyanceError):
    """Raised when a role attempts a transition it is not authorized for."""
    pass


class InvalidTransition(ConveyanceError):
    """Raised when a transition is not allowed from the entity's current status."""
    pass


class ProposalValidationError(InvalidTransition):
    """Raised when a proposed completion date breaks the scheduling rules."""

    def __init__(self, issues: List[str], message: Optional[str] = None):
        self.issues = list(issues)
        super().__init__(message or "; ".join(self.issues))
