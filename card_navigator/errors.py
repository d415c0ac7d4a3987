"""Exception hierarchy for preset storage, resolution and application.

Every error is recoverable and reported to the immediate caller, except
:class:`InvariantViolationError`, which signals state the engine refuses to
repair on its own.
"""

from __future__ import annotations


class PresetEngineError(Exception):
    """Base class for all preset engine errors."""


class ValidationError(PresetEngineError, ValueError):
    """Malformed input to a create/update call. The operation had no effect."""


class NotFoundError(PresetEngineError, LookupError):
    """Reference to a preset or mapping id that does not exist."""


class StaleReferenceError(NotFoundError):
    """An id was valid when resolved but was deleted before it was used.

    Callers should re-resolve rather than retry with the same id.
    """


class PersistenceError(PresetEngineError, OSError):
    """Reading or writing the backing store failed."""


class InvariantViolationError(PresetEngineError, RuntimeError):
    """The store is in a state it cannot repair without caller action.

    Raised, for example, when resolution falls through to a default preset
    that has been deleted and not reassigned.
    """
