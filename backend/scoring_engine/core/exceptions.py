"""
Exception hierarchy for the scoring and psychometrics engine.

Errors raised here are the ones that surface to callers: missing resources,
illegal item-state transitions, and persistence conflicts. Failures inside a
scoring strategy are not represented here; the orchestrator degrades them to a
PENDING result instead of raising.
"""

from typing import Any, Optional


class ScoringEngineError(Exception):
    """Base exception for scoring engine errors.

    Attributes:
        message: Human-readable error description
        original_error: The underlying exception that caused this error
        context: Additional context about where the error occurred
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[str] = None,
    ):
        self.message = message
        self.original_error = original_error
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context and original error details."""
        parts = [self.message]
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.original_error:
            parts.append(
                f"Original error: {type(self.original_error).__name__}: {self.original_error}"
            )
        return " | ".join(parts)


class ResourceNotFoundError(ScoringEngineError):
    """A session, question, competency or statistics record does not exist."""

    def __init__(self, resource: str, identifier: Any, context: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}", context=context)


class ItemActivationError(ScoringEngineError):
    """An item was asked to become ACTIVE without meeting the activation criteria."""


class DuplicateResultError(ScoringEngineError):
    """Another writer already stored a result for the same session."""

    def __init__(self, session_id: Any, original_error: Optional[Exception] = None):
        self.session_id = session_id
        super().__init__(
            f"Result already exists for session: {session_id}",
            original_error=original_error,
        )
