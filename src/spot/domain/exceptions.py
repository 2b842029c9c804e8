"""
domain.exceptions - Custom exception hierarchy for the coding agent.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed.
"""


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class ModelGatewayError(DomainError):
    """Raised when the model backend is unreachable or returns garbage."""


class SummarizationError(DomainError):
    """Raised when a digest request fails. Always recovered by the caller."""


class PersistenceError(DomainError):
    """Raised when a transcript cannot be written or archived."""


class UnknownToolError(DomainError, KeyError):
    """Raised when a capability name is not registered."""


class ToolLoopLimitError(DomainError):
    """Raised when the model keeps requesting tools past the round limit."""

    def __init__(self, rounds: int):
        super().__init__(f"Model requested tools for {rounds} consecutive rounds; stopping.")
        self.rounds = rounds
