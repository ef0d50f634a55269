"""Crisis engine error taxonomy."""
from typing import Any, Dict, List, Optional


class CrisisEngineError(Exception):
    """Base exception for crisis engine errors."""
    pass


class ValidationError(CrisisEngineError):
    """Assessment input is malformed or missing required fields."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.details = details or []


class RateLimitedError(CrisisEngineError):
    """Caller exceeded the assessment request quota."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class DependencyError(CrisisEngineError):
    """A persistence or notification collaborator failed or timed out."""

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator


class UnauthenticatedError(CrisisEngineError):
    """Identity required for this operation but none was supplied."""
    pass
