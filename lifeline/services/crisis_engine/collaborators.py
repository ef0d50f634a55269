"""Collaborator interfaces consumed by the assessment engine.

Concrete implementations are injected into AssessmentService and
DispatchCoordinator at construction; tests substitute fakes.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from lifeline.shared.models import (
    EmergencyContact,
    InterventionRecord,
    Severity,
)


class AuditAction(Enum):
    """Audited actions."""
    CRISIS_ASSESSMENT = "CRISIS_ASSESSMENT"
    INTERVENTION_PERSIST = "INTERVENTION_PERSIST"
    CRISIS_TEAM_NOTIFY = "CRISIS_TEAM_NOTIFY"
    EMERGENCY_CONTACT_NOTIFY = "EMERGENCY_CONTACT_NOTIFY"
    EMERGENCY_DISPATCH = "EMERGENCY_DISPATCH"
    INTERVENTION_VIEW = "INTERVENTION_VIEW"


class AuditEntity(Enum):
    """Entity types for audit logging."""
    CRISIS_INTERVENTION = "CrisisIntervention"
    SYSTEM = "System"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate-limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after: Optional[int] = None


class PersistenceStore(ABC):
    """Stores intervention records."""

    @abstractmethod
    def create_intervention_record(self, record: InterventionRecord) -> str:
        """Persist a new record and return its id. Raises on failure."""

    @abstractmethod
    def get_intervention_record(self, record_id: str) -> Optional[InterventionRecord]:
        """Return the record or None. Raises on failure."""


class NotificationChannel(ABC):
    """Outbound alerts to responders and the user's contacts."""

    @abstractmethod
    def broadcast_to_crisis_team(self, event: Any) -> None:
        """Alert crisis-responder consoles. Raises on failure."""

    @abstractmethod
    def notify_emergency_contacts(
        self,
        contacts: Sequence[EmergencyContact],
        event: Any,
    ) -> None:
        """Message each emergency contact. Raises on failure."""


class EmergencyDispatcher(ABC):
    """Hands an emergency off to emergency services."""

    @abstractmethod
    def trigger(self, user_id: str, severity: Severity, location: Optional[str]) -> None:
        """Request emergency dispatch. Raises on failure."""


class RateLimiter(ABC):
    """Request quota per caller identifier."""

    @abstractmethod
    def check(self, identifier: str) -> RateLimitResult:
        """Count a request for ``identifier`` and report whether it is allowed."""


class Auditor(ABC):
    """Audit sink for assessment outcomes and failures."""

    @abstractmethod
    def log_success(
        self,
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Record a successful action."""

    @abstractmethod
    def log_error(
        self,
        action: str,
        entity: str,
        error: BaseException,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Record a failed action."""
