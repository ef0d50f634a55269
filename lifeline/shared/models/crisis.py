"""Crisis severity and intervention domain models.

Severity tiers, intervention channels and the immutable records that flow
from a classified assessment into dispatch and persistence.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(Enum):
    """Crisis severity tiers, totally ordered by urgency."""
    EMERGENCY = "EMERGENCY"
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"

    @property
    def urgency(self) -> int:
        """Integer rank, higher is more urgent."""
        return _URGENCY[self]

    @property
    def is_escalating(self) -> bool:
        """Whether this tier alerts the crisis team."""
        return self in (Severity.EMERGENCY, Severity.CRITICAL)


_URGENCY = {
    Severity.EMERGENCY: 4,
    Severity.CRITICAL: 3,
    Severity.HIGH: 2,
    Severity.MODERATE: 1,
    Severity.LOW: 0,
}


class InterventionType(Enum):
    """Response channel assigned to a severity tier."""
    EMERGENCY_DISPATCH = "EMERGENCY_DISPATCH"
    CALL = "CALL"
    VIDEO = "VIDEO"
    CHAT = "CHAT"
    REFERRAL = "REFERRAL"


class InterventionStatus(Enum):
    """Lifecycle of a persisted intervention.

    Records are created ACTIVE; later transitions belong to follow-up
    workflows outside the assessment engine.
    """
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ESCALATED = "ESCALATED"


@dataclass(frozen=True)
class CrisisResource:
    """A single hotline or text line."""
    name: str
    number: str
    description: str
    text: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "number": self.number,
            "description": self.description,
            "text": self.text,
        }


@dataclass(frozen=True)
class CrisisResourceSet:
    """Regional hotline numbers plus the named resource list.

    Returned in every assessment response, whatever else fails.
    """
    suicide: str
    suicide_alt: str
    crisis: str
    emergency: str
    resources: Tuple[CrisisResource, ...] = ()
    region: str = "US"

    def resource_names(self) -> List[str]:
        return [r.name for r in self.resources]

    def to_dict(self) -> Dict[str, Any]:
        return {
            self.region: {
                "suicide": self.suicide,
                "suicideAlt": self.suicide_alt,
                "crisis": self.crisis,
                "emergency": self.emergency,
            },
            "resources": [r.to_dict() for r in self.resources],
        }


@dataclass(frozen=True)
class InterventionPlan:
    """Derived response plan for a severity tier."""
    severity: Severity
    intervention_type: InterventionType
    urgent: bool
    message: str
    next_steps: Tuple[str, ...]
    follow_up_delay: Optional[timedelta] = None

    @property
    def follow_up_required(self) -> bool:
        return self.follow_up_delay is not None

    def follow_up_date(self, now: datetime) -> Optional[datetime]:
        """Follow-up time relative to ``now``, or None when not required."""
        if self.follow_up_delay is None:
            return None
        return now + self.follow_up_delay


@dataclass(frozen=True)
class InterventionRecord:
    """Intervention persisted once per identified assessment."""
    id: str
    user_id: str
    severity: Severity
    intervention_type: InterventionType
    status: InterventionStatus
    symptoms: Tuple[str, ...]
    trigger_event: Optional[str]
    follow_up_required: bool
    follow_up_date: Optional[datetime]
    resources_provided: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "severity": self.severity.value,
            "interventionType": self.intervention_type.value,
            "status": self.status.value,
            "symptoms": list(self.symptoms),
            "triggerEvent": self.trigger_event,
            "followUpRequired": self.follow_up_required,
            "followUpDate": (
                self.follow_up_date.isoformat() + "Z" if self.follow_up_date else None
            ),
            "resourcesProvided": list(self.resources_provided),
            "createdAt": self.created_at.isoformat() + "Z",
        }
