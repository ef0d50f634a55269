"""Crisis event definitions for responder notification.

Events are the payload broadcast to crisis-responder consoles and sent to
emergency contacts. They carry the hashed user id only.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from lifeline.shared.models import InterventionRecord, Severity
from lifeline.shared.utils import hash_pii


class CrisisEventType(Enum):
    """Types of events emitted by the assessment engine."""
    ASSESSMENT_ESCALATED = "crisis.assessment.escalated"
    EMERGENCY_DISPATCH = "crisis.emergency.dispatch"


@dataclass(frozen=True)
class CrisisEvent:
    """Immutable event for the crisis-team stream."""
    event_id: str
    event_type: CrisisEventType
    intervention_id: str
    user_id_hash: str
    severity: Severity
    intervention_type: str
    symptom_count: int
    follow_up_date: Optional[datetime] = None
    resources_provided: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def for_record(cls, record: InterventionRecord) -> "CrisisEvent":
        """Build the responder event for a new intervention record."""
        event_type = (
            CrisisEventType.EMERGENCY_DISPATCH
            if record.severity == Severity.EMERGENCY
            else CrisisEventType.ASSESSMENT_ESCALATED
        )
        return cls(
            event_id=f"evt_{uuid.uuid4().hex[:12]}",
            event_type=event_type,
            intervention_id=record.id,
            user_id_hash=hash_pii(record.user_id),
            severity=record.severity,
            intervention_type=record.intervention_type.value,
            symptom_count=len(record.symptoms),
            follow_up_date=record.follow_up_date,
            resources_provided=list(record.resources_provided),
        )

    def to_event_payload(self) -> Dict[str, Any]:
        """Convert to stream payload format."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat() + "Z",
            "source": "crisis-engine",
            "data": {
                "intervention_id": self.intervention_id,
                "user_id_hash": self.user_id_hash,
                "severity": self.severity.value,
                "intervention_type": self.intervention_type,
                "symptom_count": self.symptom_count,
                "follow_up_date": (
                    self.follow_up_date.isoformat() + "Z" if self.follow_up_date else None
                ),
                "resources_provided": self.resources_provided,
                "requires_human_intervention": self.severity.is_escalating,
            },
        }
