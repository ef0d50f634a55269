"""Crisis Engine: risk assessment and intervention dispatch.

A structured self-report is classified into a severity tier, mapped to an
intervention plan, and dispatched: the record is persisted, crisis
responders are alerted and, for emergencies, emergency services are
requested. Dispatch is best-effort; crisis resources are returned in every
response regardless of what failed.

Endpoints (http_handler):
- POST /crisis/assess - Run an assessment
- GET /crisis/resources - Crisis hotlines
- GET /crisis/interventions/<id> - Caller's own intervention record
"""

from .classifier import RiskClassifier, RiskRule, RULE_CASCADE
from .collaborators import (
    AuditAction,
    AuditEntity,
    Auditor,
    EmergencyDispatcher,
    NotificationChannel,
    PersistenceStore,
    RateLimiter,
    RateLimitResult,
)
from .config import CrisisEngineConfig
from .dispatch import DispatchCoordinator, DispatchOutcome
from .errors import (
    CrisisEngineError,
    DependencyError,
    RateLimitedError,
    UnauthenticatedError,
    ValidationError,
)
from .planner import InterventionPlanner, PLAN_TABLE
from .resources import DEFAULT_CRISIS_RESOURCES, ResourceCatalog
from .service import (
    AssessmentResponse,
    AssessmentService,
    AssessmentState,
    RequestContext,
)

__all__ = [
    "RiskClassifier",
    "RiskRule",
    "RULE_CASCADE",
    "AuditAction",
    "AuditEntity",
    "Auditor",
    "EmergencyDispatcher",
    "NotificationChannel",
    "PersistenceStore",
    "RateLimiter",
    "RateLimitResult",
    "CrisisEngineConfig",
    "DispatchCoordinator",
    "DispatchOutcome",
    "CrisisEngineError",
    "DependencyError",
    "RateLimitedError",
    "UnauthenticatedError",
    "ValidationError",
    "InterventionPlanner",
    "PLAN_TABLE",
    "DEFAULT_CRISIS_RESOURCES",
    "ResourceCatalog",
    "AssessmentResponse",
    "AssessmentService",
    "AssessmentState",
    "RequestContext",
]
