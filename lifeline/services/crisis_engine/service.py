"""Assessment service - entry point of the crisis engine.

Request lifecycle (linear, no backtracking):

    RECEIVED -> VALIDATED -> RATE_CHECKED -> CLASSIFIED -> PLANNED
             -> DISPATCHED -> RESPONDED

Terminal failure states are VALIDATION_FAILED, RATE_LIMITED and FAILED.
Every response, in every state, carries the crisis resource set.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from lifeline.shared.models import CrisisAssessmentInput, InterventionPlan
from lifeline.shared.utils import hash_pii
from .classifier import RiskClassifier
from .collaborators import (
    AuditAction,
    AuditEntity,
    Auditor,
    PersistenceStore,
    RateLimiter,
)
from .dispatch import DispatchCoordinator, DispatchOutcome
from .errors import (
    DependencyError,
    RateLimitedError,
    UnauthenticatedError,
    ValidationError,
)
from .middleware import audited, rate_limited
from .planner import InterventionPlanner
from .resources import DEFAULT_CRISIS_RESOURCES, ResourceCatalog
from .validation import validate_assessment

logger = logging.getLogger(__name__)

VALIDATION_ERROR_MESSAGE = "Validation error"
RATE_LIMITED_MESSAGE = "Too many requests. If this is an emergency, please call 911 or 988."
INTERNAL_ERROR_MESSAGE = "An error occurred, but help is available"
UNAUTHENTICATED_MESSAGE = "Authentication required"
NOT_FOUND_MESSAGE = "Intervention not found"
LOOKUP_UNAVAILABLE_MESSAGE = "Intervention records are temporarily unavailable"
RESOURCES_MESSAGE = "Crisis resources are available 24/7"


class AssessmentState(Enum):
    """Per-request assessment state machine."""
    RECEIVED = "received"
    VALIDATED = "validated"
    RATE_CHECKED = "rate_checked"
    CLASSIFIED = "classified"
    PLANNED = "planned"
    DISPATCHED = "dispatched"
    RESPONDED = "responded"
    VALIDATION_FAILED = "validation_failed"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class RequestContext:
    """Caller identity as established by the transport layer."""
    user_id: Optional[str] = None
    client_id: str = "unknown"

    @property
    def rate_limit_key(self) -> str:
        return self.client_id


@dataclass(frozen=True)
class AssessmentResponse:
    """Transport-agnostic response: status code plus JSON body."""
    status_code: int
    body: Dict[str, Any]
    state: Optional[AssessmentState] = None


class AssessmentService:
    """Validates, rate-checks, classifies, plans and dispatches assessments.

    Collaborators are injected; the service holds no per-request state, so
    one instance serves concurrent requests.
    """

    def __init__(
        self,
        coordinator: DispatchCoordinator,
        rate_limiter: RateLimiter,
        auditor: Auditor,
        resource_catalog: Optional[ResourceCatalog] = None,
        store: Optional[PersistenceStore] = None,
        classifier: Optional[RiskClassifier] = None,
        planner: Optional[InterventionPlanner] = None,
    ):
        self.coordinator = coordinator
        self.auditor = auditor
        self.resource_catalog = resource_catalog or coordinator.resource_catalog
        self.store = store or coordinator.store
        self.classifier = classifier or RiskClassifier()
        self.planner = planner or InterventionPlanner()

        self._pipeline = audited(auditor)(rate_limited(rate_limiter)(self._evaluate))

        logger.info("ASSESSMENT_SERVICE_INITIALIZED")

    def assess(
        self,
        payload: Any,
        context: Optional[RequestContext] = None,
    ) -> AssessmentResponse:
        """Run a crisis assessment.

        Args:
            payload: Decoded JSON body
            context: Caller identity; anonymous when omitted

        Returns:
            200 with the plan, 400 on validation failure, 429 when rate
            limited, 500 on unexpected failure. Resources in all cases.
        """
        context = context or RequestContext()
        self._transition(AssessmentState.RECEIVED, context)

        try:
            assessment = validate_assessment(payload)
            self._transition(AssessmentState.VALIDATED, context)
            return self._pipeline(assessment, context)

        except ValidationError as e:
            self._transition(AssessmentState.VALIDATION_FAILED, context)
            return self._failure(
                400,
                AssessmentState.VALIDATION_FAILED,
                error=VALIDATION_ERROR_MESSAGE,
                details=e.details,
            )

        except RateLimitedError as e:
            self._transition(AssessmentState.RATE_LIMITED, context)
            return self._failure(
                429,
                AssessmentState.RATE_LIMITED,
                error=RATE_LIMITED_MESSAGE,
                rateLimited=True,
                retryAfter=e.retry_after,
            )

        except Exception as e:
            logger.critical(
                "CRISIS_ASSESSMENT_FAILED",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "RESOURCES_RETURNED",
                },
                exc_info=True,
            )
            self._transition(AssessmentState.FAILED, context)
            return self._failure(500, AssessmentState.FAILED, error=INTERNAL_ERROR_MESSAGE)

    def get_resources(self) -> AssessmentResponse:
        """Crisis resources only. No identity, no quota, no classification."""
        return AssessmentResponse(
            status_code=200,
            body={
                "success": True,
                "resources": self._resources(),
                "message": RESOURCES_MESSAGE,
            },
        )

    def get_intervention(
        self,
        record_id: str,
        context: Optional[RequestContext] = None,
    ) -> AssessmentResponse:
        """Return one of the caller's own intervention records.

        Returns:
            401 without identity, 404 when missing or owned by someone
            else, 503 when the store fails, otherwise 200
        """
        context = context or RequestContext()

        try:
            user_id = self._require_identity(context)
        except UnauthenticatedError:
            return self._failure(401, None, error=UNAUTHENTICATED_MESSAGE)

        try:
            record = self.store.get_intervention_record(record_id)
        except Exception as e:
            logger.error(
                "INTERVENTION_LOOKUP_FAILED",
                extra={"intervention_id": record_id, "error": str(e)}
            )
            self._safe_audit_error(
                AuditAction.INTERVENTION_VIEW,
                DependencyError("persistence", str(e)),
                record_id,
                user_id,
            )
            return self._failure(503, None, error=LOOKUP_UNAVAILABLE_MESSAGE)

        if record is None or record.user_id != user_id:
            logger.warning(
                "INTERVENTION_NOT_FOUND",
                extra={
                    "intervention_id": record_id,
                    "user_id_hash": hash_pii(user_id),
                    "exists": record is not None,
                }
            )
            return self._failure(404, None, error=NOT_FOUND_MESSAGE)

        try:
            self.auditor.log_success(
                AuditAction.INTERVENTION_VIEW.value,
                AuditEntity.CRISIS_INTERVENTION.value,
                record.id,
                {"severity": record.severity.value},
                user_id,
            )
        except Exception as e:
            logger.error("AUDIT_SINK_FAILED", extra={"error": str(e)})

        return AssessmentResponse(
            status_code=200,
            body={
                "success": True,
                "intervention": record.to_dict(),
                "resources": self._resources(),
            },
        )

    def _evaluate(
        self,
        assessment: CrisisAssessmentInput,
        context: RequestContext,
    ) -> AssessmentResponse:
        self._transition(AssessmentState.RATE_CHECKED, context)

        rule = self.classifier.match(assessment)
        severity = rule.severity
        self._transition(AssessmentState.CLASSIFIED, context)

        plan = self.planner.plan(severity)
        self._transition(AssessmentState.PLANNED, context)

        log = logger.critical if severity.is_escalating else logger.info
        log(
            "CRISIS_ASSESSMENT_CLASSIFIED",
            extra={
                "severity": severity.value,
                "rule": rule.name,
                "intervention_type": plan.intervention_type.value,
                "anonymous": context.user_id is None,
            }
        )

        outcome = self._dispatch(plan, assessment, context)
        self._transition(AssessmentState.DISPATCHED, context)

        body = self._success_body(plan, outcome)
        self._transition(AssessmentState.RESPONDED, context)
        return AssessmentResponse(200, body, AssessmentState.RESPONDED)

    def _dispatch(
        self,
        plan: InterventionPlan,
        assessment: CrisisAssessmentInput,
        context: RequestContext,
    ) -> DispatchOutcome:
        """Dispatch, degrading to a no-side-effect outcome if the coordinator breaks."""
        try:
            return self.coordinator.dispatch(plan, assessment, context.user_id)
        except Exception as e:
            logger.critical(
                "CRISIS_DISPATCH_ABORTED",
                extra={
                    "severity": plan.severity.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            error = DependencyError("dispatch", str(e))
            self._safe_audit_error(AuditAction.CRISIS_ASSESSMENT, error, None, context.user_id)
            return DispatchOutcome(
                record_id=None,
                alerts_sent=False,
                emergency_dispatch_triggered=False,
                follow_up_date=None,
                persistence_error=error,
                anonymous=context.user_id is None,
            )

    def _success_body(self, plan: InterventionPlan, outcome: DispatchOutcome) -> Dict[str, Any]:
        return {
            "success": True,
            "severity": plan.severity.value,
            "interventionType": plan.intervention_type.value,
            "interventionId": outcome.record_id,
            "urgent": plan.urgent,
            "message": plan.message,
            "nextSteps": list(plan.next_steps),
            "followUpRequired": plan.follow_up_required,
            "followUpDate": (
                outcome.follow_up_date.isoformat() + "Z" if outcome.follow_up_date else None
            ),
            "alertsSent": outcome.alerts_sent,
            "emergencyDispatch": outcome.emergency_dispatch_triggered,
            "degraded": outcome.degraded,
            "resources": self._resources(),
        }

    def _failure(
        self,
        status_code: int,
        state: Optional[AssessmentState],
        error: str,
        **extra: Any,
    ) -> AssessmentResponse:
        body = {"success": False, "error": error, "resources": self._resources()}
        body.update(extra)
        return AssessmentResponse(status_code, body, state)

    def _resources(self) -> Dict[str, Any]:
        """Serialized resource set; falls back to the built-in catalog."""
        try:
            return self.resource_catalog.get().to_dict()
        except Exception as e:
            logger.critical(
                "CRISIS_RESOURCES_UNAVAILABLE",
                extra={"error": str(e), "action": "using_defaults"}
            )
            return DEFAULT_CRISIS_RESOURCES.to_dict()

    def _require_identity(self, context: RequestContext) -> str:
        if not context.user_id:
            logger.warning("IDENTITY_REQUIRED", extra={"client_id": context.client_id})
            raise UnauthenticatedError("Identity required for this operation")
        return context.user_id

    def _safe_audit_error(self, action, error, entity_id, user_id) -> None:
        try:
            self.auditor.log_error(
                action.value,
                AuditEntity.CRISIS_INTERVENTION.value,
                error,
                entity_id,
                None,
                user_id,
            )
        except Exception as e:
            logger.error("AUDIT_SINK_FAILED", extra={"error": str(e)})

    def _transition(self, state: AssessmentState, context: RequestContext) -> None:
        logger.debug(
            "ASSESSMENT_STATE",
            extra={"state": state.value, "anonymous": context.user_id is None}
        )
