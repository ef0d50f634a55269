"""Dispatch coordinator - best-effort side effects of a classified assessment.

Persistence and notifications run concurrently, each on its own worker pool,
and share a single wait budget. Work that overruns the budget is reported as
timed out but still allowed to finish. Whatever fails or times out is
captured in the returned DispatchOutcome; nothing raised by a collaborator
reaches the caller, so the classification and the resource list always make
it into the response.
"""
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from lifeline.shared.models import (
    CrisisAssessmentInput,
    InterventionPlan,
    InterventionRecord,
    InterventionStatus,
    Severity,
)
from lifeline.shared.utils import fingerprint_text, hash_pii
from .collaborators import (
    AuditAction,
    AuditEntity,
    Auditor,
    EmergencyDispatcher,
    NotificationChannel,
    PersistenceStore,
)
from .errors import DependencyError
from .events import CrisisEvent
from .resources import ResourceCatalog

logger = logging.getLogger(__name__)

PERSISTENCE = "persistence"
NOTIFICATION = "notification"
EMERGENCY_CONTACTS = "emergency_contacts"
EMERGENCY_DISPATCH = "emergency_dispatch"

_TASK_AUDIT_ACTIONS = {
    PERSISTENCE: AuditAction.INTERVENTION_PERSIST,
    NOTIFICATION: AuditAction.CRISIS_TEAM_NOTIFY,
    EMERGENCY_CONTACTS: AuditAction.EMERGENCY_CONTACT_NOTIFY,
    EMERGENCY_DISPATCH: AuditAction.EMERGENCY_DISPATCH,
}


@dataclass(frozen=True)
class DispatchOutcome:
    """What dispatch attempted and what failed.

    alerts_sent and emergency_dispatch_triggered report attempts: they are
    set by severity even when the underlying call failed.
    """
    record_id: Optional[str]
    alerts_sent: bool
    emergency_dispatch_triggered: bool
    follow_up_date: Optional[datetime] = None
    persistence_error: Optional[DependencyError] = None
    notification_error: Optional[DependencyError] = None
    dispatch_error: Optional[DependencyError] = None
    anonymous: bool = False

    @property
    def degraded(self) -> bool:
        return any((self.persistence_error, self.notification_error, self.dispatch_error))


class DispatchCoordinator:
    """Runs the side effects implied by an intervention plan."""

    def __init__(
        self,
        store: PersistenceStore,
        channel: NotificationChannel,
        dispatcher: EmergencyDispatcher,
        auditor: Auditor,
        resource_catalog: Optional[ResourceCatalog] = None,
        timeout_seconds: float = 3.0,
        max_workers: int = 16,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.channel = channel
        self.dispatcher = dispatcher
        self.auditor = auditor
        self.resource_catalog = resource_catalog or ResourceCatalog()
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        # One pool per collaborator so a hung channel cannot starve persistence
        self._executors = {
            name: ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix=f"crisis-{name}",
            )
            for name in _TASK_AUDIT_ACTIONS
        }

        logger.info(
            "DISPATCH_COORDINATOR_INITIALIZED",
            extra={"timeout_seconds": timeout_seconds, "max_workers": max_workers}
        )

    def dispatch(
        self,
        plan: InterventionPlan,
        assessment: CrisisAssessmentInput,
        user_id: Optional[str],
    ) -> DispatchOutcome:
        """Persist, notify and dispatch as the plan requires.

        Anonymous callers get no record and no notifications: there is no
        identity to attach them to. The outcome is still audited.

        Args:
            plan: Plan for the classified severity
            assessment: Validated input
            user_id: Authenticated user, or None

        Returns:
            DispatchOutcome; never raises for collaborator failures
        """
        now = self.clock()
        follow_up_date = plan.follow_up_date(now)
        severity = plan.severity

        if user_id is None:
            logger.warning(
                "CRISIS_DISPATCH_ANONYMOUS",
                extra={
                    "severity": severity.value,
                    "action": "RESOURCES_ONLY",
                }
            )
            self._audit_success(
                AuditAction.CRISIS_ASSESSMENT,
                None,
                self._assessment_details(
                    plan,
                    assessment,
                    persisted=False,
                    alerts_sent=False,
                    emergency_dispatch=False,
                    failed=[],
                    anonymous=True,
                ),
                None,
            )
            return DispatchOutcome(
                record_id=None,
                alerts_sent=False,
                emergency_dispatch_triggered=False,
                follow_up_date=follow_up_date,
                anonymous=True,
            )

        record = InterventionRecord(
            id=f"int_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            severity=severity,
            intervention_type=plan.intervention_type,
            status=InterventionStatus.ACTIVE,
            symptoms=tuple(assessment.symptoms),
            trigger_event=assessment.trigger_event,
            follow_up_required=plan.follow_up_required,
            follow_up_date=follow_up_date,
            resources_provided=tuple(self.resource_catalog.get().resource_names()),
            created_at=now,
        )
        user_id_hash = hash_pii(user_id)

        tasks: Dict[str, Callable[[], Any]] = {
            PERSISTENCE: lambda: self.store.create_intervention_record(record),
        }
        if severity.is_escalating:
            event = CrisisEvent.for_record(record)
            tasks[NOTIFICATION] = lambda: self.channel.broadcast_to_crisis_team(event)
            if severity == Severity.EMERGENCY and assessment.emergency_contacts:
                tasks[EMERGENCY_CONTACTS] = lambda: self.channel.notify_emergency_contacts(
                    assessment.emergency_contacts, event
                )
        if severity == Severity.EMERGENCY:
            tasks[EMERGENCY_DISPATCH] = lambda: self.dispatcher.trigger(
                user_id, severity, assessment.location
            )

        log = logger.critical if severity.is_escalating else logger.info
        log(
            "CRISIS_DISPATCH_STARTED",
            extra={
                "intervention_id": record.id,
                "user_id_hash": user_id_hash,
                "severity": severity.value,
                "tasks": sorted(tasks),
            }
        )

        results, errors = self._run_bounded(tasks)

        for name, error in errors.items():
            logger.critical(
                "CRISIS_DEPENDENCY_FAILED",
                extra={
                    "collaborator": name,
                    "intervention_id": record.id,
                    "user_id_hash": user_id_hash,
                    "severity": severity.value,
                    "error": str(error),
                }
            )
            self._audit_error(_TASK_AUDIT_ACTIONS[name], error, record.id, user_id)

        record_id = results.get(PERSISTENCE)
        outcome = DispatchOutcome(
            record_id=record_id,
            alerts_sent=severity.is_escalating,
            emergency_dispatch_triggered=severity == Severity.EMERGENCY,
            follow_up_date=follow_up_date,
            persistence_error=errors.get(PERSISTENCE),
            notification_error=errors.get(NOTIFICATION) or errors.get(EMERGENCY_CONTACTS),
            dispatch_error=errors.get(EMERGENCY_DISPATCH),
        )

        details = self._assessment_details(
            plan,
            assessment,
            persisted=record_id is not None,
            alerts_sent=outcome.alerts_sent,
            emergency_dispatch=outcome.emergency_dispatch_triggered,
            failed=sorted(errors),
        )
        self._audit_success(AuditAction.CRISIS_ASSESSMENT, record_id, details, user_id)

        logger.info(
            "CRISIS_DISPATCH_COMPLETED",
            extra={
                "intervention_id": record.id,
                "persisted": record_id is not None,
                "degraded": outcome.degraded,
                "failed": sorted(errors),
            }
        )
        return outcome

    def _run_bounded(self, tasks: Dict[str, Callable[[], Any]]):
        """Run tasks concurrently, waiting at most timeout_seconds overall.

        Returns:
            (results, errors) keyed by task name
        """
        futures = {
            name: self._executors[name].submit(fn) for name, fn in tasks.items()
        }
        wait(futures.values(), timeout=self.timeout_seconds)

        results: Dict[str, Any] = {}
        errors: Dict[str, DependencyError] = {}
        for name, future in futures.items():
            if not future.done():
                # Not cancelled: a queued or running call still completes late
                errors[name] = DependencyError(
                    name, f"timed out after {self.timeout_seconds}s"
                )
                continue

            exc = future.exception()
            if exc is None:
                results[name] = future.result()
            elif isinstance(exc, DependencyError):
                errors[name] = exc
            else:
                error = DependencyError(name, f"{type(exc).__name__}: {exc}")
                error.__cause__ = exc
                errors[name] = error

        return results, errors

    @staticmethod
    def _assessment_details(
        plan: InterventionPlan,
        assessment: CrisisAssessmentInput,
        persisted: bool,
        alerts_sent: bool,
        emergency_dispatch: bool,
        failed,
        anonymous: bool = False,
    ) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "severity": plan.severity.value,
            "interventionType": plan.intervention_type.value,
            "immediateRisk": assessment.immediate_risk,
            "persisted": persisted,
            "alertsSent": alerts_sent,
            "emergencyDispatch": emergency_dispatch,
            "failedCollaborators": sorted(failed),
            "anonymous": anonymous,
        }
        if assessment.trigger_event:
            # Free text is never audited, only its fingerprint
            details["triggerEventFingerprint"] = fingerprint_text(assessment.trigger_event)[:16]
        return details

    def _audit_success(self, action, entity_id, details, user_id) -> None:
        try:
            self.auditor.log_success(
                action.value,
                AuditEntity.CRISIS_INTERVENTION.value,
                entity_id,
                details,
                user_id,
            )
        except Exception as e:
            logger.error("AUDIT_SINK_FAILED", extra={"action": action.value, "error": str(e)})

    def _audit_error(self, action, error, entity_id, user_id) -> None:
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
            logger.error("AUDIT_SINK_FAILED", extra={"action": action.value, "error": str(e)})

    def close(self) -> None:
        """Stop accepting work. Queued calls still drain; nothing is awaited."""
        for executor in self._executors.values():
            executor.shutdown(wait=False)
        logger.info("DISPATCH_COORDINATOR_CLOSED")
