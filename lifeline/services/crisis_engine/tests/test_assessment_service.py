"""Tests for AssessmentService request handling."""
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from lifeline.services.crisis_engine.dispatch import DispatchCoordinator
from lifeline.services.crisis_engine.rate_limiter import InMemoryRateLimiter
from lifeline.services.crisis_engine.resources import DEFAULT_CRISIS_RESOURCES
from lifeline.services.crisis_engine.service import (
    AssessmentService,
    AssessmentState,
    RequestContext,
)

RESOURCES = DEFAULT_CRISIS_RESOURCES.to_dict()

SUCCESS_KEYS = {
    "success", "severity", "interventionType", "interventionId", "urgent",
    "message", "nextSteps", "followUpRequired", "followUpDate", "alertsSent",
    "emergencyDispatch", "degraded", "resources",
}


@pytest.fixture
def user_context():
    return RequestContext(user_id="user_1", client_id="10.0.0.1:user_1:/crisis/assess")


class TestSuccessfulAssessment:

    def test_response_shape(self, service, payload_factory, user_context):
        response = service.assess(payload_factory(), user_context)

        assert response.status_code == 200
        assert response.state == AssessmentState.RESPONDED
        assert set(response.body) == SUCCESS_KEYS
        assert response.body["resources"] == RESOURCES

    def test_emergency_response(self, service, payload_factory, user_context):
        response = service.assess(payload_factory(immediateRisk=True), user_context)
        body = response.body

        assert body["severity"] == "EMERGENCY"
        assert body["interventionType"] == "EMERGENCY_DISPATCH"
        assert body["urgent"] is True
        assert body["message"] == "IMMEDIATE HELP NEEDED"
        assert body["nextSteps"][0] == "Call 911 immediately"
        assert body["alertsSent"] is True
        assert body["emergencyDispatch"] is True
        assert body["followUpRequired"] is True
        assert body["followUpDate"] is not None
        assert body["followUpDate"].endswith("Z")
        assert body["interventionId"].startswith("int_")

    def test_low_response(self, service, payload_factory, user_context):
        body = service.assess(payload_factory(), user_context).body

        assert body["severity"] == "LOW"
        assert body["interventionType"] == "REFERRAL"
        assert body["followUpRequired"] is False
        assert body["followUpDate"] is None
        assert body["alertsSent"] is False

    def test_anonymous_gets_classification_and_resources_only(
        self, service, payload_factory, store, channel
    ):
        response = service.assess(payload_factory(immediateRisk=True))
        body = response.body

        assert response.status_code == 200
        assert body["severity"] == "EMERGENCY"
        assert body["interventionId"] is None
        assert body["alertsSent"] is False
        assert body["emergencyDispatch"] is False
        assert body["resources"] == RESOURCES
        assert store.created == []
        assert channel.broadcasts == []

    def test_caller_severity_cannot_downgrade(self, service, payload_factory, user_context):
        body = service.assess(
            payload_factory(immediateRisk=True, severity="LOW"), user_context
        ).body

        assert body["severity"] == "EMERGENCY"


class TestFailurePaths:

    def test_validation_failure(self, service, user_context):
        response = service.assess({"symptoms": []}, user_context)

        assert response.status_code == 400
        assert response.state == AssessmentState.VALIDATION_FAILED
        assert response.body["error"] == "Validation error"
        assert response.body["details"]
        assert response.body["resources"] == RESOURCES

    def test_invalid_body_type(self, service, user_context):
        response = service.assess(None, user_context)

        assert response.status_code == 400
        assert response.body["resources"] == RESOURCES

    def test_rate_limited(self, service, payload_factory, user_context):
        for _ in range(10):
            assert service.assess(payload_factory(), user_context).status_code == 200

        response = service.assess(payload_factory(), user_context)

        assert response.status_code == 429
        assert response.state == AssessmentState.RATE_LIMITED
        assert response.body["rateLimited"] is True
        assert response.body["retryAfter"] >= 1
        assert "988" in response.body["error"]
        assert response.body["resources"] == RESOURCES

    def test_validation_runs_before_rate_limit(self, coordinator, auditor, fakes, user_context):
        service = AssessmentService(
            coordinator=coordinator,
            rate_limiter=fakes.DenyingLimiter(),
            auditor=auditor,
        )

        assert service.assess({}, user_context).status_code == 400

    def test_limiter_outage_allows_request(self, coordinator, auditor, fakes, payload_factory, user_context):
        service = AssessmentService(
            coordinator=coordinator,
            rate_limiter=fakes.BrokenLimiter(),
            auditor=auditor,
        )

        assert service.assess(payload_factory(), user_context).status_code == 200

    def test_unexpected_error_returns_500_with_resources(
        self, coordinator, limiter, auditor, payload_factory, user_context
    ):
        classifier = MagicMock()
        classifier.match.side_effect = RuntimeError("boom")
        service = AssessmentService(
            coordinator=coordinator,
            rate_limiter=limiter,
            auditor=auditor,
            classifier=classifier,
        )

        response = service.assess(payload_factory(), user_context)

        assert response.status_code == 500
        assert response.state == AssessmentState.FAILED
        assert response.body["error"] == "An error occurred, but help is available"
        assert response.body["resources"] == RESOURCES
        assert auditor.errors[-1]["action"] == "CRISIS_ASSESSMENT"

    def test_all_collaborators_down_still_returns_plan(
        self, fakes, auditor, limiter, payload_factory, user_context
    ):
        coordinator = DispatchCoordinator(
            store=fakes.Store(fail=True),
            channel=fakes.Channel(fail=True),
            dispatcher=fakes.Dispatcher(fail=True),
            auditor=auditor,
            timeout_seconds=0.5,
        )
        service = AssessmentService(coordinator=coordinator, rate_limiter=limiter, auditor=auditor)

        response = service.assess(payload_factory(immediateRisk=True), user_context)
        coordinator.close()

        assert response.status_code == 200
        assert response.body["severity"] == "EMERGENCY"
        assert response.body["degraded"] is True
        assert response.body["interventionId"] is None
        assert response.body["alertsSent"] is True
        assert response.body["resources"] == RESOURCES

    def test_coordinator_crash_degrades_instead_of_failing(
        self, limiter, auditor, payload_factory, user_context
    ):
        coordinator = MagicMock()
        coordinator.dispatch.side_effect = RuntimeError("pool shut down")
        coordinator.resource_catalog.get.return_value = DEFAULT_CRISIS_RESOURCES
        service = AssessmentService(coordinator=coordinator, rate_limiter=limiter, auditor=auditor)

        response = service.assess(payload_factory(suicidalIdeation=True), user_context)

        assert response.status_code == 200
        assert response.body["severity"] == "HIGH"
        assert response.body["degraded"] is True

    def test_broken_catalog_falls_back_to_defaults(self, coordinator, limiter, auditor, user_context):
        catalog = MagicMock()
        catalog.get.side_effect = OSError("config store down")
        service = AssessmentService(
            coordinator=coordinator,
            rate_limiter=limiter,
            auditor=auditor,
            resource_catalog=catalog,
        )

        response = service.assess(None, user_context)

        assert response.body["resources"] == RESOURCES


class TestGetResources:

    def test_returns_resources_without_classifying(self, coordinator, limiter, auditor):
        classifier = MagicMock()
        planner = MagicMock()
        coordinator_spy = MagicMock(wraps=coordinator)
        coordinator_spy.resource_catalog = coordinator.resource_catalog
        coordinator_spy.store = coordinator.store
        service = AssessmentService(
            coordinator=coordinator_spy,
            rate_limiter=limiter,
            auditor=auditor,
            classifier=classifier,
            planner=planner,
        )

        response = service.get_resources()

        assert response.status_code == 200
        assert response.body["message"] == "Crisis resources are available 24/7"
        assert response.body["resources"] == RESOURCES
        classifier.match.assert_not_called()
        planner.plan.assert_not_called()
        coordinator_spy.dispatch.assert_not_called()


class TestGetIntervention:

    def test_requires_identity(self, service):
        response = service.get_intervention("int_abc", RequestContext())

        assert response.status_code == 401
        assert response.body["resources"] == RESOURCES

    def test_returns_own_record(self, service, payload_factory, user_context):
        record_id = service.assess(payload_factory(selfHarmRisk=True), user_context).body["interventionId"]

        response = service.get_intervention(record_id, user_context)

        assert response.status_code == 200
        assert response.body["intervention"]["id"] == record_id
        assert response.body["intervention"]["severity"] == "MODERATE"
        assert response.body["intervention"]["createdAt"].endswith("Z")
        assert response.body["intervention"]["followUpDate"].endswith("Z")

    def test_other_users_record_is_not_found(self, service, payload_factory, user_context):
        record_id = service.assess(payload_factory(), user_context).body["interventionId"]

        response = service.get_intervention(record_id, RequestContext(user_id="user_2"))

        assert response.status_code == 404

    def test_missing_record(self, service, user_context):
        assert service.get_intervention("int_missing", user_context).status_code == 404

    def test_store_failure_returns_503(self, coordinator, limiter, auditor, fakes, user_context):
        service = AssessmentService(
            coordinator=coordinator,
            rate_limiter=limiter,
            auditor=auditor,
            store=fakes.BrokenStore(),
        )

        response = service.get_intervention("int_abc", user_context)

        assert response.status_code == 503
        assert response.body["resources"] == RESOURCES

    def test_view_is_audited(self, service, auditor, payload_factory, user_context):
        record_id = service.assess(payload_factory(), user_context).body["interventionId"]
        service.get_intervention(record_id, user_context)

        assert auditor.successes[-1]["action"] == "INTERVENTION_VIEW"


class TestConcurrency:

    def test_concurrent_users_get_independent_results(self, fakes, auditor, payload_factory):
        store = fakes.Store()
        coordinator = DispatchCoordinator(
            store=store,
            channel=fakes.Channel(),
            dispatcher=fakes.Dispatcher(),
            auditor=auditor,
            timeout_seconds=2.0,
        )
        service = AssessmentService(
            coordinator=coordinator,
            rate_limiter=InMemoryRateLimiter(max_requests=100),
            auditor=auditor,
        )

        def run(i):
            payload = payload_factory(immediateRisk=(i % 2 == 0))
            context = RequestContext(user_id=f"user_{i}", client_id=f"ip:user_{i}:/crisis/assess")
            return i, service.assess(payload, context)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(run, range(20)))
        coordinator.close()

        for i, response in results:
            expected = "EMERGENCY" if i % 2 == 0 else "LOW"
            assert response.status_code == 200
            assert response.body["severity"] == expected

        ids = {response.body["interventionId"] for _, response in results}
        assert len(ids) == 20
        assert len(store.created) == 20
