"""Shared fixtures and collaborator fakes for crisis engine tests."""
import threading
import time
from types import SimpleNamespace
from datetime import datetime

import pytest

from lifeline.shared.utils import configure_pii_salt
from lifeline.services.crisis_engine.collaborators import (
    Auditor,
    EmergencyDispatcher,
    NotificationChannel,
    PersistenceStore,
    RateLimiter,
    RateLimitResult,
)
from lifeline.services.crisis_engine.dispatch import DispatchCoordinator
from lifeline.services.crisis_engine.rate_limiter import InMemoryRateLimiter
from lifeline.services.crisis_engine.repository import InMemoryInterventionStore
from lifeline.services.crisis_engine.service import AssessmentService


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


class FakeStore(InMemoryInterventionStore):
    """In-memory store that can be made to fail or stall."""

    def __init__(self, fail=False, delay=0.0):
        super().__init__()
        self.fail = fail
        self.delay = delay
        self.created = []

    def create_intervention_record(self, record):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ConnectionError("database unavailable")
        self.created.append(record)
        return super().create_intervention_record(record)


class BrokenStore(PersistenceStore):
    def create_intervention_record(self, record):
        raise ConnectionError("database unavailable")

    def get_intervention_record(self, record_id):
        raise ConnectionError("database unavailable")


class FakeChannel(NotificationChannel):
    def __init__(self, fail=False, delay=0.0):
        self.fail = fail
        self.delay = delay
        self.broadcasts = []
        self.contact_notifications = []
        self._lock = threading.Lock()

    def broadcast_to_crisis_team(self, event):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ConnectionError("stream unavailable")
        with self._lock:
            self.broadcasts.append(event)

    def notify_emergency_contacts(self, contacts, event):
        if self.fail:
            raise ConnectionError("sms unavailable")
        with self._lock:
            self.contact_notifications.append((tuple(contacts), event))


class FakeDispatcher(EmergencyDispatcher):
    def __init__(self, fail=False):
        self.fail = fail
        self.triggers = []

    def trigger(self, user_id, severity, location):
        if self.fail:
            raise ConnectionError("dispatch unavailable")
        self.triggers.append((user_id, severity, location))


class FakeAuditor(Auditor):
    def __init__(self):
        self.successes = []
        self.errors = []
        self._lock = threading.Lock()

    def log_success(self, action, entity, entity_id=None, details=None, user_id=None):
        with self._lock:
            self.successes.append({
                "action": action,
                "entity": entity,
                "entity_id": entity_id,
                "details": details or {},
                "user_id": user_id,
            })

    def log_error(self, action, entity, error, entity_id=None, details=None, user_id=None):
        with self._lock:
            self.errors.append({
                "action": action,
                "entity": entity,
                "error": error,
                "entity_id": entity_id,
                "user_id": user_id,
            })


class BrokenLimiter(RateLimiter):
    def check(self, identifier):
        raise ConnectionError("limiter store unavailable")


class DenyingLimiter(RateLimiter):
    def __init__(self, retry_after=42):
        self.retry_after = retry_after

    def check(self, identifier):
        return RateLimitResult(
            allowed=False,
            limit=10,
            remaining=0,
            reset_at=datetime.utcnow(),
            retry_after=self.retry_after,
        )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def auditor():
    return FakeAuditor()


@pytest.fixture
def coordinator(store, channel, dispatcher, auditor):
    coordinator = DispatchCoordinator(
        store=store,
        channel=channel,
        dispatcher=dispatcher,
        auditor=auditor,
        timeout_seconds=1.0,
    )
    yield coordinator
    coordinator.close()


@pytest.fixture
def limiter():
    return InMemoryRateLimiter(window_seconds=60, max_requests=10)


@pytest.fixture
def service(coordinator, limiter, auditor):
    return AssessmentService(
        coordinator=coordinator,
        rate_limiter=limiter,
        auditor=auditor,
    )


def make_payload(**overrides):
    """Valid camelCase assessment body with every flag false."""
    payload = {
        "symptoms": ["anxiety"],
        "suicidalIdeation": False,
        "homicidalIdeation": False,
        "selfHarmRisk": False,
        "substanceUse": False,
        "hasSupport": True,
        "hasPlan": False,
        "hasMeans": False,
        "immediateRisk": False,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def payload_factory():
    return make_payload


@pytest.fixture
def fakes():
    """Fake collaborator classes, for tests that need failing variants."""
    return SimpleNamespace(
        Store=FakeStore,
        BrokenStore=BrokenStore,
        Channel=FakeChannel,
        Dispatcher=FakeDispatcher,
        Auditor=FakeAuditor,
        BrokenLimiter=BrokenLimiter,
        DenyingLimiter=DenyingLimiter,
    )
