"""Tests for the AWS-backed notification channel and emergency dispatcher."""
import json
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from lifeline.shared.models import (
    EmergencyContact,
    InterventionRecord,
    InterventionStatus,
    InterventionType,
    Severity,
)
from lifeline.services.crisis_engine.errors import DependencyError
from lifeline.services.crisis_engine.events import CrisisEvent, CrisisEventType
from lifeline.services.crisis_engine.notifications import (
    EventBridgeEmergencyDispatcher,
    KinesisCrisisChannel,
    build_client_config,
)


def _record(severity=Severity.CRITICAL):
    return InterventionRecord(
        id="int_abc123",
        user_id="user_1",
        severity=severity,
        intervention_type=InterventionType.CALL,
        status=InterventionStatus.ACTIVE,
        symptoms=("hopelessness",),
        trigger_event=None,
        follow_up_required=True,
        follow_up_date=datetime(2026, 3, 1, 18, 0, 0),
        resources_provided=("Crisis Text Line",),
    )


@pytest.fixture
def event():
    return CrisisEvent.for_record(_record())


@pytest.fixture
def contacts():
    return (
        EmergencyContact(name="Sam", phone_number="+15555550100"),
        EmergencyContact(name="Alex", phone_number="+15555550101"),
    )


class TestCrisisEvent:

    def test_event_type_by_severity(self):
        assert CrisisEvent.for_record(_record()).event_type == CrisisEventType.ASSESSMENT_ESCALATED
        emergency = CrisisEvent.for_record(_record(Severity.EMERGENCY))
        assert emergency.event_type == CrisisEventType.EMERGENCY_DISPATCH

    def test_payload_format(self, event):
        payload = event.to_event_payload()

        assert payload["event_type"] == "crisis.assessment.escalated"
        assert payload["source"] == "crisis-engine"
        assert payload["timestamp"].endswith("Z")
        assert payload["data"]["intervention_id"] == "int_abc123"
        assert payload["data"]["severity"] == "CRITICAL"
        assert payload["data"]["requires_human_intervention"] is True
        assert payload["data"]["follow_up_date"] == "2026-03-01T18:00:00Z"
        assert "user_1" not in json.dumps(payload)

    def test_event_is_immutable(self, event):
        with pytest.raises(Exception):  # FrozenInstanceError
            event.severity = Severity.LOW


class TestKinesisCrisisChannel:

    def test_broadcast_puts_record(self, event):
        channel = KinesisCrisisChannel(stream_name="test-stream")
        channel._kinesis_client = MagicMock()
        channel._kinesis_client.put_record.return_value = {
            "ShardId": "shard-000",
            "SequenceNumber": "123",
        }

        channel.broadcast_to_crisis_team(event)

        call_kwargs = channel._kinesis_client.put_record.call_args.kwargs
        assert call_kwargs["StreamName"] == "test-stream"
        assert call_kwargs["PartitionKey"] == event.user_id_hash
        assert json.loads(call_kwargs["Data"])["event_id"] == event.event_id

    def test_broadcast_failure_raises_dependency_error(self, event):
        channel = KinesisCrisisChannel()
        channel._kinesis_client = MagicMock()
        channel._kinesis_client.put_record.side_effect = Exception("Kinesis unavailable")

        with pytest.raises(DependencyError) as exc_info:
            channel.broadcast_to_crisis_team(event)

        assert exc_info.value.collaborator == "notification"

    def test_disabled_channel_raises(self, event):
        channel = KinesisCrisisChannel(enabled=False)
        channel._kinesis_client = MagicMock()

        with pytest.raises(DependencyError):
            channel.broadcast_to_crisis_team(event)

        channel._kinesis_client.put_record.assert_not_called()

    def test_contacts_texted(self, event, contacts):
        channel = KinesisCrisisChannel()
        channel._sns_client = MagicMock()

        channel.notify_emergency_contacts(contacts, event)

        numbers = [c.kwargs["PhoneNumber"] for c in channel._sns_client.publish.call_args_list]
        assert numbers == ["+15555550100", "+15555550101"]

    def test_partial_contact_failure_still_texts_others(self, event, contacts):
        channel = KinesisCrisisChannel()
        channel._sns_client = MagicMock()
        channel._sns_client.publish.side_effect = [Exception("invalid number"), {"MessageId": "m1"}]

        with pytest.raises(DependencyError) as exc_info:
            channel.notify_emergency_contacts(contacts, event)

        assert channel._sns_client.publish.call_count == 2
        assert "1 of 2" in str(exc_info.value)

    def test_no_contacts_is_noop(self, event):
        channel = KinesisCrisisChannel()
        channel._sns_client = MagicMock()

        channel.notify_emergency_contacts((), event)

        channel._sns_client.publish.assert_not_called()

    def test_sms_disabled_raises(self, event, contacts):
        channel = KinesisCrisisChannel(sms_enabled=False)

        with pytest.raises(DependencyError) as exc_info:
            channel.notify_emergency_contacts(contacts, event)

        assert exc_info.value.collaborator == "emergency_contacts"


class TestEventBridgeEmergencyDispatcher:

    def test_trigger_puts_event(self):
        dispatcher = EventBridgeEmergencyDispatcher(event_bus_name="test-bus")
        dispatcher._events_client = MagicMock()
        dispatcher._events_client.put_events.return_value = {"FailedEntryCount": 0, "Entries": [{}]}

        dispatcher.trigger("user_1", Severity.EMERGENCY, "Springfield")

        entry = dispatcher._events_client.put_events.call_args.kwargs["Entries"][0]
        assert entry["EventBusName"] == "test-bus"
        assert entry["DetailType"] == "EmergencyDispatchRequested"
        assert json.loads(entry["Detail"]) == {
            "user_id": "user_1",
            "severity": "EMERGENCY",
            "location": "Springfield",
        }

    def test_client_error_raises(self):
        dispatcher = EventBridgeEmergencyDispatcher()
        dispatcher._events_client = MagicMock()
        dispatcher._events_client.put_events.side_effect = Exception("throttled")

        with pytest.raises(DependencyError) as exc_info:
            dispatcher.trigger("user_1", Severity.EMERGENCY, None)

        assert exc_info.value.collaborator == "emergency_dispatch"

    def test_rejected_entry_raises(self):
        dispatcher = EventBridgeEmergencyDispatcher()
        dispatcher._events_client = MagicMock()
        dispatcher._events_client.put_events.return_value = {
            "FailedEntryCount": 1,
            "Entries": [{"ErrorCode": "InternalFailure"}],
        }

        with pytest.raises(DependencyError) as exc_info:
            dispatcher.trigger("user_1", Severity.EMERGENCY, None)

        assert "InternalFailure" in str(exc_info.value)


class TestClientConfig:

    def test_defaults_bound_every_call(self):
        config = build_client_config()

        assert config.connect_timeout == 2.0
        assert config.read_timeout == 2.0
        assert config.retries == {"mode": "standard", "max_attempts": 2}

    @patch("lifeline.services.crisis_engine.notifications.boto3.client")
    def test_channel_clients_use_timeouts(self, mock_client):
        config = build_client_config(connect_timeout=0.5, read_timeout=1.5, max_attempts=1)
        channel = KinesisCrisisChannel(region="us-west-2", client_config=config)

        channel.kinesis_client
        channel.sns_client

        services = [c.args[0] for c in mock_client.call_args_list]
        assert services == ["kinesis", "sns"]
        for call in mock_client.call_args_list:
            assert call.kwargs["region_name"] == "us-west-2"
            assert call.kwargs["config"].connect_timeout == 0.5
            assert call.kwargs["config"].read_timeout == 1.5
            assert call.kwargs["config"].retries["max_attempts"] == 1

    @patch("lifeline.services.crisis_engine.notifications.boto3.client")
    def test_dispatcher_client_uses_timeouts(self, mock_client):
        dispatcher = EventBridgeEmergencyDispatcher(
            client_config=build_client_config(connect_timeout=0.5, read_timeout=1.5)
        )

        dispatcher.events_client

        mock_client.assert_called_once()
        assert mock_client.call_args.args[0] == "events"
        assert mock_client.call_args.kwargs["config"].read_timeout == 1.5

    @patch("lifeline.services.crisis_engine.notifications.boto3.client")
    def test_default_client_is_still_bounded(self, mock_client):
        KinesisCrisisChannel().kinesis_client

        assert mock_client.call_args.kwargs["config"].connect_timeout == 2.0
