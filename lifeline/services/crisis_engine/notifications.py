"""Outbound crisis notifications over AWS.

- Crisis team broadcast: Kinesis stream consumed by responder consoles
- Emergency contacts: SMS through SNS
- Emergency dispatch: EventBridge event routed to the dispatch integration

Each call raises DependencyError on failure. The dispatch coordinator owns
failure isolation; these classes only report.
"""
import json
import logging
from typing import Optional, Sequence

import boto3
from botocore.config import Config

from lifeline.shared.models import EmergencyContact, Severity
from lifeline.shared.utils import hash_pii
from .collaborators import EmergencyDispatcher, NotificationChannel
from .errors import DependencyError
from .events import CrisisEvent

logger = logging.getLogger(__name__)


def build_client_config(
    connect_timeout: float = 2.0,
    read_timeout: float = 2.0,
    max_attempts: int = 2,
) -> Config:
    """botocore config that bounds every AWS call made by the engine."""
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"mode": "standard", "max_attempts": max_attempts},
    )


CONTACT_SMS_TEMPLATE = (
    "Lifeline: someone who listed you as an emergency contact may need urgent "
    "help. Please reach out to them now. If they are in danger call 911. "
    "Crisis support is available 24/7 at 988."
)


class KinesisCrisisChannel(NotificationChannel):
    """Publishes crisis events to Kinesis and texts contacts through SNS."""

    def __init__(
        self,
        stream_name: str = "lifeline-crisis-events",
        enabled: bool = True,
        sms_enabled: bool = True,
        region: str = "us-east-1",
        client_config: Optional[Config] = None,
    ):
        self.stream_name = stream_name
        self.enabled = enabled
        self.sms_enabled = sms_enabled
        self.region = region
        self.client_config = client_config or build_client_config()
        self._kinesis_client = None
        self._sns_client = None

        logger.info(
            "CRISIS_CHANNEL_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "sms_enabled": sms_enabled,
                "region": region,
            }
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of Kinesis client."""
        if self._kinesis_client is None:
            self._kinesis_client = boto3.client(
                "kinesis", region_name=self.region, config=self.client_config
            )
        return self._kinesis_client

    @property
    def sns_client(self):
        """Lazy initialization of SNS client."""
        if self._sns_client is None:
            self._sns_client = boto3.client(
                "sns", region_name=self.region, config=self.client_config
            )
        return self._sns_client

    def broadcast_to_crisis_team(self, event: CrisisEvent) -> None:
        """Put the event on the crisis stream.

        Raises:
            DependencyError: If publishing is disabled or Kinesis fails
        """
        payload = event.to_event_payload()

        if not self.enabled:
            # Nobody will see this alert; make it loud
            logger.critical(
                "CRISIS_EVENT_FALLBACK_LOG",
                extra={
                    "event_id": event.event_id,
                    "payload": json.dumps(payload),
                    "reason": "publishing_disabled",
                    "action": "MANUAL_PROCESSING_REQUIRED",
                }
            )
            raise DependencyError("notification", "crisis publishing disabled")

        try:
            response = self.kinesis_client.put_record(
                StreamName=self.stream_name,
                Data=json.dumps(payload),
                PartitionKey=event.user_id_hash,  # Same user, same shard
            )
        except Exception as e:
            logger.critical(
                "CRISIS_EVENT_PUBLISH_FAILED",
                extra={
                    "event_id": event.event_id,
                    "intervention_id": event.intervention_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "MANUAL_REVIEW_REQUIRED",
                    "payload": json.dumps(payload),
                }
            )
            raise DependencyError("notification", f"kinesis put_record failed: {e}") from e

        logger.critical(
            "CRISIS_EVENT_PUBLISHED",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "intervention_id": event.intervention_id,
                "user_id_hash": event.user_id_hash,
                "severity": event.severity.value,
                "shard_id": response.get("ShardId"),
                "sequence_number": response.get("SequenceNumber"),
            }
        )

    def notify_emergency_contacts(
        self,
        contacts: Sequence[EmergencyContact],
        event: CrisisEvent,
    ) -> None:
        """Text every contact; a failed contact does not stop the others.

        Raises:
            DependencyError: If SMS is disabled or any contact failed
        """
        if not contacts:
            return

        if not self.sms_enabled:
            logger.critical(
                "EMERGENCY_CONTACTS_SKIPPED",
                extra={
                    "event_id": event.event_id,
                    "contact_count": len(contacts),
                    "reason": "sms_disabled",
                }
            )
            raise DependencyError("emergency_contacts", "sms disabled")

        failed = 0
        for contact in contacts:
            try:
                self.sns_client.publish(
                    PhoneNumber=contact.phone_number,
                    Message=CONTACT_SMS_TEMPLATE,
                )
            except Exception as e:
                failed += 1
                logger.critical(
                    "EMERGENCY_CONTACT_NOTIFY_FAILED",
                    extra={
                        "event_id": event.event_id,
                        "contact_hash": hash_pii(contact.phone_number),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )

        logger.info(
            "EMERGENCY_CONTACTS_NOTIFIED",
            extra={
                "event_id": event.event_id,
                "total": len(contacts),
                "failed": failed,
            }
        )

        if failed:
            raise DependencyError(
                "emergency_contacts",
                f"{failed} of {len(contacts)} contacts not reached",
            )


class EventBridgeEmergencyDispatcher(EmergencyDispatcher):
    """Requests emergency services through an EventBridge bus."""

    SOURCE = "lifeline.crisis-engine"
    DETAIL_TYPE = "EmergencyDispatchRequested"

    def __init__(
        self,
        event_bus_name: str = "lifeline-emergency",
        region: str = "us-east-1",
        client_config: Optional[Config] = None,
    ):
        self.event_bus_name = event_bus_name
        self.region = region
        self.client_config = client_config or build_client_config()
        self._events_client = None

        logger.info(
            "EMERGENCY_DISPATCHER_INITIALIZED",
            extra={"event_bus_name": event_bus_name, "region": region}
        )

    @property
    def events_client(self):
        """Lazy initialization of EventBridge client."""
        if self._events_client is None:
            self._events_client = boto3.client(
                "events", region_name=self.region, config=self.client_config
            )
        return self._events_client

    def trigger(self, user_id: str, severity: Severity, location: Optional[str]) -> None:
        """Put a dispatch request on the bus.

        The detail carries the raw user id: the dispatch integration needs
        it to look up the user's profile. Logs carry only the hash.

        Raises:
            DependencyError: If the call fails or the entry is rejected
        """
        user_id_hash = hash_pii(user_id)
        detail = {
            "user_id": user_id,
            "severity": severity.value,
            "location": location,
        }

        try:
            response = self.events_client.put_events(
                Entries=[{
                    "Source": self.SOURCE,
                    "DetailType": self.DETAIL_TYPE,
                    "Detail": json.dumps(detail),
                    "EventBusName": self.event_bus_name,
                }]
            )
        except Exception as e:
            logger.critical(
                "EMERGENCY_DISPATCH_FAILED",
                extra={
                    "user_id_hash": user_id_hash,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "CALL_EMERGENCY_SERVICES_MANUALLY",
                }
            )
            raise DependencyError("emergency_dispatch", f"put_events failed: {e}") from e

        if response.get("FailedEntryCount", 0):
            entry = (response.get("Entries") or [{}])[0]
            logger.critical(
                "EMERGENCY_DISPATCH_REJECTED",
                extra={
                    "user_id_hash": user_id_hash,
                    "error_code": entry.get("ErrorCode"),
                    "action": "CALL_EMERGENCY_SERVICES_MANUALLY",
                }
            )
            raise DependencyError(
                "emergency_dispatch",
                f"entry rejected: {entry.get('ErrorCode', 'unknown')}",
            )

        logger.critical(
            "EMERGENCY_DISPATCH_TRIGGERED",
            extra={
                "user_id_hash": user_id_hash,
                "severity": severity.value,
                "has_location": location is not None,
            }
        )
