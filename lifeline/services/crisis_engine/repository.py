"""Intervention record storage.

InMemoryInterventionStore backs local development and tests;
InterventionRepository writes to PostgreSQL.

Schema:
    CREATE TABLE crisis_interventions (
        id                 TEXT PRIMARY KEY,
        user_id            TEXT NOT NULL,
        severity           TEXT NOT NULL,
        intervention_type  TEXT NOT NULL,
        status             TEXT NOT NULL DEFAULT 'ACTIVE',
        symptoms           TEXT[] NOT NULL,
        trigger_event      TEXT,
        follow_up_required BOOLEAN NOT NULL,
        follow_up_date     TIMESTAMP,
        resources_provided TEXT[] NOT NULL,
        created_at         TIMESTAMP NOT NULL
    );
"""
import logging
import threading
from typing import Any, Dict, Optional

from lifeline.shared.database import BaseRepository, ConnectionManager, DuplicateError
from lifeline.shared.models import (
    InterventionRecord,
    InterventionStatus,
    InterventionType,
    Severity,
)
from .collaborators import PersistenceStore

logger = logging.getLogger(__name__)


class InMemoryInterventionStore(PersistenceStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._records: Dict[str, InterventionRecord] = {}
        self._lock = threading.Lock()

    def create_intervention_record(self, record: InterventionRecord) -> str:
        with self._lock:
            if record.id in self._records:
                raise DuplicateError(f"intervention {record.id} exists")
            self._records[record.id] = record

        logger.info(
            "INTERVENTION_RECORD_STORED",
            extra={"intervention_id": record.id, "backend": "memory"}
        )
        return record.id

    def get_intervention_record(self, record_id: str) -> Optional[InterventionRecord]:
        with self._lock:
            return self._records.get(record_id)


class InterventionRepository(BaseRepository[InterventionRecord], PersistenceStore):
    """PostgreSQL storage for intervention records."""

    TABLE_NAME = "crisis_interventions"

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, self.TABLE_NAME)

    def _row_to_entity(self, row: tuple) -> InterventionRecord:
        (
            record_id, user_id, severity, intervention_type, status, symptoms,
            trigger_event, follow_up_required, follow_up_date,
            resources_provided, created_at,
        ) = row
        return InterventionRecord(
            id=record_id,
            user_id=user_id,
            severity=Severity(severity),
            intervention_type=InterventionType(intervention_type),
            status=InterventionStatus(status),
            symptoms=tuple(symptoms or ()),
            trigger_event=trigger_event,
            follow_up_required=follow_up_required,
            follow_up_date=follow_up_date,
            resources_provided=tuple(resources_provided or ()),
            created_at=created_at,
        )

    def _entity_to_params(self, entity: InterventionRecord) -> Dict[str, Any]:
        # Column order matches the table definition
        return {
            "id": entity.id,
            "user_id": entity.user_id,
            "severity": entity.severity.value,
            "intervention_type": entity.intervention_type.value,
            "status": entity.status.value,
            "symptoms": list(entity.symptoms),
            "trigger_event": entity.trigger_event,
            "follow_up_required": entity.follow_up_required,
            "follow_up_date": entity.follow_up_date,
            "resources_provided": list(entity.resources_provided),
            "created_at": entity.created_at,
        }

    def create_intervention_record(self, record: InterventionRecord) -> str:
        record_id = self.insert(record)
        logger.info(
            "INTERVENTION_RECORD_STORED",
            extra={"intervention_id": record_id, "backend": "postgres"}
        )
        return record_id

    def get_intervention_record(self, record_id: str) -> Optional[InterventionRecord]:
        return self.find_by_id(record_id)
