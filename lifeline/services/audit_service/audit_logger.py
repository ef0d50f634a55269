"""Audit logger - hash-chained trail of crisis assessment activity.

Every assessment outcome and every collaborator failure is recorded here.
Entries are immutable and chained by SHA-256 so tampering is detectable.
"""
import hashlib
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from lifeline.services.crisis_engine.collaborators import AuditAction, AuditEntity, Auditor
from lifeline.shared.utils import hash_pii

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


class AuditOutcome(Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit log entry."""
    entry_id: str
    timestamp: datetime
    action: str
    entity: str
    entity_id: Optional[str]
    actor_id: str   # Hashed user id, or "anonymous"
    outcome: AuditOutcome
    details: Dict[str, Any] = field(default_factory=dict)
    previous_hash: str = ""
    entry_hash: str = ""

    def compute_hash(self) -> str:
        """SHA-256 over every field except entry_hash."""
        content = {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "outcome": self.outcome.value,
            "details": self.details,
            "previous_hash": self.previous_hash,
        }
        content_str = json.dumps(content, sort_keys=True, default=str)
        return hashlib.sha256(content_str.encode()).hexdigest()


def _name(value: Union[str, Enum]) -> str:
    return value.value if isinstance(value, Enum) else str(value)


class AuditLogger(Auditor):
    """In-memory hash-chained audit trail.

    log_success() and log_error() never raise: an audit failure must not
    take down the assessment it describes.
    """

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._last_hash: str = GENESIS_HASH
        self._lock = threading.Lock()

        logger.info("AUDIT_LOGGER_INITIALIZED")

    def log(
        self,
        action: Union[str, AuditAction],
        entity: Union[str, AuditEntity],
        outcome: AuditOutcome,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> AuditEntry:
        """Append an entry to the chain.

        Args:
            action: Action being audited
            entity: Entity type acted upon
            outcome: SUCCESS, FAILURE or ERROR
            entity_id: Identifier of the entity, if any
            details: Additional context (must not contain PHI)
            user_id: Raw user id; stored hashed

        Returns:
            The stored AuditEntry

        Logs:
            - AUDIT_ENTRY_CREATED: After entry is stored
        """
        actor_id = hash_pii(user_id) if user_id else "anonymous"

        with self._lock:
            entry = AuditEntry(
                entry_id=f"audit_{uuid.uuid4().hex[:16]}",
                timestamp=datetime.utcnow(),
                action=_name(action),
                entity=_name(entity),
                entity_id=entity_id,
                actor_id=actor_id,
                outcome=outcome,
                details=dict(details or {}),
                previous_hash=self._last_hash,
            )
            entry = replace(entry, entry_hash=entry.compute_hash())

            self._entries.append(entry)
            self._last_hash = entry.entry_hash

        logger.info(
            "AUDIT_ENTRY_CREATED",
            extra={
                "entry_id": entry.entry_id,
                "action": entry.action,
                "entity": entry.entity,
                "entity_id": entity_id,
                "outcome": outcome.value,
                "entry_hash": entry.entry_hash[:16],
            }
        )
        return entry

    def log_success(
        self,
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        try:
            return self.log(
                action=action,
                entity=entity,
                outcome=AuditOutcome.SUCCESS,
                entity_id=entity_id,
                details=details,
                user_id=user_id,
            )
        except Exception as e:
            logger.error(
                "AUDIT_LOG_FAILED",
                extra={"action": _name(action), "error": str(e)}
            )
            return None

    def log_error(
        self,
        action: str,
        entity: str,
        error: BaseException,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        entry_details = dict(details or {})
        entry_details["error"] = str(error)
        entry_details["error_type"] = type(error).__name__

        try:
            return self.log(
                action=action,
                entity=entity,
                outcome=AuditOutcome.ERROR,
                entity_id=entity_id,
                details=entry_details,
                user_id=user_id,
            )
        except Exception as e:
            logger.error(
                "AUDIT_LOG_FAILED",
                extra={"action": _name(action), "error": str(e)}
            )
            return None

    def verify_chain(self) -> bool:
        """Verify integrity of the audit chain.

        Returns:
            True if chain is valid, False if tampered
        """
        with self._lock:
            entries = list(self._entries)

        expected_prev = GENESIS_HASH
        for entry in entries:
            if entry.previous_hash != expected_prev:
                logger.critical(
                    "AUDIT_CHAIN_VERIFICATION_FAILED",
                    extra={
                        "entry_id": entry.entry_id,
                        "expected_prev": expected_prev[:16],
                        "actual_prev": entry.previous_hash[:16],
                    }
                )
                return False

            if entry.compute_hash() != entry.entry_hash:
                logger.critical(
                    "AUDIT_ENTRY_HASH_MISMATCH",
                    extra={"entry_id": entry.entry_id}
                )
                return False

            expected_prev = entry.entry_hash

        logger.info("AUDIT_CHAIN_VERIFIED", extra={"entry_count": len(entries)})
        return True

    def query(
        self,
        action: Optional[Union[str, AuditAction]] = None,
        entity_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AuditEntry]:
        """Filter stored entries."""
        with self._lock:
            results = list(self._entries)

        if action:
            results = [e for e in results if e.action == _name(action)]
        if entity_id:
            results = [e for e in results if e.entity_id == entity_id]
        if outcome:
            results = [e for e in results if e.outcome == outcome]
        if start_date:
            results = [e for e in results if e.timestamp >= start_date]
        if end_date:
            results = [e for e in results if e.timestamp <= end_date]

        return results
