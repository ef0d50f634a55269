"""Audit Service: tamper-evident trail of crisis assessments.

Records every assessment outcome and every collaborator failure raised
during dispatch. Entries are chained by SHA-256 for verification.
"""

from .audit_logger import AuditLogger, AuditAction, AuditEntity, AuditEntry, AuditOutcome

__all__ = [
    "AuditLogger",
    "AuditAction",
    "AuditEntity",
    "AuditEntry",
    "AuditOutcome",
]
