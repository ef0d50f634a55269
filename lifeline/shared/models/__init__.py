"""Shared domain models for Lifeline."""
from .assessment import CrisisAssessmentInput, EmergencyContact
from .crisis import (
    Severity,
    InterventionType,
    InterventionStatus,
    CrisisResource,
    CrisisResourceSet,
    InterventionPlan,
    InterventionRecord,
)

__all__ = [
    "CrisisAssessmentInput",
    "EmergencyContact",
    "Severity",
    "InterventionType",
    "InterventionStatus",
    "CrisisResource",
    "CrisisResourceSet",
    "InterventionPlan",
    "InterventionRecord",
]
