"""Structural validation of incoming assessment payloads."""
import logging
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from lifeline.shared.models import CrisisAssessmentInput
from .errors import ValidationError

logger = logging.getLogger(__name__)


def _issue(error: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "path": ".".join(str(part) for part in error.get("loc", ())),
        "message": error.get("msg", "Invalid value"),
        "code": error.get("type", "invalid"),
    }


def validate_assessment(payload: Any) -> CrisisAssessmentInput:
    """Parse a JSON payload into a frozen CrisisAssessmentInput.

    Raises:
        ValidationError: With one detail entry per offending field
    """
    if not isinstance(payload, dict):
        logger.warning(
            "ASSESSMENT_VALIDATION_FAILED",
            extra={"reason": "body_not_object", "payload_type": type(payload).__name__}
        )
        raise ValidationError(
            "Validation error",
            details=[{
                "path": "",
                "message": "Request body must be a JSON object",
                "code": "invalid_type",
            }],
        )

    try:
        return CrisisAssessmentInput.model_validate(payload)
    except PydanticValidationError as e:
        details: List[Dict[str, Any]] = [_issue(err) for err in e.errors()]
        logger.warning(
            "ASSESSMENT_VALIDATION_FAILED",
            extra={
                "reason": "schema",
                "error_count": len(details),
                "fields": [d["path"] for d in details],
            }
        )
        raise ValidationError("Validation error", details=details) from e
