"""Caller-supplied crisis self-report.

The model is frozen: nothing downstream can mutate the report once it has
been validated. Field aliases match the camelCase JSON sent by clients.
"""
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class EmergencyContact(BaseModel):
    """Person to text when an assessment is classified EMERGENCY."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: StrictStr = Field(..., min_length=1, max_length=200)
    phone_number: StrictStr = Field(..., min_length=3, max_length=32, alias="phoneNumber")
    relationship: Optional[StrictStr] = Field(default=None, max_length=100)


class CrisisAssessmentInput(BaseModel):
    """Structured risk indicators reported by the user.

    The eight boolean flags are the only inputs to severity classification.
    Booleans are strict: "true" or 1 are rejected rather than coerced.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    symptoms: Tuple[StrictStr, ...] = Field(..., min_length=1)
    suicidal_ideation: StrictBool = Field(..., alias="suicidalIdeation")
    homicidal_ideation: StrictBool = Field(..., alias="homicidalIdeation")
    self_harm_risk: StrictBool = Field(..., alias="selfHarmRisk")
    substance_use: StrictBool = Field(..., alias="substanceUse")
    has_support: StrictBool = Field(..., alias="hasSupport")
    has_plan: StrictBool = Field(..., alias="hasPlan")
    has_means: StrictBool = Field(..., alias="hasMeans")
    immediate_risk: StrictBool = Field(..., alias="immediateRisk")
    trigger_event: Optional[StrictStr] = Field(default=None, alias="triggerEvent")

    # Used only for emergency follow-through
    location: Optional[StrictStr] = Field(default=None, max_length=500)
    emergency_contacts: Tuple[EmergencyContact, ...] = Field(
        default=(), alias="emergencyContacts"
    )
