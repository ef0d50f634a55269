"""Intervention planner - fixed severity to response-plan lookup.

Next steps are ordered with the most actionable instruction first.
Follow-up dates are not computed here; the dispatch coordinator applies the
delay at execution time so the stored date matches persistence time.
"""
from datetime import timedelta
from typing import Dict

from lifeline.shared.models import InterventionPlan, InterventionType, Severity


PLAN_TABLE: Dict[Severity, InterventionPlan] = {
    Severity.EMERGENCY: InterventionPlan(
        severity=Severity.EMERGENCY,
        intervention_type=InterventionType.EMERGENCY_DISPATCH,
        urgent=True,
        message="IMMEDIATE HELP NEEDED",
        next_steps=(
            "Call 911 immediately",
            "Go to the nearest emergency room",
            "Call 988 for immediate crisis support",
            "Do not leave the person alone",
        ),
        follow_up_delay=timedelta(hours=2),
    ),
    Severity.CRITICAL: InterventionPlan(
        severity=Severity.CRITICAL,
        intervention_type=InterventionType.CALL,
        urgent=True,
        message="Please seek help immediately",
        next_steps=(
            "Call 988 or the suicide prevention lifeline",
            "Contact your therapist or psychiatrist immediately",
            "Go to an emergency room if symptoms worsen",
            "Remove any means of self-harm",
        ),
        follow_up_delay=timedelta(hours=6),
    ),
    Severity.HIGH: InterventionPlan(
        severity=Severity.HIGH,
        intervention_type=InterventionType.VIDEO,
        urgent=False,
        message="Professional support recommended",
        next_steps=(
            "Schedule an urgent appointment with your therapist",
            "Call the crisis line if you need immediate support",
            "Create a safety plan",
            "Stay with supportive people",
        ),
        follow_up_delay=timedelta(hours=24),
    ),
    Severity.MODERATE: InterventionPlan(
        severity=Severity.MODERATE,
        intervention_type=InterventionType.CHAT,
        urgent=False,
        message="Monitor symptoms and seek support",
        next_steps=(
            "Schedule an appointment with your therapist",
            "Practice coping strategies",
            "Reach out to your support network",
            "Use wellness tracking to monitor symptoms",
        ),
        follow_up_delay=timedelta(hours=72),
    ),
    Severity.LOW: InterventionPlan(
        severity=Severity.LOW,
        intervention_type=InterventionType.REFERRAL,
        urgent=False,
        message="Continue monitoring your wellness",
        next_steps=(
            "Continue regular therapy sessions",
            "Maintain wellness tracking",
            "Practice self-care strategies",
            "Build your support network",
        ),
        follow_up_delay=None,
    ),
}


class InterventionPlanner:
    """Returns the plan for a severity tier. Pure and total."""

    def plan(self, severity: Severity) -> InterventionPlan:
        return PLAN_TABLE[severity]
