"""Risk classifier - deterministic severity from reported risk flags.

Rules are evaluated top to bottom and the first match wins, so a
higher-severity rule always dominates lower ones when several apply.

Plan and means only escalate when suicidal ideation is reported:
has_means alone classifies LOW. This mirrors the established cascade and
is kept as-is until clinical owners decide otherwise.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Tuple

from lifeline.shared.models import CrisisAssessmentInput, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskRule:
    """Named predicate in the severity cascade."""
    name: str
    severity: Severity
    applies: Callable[[CrisisAssessmentInput], bool]


RULE_CASCADE: Tuple[RiskRule, ...] = (
    RiskRule(
        "immediate_risk",
        Severity.EMERGENCY,
        lambda a: a.immediate_risk,
    ),
    RiskRule(
        "ideation_with_plan_and_means",
        Severity.EMERGENCY,
        lambda a: a.suicidal_ideation and a.has_plan and a.has_means,
    ),
    RiskRule(
        "ideation_with_plan_or_means",
        Severity.CRITICAL,
        lambda a: a.suicidal_ideation and (a.has_plan or a.has_means),
    ),
    RiskRule(
        "ideation",
        Severity.HIGH,
        lambda a: a.suicidal_ideation or a.homicidal_ideation,
    ),
    RiskRule(
        "self_harm_or_substance_use",
        Severity.MODERATE,
        lambda a: a.self_harm_risk or a.substance_use,
    ),
    RiskRule(
        "no_acute_risk_factors",
        Severity.LOW,
        lambda a: True,
    ),
)


class RiskClassifier:
    """Maps a validated assessment to exactly one severity tier.

    Pure: no I/O and no state, safe to share between threads.
    """

    def match(self, assessment: CrisisAssessmentInput) -> RiskRule:
        """Return the first rule that applies."""
        for rule in RULE_CASCADE:
            if rule.applies(assessment):
                return rule
        return RULE_CASCADE[-1]

    def classify(self, assessment: CrisisAssessmentInput) -> Severity:
        rule = self.match(assessment)
        logger.debug(
            "RISK_RULE_MATCHED",
            extra={"rule": rule.name, "severity": rule.severity.value}
        )
        return rule.severity
