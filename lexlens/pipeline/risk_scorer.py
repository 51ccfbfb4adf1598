"""
Deterministic clause risk scoring.
High-risk indicators are checked first; medium only when no high indicator
matched. Reassurance indicators are reported but never change the level.
"""

from typing import Optional

from lexlens.models.enums import ClauseType, RiskLevel
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.schemas.contracts import RiskAssessment, RiskFlag


# ── Indicator Tables ─────────────────────────────────────────

RISK_INDICATORS: dict[str, list[str]] = {
    RiskLevel.HIGH.value: [
        r"unlimited liability",
        r"sole discretion",
        r"without notice",
        r"automatic renewal",
        r"perpetual",
        r"irrevocable",
        r"waive.*rights",
        r"indemnify.*all",
    ],
    RiskLevel.MEDIUM.value: [
        r"may terminate",
        r"at any time",
        r"without cause",
        r"exclusive",
        r"binding",
        r"non-refundable",
    ],
    RiskLevel.LOW.value: [
        r"reasonable",
        r"mutual",
        r"written consent",
        r"good faith",
        r"commercially reasonable",
    ],
}

RISK_MESSAGES = {
    RiskLevel.HIGH: "contains potentially unfavorable terms",
    RiskLevel.MEDIUM: "may require careful review",
}


def score_clause_risk(
    registry: PipelineRegistry,
    text: str,
    clause_type: Optional[ClauseType] = None,
) -> RiskAssessment:
    """
    Score one clause. clause_type is accepted for callers that have it but
    does not change the outcome.
    """
    patterns = registry.risk_patterns

    for level in (RiskLevel.HIGH, RiskLevel.MEDIUM):
        flags = [
            RiskFlag(severity=level, message=RISK_MESSAGES[level], pattern=p.pattern)
            for p in patterns[level.value]
            if p.search(text)
        ]
        if flags:
            return RiskAssessment(
                risk_level=level,
                flags=flags,
                reassurances=_reassurances(registry, text),
            )

    return RiskAssessment(
        risk_level=RiskLevel.LOW,
        flags=[],
        reassurances=_reassurances(registry, text),
    )


def _reassurances(registry: PipelineRegistry, text: str) -> list[str]:
    return [p.pattern for p in registry.risk_patterns[RiskLevel.LOW.value] if p.search(text)]
