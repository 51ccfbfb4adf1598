"""
Tests for clause risk scoring.
"""

import pytest

from lexlens.models.enums import ClauseType, RiskLevel
from lexlens.pipeline.risk_scorer import RISK_MESSAGES, score_clause_risk


class TestRiskLevels:

    def test_termination_clause_is_medium(self, registry):
        result = score_clause_risk(
            registry,
            "TERMINATION\nEither party may terminate this agreement at any time without cause.",
        )
        assert result.risk_level == RiskLevel.MEDIUM
        assert len(result.flags) == 3
        assert [f.pattern for f in result.flags] == ["may terminate", "at any time", "without cause"]
        assert all(f.message == "may require careful review" for f in result.flags)
        assert result.requires_review is True

    def test_high_overrides_medium(self, registry):
        result = score_clause_risk(
            registry,
            "The vendor may terminate at its sole discretion without notice.",
        )
        assert result.risk_level == RiskLevel.HIGH
        assert all(f.severity == RiskLevel.HIGH for f in result.flags)
        assert [f.pattern for f in result.flags] == ["sole discretion", "without notice"]
        assert result.flags[0].message == RISK_MESSAGES[RiskLevel.HIGH]

    def test_no_indicator_is_low(self, registry):
        result = score_clause_risk(registry, "The supplier delivers goods on Mondays.")
        assert result.risk_level == RiskLevel.LOW
        assert result.flags == []
        assert result.requires_review is False

    def test_reassurances_reported_on_low(self, registry):
        result = score_clause_risk(
            registry, "Each party shall act in good faith and in a reasonable manner."
        )
        assert result.risk_level == RiskLevel.LOW
        assert result.reassurances == ["reasonable", "good faith"]

    def test_reassurances_do_not_lower_level(self, registry):
        result = score_clause_risk(
            registry, "The mutual licence granted here is exclusive and reasonable."
        )
        assert result.risk_level == RiskLevel.MEDIUM
        assert "mutual" in result.reassurances
        assert result.requires_review is True

    def test_one_flag_per_matching_pattern(self, registry):
        result = score_clause_risk(
            registry, "A perpetual, irrevocable, perpetual licence. Perpetual again."
        )
        assert result.risk_level == RiskLevel.HIGH
        assert [f.pattern for f in result.flags] == ["perpetual", "irrevocable"]

    def test_case_insensitive(self, registry):
        result = score_clause_risk(registry, "UNLIMITED LIABILITY applies.")
        assert result.risk_level == RiskLevel.HIGH

    @pytest.mark.parametrize("clause_type", [None, ClauseType.LIABILITY, ClauseType.GENERAL])
    def test_clause_type_does_not_change_outcome(self, registry, clause_type):
        result = score_clause_risk(registry, "This is binding on successors.", clause_type)
        assert result.risk_level == RiskLevel.MEDIUM

    def test_deterministic(self, registry):
        text = "The customer waives all rights to indemnify all losses."
        assert score_clause_risk(registry, text) == score_clause_risk(registry, text)
