"""tests/test_classifier.py

Unit tests for the scenario classifier and guideline resolver.
"""

from __future__ import annotations

import itertools

import pytest

from intake.classifier import classify_scenarios
from intake.guidelines import DECISION_TABLE, SCENARIO_CATEGORIES, resolve_guidelines
from intake.schemas import RiskLevel


class TestClassifyScenarios:
    """Test suite for keyword membership classification."""

    @pytest.mark.parametrize(
        ("text", "category"),
        [
            ("Add a stipulation for gift letters", "conditions"),
            ("The software keeps freezing", "systemChanges"),
            ("New HMDA reporting rule", "compliance"),
            ("Update the margin table", "pricing"),
            ("Fannie Mae announcement", "investor"),
            ("Wire instructions need review", "closing"),
            ("Escrow shortage notice", "escrow"),
            ("Forbearance plan for borrower", "lossMitigation"),
            ("Remediation of the issue", "audit"),
        ],
    )
    def test_single_category(self, text: str, category: str) -> None:
        """Test a text with one category's keyword yields exactly that category."""
        assert classify_scenarios(text) == (category,)

    def test_empty_text(self) -> None:
        """Test empty text matches nothing."""
        assert classify_scenarios("") == ()

    def test_case_insensitive(self) -> None:
        """Test keywords match regardless of case."""
        assert classify_scenarios("trid tolerance cure") == ("compliance",)
        assert classify_scenarios("SOFTWARE UPGRADE") == ("systemChanges",)

    def test_multiple_categories_in_table_order(self) -> None:
        """Test every matching category is returned, ordered as in the table."""
        text = "Audit finding on wire timing for TRID"
        assert classify_scenarios(text) == ("compliance", "closing", "audit")

    @pytest.mark.parametrize(
        ("text", "category"),
        [
            ("Our subsystem keeps crashing", "systemChanges"),
            ("The figures are inaccurate", "pricing"),
            ("Needs preconditions reviewed", "conditions"),
            ("Two systems are out of sync", "systemChanges"),
        ],
    )
    def test_keyword_inside_word_matches(self, text: str, category: str) -> None:
        """Test a keyword embedded in a longer word still counts."""
        assert classify_scenarios(text) == (category,)

    def test_short_keyword_fires_inside_longer_keyword(self) -> None:
        """Test 'LOS' inside 'closing' adds systemChanges alongside closing."""
        assert classify_scenarios("closing") == ("systemChanges", "closing")

    def test_no_match_is_empty(self) -> None:
        """Test unrelated text yields no categories."""
        assert classify_scenarios("Please update the cafeteria menu") == ()

    def test_encompass_integration_scenario(self) -> None:
        """Test the credit bureau sync request is a system change only."""
        text = "The Encompass integration keeps failing to sync credit bureau data, need this fixed"
        assert classify_scenarios(text) == ("systemChanges",)


class TestResolveGuidelines:
    """Test suite for the guideline resolver."""

    def test_empty_set(self) -> None:
        """Test no categories gives a MEDIUM profile with no hints."""
        profile = resolve_guidelines([])
        assert profile.risk_level == RiskLevel.MEDIUM
        assert profile.suggested_departments == []
        assert profile.candidate_questions == []
        assert profile.scenario_types == []

    def test_high_risk_flag(self) -> None:
        """Test any high-risk category lifts the risk to HIGH."""
        assert resolve_guidelines(["systemChanges"]).risk_level == RiskLevel.MEDIUM
        assert resolve_guidelines(["systemChanges", "pricing"]).risk_level == RiskLevel.HIGH

    def test_departments_deduplicated(self) -> None:
        """Test categories sharing a department list it once."""
        profile = resolve_guidelines(["compliance", "audit"])
        assert profile.suggested_departments == ["Compliance"]

    def test_system_changes_department(self) -> None:
        """Test system changes route to IT."""
        assert "IT" in resolve_guidelines(["systemChanges"]).suggested_departments

    def test_permutation_invariance(self) -> None:
        """Test the profile does not depend on input order."""
        categories = ["audit", "escrow", "conditions"]
        profiles = [resolve_guidelines(p) for p in itertools.permutations(categories)]
        assert all(p == profiles[0] for p in profiles)

    def test_questions_follow_table_order(self) -> None:
        """Test candidate questions are grouped in table order, first occurrence wins."""
        profile = resolve_guidelines(["escrow", "conditions"])
        by_category = {g.category: list(g.follow_up_questions) for g in DECISION_TABLE}
        assert profile.candidate_questions == by_category["conditions"] + by_category["escrow"]
        assert len(profile.candidate_questions) == len(set(profile.candidate_questions))

    def test_unknown_categories_ignored(self) -> None:
        """Test unknown category names contribute nothing."""
        assert resolve_guidelines(["general"]) == resolve_guidelines([])

    def test_all_categories(self) -> None:
        """Test resolving every category keeps table order in scenario_types."""
        profile = resolve_guidelines(reversed(SCENARIO_CATEGORIES))
        assert profile.scenario_types == list(SCENARIO_CATEGORIES)
        assert profile.risk_level == RiskLevel.HIGH
