"""
Tests for qualification scoring and next best action.

Tests verify:
- Base weights and bonuses
- Score is clamped to 100 and never decreases as signals are added
- Asymmetric next-action priority orders
- Engagement and momentum buckets
"""

from __future__ import annotations

from itertools import combinations

import pytest

from bant_sdr.agents.qualification import (
    engagement_level,
    momentum,
    next_best_action,
    score_qualification,
)
from bant_sdr.orchestration.state import ActionTag, BANTInfo


FIELDS = ("budget", "authority", "need", "timing")

# Values that trigger no bonus
PLAIN = {"budget": "tenho", "authority": "gerente", "need": "demora", "timing": "natal"}


class TestScore:
    """Tests for score_qualification."""

    def test_empty_is_zero(self) -> None:
        """Test no signals score zero."""
        assert score_qualification(BANTInfo()) == 0

    def test_base_weights(self) -> None:
        """Test base weights without bonuses."""
        assert score_qualification(BANTInfo(budget="tenho")) == 30
        assert score_qualification(BANTInfo(authority="gerente")) == 25
        assert score_qualification(BANTInfo(need="demora")) == 30
        assert score_qualification(BANTInfo(timing="natal")) == 15
        assert score_qualification(BANTInfo(**PLAIN)) == 100

    def test_budget_value_bonus(self) -> None:
        """Test a numeric budget earns the bonus."""
        assert score_qualification(BANTInfo(budget="R$5000")) == 35

    def test_decision_maker_bonus(self) -> None:
        """Test decision-maker roles earn the bonus."""
        assert score_qualification(BANTInfo(authority="Diretor")) == 30
        assert score_qualification(BANTInfo(authority="sócio")) == 25

    def test_specific_need_bonus(self) -> None:
        """Test long need descriptions earn the bonus."""
        assert score_qualification(BANTInfo(need="x" * 51)) == 35
        assert score_qualification(BANTInfo(need="x" * 50)) == 30

    def test_urgency_bonus(self) -> None:
        """Test urgency words earn the bonus."""
        assert score_qualification(BANTInfo(timing="urgente")) == 20

    def test_full_signals_clamped(self) -> None:
        """Test 115 raw points clamp to 100."""
        info = BANTInfo(budget="5k", authority="diretor", need="perdendo leads", timing="urgente")
        assert score_qualification(info) == 100

    @pytest.mark.parametrize("values", [PLAIN, {"budget": "5k", "authority": "diretor", "need": "demora", "timing": "logo"}])
    def test_monotonic(self, values: dict[str, str]) -> None:
        """Test adding a signal never lowers the score."""
        for size in range(len(FIELDS)):
            for subset in combinations(FIELDS, size):
                base = score_qualification(BANTInfo(**{f: values[f] for f in subset}))
                for extra in set(FIELDS) - set(subset):
                    grown = BANTInfo(**{f: values[f] for f in (*subset, extra)})
                    assert score_qualification(grown) >= base


class TestNextBestAction:
    """Tests for next_best_action."""

    def test_no_signals_discovers_pain(self) -> None:
        """Test pain comes first when nothing is known."""
        assert next_best_action(BANTInfo()) == ActionTag.DISCOVER_PAIN

    def test_all_signals_schedules(self) -> None:
        """Test a fully qualified lead gets a meeting."""
        assert next_best_action(BANTInfo(**PLAIN)) == ActionTag.SCHEDULE_MEETING

    def test_missing_timing_with_three(self) -> None:
        """Test {budget, authority, need} asks for timing."""
        info = BANTInfo(budget="5k", authority="dono", need="demora")
        assert next_best_action(info) == ActionTag.ASK_TIMING

    def test_missing_budget_with_three(self) -> None:
        """Test three known signals ask for the missing budget."""
        info = BANTInfo(authority="dono", need="demora", timing="logo")
        assert next_best_action(info) == ActionTag.ASK_BUDGET

    def test_missing_authority_with_three(self) -> None:
        """Test three known signals ask for the missing authority."""
        info = BANTInfo(budget="5k", need="demora", timing="logo")
        assert next_best_action(info) == ActionTag.ASK_AUTHORITY

    def test_budget_and_authority_discover_pain(self) -> None:
        """Test two signals without need lead with pain."""
        info = BANTInfo(budget="R$5000", authority="diretor")
        assert next_best_action(info) == ActionTag.DISCOVER_PAIN

    def test_need_known_asks_timing(self) -> None:
        """Test with fewer than three, timing comes right after need."""
        assert next_best_action(BANTInfo(need="demora")) == ActionTag.ASK_TIMING

    def test_need_and_timing_ask_authority(self) -> None:
        """Test authority comes before budget with fewer than three."""
        info = BANTInfo(need="demora", timing="logo")
        assert next_best_action(info) == ActionTag.ASK_AUTHORITY


class TestEngagement:
    """Tests for engagement and momentum buckets."""

    def test_engagement_levels(self) -> None:
        """Test thresholds at 5 and 10 prior turns."""
        assert engagement_level(0) == "low"
        assert engagement_level(5) == "low"
        assert engagement_level(6) == "medium"
        assert engagement_level(10) == "medium"
        assert engagement_level(11) == "high"

    def test_momentum(self) -> None:
        """Test momentum only depends on having prior turns."""
        assert momentum(0) == "initial"
        assert momentum(1) == "building"
