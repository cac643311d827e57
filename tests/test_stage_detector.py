"""
Tests for stage detection.

Tests verify:
- Opening until the lead confirms interest
- First missing signal decides the stage
- Closing once all four signals are known
- Stage progression helpers
"""

from __future__ import annotations

from bant_sdr.agents.bant_extractor import extract_from_history
from bant_sdr.agents.stage_detector import (
    detect_stage,
    is_opening_completed,
    next_stage,
    progress_percentage,
)
from bant_sdr.orchestration.state import BANTInfo, ConversationTurn, Stage


def turns(*texts: str) -> list[ConversationTurn]:
    return [ConversationTurn(role="user", content=text) for text in texts]


FULL_INFO = BANTInfo(budget="5k", authority="diretor", need="perdendo leads", timing="urgente")


class TestOpening:
    """Tests for the opening stage."""

    def test_empty_history_is_opening(self) -> None:
        """Test no history always means opening."""
        assert detect_stage([], BANTInfo()) == Stage.OPENING

    def test_single_turn_is_opening_even_with_interest(self) -> None:
        """Test interest needs at least two turns."""
        assert is_opening_completed(turns("sim, quero")) is False
        assert detect_stage(turns("sim, quero"), FULL_INFO) == Stage.OPENING

    def test_no_interest_stays_opening(self) -> None:
        """Test signals alone do not leave opening."""
        history = turns("Bom dia", "Quem é você?")
        assert detect_stage(history, FULL_INFO) == Stage.OPENING

    def test_interest_phrase_completes_opening(self) -> None:
        """Test an interest phrase in two turns completes opening."""
        assert is_opening_completed(turns("Oi", "Faz sentido, me conta mais")) is True


class TestProgression:
    """Tests for stage selection after opening."""

    def test_no_signals_is_budget(self) -> None:
        """Test budget is asked first."""
        assert detect_stage(turns("Oi", "Sim"), BANTInfo()) == Stage.BUDGET

    def test_budget_known_is_authority(self) -> None:
        """Test authority follows budget."""
        assert detect_stage(turns("Oi", "Sim"), BANTInfo(budget="R$ 100")) == Stage.AUTHORITY

    def test_first_missing_signal_wins(self) -> None:
        """Test a later signal does not skip an earlier missing one."""
        info = BANTInfo(authority="dono", need="demora", timing="logo")
        assert detect_stage(turns("Oi", "Sim"), info) == Stage.BUDGET

    def test_all_signals_is_closing(self) -> None:
        """Test four signals reach closing."""
        assert detect_stage(turns("Oi", "Sim"), FULL_INFO) == Stage.CLOSING

    def test_budget_and_authority_from_history(self) -> None:
        """Test a realistic history lands on need."""
        history = [
            ConversationTurn(role="assistant", content="Oi! Faz sentido te mostrar como a IA ajuda no atendimento?"),
            ConversationTurn(role="user", content="Sim, faz sentido. Gastamos hoje cerca de R$5000 com atendimento"),
            ConversationTurn(role="user", content="quem decide isso comigo é o diretor"),
        ]
        assert detect_stage(history, extract_from_history(history)) == Stage.NEED

    def test_one_mention_of_each_signal_is_closing(self) -> None:
        """Test one clean mention of each signal plus interest reaches closing."""
        history = turns(
            "Sim, faz sentido",
            "Gastamos uns R$ 3000 por mês",
            "Sou o dono da empresa",
            "Estamos perdendo clientes por demora",
            "Queremos resolver isso urgente",
        )
        assert detect_stage(history, extract_from_history(history)) == Stage.CLOSING


class TestStageHelpers:
    """Tests for next_stage and progress_percentage."""

    def test_next_stage_order(self) -> None:
        """Test next_stage follows the pipeline order."""
        assert next_stage(Stage.OPENING) == Stage.BUDGET
        assert next_stage(Stage.BUDGET) == Stage.AUTHORITY
        assert next_stage(Stage.TIMING) == Stage.CLOSING

    def test_closing_is_terminal(self) -> None:
        """Test closing maps to itself."""
        assert next_stage(Stage.CLOSING) == Stage.CLOSING

    def test_progress_percentages(self) -> None:
        """Test progress grows with each stage."""
        assert [progress_percentage(stage) for stage in Stage] == [17, 33, 50, 67, 83, 100]
