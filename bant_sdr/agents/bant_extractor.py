"""
BANT Extractor - Rule-based signal extraction from sales conversations.

Scans raw conversation text for the four BANT signals (Budget, Authority,
Need, Timing) using ordered regex patterns. Every candidate match is checked
against a per-signal list of negation phrases inside a local context window,
so "não tenho orçamento" never counts as a budget.

Extraction is pure: the same text always yields the same BANTInfo. It is
re-run over the full history on every turn, and the first accepted match
scanning forward wins, so a signal is never retracted once detected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from bant_sdr.core.logger import logger
from bant_sdr.orchestration.state import BANTInfo, ConversationTurn


# ============================================================================
# Signal Rules
# ============================================================================

@dataclass(frozen=True)
class SignalRule:
    """
    Patterns and negation guard for one BANT signal.

    Attributes:
        name: Signal name (matches the BANTInfo field).
        patterns: Ordered candidate patterns; earlier patterns win.
        negations: Lower-case phrases that reject a candidate.
        window_before: Characters inspected before the match.
        window_after: Characters inspected after the match start, on top of
            the match length.
        joined_window: If True, phrases are searched in the concatenated
            window; otherwise in the before and after slices separately.
    """
    name: str
    patterns: tuple[re.Pattern[str], ...]
    negations: tuple[str, ...]
    window_before: int
    window_after: int
    joined_window: bool = False


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Values, spend, budget mentions
BUDGET_PATTERNS = _compile(
    r"r\$\s*\d+[.,]?\d*",
    r"\d+\s*mil",
    r"gast(o|am|amos)\s+.*?(\d+)",
    r"(orçamento|budget|investimento).*?(\d+)",
)

BUDGET_NEGATIONS = (
    "não", "nao", "sem", "nunca", "jamais",
    "muito caro", "muito alto", "não tenho", "não temos",
    "falta", "precis", "sem dinheiro", "sem orçamento",
)

# Decision makers and decision verbs
AUTHORITY_PATTERNS = _compile(
    r"sócio",
    r"diretor",
    r"ceo",
    r"dono",
    r"gerente",
    r"responsável",
    r"(decid|aprov)(e|o|a|ir)",
)

AUTHORITY_NEGATIONS = (
    "não sou", "não é", "preciso falar com", "tenho que consultar",
    "preciso consultar", "não posso", "não decido", "meu chefe", "minha chefe",
    "outro", "outra pessoa", "não tenho autonomia",
)

# Pains
NEED_PATTERNS = _compile(
    r"perd(er|endo|o)\s+(lead|cliente|venda)",
    r"(demora|lento|atrasado)",
    r"(sobrecarreg|muito trabalho)",
    r"não\s+(consigo|tenho tempo)",
    r"(problema|dificuldade|desafio)\s+com",
)

NEED_NEGATIONS = (
    "não tenho problema", "não há problema", "sem problema",
    "está tudo bem", "está ok", "funcionando bem",
    "resolvido", "solucionado",
)

# Deadlines and urgency
TIMING_PATTERNS = _compile(
    r"(urgente|logo|já|rápido|quanto antes)",
    r"(black friday|natal|fim de ano)",
    r"(próxim[oa]\s+(mês|semana|trimestre))",
    r"(\d+\s+(dia|semana|mês|mes))",
)

TIMING_NEGATIONS = (
    "ocupado", "sem tempo agora", "não posso agora",
    "talvez depois", "não sei quando", "ainda não",
    "mais tarde", "no futuro", "sem pressa", "talvez ano que vem",
)

BUDGET_RULE = SignalRule("budget", BUDGET_PATTERNS, BUDGET_NEGATIONS, 60, 40)
AUTHORITY_RULE = SignalRule("authority", AUTHORITY_PATTERNS, AUTHORITY_NEGATIONS, 60, 40)
NEED_RULE = SignalRule("need", NEED_PATTERNS, NEED_NEGATIONS, 50, 50, joined_window=True)
TIMING_RULE = SignalRule("timing", TIMING_PATTERNS, TIMING_NEGATIONS, 60, 40, joined_window=True)

SIGNAL_RULES: tuple[SignalRule, ...] = (BUDGET_RULE, AUTHORITY_RULE, NEED_RULE, TIMING_RULE)


# ============================================================================
# Extraction
# ============================================================================

def is_negated(text: str, match: re.Match[str], rule: SignalRule) -> bool:
    """
    Check whether a candidate match sits inside a negating context.

    Args:
        text: Full text the match was found in.
        match: The candidate match.
        rule: Rule providing the window sizes and negation phrases.

    Returns:
        True if any negation phrase appears in the context window.
    """
    start = match.start()
    before = text[max(0, start - rule.window_before):start].lower()
    # The after-slice starts at the match itself.
    after = text[start:min(len(text), start + len(match.group(0)) + rule.window_after)].lower()

    if rule.joined_window:
        window = before + after
        return any(phrase in window for phrase in rule.negations)

    return any(phrase in before or phrase in after for phrase in rule.negations)


def extract_signal(text: str, rule: SignalRule) -> str | None:
    """
    Return the first non-negated match for a signal, or None.

    Patterns are tried in order; within a pattern, matches are scanned
    left to right.
    """
    for pattern in rule.patterns:
        for match in pattern.finditer(text):
            matched = match.group(0)
            if is_negated(text, match, rule):
                logger.debug(f"[BANT-{rule.name.upper()}] Ignored '{matched}' (negated context)")
                continue
            logger.debug(f"[BANT-{rule.name.upper()}] Extracted '{matched}'")
            return matched
    return None


def extract_bant_info(text: str) -> BANTInfo:
    """
    Extract all four BANT signals from conversation text.

    Args:
        text: The concatenated conversation text.

    Returns:
        BANTInfo holding the matched span for each detected signal.
    """
    if not text:
        return BANTInfo()

    values = {rule.name: extract_signal(text, rule) for rule in SIGNAL_RULES}
    return BANTInfo(**values)


def history_text(history: Iterable[ConversationTurn]) -> str:
    """Join turn contents with single spaces."""
    return " ".join(turn.content for turn in history)


def extract_from_history(history: Iterable[ConversationTurn]) -> BANTInfo:
    """Extract BANT signals from a full conversation history."""
    return extract_bant_info(history_text(history))
