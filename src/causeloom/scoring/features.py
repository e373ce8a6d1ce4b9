"""Closed-form text and distance features shared by every scoring stage."""

from __future__ import annotations

import math
import re
from typing import FrozenSet, Iterable

from causeloom.errors import ScoringError

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_YES_NO_RE = re.compile(
    r"^\s*(yes|yeah|yep|yup|sure|okay|ok|no|nope|nah|not really|not at all|not exactly)\b",
    re.IGNORECASE,
)
_NAME_EDGE_RE = re.compile(r"^[^a-z0-9]+|[^a-z0-9]+$")


def tokenize(text: str) -> FrozenSet[str]:
    """Lower-cased alphanumeric tokens longer than two characters, as a set."""
    return frozenset(t for t in _TOKEN_RE.findall(text.lower()) if len(t) > 2)


def token_overlap(a: Iterable[str] | str, b: Iterable[str] | str) -> float:
    """``|A ∩ B| / max(|A|, |B|)`` over token sets; 0 when either side is empty.

    Accepts raw text or pre-tokenized sets.
    """
    tokens_a = tokenize(a) if isinstance(a, str) else frozenset(a)
    tokens_b = tokenize(b) if isinstance(b, str) else frozenset(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))


def hill_curve(distance: float, tau: float, steepness: float) -> float:
    """Hill decay ``1 / (1 + (d / tau) ** p)``.

    Equals 1 at d <= 0, 0.5 at d == tau, strictly decreasing towards 0.
    """
    if tau <= 0 or steepness <= 0:
        raise ValueError(f"Hill curve needs tau > 0 and steepness > 0, got {tau}, {steepness}")
    if distance <= 0:
        return 1.0
    try:
        return 1.0 / (1.0 + math.pow(distance / tau, steepness))
    except OverflowError:
        return 0.0


def is_yes_no_answer_like(text: str) -> bool:
    return bool(_YES_NO_RE.match(text))


def normalize_name(text: str) -> str:
    lowered = text.lower().strip()
    return re.sub(r"\s+", " ", _NAME_EDGE_RE.sub("", lowered))


def ensure_finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise ScoringError(f"Non-finite {what}: {value!r}")
    return value
