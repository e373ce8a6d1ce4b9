from __future__ import annotations

import math

import pytest

from causeloom.errors import ScoringError
from causeloom.scoring.features import (
    ensure_finite,
    hill_curve,
    is_yes_no_answer_like,
    normalize_name,
    token_overlap,
    tokenize,
)


def test_tokenize_drops_short_tokens_and_duplicates():
    assert tokenize("I go to the Door, the DOOR!") == frozenset({"the", "door"})


def test_token_overlap_divides_by_larger_set():
    assert token_overlap("the door opens", "open the door") == pytest.approx(2 / 3)
    assert token_overlap("the door opens", "") == 0.0
    assert token_overlap(frozenset({"goblin"}), "a goblin appears") == pytest.approx(1 / 2)


def test_hill_curve_shape():
    assert hill_curve(0, 8, 2.2) == 1.0
    assert hill_curve(8, 8, 2.2) == pytest.approx(0.5)
    values = [hill_curve(d, 8, 2.2) for d in range(1, 60)]
    assert all(a > b for a, b in zip(values, values[1:]))
    assert values[-1] < 0.02


def test_hill_curve_never_overflows():
    assert hill_curve(1e308, 1e-300, 50) == 0.0


@pytest.mark.parametrize("tau,steepness", [(0, 2.2), (-1, 2.2), (8, 0)])
def test_hill_curve_rejects_degenerate_parameters(tau, steepness):
    with pytest.raises(ValueError):
        hill_curve(3, tau, steepness)


def test_yes_no_answers():
    assert is_yes_no_answer_like("Yes, you can.")
    assert is_yes_no_answer_like("  nope")
    assert not is_yes_no_answer_like("Yesterday you arrived.")


def test_normalize_name():
    assert normalize_name("  Sam   RIEGEL: ") == "sam riegel"


def test_ensure_finite():
    assert ensure_finite(1.5, "score") == 1.5
    with pytest.raises(ScoringError):
        ensure_finite(math.nan, "score")
    with pytest.raises(ArithmeticError):
        ensure_finite(math.inf, "score")
