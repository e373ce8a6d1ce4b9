"""Two-lever evidence scoring.

    evidence  E = clamp01(0.7 * distance + 0.3 * lexical + boost)
    strength  S = scale * E ** coupling
    threshold T = T0 + growth_resistance * ln(1 + sqrt(m_a * m_b))

Lexical evidence here is rarity-weighted: tokens shared by many lines of the
corpus count for less than rare ones.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import FrozenSet, Iterable, NamedTuple, Optional

from causeloom.models.params import LeverParams
from causeloom.scoring.features import tokenize

DISTANCE_WEIGHT = 0.7
LEXICAL_WEIGHT = 0.3

# Lexemes that trigger cause/effect detection: intents, checks, perception, outcomes.
DETECTION_KEYWORDS: FrozenSet[str] = frozenset("""
    can could would may how what where are does did try attempt search examine inspect
    look open pull push take grab move touch cast read listen sneak hide pick investigate
    attack use roll check please insight perception athletics acrobatics arcana deception
    history intimidation medicine nature performance persuasion religion stealth survival
    animal handling sleight hand you see notice find learn realize spot smell hear feel
    remember recognize discover seems looks appears succeed fail manage force break works
    stuck blocked agree promise commit decide will
""".split())


class LexicalCorpusStats:
    """Document frequencies over one batch of texts (lines or node texts)."""

    def __init__(self, doc_count: int, doc_freq: Counter):
        self.doc_count = max(1, doc_count)
        self.doc_freq = doc_freq

    @classmethod
    def from_texts(cls, texts: Iterable[str]) -> "LexicalCorpusStats":
        doc_freq: Counter = Counter()
        count = 0
        for text in texts:
            doc_freq.update(tokenize(text))
            count += 1
        return cls(count, doc_freq)

    def idf(self, token: str) -> float:
        """Smoothed inverse document frequency, never below 1."""
        return math.log((self.doc_count + 1) / (self.doc_freq.get(token, 0) + 1)) + 1.0


class LexicalSignals(NamedTuple):
    lexical: float
    keyword_overlap: float


def lexical_signals(
    a: Iterable[str],
    b: Iterable[str],
    stats: Optional[LexicalCorpusStats] = None,
) -> LexicalSignals:
    """Overlap of two token sets and the share of it made of trigger keywords.

    Without *stats* the overlap is ``|A ∩ B| / max(|A|, |B|)``; with them it is
    the IDF-weighted intersection over the IDF-weighted union.
    """
    tokens_a, tokens_b = frozenset(a), frozenset(b)
    shared = tokens_a & tokens_b
    if not shared:
        return LexicalSignals(0.0, 0.0)

    if stats is None:
        keywords = len(shared & DETECTION_KEYWORDS)
        return LexicalSignals(len(shared) / max(len(tokens_a), len(tokens_b)), keywords / len(shared))

    union_weight = math.fsum(stats.idf(t) for t in tokens_a | tokens_b)
    shared_weight = math.fsum(stats.idf(t) for t in shared)
    keyword_weight = math.fsum(stats.idf(t) for t in shared & DETECTION_KEYWORDS)
    return LexicalSignals(shared_weight / union_weight, keyword_weight / shared_weight)


def evidence_from_distance_lexical(distance: float, lexical: float, boost: float = 0.0) -> float:
    return min(1.0, max(0.0, DISTANCE_WEIGHT * distance + LEXICAL_WEIGHT * lexical + boost))


def evidence_to_strength(evidence: float, coupling: float, scale: float = 2.0) -> float:
    if evidence <= 0:
        return 0.0
    return scale * math.pow(evidence, coupling)


def merge_threshold(mass_a: float, mass_b: float, base: float, growth_resistance: float) -> float:
    geometric = math.sqrt(max(0.0, mass_a) * max(0.0, mass_b))
    return base + growth_resistance * math.log1p(geometric)


def locality_to_tau(locality: float) -> float:
    """Map locality in [0, 1] to a Hill tau between 8 (loose) and 4 (tight)."""
    return 4.0 + 4.0 * (1.0 - min(1.0, max(0.0, locality)))


def lever_strength(
    levers: LeverParams,
    distance_score: float,
    signals: LexicalSignals,
    boost: float = 0.0,
) -> float:
    """Strength of one pairing under the two-lever regime."""
    augmented = min(1.0, signals.lexical * (1.0 + signals.keyword_overlap * levers.keyword_lex_bonus))
    evidence = evidence_from_distance_lexical(distance_score, augmented, boost)
    return evidence_to_strength(evidence, levers.coupling, levers.strength_scale)
