"""Regex heuristics for cause and effect detection in tabletop-RPG transcripts.

Causes are player intents (questions, requests, declared actions, proposals).
Effects are narrator resolutions (roll calls, information, deterministic
outcomes, commitments).  Each detection carries a fixed salience mass:

    Cause                              Effect
    declare + roll/action keyword 1.0  roll           1.0
    request + roll/action keyword 0.95 deterministic  0.85
    declare                       0.9  commitment     0.8
    question + action             0.9  information    0.7
    request                       0.85
    question                      0.75
    weak (?, please, let's) + kw  0.65
    weak                          0.45
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from causeloom.detectors.base import CauseDetector, EffectDetector
from causeloom.models.detection import CauseDetection, EffectDetection

# ─── Causes ─────────────────────────────────────────────────────────────

_STRONG_QUESTION_STARTERS = [
    "can i", "can we", "do i", "do we", "is there", "are there",
    "what do i", "what do we", "how do i", "where is", "does it look",
    "did it look", "could i", "could we", "would i be able to",
    "what if i", "what if we",
]
_STRONG_QUESTION_RE = re.compile(
    r"^\s*(" + "|".join(re.escape(p) for p in _STRONG_QUESTION_STARTERS) + r")\b",
    re.IGNORECASE,
)

_ACTION_VERBS = frozenset([
    "try", "attempt", "search", "examine", "inspect", "look", "open", "pull",
    "push", "take", "grab", "move", "touch", "cast", "read", "listen", "sneak",
    "hide", "pick", "investigate", "attack", "use", "roll", "check",
])

_REQUEST_RES = [
    re.compile(r"^\s*(can i|can we|may i|could i|could we|would i|would i be able to)\b", re.IGNORECASE),
    re.compile(
        r"^\s*(i want to|i'd like to|i would like to|i'm going to|i am going to"
        r"|i kind of want to|i sorta want to)\b",
        re.IGNORECASE,
    ),
]
_DECLARE_RE = re.compile(r"^\s*i\s+(" + "|".join(sorted(_ACTION_VERBS)) + r")\b", re.IGNORECASE)
_WEAK_RES = [
    ("question", re.compile(r"\?")),
    ("request", re.compile(r"\bplease\b", re.IGNORECASE)),
    ("propose", re.compile(r"^\s*(let's|we should|we could|how about)\b", re.IGNORECASE)),
]
_ROLL_OR_ACTION_RE = re.compile(
    r"\b(roll|check|attack|cast|spell|investigate|inspect|search|open|unlock"
    r"|sneak|hide|persuade|deceive)\b",
    re.IGNORECASE,
)
_TRAILING_QUESTION_RE = re.compile(r"\?\s*$")
_NON_WORD_RE = re.compile(r"[^a-z0-9\s]", re.IGNORECASE)


def _strip_punctuation(text: str) -> str:
    return _NON_WORD_RE.sub("", text).strip()


def _has_action_verb_within(text: str, max_distance: int) -> bool:
    tokens = _strip_punctuation(text).lower().split()
    return any(t in _ACTION_VERBS for t in tokens[: max_distance + 1])


class HeuristicCauseDetector(CauseDetector):
    name = "heuristic_cause"

    def detect(self, text: str) -> CauseDetection:
        stripped = _strip_punctuation(text)
        if len(stripped) < 6:
            return CauseDetection(is_cause=False)

        word_count = len(stripped.split())
        keyword = bool(_ROLL_OR_ACTION_RE.search(text))

        if _STRONG_QUESTION_RE.search(text):
            has_action = _has_action_verb_within(text, 6)
            if _TRAILING_QUESTION_RE.search(text) or word_count >= 4 or has_action:
                mass = 0.9 if (keyword or has_action) else 0.75
                return CauseDetection(is_cause=True, type="question", mass=mass)

        for pattern in _REQUEST_RES:
            if pattern.search(text) and _has_action_verb_within(text, 3):
                return CauseDetection(
                    is_cause=True, type="request", mass=0.95 if keyword else 0.85
                )

        if _DECLARE_RE.search(text) and word_count >= 4:
            return CauseDetection(is_cause=True, type="declare", mass=1.0 if keyword else 0.9)

        for cause_type, pattern in _WEAK_RES:
            if pattern.search(text):
                return CauseDetection(
                    is_cause=True, type=cause_type, mass=0.65 if keyword else 0.45
                )

        return CauseDetection(is_cause=False)


# ─── Effects ────────────────────────────────────────────────────────────

_SKILLS = [
    ("Acrobatics", "acrobatics"),
    ("AnimalHandling", "animal handling"),
    ("Arcana", "arcana"),
    ("Athletics", "athletics"),
    ("Deception", "deception"),
    ("History", "history"),
    ("Insight", "insight"),
    ("Intimidation", "intimidation"),
    ("Investigation", "investigation"),
    ("Medicine", "medicine"),
    ("Nature", "nature"),
    ("Perception", "perception"),
    ("Performance", "performance"),
    ("Persuasion", "persuasion"),
    ("Religion", "religion"),
    ("SleightOfHand", "sleight of hand"),
    ("Stealth", "stealth"),
    ("Survival", "survival"),
]
_SKILL_RES = [(name, re.compile(rf"\b{phrase}\b", re.IGNORECASE)) for name, phrase in _SKILLS]
_SAVE_RE = re.compile(
    r"(strength|dexterity|constitution|intelligence|wisdom|charisma)\s+saving throw",
    re.IGNORECASE,
)

_INFORMATION_RES = [
    re.compile(
        r"\byou (see|notice|find|learn|realize|spot|smell|hear|feel|remember|recognize|discover)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(it seems|it looks like|it appears)\b", re.IGNORECASE),
    re.compile(r"^\s*(yes|no|not really|you don't|you do not|you can't|you cannot|you're able to)\b", re.IGNORECASE),
    re.compile(r"\byou can (see|do|try|attempt|make|roll)\b", re.IGNORECASE),
]
_DETERMINISTIC_RES = [
    re.compile(r"^\s*you\s+(open|move|pull|push|unlock|enter|walk|pick up|lift)\b", re.IGNORECASE),
    re.compile(r"\byou (succeed|fail|manage|push|force|open|break)\b", re.IGNORECASE),
    re.compile(r"\bthe door (opens|breaks|gives way)\b", re.IGNORECASE),
    re.compile(r"\bit (works|fails)\b", re.IGNORECASE),
    re.compile(r"\b(it won't budge|it doesn't budge|it is stuck|it is blocked)\b", re.IGNORECASE),
]
_COMMITMENT_RES = [
    re.compile(r"\byou (agree|promise|commit|decide)\b", re.IGNORECASE),
    re.compile(r"\bwe will\b", re.IGNORECASE),
]


def detect_roll_type(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(roll_type, roll_subtype)`` for an explicit roll call, else ``(None, None)``."""
    if re.search(r"\binitiative\b", text, re.IGNORECASE):
        return "Initiative", None
    if re.search(r"\battack roll\b|\bto hit\b", text, re.IGNORECASE):
        return "AttackRoll", None
    if re.search(r"\broll\b.*\bdamage\b|\bdamage roll\b", text, re.IGNORECASE):
        return "DamageRoll", None
    save = _SAVE_RE.search(text)
    if save:
        return "SavingThrow", save.group(1).capitalize()
    for name, pattern in _SKILL_RES:
        if pattern.search(text):
            return name, None
    # No generic "roll" catch-all: too many false positives in table talk.
    return None, None


class HeuristicEffectDetector(EffectDetector):
    name = "heuristic_effect"

    def detect(self, text: str) -> EffectDetection:
        roll_type, roll_subtype = detect_roll_type(text)
        if roll_type:
            return EffectDetection(
                is_effect=True, type="roll", mass=1.0,
                roll_type=roll_type, roll_subtype=roll_subtype,
            )
        if any(p.search(text) for p in _INFORMATION_RES):
            return EffectDetection(is_effect=True, type="information", mass=0.7)
        if any(p.search(text) for p in _DETERMINISTIC_RES):
            return EffectDetection(is_effect=True, type="deterministic", mass=0.85)
        if any(p.search(text) for p in _COMMITMENT_RES):
            return EffectDetection(is_effect=True, type="commitment", mass=0.8)
        return EffectDetection(is_effect=False)
