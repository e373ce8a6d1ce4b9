from __future__ import annotations

import logging
from typing import NamedTuple

from causeloom.config import settings
from causeloom.detectors.base import CauseDetector, EffectDetector
from causeloom.detectors.heuristic import HeuristicCauseDetector, HeuristicEffectDetector

log = logging.getLogger(__name__)


class DetectorSet(NamedTuple):
    cause: CauseDetector
    effect: EffectDetector


_DETECTOR_MAP = {
    "heuristic": (
        HeuristicCauseDetector,
        HeuristicEffectDetector,
        "Regex heuristics for D&D-style table talk",
    ),
}


def get_detectors(name: str | None = None) -> DetectorSet:
    """Instantiate the cause/effect detector pair registered under *name*.

    Defaults to ``settings.default_detectors``.
    """
    name = name or settings.default_detectors
    if name not in _DETECTOR_MAP:
        raise ValueError(
            f"Unknown detector set '{name}'. Choose from: {list(_DETECTOR_MAP)}"
        )
    cause_cls, effect_cls, _ = _DETECTOR_MAP[name]
    log.info("Using detector set: %s", name)
    return DetectorSet(cause=cause_cls(), effect=effect_cls())


def list_detectors() -> dict:
    """Return info about every registered detector set."""
    return {
        name: {
            "cause": cause_cls.name,
            "effect": effect_cls.name,
            "description": description,
            "is_default": name == settings.default_detectors,
        }
        for name, (cause_cls, effect_cls, description) in _DETECTOR_MAP.items()
    }
