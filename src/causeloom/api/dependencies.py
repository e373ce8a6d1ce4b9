"""Shared FastAPI dependencies: engine construction from settings."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from causeloom.config import settings
from causeloom.detectors.registry import get_detectors
from causeloom.detectors.roster import DEFAULT_NARRATOR_NAMES, RosterActorResolver
from causeloom.models.params import HierarchyParams
from causeloom.models.transcript import Actor
from causeloom.services.engine import CausalHierarchyEngine

log = logging.getLogger(__name__)


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_params(overrides: Optional[Dict[str, Any]] = None) -> HierarchyParams:
    """Configured defaults with any partial *overrides* applied on top.

    Raises pydantic ``ValidationError`` for out-of-range values.
    """
    defaults = settings.hierarchy_params()
    if not overrides:
        return defaults
    return HierarchyParams.model_validate(_deep_merge(defaults.model_dump(), overrides))


def get_engine(
    detectors: Optional[str] = None,
    roster: Optional[Iterable[Actor]] = None,
    narrator_names: Optional[Iterable[str]] = None,
    params: Optional[HierarchyParams] = None,
) -> CausalHierarchyEngine:
    """Engine for one request.

    With a roster, unknown speakers are dropped; without one, speakers named
    like a narrator give effects and everyone else gives causes.
    """
    detector_set = get_detectors(detectors)
    if narrator_names is None:
        narrator_names = DEFAULT_NARRATOR_NAMES
    narrator_names = tuple(narrator_names)
    resolver = None
    if roster is not None:
        resolver = RosterActorResolver(roster, narrator_names)
        log.info("Roster resolver with %d actors", len(resolver.actors))
    return CausalHierarchyEngine(
        detector_set.cause,
        detector_set.effect,
        actor_resolver=resolver,
        params=params or settings.hierarchy_params(),
        narrator_names=narrator_names,
    )
