from __future__ import annotations

import logging
from typing import Iterable, List

from causeloom.detectors.base import ActorResolver
from causeloom.models.transcript import Actor
from causeloom.scoring.features import normalize_name

log = logging.getLogger(__name__)

DEFAULT_NARRATOR_NAMES = ("dm", "gm", "dungeon master", "game master", "narrator")


def _names_speaker(name: str, norm_speaker: str) -> bool:
    norm = normalize_name(name)
    return bool(norm) and f" {norm} " in f" {norm_speaker} "


def is_narrator_speaker(speaker: str, narrator_names: Iterable[str] = DEFAULT_NARRATOR_NAMES) -> bool:
    """True when *speaker* names a narrator as whole words ("DM", "The GM (Matt)")."""
    norm_speaker = normalize_name(speaker)
    if not norm_speaker:
        return False
    return any(_names_speaker(name, norm_speaker) for name in narrator_names)


class RosterActorResolver(ActorResolver):
    """Resolve speakers against a fixed roster of players and narrators.

    A speaker matches an actor when its normalized name equals, or contains
    as whole words, one of the actor's normalized names; the longest matching
    name wins so "Sam" does not steal lines from "Sam Riegel".
    """

    def __init__(
        self,
        actors: Iterable[Actor] = (),
        narrator_names: Iterable[str] = DEFAULT_NARRATOR_NAMES,
    ):
        self._actors: List[Actor] = list(actors)
        narrator_names = [n for n in narrator_names if normalize_name(n)]
        if narrator_names:
            self._actors.append(
                Actor(
                    id="narrator",
                    canonical_name=narrator_names[0],
                    aliases=narrator_names[1:],
                    role="narrator",
                )
            )
        self._cache: dict[str, Actor | None] = {}

    @property
    def actors(self) -> List[Actor]:
        return list(self._actors)

    def resolve(self, speaker: str) -> Actor | None:
        if speaker in self._cache:
            return self._cache[speaker]
        norm_speaker = normalize_name(speaker)
        best: Actor | None = None
        best_len = 0
        if norm_speaker:
            for actor in self._actors:
                for name in [actor.canonical_name, *actor.aliases]:
                    if not _names_speaker(name, norm_speaker):
                        continue
                    length = len(normalize_name(name))
                    if length > best_len:
                        best, best_len = actor, length
        if best is None:
            log.debug("Unresolved speaker: %s", speaker)
        self._cache[speaker] = best
        return best
