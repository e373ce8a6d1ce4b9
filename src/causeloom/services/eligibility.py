"""Eligibility masks and the engine's input contract."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from causeloom.errors import InputContractError
from causeloom.models.transcript import EligibilityMask, ExcludedRange, TranscriptLine

log = logging.getLogger(__name__)


def build_eligibility_mask(
    lines: Sequence[TranscriptLine],
    excluded_ranges: Iterable[ExcludedRange] = (),
    max_index: Optional[int] = None,
) -> EligibilityMask:
    """Mark every line eligible except those inside an excluded range.

    The mask is indexed by absolute line index, so it spans ``0..max(index)``.
    Indices that no line occupies stay ineligible.  A line above *max_index*
    raises ``InputContractError`` before anything is allocated.
    """
    highest = max((line.index for line in lines), default=-1)
    if max_index is not None and highest > max_index:
        raise InputContractError(
            f"Line index {highest} exceeds the limit of {max_index}"
        )
    size = highest + 1
    eligible = [False] * size
    for line in lines:
        eligible[line.index] = True

    ranges = list(excluded_ranges)
    for r in ranges:
        if r.end < r.start:
            raise InputContractError(
                f"Excluded range end {r.end} precedes start {r.start} ({r.reason})"
            )
        for i in range(r.start, min(r.end, size - 1) + 1):
            eligible[i] = False

    mask = EligibilityMask(eligible=eligible, excluded_ranges=ranges)
    log.info(
        "Eligibility mask: %d/%d lines eligible, %d excluded ranges",
        sum(eligible), len(lines), len(ranges),
    )
    return mask


def validate_inputs(lines: Sequence[TranscriptLine], mask: EligibilityMask) -> None:
    """Fail fast on transcripts and masks the engine cannot score.

    Raises ``InputContractError`` when indices are not strictly increasing,
    when the mask does not cover every line, or when a speaker is blank.
    """
    previous = -1
    for position, line in enumerate(lines):
        if line.index <= previous:
            raise InputContractError(
                f"Transcript indices must be strictly increasing: line at position "
                f"{position} has index {line.index} after {previous}"
            )
        if not line.speaker.strip():
            raise InputContractError(f"Line {line.index} has an empty speaker")
        previous = line.index

    if lines and len(mask.eligible) <= lines[-1].index:
        raise InputContractError(
            f"Eligibility mask covers {len(mask.eligible)} indices but the "
            f"transcript reaches index {lines[-1].index}"
        )
