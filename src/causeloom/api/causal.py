from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from causeloom.api.dependencies import get_engine, resolve_params
from causeloom.config import settings
from causeloom.detectors.registry import list_detectors
from causeloom.errors import CausalEngineError
from causeloom.models.rounds import AllocationResult, HierarchyResult
from causeloom.models.transcript import Actor, ExcludedRange, TranscriptLine
from causeloom.parsing.transcript_parser import TranscriptParser
from causeloom.services.eligibility import build_eligibility_mask

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/causal", tags=["causal"])


class CausalRequest(BaseModel):
    session_id: str = "session"
    lines: Optional[List[TranscriptLine]] = None
    log: Optional[str] = None  # raw "Speaker: text" log, alternative to lines
    excluded_ranges: List[ExcludedRange] = Field(default_factory=list)
    roster: Optional[List[Actor]] = None
    narrator_names: Optional[List[str]] = None
    detectors: Optional[str] = None  # registry name, default from settings
    params: Dict[str, Any] = Field(default_factory=dict)  # partial overrides
    emit_traces: bool = False


def _prepare(body: CausalRequest):
    if body.lines is not None and body.log is not None:
        raise HTTPException(422, "Provide either 'lines' or 'log', not both.")
    if body.lines is None and body.log is None:
        raise HTTPException(422, "A transcript is required: send 'lines' or 'log'.")

    try:
        lines = TranscriptParser.parse_log(body.log) if body.log is not None else body.lines
        mask = build_eligibility_mask(lines, body.excluded_ranges, settings.max_line_index)
        params = resolve_params(body.params)
        engine = get_engine(body.detectors, body.roster, body.narrator_names, params)
    except (CausalEngineError, ValueError) as exc:
        raise HTTPException(422, str(exc)) from exc
    return engine, lines, mask


@router.post("/links", response_model=AllocationResult)
def extract_links(body: CausalRequest):
    """Round 1 only: one-to-one cause -> effect links and singletons."""
    engine, lines, mask = _prepare(body)
    try:
        return engine.extract_links(body.session_id, lines, mask, emit_traces=body.emit_traces)
    except CausalEngineError as exc:
        log.warning("Link extraction failed for %s: %s", body.session_id, exc)
        raise HTTPException(422, str(exc)) from exc


@router.post("/hierarchy", response_model=HierarchyResult)
def build_hierarchy(body: CausalRequest):
    """Full run: leaf links, anneal passes and composite rounds."""
    engine, lines, mask = _prepare(body)
    try:
        return engine.run(body.session_id, lines, mask, emit_traces=body.emit_traces)
    except CausalEngineError as exc:
        log.warning("Hierarchy run failed for %s: %s", body.session_id, exc)
        raise HTTPException(422, str(exc)) from exc


@router.get("/detectors")
def get_detector_sets():
    """List registered cause/effect detector sets."""
    return {"default": settings.default_detectors, "detectors": list_detectors()}


@router.get("/params/defaults")
def get_default_params():
    """The parameter set a run uses when no overrides are sent."""
    return settings.hierarchy_params()
