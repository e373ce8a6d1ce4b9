"""Causal hierarchy engine: runs every stage over one transcript.

    round 1   detect -> candidates -> allocate  (link phase)
              absorb stray lines -> anneal      (anneal phase)
    round k   compose round k-1 nodes           (link phase)
              absorb stray lines -> anneal      (anneal phase)

Each call is a fresh, isolated computation; the engine holds only its
detectors and parameters.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from causeloom.detectors.base import ActorResolver, CauseDetector, EffectDetector
from causeloom.detectors.roster import DEFAULT_NARRATOR_NAMES
from causeloom.models.graph import GraphNode
from causeloom.models.params import HierarchyParams
from causeloom.models.rounds import AllocationResult, HierarchyResult, Provenance, RoundPhaseState
from causeloom.models.transcript import EligibilityMask, TranscriptLine
from causeloom.services.absorption import SingletonAbsorber, StrayLine, collect_stray_lines
from causeloom.services.allocator import EdgeAllocator
from causeloom.services.annealer import MassAnnealer
from causeloom.services.candidates import CandidateGenerator
from causeloom.services.composer import HierarchyComposer
from causeloom.services.eligibility import validate_inputs
from causeloom.services.reporting import (
    anneal_phase_metrics,
    link_phase_metrics,
    log_metrics,
    mass_delta_tsv,
)

log = logging.getLogger(__name__)

KERNEL_VERSION = "causeloom-hierarchy/1"


def build_provenance(params: HierarchyParams) -> Provenance:
    """Canonical parameter JSON and its short SHA-256 digest."""
    params_json = json.dumps(params.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(params_json.encode("utf-8")).hexdigest()
    return Provenance(kernel_version=KERNEL_VERSION, params_json=params_json, param_hash=digest[:12])


class CausalHierarchyEngine:
    def __init__(
        self,
        cause_detector: CauseDetector,
        effect_detector: EffectDetector,
        actor_resolver: Optional[ActorResolver] = None,
        params: Optional[HierarchyParams] = None,
        narrator_names: Iterable[str] = DEFAULT_NARRATOR_NAMES,
    ):
        self._cause_detector = cause_detector
        self._effect_detector = effect_detector
        self._actors = actor_resolver
        self._params = params or HierarchyParams()
        self._narrator_names = tuple(narrator_names)

    @property
    def params(self) -> HierarchyParams:
        return self._params

    # ── Round 1 ─────────────────────────────────────────────────────────

    def extract_links(
        self,
        session_id: str,
        lines: Sequence[TranscriptLine],
        mask: EligibilityMask,
        emit_traces: bool = False,
        params: Optional[HierarchyParams] = None,
    ) -> AllocationResult:
        """Leaf allocation only: links, singletons and unclaimed effects."""
        p = params or self._params
        validate_inputs(lines, mask)
        allocation, _ = self._allocate(session_id, lines, mask, p, emit_traces)
        return allocation

    def _allocate(
        self,
        session_id: str,
        lines: Sequence[TranscriptLine],
        mask: EligibilityMask,
        p: HierarchyParams,
        emit_traces: bool,
    ) -> Tuple[AllocationResult, Dict[str, int]]:
        generator = CandidateGenerator(
            self._cause_detector,
            self._effect_detector,
            self._actors,
            p.candidates,
            levers=p.levers,
            narrator_names=self._narrator_names,
        )
        causes, effects = generator.detect(lines, mask)
        candidates = generator.generate(causes, effects)
        allocation = EdgeAllocator(p.tiers).allocate(
            session_id, causes, effects, candidates, emit_traces=emit_traces,
        )
        links = sum(1 for n in allocation.nodes if n.claimed)
        counts = {
            "causes": len(causes),
            "effects": len(effects),
            "candidates": len(candidates),
            "links": links,
            "singletons": len(allocation.nodes) - links,
            "unclaimed_effects": len(allocation.unclaimed_effects),
        }
        return allocation, counts

    # ── Full hierarchy ──────────────────────────────────────────────────

    def run(
        self,
        session_id: str,
        lines: Sequence[TranscriptLine],
        mask: EligibilityMask,
        params: Optional[HierarchyParams] = None,
        emit_traces: bool = False,
    ) -> HierarchyResult:
        p = params or self._params
        validate_inputs(lines, mask)
        provenance = build_provenance(p)
        log.info(
            "Session %s: %d lines, %d rounds (params %s)",
            session_id, len(lines), p.rounds, provenance.param_hash,
        )

        absorber = SingletonAbsorber(p.absorb)
        annealer = MassAnnealer(p.anneal, p.tiers, levers=p.levers)
        composer = HierarchyComposer(p.compose, p.tiers, levers=p.levers, max_level=p.max_level)
        context_text = {line.index: line.text for line in lines}

        allocation, counts = self._allocate(session_id, lines, mask, p, emit_traces)
        link_state = RoundPhaseState(
            round=1,
            phase="link",
            nodes=allocation.nodes,
            metrics=link_phase_metrics(1, allocation.nodes, counts),
        )
        log_metrics(link_state.metrics)
        states: List[RoundPhaseState] = [link_state]

        stray = collect_stray_lines(lines, mask, allocation.nodes)
        anneal_state, stray = self._absorb_and_anneal(
            1, allocation.nodes, stray, absorber, annealer, context_text,
        )
        states.append(anneal_state)
        nodes: List[GraphNode] = anneal_state.nodes

        for round_number in range(2, p.rounds + 1):
            composed = composer.compose(session_id, nodes, round_number)
            if p.stop_when_stable and not composed.composites:
                log.info("Round %d formed no composite; stopping early", round_number)
                break

            link_state = RoundPhaseState(
                round=round_number,
                phase="link",
                nodes=composed.nodes,
                composite_candidates=composed.candidates,
                metrics=link_phase_metrics(round_number, composed.nodes, {
                    "proposals": len(composed.candidates),
                    "composites": len(composed.composites),
                    "carried": len(composed.carried),
                }),
            )
            log_metrics(link_state.metrics)
            states.append(link_state)

            anneal_state, stray = self._absorb_and_anneal(
                round_number, composed.nodes, stray, absorber, annealer, context_text,
            )
            states.append(anneal_state)
            nodes = anneal_state.nodes

        log.info(
            "Session %s done: %d final nodes across %d phases",
            session_id, len(nodes), len(states),
        )
        return HierarchyResult(
            session_id=session_id,
            rounds=states,
            final_nodes=nodes,
            unclaimed_effects=allocation.unclaimed_effects,
            allocation_traces=allocation.traces,
            provenance=provenance,
        )

    def _absorb_and_anneal(
        self,
        round_number: int,
        nodes: Sequence[GraphNode],
        stray: List[StrayLine],
        absorber: SingletonAbsorber,
        annealer: MassAnnealer,
        context_text: Dict[int, str],
    ) -> Tuple[RoundPhaseState, List[StrayLine]]:
        with_context, context_edges, remaining = absorber.absorb(nodes, stray)
        annealed = annealer.anneal(with_context, context_text)
        state = RoundPhaseState(
            round=round_number,
            phase="anneal",
            nodes=annealed.nodes,
            neighbor_edges=annealed.neighbor_edges,
            context_edges=context_edges,
            metrics=anneal_phase_metrics(round_number, annealed.nodes, {
                "context_attached": len(context_edges),
                "stray_remaining": len(remaining),
                "neighbor_traces": len(annealed.neighbor_edges),
            }),
            mass_delta_tsv=mass_delta_tsv(annealed.deltas),
        )
        log_metrics(state.metrics)
        return state, remaining
