from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from causeloom.models.graph import (
    AllocationTrace,
    CompositeCandidate,
    ContextEdge,
    EdgeCandidate,
    GraphNode,
    NeighborEdgeTrace,
    UnclaimedEffect,
)


class MetricStats(BaseModel):
    min: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    max: float = 0.0


class RoundMetrics(BaseModel):
    round: int
    phase: Literal["link", "anneal"]
    label: str = ""
    counts: Dict[str, int] = Field(default_factory=dict)
    stats: Dict[str, MetricStats] = Field(default_factory=dict)


class RoundPhaseState(BaseModel):
    """Snapshot of the node set after one phase of one round."""

    round: int
    phase: Literal["link", "anneal"]
    nodes: List[GraphNode] = Field(default_factory=list)
    neighbor_edges: List[NeighborEdgeTrace] = Field(default_factory=list)
    context_edges: List[ContextEdge] = Field(default_factory=list)
    composite_candidates: List[CompositeCandidate] = Field(default_factory=list)
    metrics: RoundMetrics
    mass_delta_tsv: Optional[str] = None


class AllocationResult(BaseModel):
    """Round 1 output: leaf nodes plus the allocation's side products."""

    nodes: List[GraphNode] = Field(default_factory=list)
    candidates: List[EdgeCandidate] = Field(default_factory=list)
    effects_total: int = 0
    unclaimed_effects: List[UnclaimedEffect] = Field(default_factory=list)
    traces: Optional[List[AllocationTrace]] = None


class Provenance(BaseModel):
    kernel_version: str
    params_json: str
    param_hash: str


class HierarchyResult(BaseModel):
    """Everything one engine run produces."""

    session_id: str
    rounds: List[RoundPhaseState] = Field(default_factory=list)
    final_nodes: List[GraphNode] = Field(default_factory=list)
    unclaimed_effects: List[UnclaimedEffect] = Field(default_factory=list)
    allocation_traces: Optional[List[AllocationTrace]] = None
    provenance: Provenance

    def phase(self, round: int, phase: str) -> RoundPhaseState:
        for state in self.rounds:
            if state.round == round and state.phase == phase:
                return state
        raise KeyError(f"No phase '{phase}' recorded for round {round}")
