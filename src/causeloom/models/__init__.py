from causeloom.models.transcript import Actor, EligibilityMask, ExcludedRange, TranscriptLine
from causeloom.models.detection import CauseDetection, EffectDetection
from causeloom.models.graph import (
    AllocationTrace,
    CandidateTrace,
    CompositeCandidate,
    ContextEdge,
    Direction,
    EdgeCandidate,
    GraphNode,
    MassDelta,
    NeighborEdgeTrace,
    NodeKind,
    Tier,
    UnclaimedEffect,
    make_node_id,
)
from causeloom.models.params import (
    AbsorbParams,
    AnnealParams,
    CandidateParams,
    ComposeParams,
    HierarchyParams,
    LeverParams,
    TierThresholds,
)
from causeloom.models.rounds import (
    AllocationResult,
    HierarchyResult,
    MetricStats,
    Provenance,
    RoundMetrics,
    RoundPhaseState,
)

__all__ = [
    "Actor",
    "EligibilityMask",
    "ExcludedRange",
    "TranscriptLine",
    "CauseDetection",
    "EffectDetection",
    "AllocationTrace",
    "CandidateTrace",
    "CompositeCandidate",
    "ContextEdge",
    "Direction",
    "EdgeCandidate",
    "GraphNode",
    "MassDelta",
    "NeighborEdgeTrace",
    "NodeKind",
    "Tier",
    "UnclaimedEffect",
    "make_node_id",
    "AbsorbParams",
    "AnnealParams",
    "CandidateParams",
    "ComposeParams",
    "HierarchyParams",
    "LeverParams",
    "TierThresholds",
    "AllocationResult",
    "HierarchyResult",
    "MetricStats",
    "Provenance",
    "RoundMetrics",
    "RoundPhaseState",
]
