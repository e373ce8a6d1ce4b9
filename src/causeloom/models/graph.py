"""Graph models for the causal hierarchy.

Scales:
  - Link (leaf):       one claimed cause paired with one claimed effect
  - Singleton (leaf):  a cause that found no effect
  - Composite (round 2+): the merge of exactly two lower-round nodes

Composites reference their children by id only; every round owns its own
node list.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

_NODE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "causeloom/graph-node")


def make_node_id(session_id: str, *parts: str) -> str:
    """Deterministic node id: identical inputs give identical ids across runs."""
    key = ":".join([session_id, *parts])
    return uuid.uuid5(_NODE_NAMESPACE, key).hex[:16]


class NodeKind(str, Enum):
    SINGLETON = "singleton"
    LINK = "link"
    COMPOSITE = "composite"


class Tier(str, Enum):
    """Narrative scale derived from mass. Ordered from smallest to largest."""

    LINK = "link"
    BEAT = "beat"
    EVENT = "event"
    SCENE = "scene"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {Tier.LINK: 0, Tier.BEAT: 1, Tier.EVENT: 2, Tier.SCENE: 3}


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


# ─── Graph nodes ────────────────────────────────────────────────────────


class GraphNode(BaseModel):
    """A node of the causal hierarchy at any level."""

    id: str
    session_id: str = ""
    node_kind: NodeKind
    level: int = Field(default=1, ge=1)
    members: Optional[List[str]] = None

    span_start_index: int
    span_end_index: int
    center_index: float

    mass_base: float = Field(ge=0.0, description="Mass before this round's anneal")
    mass_boost: float = Field(default=0.0, ge=0.0, description="Reinforcement from neighbours")
    mass: float = Field(ge=0.0)
    link_mass: float = Field(default=0.0, ge=0.0)
    strength_internal: float = 0.0
    strength_bridge: float = 0.0
    tier: Tier = Tier.LINK
    claimed: bool = False

    # Cause side (for composites: the left child's text)
    cause_text: str = ""
    cause_type: Optional[str] = None
    cause_anchor_index: Optional[int] = None
    cause_mass: float = 0.0
    actor: Optional[str] = None

    # Effect side (for composites: the right child's text)
    effect_text: Optional[str] = None
    effect_type: Optional[str] = None
    effect_anchor_index: Optional[int] = None
    effect_mass: float = 0.0
    distance: Optional[int] = None
    score: Optional[float] = None

    # Composite join diagnostics
    join_center_distance: Optional[float] = None
    join_lexical_score: Optional[float] = None

    # Stray lines attached as context
    context_line_indices: List[int] = Field(default_factory=list)
    context_count: int = 0

    @model_validator(mode="after")
    def _check_shape(self) -> "GraphNode":
        if self.span_end_index < self.span_start_index:
            raise ValueError(
                f"Node {self.id}: span end {self.span_end_index} precedes "
                f"start {self.span_start_index}"
            )
        if self.node_kind == NodeKind.COMPOSITE:
            if not self.members or len(self.members) != 2:
                raise ValueError(f"Composite {self.id} must have exactly two members")
            return self
        if self.cause_anchor_index is None:
            raise ValueError(f"Leaf {self.id} has no cause anchor")
        if (self.effect_anchor_index is None) == self.claimed:
            raise ValueError(
                f"Leaf {self.id}: effect anchor must be set iff the node is claimed"
            )
        if self.claimed != (self.node_kind == NodeKind.LINK):
            raise ValueError(f"Leaf {self.id}: claimed leaves are links, unclaimed are singletons")
        return self

    @property
    def is_leaf(self) -> bool:
        return self.node_kind != NodeKind.COMPOSITE

    @property
    def text(self) -> str:
        """Cause and effect text joined, used for lexical overlap."""
        return f"{self.cause_text} {self.effect_text or ''}".strip()

    def span_center(self) -> float:
        return (self.span_start_index + self.span_end_index) / 2


# ─── Round 1 candidates & traces ────────────────────────────────────────


class EdgeCandidate(BaseModel):
    """A scored cause -> effect pairing. Transient."""

    cause_index: int
    effect_index: int
    direction: Direction
    distance: int = Field(ge=1)
    distance_score: float
    lexical_score: float
    answer_boost: float = 0.0
    strength_ce: float

    def sort_key(self) -> tuple:
        """Total allocation order: strongest first, then nearest, then by position."""
        return (
            -self.strength_ce,
            self.distance,
            self.cause_index,
            self.effect_index,
            0 if self.direction == Direction.FORWARD else 1,
        )


class CandidateTrace(BaseModel):
    effect_index: int
    direction: Direction
    distance: int
    distance_score: float
    lexical_score: float
    answer_boost: float
    strength_ce: float
    claimed_by_cause: Optional[int] = None


class AllocationTrace(BaseModel):
    """Per-cause audit record of the one-to-one allocation."""

    cause_index: int
    cause_type: Optional[str] = None
    cause_mass: float = 0.0
    candidates: List[CandidateTrace] = Field(default_factory=list)
    chosen_effect_index: Optional[int] = None
    chosen_strength: Optional[float] = None
    reason: Literal["edge_greedy_one_to_one", "no_candidate", "outbid"] = "no_candidate"


class UnclaimedEffect(BaseModel):
    anchor_index: int
    text: str
    type: str
    mass: float


# ─── Anneal / absorption / composition diagnostics ──────────────────────


class NeighborEdgeTrace(BaseModel):
    from_id: str
    to_id: str
    strength_ll: float
    contrib: float
    distance: float
    lexical: float


class MassDelta(BaseModel):
    """One row of the per-pass mass-delta report."""

    link_id: str
    mass_base: float
    mass_prev: float
    mass_new: float
    boost: float
    tier_prev: Tier
    tier_new: Tier
    top_contributor_id: str = ""


class ContextEdge(BaseModel):
    """A stray line attached to a node as context."""

    line_index: int
    node_id: str
    strength: float
    distance: float
    lexical: float


class CompositeCandidate(BaseModel):
    left_id: str
    right_id: str
    left_center: float
    right_center: float
    center_distance: float
    lexical_score: float
    strength_bridge: float
    threshold_link: float
    chosen: bool = False
