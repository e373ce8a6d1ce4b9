"""Per-phase metrics and the tab-separated mass-delta report."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from causeloom.models.graph import GraphNode, MassDelta, Tier
from causeloom.models.rounds import MetricStats, RoundMetrics

log = logging.getLogger(__name__)

MASS_DELTA_COLUMNS = [
    "link_id",
    "mass_base",
    "mass_prev",
    "mass_new",
    "boost",
    "tier_prev",
    "tier_new",
    "top_contributor_id",
]


def describe(values: Iterable[float]) -> MetricStats:
    """min / p50 / p90 / max, quantiles taken on observed values."""
    series = pd.Series(list(values), dtype="float64")
    if series.empty:
        return MetricStats()
    return MetricStats(
        min=float(series.min()),
        p50=float(series.quantile(0.5, interpolation="lower")),
        p90=float(series.quantile(0.9, interpolation="lower")),
        max=float(series.max()),
    )


def tier_counts(nodes: Sequence[GraphNode]) -> Dict[str, int]:
    counts = {f"tier_{tier.value}": 0 for tier in Tier}
    for node in nodes:
        counts[f"tier_{node.tier.value}"] += 1
    return counts


def mass_delta_frame(deltas: Sequence[MassDelta]) -> pd.DataFrame:
    rows = [delta.model_dump(mode="json") for delta in deltas]
    return pd.DataFrame(rows, columns=MASS_DELTA_COLUMNS)


def mass_delta_tsv(deltas: Sequence[MassDelta]) -> str:
    """Render one anneal pass as TSV; floats use three decimals."""
    return mass_delta_frame(deltas).to_csv(
        sep="\t", index=False, float_format="%.3f", lineterminator="\n",
    )


def link_phase_metrics(
    round_number: int,
    nodes: Sequence[GraphNode],
    counts: Dict[str, int],
) -> RoundMetrics:
    links = [n for n in nodes if n.claimed and n.is_leaf]
    return RoundMetrics(
        round=round_number,
        phase="link",
        label=f"round {round_number} link",
        counts={**counts, **tier_counts(nodes)},
        stats={
            "mass": describe(n.mass for n in nodes),
            "strength": describe(n.strength_bridge for n in nodes if n.claimed),
            "distance": describe(float(n.distance) for n in links if n.distance is not None),
        },
    )


def anneal_phase_metrics(
    round_number: int,
    nodes: Sequence[GraphNode],
    counts: Dict[str, int],
) -> RoundMetrics:
    return RoundMetrics(
        round=round_number,
        phase="anneal",
        label=f"round {round_number} anneal",
        counts={
            **counts,
            "nodes": len(nodes),
            "boosted": sum(1 for n in nodes if n.mass_boost > 0),
            **tier_counts(nodes),
        },
        stats={
            "mass": describe(n.mass for n in nodes),
            "mass_boost": describe(n.mass_boost for n in nodes),
        },
    )


def log_metrics(metrics: RoundMetrics) -> None:
    counts: List[str] = [f"{k}={v}" for k, v in metrics.counts.items()]
    log.info("[%s] %s", metrics.label, " ".join(counts))
    for name, stats in metrics.stats.items():
        log.debug(
            "[%s] %s min=%.3f p50=%.3f p90=%.3f max=%.3f",
            metrics.label, name, stats.min, stats.p50, stats.p90, stats.max,
        )
