"""
Completeness Evaluator
======================
Scores how "finished" the current graph looks, from 0 to 1, and picks
the entities worth probing next.

Sub-metrics
-----------
* **seed_coverage**  – mean of ``min(1, degree(seed) / 3)`` over tracked seeds.
* **role_diversity** – ``1 - JSD(observed roles, target roles) / ln 2``.
* **depth_reach**    – ``min(1, mean BFS depth from the seeds / 2.5)``.
* **source_density** – mean of (links with evidence / links) and
  (cited sources / sources).
* **novelty**        – Shannon entropy of the degree distribution,
  normalised by ``ln(max(2, entity_count))``.

The adjacency and degree maps are built once per evaluation; the graph is
small enough that a whole-graph pass is cheaper than incremental upkeep.
"""

import logging
import math
from collections import deque
from typing import Iterable

from ecograph.domain.ontology import ROLE_TARGET_DISTRIBUTION
from ecograph.graphrag.models import CompletenessSnapshot, EcosystemGraph

logger = logging.getLogger(__name__)

# ── Tuneable knobs ────────────────────────────────────────────────────
WEIGHTS = {
    "seed_coverage": 0.25,
    "role_diversity": 0.20,
    "depth_reach": 0.20,
    "source_density": 0.20,
    "novelty": 0.15,
}
SEED_TARGET_DEGREE = 3
TARGET_MEAN_DEPTH = 2.5
FRONTIER_MAX_DEGREE = 2
HIGH_IMPACT_LIMIT = 5
RECOMMENDED_SEED_LIMIT = 5
# ──────────────────────────────────────────────────────────────────────


def evaluate_completeness(graph: EcosystemGraph, seed_ids: Iterable[str]) -> CompletenessSnapshot:
    """Build a fresh snapshot for ``graph``; the graph is not modified."""
    entities = {e.id: e for e in graph.nodes}
    if not entities:
        return CompletenessSnapshot(
            score=0.0, seed_coverage=0.0, role_diversity=0.0,
            depth_reach=0.0, source_density=0.0, novelty=0.0,
        )

    seeds = list(dict.fromkeys(s for s in seed_ids if s))
    degree, adjacency = _degree_and_adjacency(graph, entities)

    seed_coverage, under_covered = _seed_coverage(seeds, degree, entities)
    role_diversity, missing_roles = _role_diversity(graph)
    depths = _bfs_depths(seeds, adjacency, entities)
    depth_reach = _depth_reach(depths)
    source_density = _source_density(graph)
    novelty = _novelty(degree, len(entities))

    score = (
        WEIGHTS["seed_coverage"] * seed_coverage
        + WEIGHTS["role_diversity"] * role_diversity
        + WEIGHTS["depth_reach"] * depth_reach
        + WEIGHTS["source_density"] * source_density
        + WEIGHTS["novelty"] * novelty
    )
    score = min(1.0, max(0.0, score))

    frontier = _frontier(depths, degree, entities)
    high_impact = [
        {"id": eid, "name": entities[eid].display_name, "degree": deg}
        for eid, deg in sorted(
            ((eid, deg) for eid, deg in degree.items() if deg > 0),
            key=lambda item: -item[1],
        )[:HIGH_IMPACT_LIMIT]
    ]

    recommended: list[str] = []
    for name in [f["name"] for f in frontier] + [u["name"] for u in under_covered]:
        if name not in recommended:
            recommended.append(name)

    snapshot = CompletenessSnapshot(
        score=score,
        seed_coverage=seed_coverage,
        role_diversity=role_diversity,
        depth_reach=depth_reach,
        source_density=source_density,
        novelty=novelty,
        under_covered_entities=under_covered,
        missing_roles=missing_roles,
        frontier_entities=frontier,
        recommended_seeds=recommended[:RECOMMENDED_SEED_LIMIT],
        high_impact_entities=high_impact,
    )
    logger.info(
        "Completeness %.3f (seeds=%.2f roles=%.2f depth=%.2f sources=%.2f novelty=%.2f), "
        "%d frontier, %d under-covered",
        score, seed_coverage, role_diversity, depth_reach, source_density, novelty,
        len(frontier), len(under_covered),
    )
    return snapshot


# ── Sub-metrics ──────────────────────────────────────────────────────

def _degree_and_adjacency(graph: EcosystemGraph, entities: dict) -> tuple[dict[str, int], dict[str, set[str]]]:
    """Undirected degree/adjacency over links whose endpoints are both live."""
    degree = {eid: 0 for eid in entities}
    adjacency: dict[str, set[str]] = {eid: set() for eid in entities}
    for link in graph.links:
        if link.source_id not in entities or link.target_id not in entities:
            continue
        degree[link.source_id] += 1
        degree[link.target_id] += 1
        adjacency[link.source_id].add(link.target_id)
        adjacency[link.target_id].add(link.source_id)
    return degree, adjacency


def _seed_coverage(seeds: list[str], degree: dict[str, int], entities: dict) -> tuple[float, list[dict]]:
    if not seeds:
        return 0.0, []
    total = 0.0
    under_covered: list[dict] = []
    for seed in seeds:
        seed_degree = degree.get(seed, 0)
        coverage = min(1.0, seed_degree / SEED_TARGET_DEGREE)
        total += coverage
        if coverage < 1.0:
            entity = entities.get(seed)
            under_covered.append({
                "id": seed,
                "name": entity.display_name if entity else seed,
                "degree": seed_degree,
            })
    return total / len(seeds), under_covered


def _role_diversity(graph: EcosystemGraph) -> tuple[float, list[str]]:
    if not graph.nodes:
        return 0.0, []

    counts = {role: 0 for role in ROLE_TARGET_DISTRIBUTION}
    for entity in graph.nodes:
        bucket = entity.role if entity.role in counts else "Other"
        counts[bucket] += 1
    total = sum(counts.values())
    observed = {role: counts[role] / total for role in counts}

    divergence = jensen_shannon_divergence(observed, ROLE_TARGET_DISTRIBUTION)
    diversity = 1.0 - divergence / math.log(2)
    missing = [
        role for role, target in ROLE_TARGET_DISTRIBUTION.items()
        if observed[role] < target / 2
    ]
    return min(1.0, max(0.0, diversity)), missing


def jensen_shannon_divergence(p: dict[str, float], q: dict[str, float]) -> float:
    """JSD in nats over the union of keys of ``p`` and ``q``."""
    keys = set(p) | set(q)
    m = {k: 0.5 * (p.get(k, 0.0) + q.get(k, 0.0)) for k in keys}

    def _kl(a: dict[str, float]) -> float:
        return sum(a.get(k, 0.0) * math.log(a.get(k, 0.0) / m[k])
                   for k in keys if a.get(k, 0.0) > 0)

    return 0.5 * _kl(p) + 0.5 * _kl(q)


def _bfs_depths(seeds: list[str], adjacency: dict[str, set[str]], entities: dict) -> dict[str, int]:
    """Multi-source BFS from the seeds present in the graph (or one arbitrary entity)."""
    if not entities:
        return {}
    starts = [s for s in seeds if s in entities] or [next(iter(entities))]
    depths = {s: 0 for s in starts}
    queue = deque(starts)
    while queue:
        current = queue.popleft()
        for neighbour in sorted(adjacency[current]):
            if neighbour not in depths:
                depths[neighbour] = depths[current] + 1
                queue.append(neighbour)
    return depths


def _depth_reach(depths: dict[str, int]) -> float:
    if not depths:
        return 0.0
    mean_depth = sum(depths.values()) / len(depths)
    return min(1.0, mean_depth / TARGET_MEAN_DEPTH)


def _source_density(graph: EcosystemGraph) -> float:
    evidenced = sum(1 for link in graph.links if link.evidence_ids)
    link_fraction = evidenced / len(graph.links) if graph.links else 0.0

    referenced = {eid for link in graph.links for eid in link.evidence_ids}
    cited = sum(1 for source in graph.sources if source.id in referenced)
    source_fraction = cited / len(graph.sources) if graph.sources else 0.0

    return (link_fraction + source_fraction) / 2


def _novelty(degree: dict[str, int], entity_count: int) -> float:
    if entity_count == 0:
        return 0.0
    if entity_count == 1:
        return 1.0
    positive = [d for d in degree.values() if d > 0]
    total = sum(positive)
    if total == 0:
        return 0.0
    entropy = -sum((d / total) * math.log(d / total) for d in positive)
    return min(1.0, entropy / math.log(max(2, entity_count)))


def _frontier(depths: dict[str, int], degree: dict[str, int], entities: dict) -> list[dict]:
    """Entities on the deepest BFS layer with degree ≤ FRONTIER_MAX_DEGREE."""
    if not depths:
        return []
    max_depth = max(depths.values())
    return [
        {
            "id": eid,
            "name": entities[eid].display_name,
            "role": entities[eid].role,
            "depth": depth,
            "degree": degree.get(eid, 0),
        }
        for eid, depth in depths.items()
        if depth == max_depth and degree.get(eid, 0) <= FRONTIER_MAX_DEGREE
    ]
