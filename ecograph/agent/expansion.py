"""
Expansion Controller
====================
Bounded, metric-driven frontier expansion:

  1. **Seeding**    : probe every pending seed concurrently (ego-network
                      extraction through the quality gate) and merge the
                      responses in dispatch order
  2. **Evaluating** : score the merged graph with the completeness evaluator
  3. **Expanding**  : stop on the round budget or the score threshold,
                      otherwise pick up to ``EXPANSION_BATCH_SIZE`` new
                      seeds from the frontier (falling back to
                      under-covered seeds) and go back to 1
  4. **Done**

Rounds are strictly sequential: the next batch is chosen from the fully
merged state of the previous round.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ecograph.core.config import settings
from ecograph.core.errors import NoGraphDataError, PipelineInputError
from ecograph.graphrag.completeness import evaluate_completeness
from ecograph.graphrag.graph_merge import GraphMerger, MergeStats
from ecograph.graphrag.identity import is_generic_name, normalize_id
from ecograph.graphrag.models import CompletenessSnapshot, EcosystemGraph
from ecograph.graphrag.producers import Producers
from ecograph.graphrag.quality_gate import AttemptResult, EGO_NETWORK_MIN_LINKS, QualityGatedCall

logger = logging.getLogger(__name__)

EXPANSION_BATCH_SIZE = 4
SEED_LAYER = "seed"

StatusCallback = Callable[[str, str, int], None]
GraphCallback = Callable[[dict], None]


class ExpansionState(str, Enum):
    SEEDING = "seeding"
    EVALUATING = "evaluating"
    EXPANDING = "expanding"
    DONE = "done"


@dataclass
class SeedTask:
    name: str
    canonical_id: str
    layer: Optional[str] = None


@dataclass
class RoundSummary:
    index: int
    seeds: list[str]
    stats: MergeStats
    score: float
    attempts: int = 0


@dataclass
class ExpansionResult:
    graph: EcosystemGraph
    rounds: list[RoundSummary] = field(default_factory=list)
    processed: list[str] = field(default_factory=list)     # canonical ids, dispatch order


class ExpansionController:
    """
    Runs the seeding/evaluating/expanding loop over one ``GraphMerger``.

    Usage::

        controller = ExpansionController(producers, topic="AI GPU Server Supply Chain")
        result = controller.run(["NVIDIA", "TSMC"])
        print(result.graph.completeness.score)
    """

    def __init__(
        self,
        producers: Producers,
        topic: str,
        merger: GraphMerger | None = None,
        max_rounds: int | None = None,
        threshold: float | None = None,
        batch_size: int = EXPANSION_BATCH_SIZE,
        max_workers: int | None = None,
        on_status: StatusCallback | None = None,
        on_graph: GraphCallback | None = None,
        progress_range: tuple[int, int] = (10, 30),
    ) -> None:
        self.producers = producers
        self.topic = topic
        self.merger = merger or GraphMerger()
        self.max_rounds = max_rounds if max_rounds is not None else settings.MAX_ROUNDS
        self.threshold = threshold if threshold is not None else settings.COMPLETENESS_THRESHOLD
        self.batch_size = batch_size
        self.max_workers = max_workers or settings.MAX_WORKERS
        self.on_status = on_status
        self.on_graph = on_graph
        self.progress_range = progress_range

        self.state = ExpansionState.SEEDING
        self.processed: list[str] = []
        # canonical id → display name of every seed dispatched so far
        self.tracked_seeds: dict[str, str] = {}
        self.rounds: list[RoundSummary] = []

    @property
    def graph(self) -> EcosystemGraph:
        return self.merger.graph

    # ── public API ────────────────────────────────────────────────────

    def run(self, seeds: list[str], layers: dict[str, str] | None = None) -> ExpansionResult:
        """
        Expand from ``seeds``.  ``layers`` optionally maps a seed name to
        its provenance label (e.g. the industry layer it was inferred for).
        """
        pending = self._initial_batch(seeds, layers or {})
        if not pending:
            raise PipelineInputError("No usable seed entities after filtering generic names.")

        for round_index in range(self.max_rounds):
            self.state = ExpansionState.SEEDING
            batch, pending = pending, []
            self._status(
                round_index,
                f"Round {round_index}: probing {len(batch)} seed(s): "
                + ", ".join(t.name for t in batch),
            )

            results = self._dispatch(batch)
            stats = MergeStats()
            core_names = [t.name for t in batch] if round_index == 0 else []
            for task, result in zip(batch, results):
                stats += self.merger.merge_response(
                    result.payload, layer=task.layer, core_names=core_names,
                )
                if task.canonical_id not in self.tracked_seeds:
                    self.processed.append(task.canonical_id)
                    self.tracked_seeds[task.canonical_id] = task.name

            if round_index == 0 and not self.graph.nodes:
                raise NoGraphDataError(
                    "No graph data returned by any producer for the initial seeds."
                )

            self.state = ExpansionState.EVALUATING
            snapshot = evaluate_completeness(self.graph, self.tracked_seeds)
            self.graph.completeness = snapshot
            self._emit_graph()

            self.rounds.append(RoundSummary(
                index=round_index,
                seeds=[t.name for t in batch],
                stats=stats,
                score=snapshot.score,
                attempts=sum(r.attempts for r in results),
            ))
            logger.info(
                "Round %d merged: +%d entities, +%d links, +%d sources (score %.3f)",
                round_index, stats.entities_added, stats.links_added,
                stats.sources_added, snapshot.score,
            )

            if round_index == self.max_rounds - 1:
                logger.info("Round budget exhausted after %d round(s).", round_index + 1)
                break
            if snapshot.score >= self.threshold:
                logger.info("Completeness %.3f ≥ %.2f, stopping.", snapshot.score, self.threshold)
                break

            self.state = ExpansionState.EXPANDING
            pending = self.next_batch(snapshot, round_index + 1)
            if not pending:
                logger.info("No frontier or under-covered seeds left to expand.")
                break

        self.state = ExpansionState.DONE
        return ExpansionResult(graph=self.graph, rounds=list(self.rounds), processed=list(self.processed))

    def next_batch(self, snapshot: CompletenessSnapshot, round_index: int) -> list[SeedTask]:
        """Frontier entities first, then under-covered seeds; never re-probes."""
        layer = f"expansion-{round_index}"
        chosen: list[SeedTask] = []
        seen = set(self.processed)

        for candidates in (snapshot.frontier_entities, snapshot.under_covered_entities):
            for candidate in candidates:
                if len(chosen) >= self.batch_size:
                    break
                cid = candidate.get("id") or normalize_id(candidate.get("name"))
                if not cid or cid in seen:
                    continue
                seen.add(cid)
                chosen.append(SeedTask(name=candidate.get("name") or cid, canonical_id=cid, layer=layer))
            if chosen:
                break
        return chosen

    # ── private helpers ───────────────────────────────────────────────

    def _initial_batch(self, seeds: list[str], layers: dict[str, str]) -> list[SeedTask]:
        batch: list[SeedTask] = []
        seen: set[str] = set()
        for seed in seeds:
            name = seed.strip() if isinstance(seed, str) else ""
            cid = normalize_id(name)
            if not cid or cid in seen:
                continue
            if is_generic_name(name):
                logger.warning("Ignoring generic seed name %r", name)
                continue
            seen.add(cid)
            batch.append(SeedTask(name=name, canonical_id=cid, layer=layers.get(seed, SEED_LAYER)))
        return batch

    def _dispatch(self, batch: list[SeedTask]) -> list[AttemptResult]:
        """Fan out one round; results come back in dispatch order."""
        workers = max(1, min(self.max_workers, len(batch)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._probe, task) for task in batch]
            return [f.result() for f in futures]

    def _probe(self, task: SeedTask) -> AttemptResult:
        gate = QualityGatedCall(min_links=EGO_NETWORK_MIN_LINKS, label=f"ego:{task.name}")
        return gate.run(lambda: self.producers.extract_ego_network(task.name, self.topic, task.layer))

    def _status(self, round_index: int, message: str) -> None:
        if self.on_status is None:
            return
        start, end = self.progress_range
        progress = start + (end - start) * round_index // max(1, self.max_rounds)
        self.on_status("expansion", message, progress)

    def _emit_graph(self) -> None:
        if self.on_graph is not None:
            self.on_graph(self.graph.to_dict())
