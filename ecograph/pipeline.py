"""
End-to-End Pipeline
===================
Builds an ecosystem graph from seed companies and/or a research topic and
chains all stages:

    input resolution → expansion → quotes → cross-links → enrichment → report

Usage (as a module)::

    from ecograph.pipeline import Pipeline
    pipeline = Pipeline(on_status=print)
    graph = pipeline.run(seeds=["NVIDIA", "TSMC"], topic="AI GPU Server Supply Chain")

The graph is re-emitted through ``on_graph`` after every stage that
changes it, so a consumer can render partial progress.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ecograph.agent.expansion import ExpansionController, ExpansionResult, GraphCallback, StatusCallback
from ecograph.core.errors import PipelineInputError, SeedInferenceError
from ecograph.core.json_utils import parse_producer_json
from ecograph.graphrag.completeness import evaluate_completeness
from ecograph.graphrag.graph_merge import GraphMerger
from ecograph.graphrag.models import EcosystemGraph, ResearchReport
from ecograph.graphrag.producers import LLMProducers, Producers
from ecograph.graphrag.quality_gate import CROSS_LINK_MAX_LINKS, CROSS_LINK_MIN_LINKS, QualityGatedCall

logger = logging.getLogger(__name__)

# ── Tuneable knobs ────────────────────────────────────────────────────
DEFAULT_TOPIC = "General Industry Analysis"
QUOTE_BATCH_SIZE = 15
ENRICHMENT_BATCH_SIZE = 5
PRIORITY_SIZE_BUCKETS = ("Mega", "Large", "Mid")
# ──────────────────────────────────────────────────────────────────────


@dataclass
class ResolvedInput:
    """Seeds and topic after inference."""
    seeds: list[str]
    topic: str
    layers: dict[str, str]


class Pipeline:
    """
    Orchestrates the full graph build.

    Usage::

        pipeline = Pipeline()
        graph = pipeline.run(seeds=["NVIDIA"], topic="")   # topic inferred
        graph = pipeline.run(seeds=[], topic="EV Batteries") # seeds inferred
    """

    def __init__(
        self,
        producers: Producers | None = None,
        on_status: StatusCallback | None = None,
        on_graph: GraphCallback | None = None,
        on_topic_inferred: Callable[[str], None] | None = None,
        on_seeds_inferred: Callable[[list[str]], None] | None = None,
        max_rounds: int | None = None,
        threshold: float | None = None,
    ) -> None:
        self.producers = producers or LLMProducers()
        self.on_status = on_status
        self.on_graph = on_graph
        self.on_topic_inferred = on_topic_inferred
        self.on_seeds_inferred = on_seeds_inferred
        self.max_rounds = max_rounds
        self.threshold = threshold
        self.expansion: Optional[ExpansionResult] = None

    def run(self, seeds: list[str] | None = None, topic: str | None = None) -> EcosystemGraph:
        """
        Run every stage and return the finished graph.

        Raises PipelineInputError when neither seeds nor topic are given,
        SeedInferenceError when seeds cannot be inferred from the topic and
        NoGraphDataError when the first expansion round admits nothing.
        """
        resolved = self._resolve_input(seeds or [], topic or "")

        merger = GraphMerger(EcosystemGraph(topic=resolved.topic))
        graph = merger.graph

        # ── Stage 1: Expansion ────────────────────────────────────────
        self._status("expansion", f"Analyzing seeds for '{resolved.topic}'...", 10)
        controller = ExpansionController(
            self.producers,
            topic=resolved.topic,
            merger=merger,
            max_rounds=self.max_rounds,
            threshold=self.threshold,
            on_status=self.on_status,
            on_graph=self.on_graph,
        )
        self.expansion = controller.run(resolved.seeds, layers=resolved.layers)
        tracked_seeds = list(controller.tracked_seeds)

        # ── Stage 2: Quotes ───────────────────────────────────────────
        self._status("quotes", "Fetching financial data (ticker, price, cap)...", 35)
        self._run_quotes(merger)
        self._emit(graph)

        # ── Stage 3: Cross-links ──────────────────────────────────────
        self._status("cross-links", "Connecting key players...", 50)
        self._run_cross_links(merger, resolved.topic)
        self._emit(graph)

        # ── Stage 4: Qualitative enrichment ───────────────────────────
        self._status("enrichment", "Analyzing growth profiles & risks...", 75)
        self._run_enrichment(merger, resolved.topic)
        self._emit(graph)

        # ── Stage 5: Report ───────────────────────────────────────────
        self._status("report", "Synthesizing strategic insights...", 90)
        self._run_report(graph)

        graph.completeness = evaluate_completeness(graph, tracked_seeds)
        self._emit(graph)
        self._status("complete", "Pipeline complete.", 100)
        logger.info(
            "Pipeline complete: %d nodes, %d links, %d sources, completeness %.3f",
            len(graph.nodes), len(graph.links), len(graph.sources), graph.completeness.score,
        )
        return graph

    # ── Input resolution ──────────────────────────────────────────────

    def _resolve_input(self, seeds: list[str], topic: str) -> ResolvedInput:
        seeds = [s.strip() for s in seeds if isinstance(s, str) and s.strip()]
        topic = topic.strip()
        layers: dict[str, str] = {}

        if not seeds and not topic:
            raise PipelineInputError("Provide at least one seed company or a research topic.")

        if not topic:
            self._status("topic-inference", "Inferring research topic from seeds...", 2)
            payload = parse_producer_json(self._call("infer_topic", self.producers.infer_topic, seeds))
            inferred = payload.get("topic")
            if isinstance(inferred, str) and inferred.strip():
                topic = inferred.strip()
            else:
                topic = DEFAULT_TOPIC
                logger.warning("Topic inference failed; using default topic %r", topic)
                self._status("topic-inference", f"Topic inference failed, using '{topic}'.", 3)
            if self.on_topic_inferred:
                self.on_topic_inferred(topic)

        if not seeds:
            self._status("seed-inference", f"Inferring key players for '{topic}'...", 2)
            raw = self._call("infer_seeds", self.producers.infer_seeds, topic)
            seeds, layers = _lift_inferred_seeds(parse_producer_json(raw))
            if not seeds:
                raise SeedInferenceError(
                    "Could not infer seed companies from topic. "
                    "Please provide at least one seed company."
                )
            if self.on_seeds_inferred:
                self.on_seeds_inferred(seeds)

        return ResolvedInput(seeds=seeds, topic=topic, layers=layers)

    # ── Stage runners ─────────────────────────────────────────────────

    def _run_quotes(self, merger: GraphMerger) -> int:
        """Fold per-name financial quotes into the graph.  Returns entities updated."""
        names = [n.display_name for n in merger.graph.nodes]
        touched = 0
        for batch in _make_batches(names, QUOTE_BATCH_SIZE):
            payload = parse_producer_json(self._call("quotes", self.producers.fetch_quotes, batch))
            if not payload:
                logger.error("Quote batch failed for %d name(s)", len(batch))
                continue
            touched += merger.apply_updates(payload.get("updates"))
        logger.info("Quotes: %d of %d entities updated", touched, len(names))
        return touched

    def _run_cross_links(self, merger: GraphMerger, topic: str) -> int:
        """Find links between existing nodes.  Returns links added."""
        nodes = merger.graph.nodes
        if len(nodes) <= 2:
            logger.info("Cross-links: skipped, only %d node(s)", len(nodes))
            return 0

        prioritized = [
            n for n in nodes
            if n.role == "Core" or not n.size_bucket or n.size_bucket in PRIORITY_SIZE_BUCKETS
        ]
        selected = prioritized if len(prioritized) >= 2 else nodes
        names = [n.display_name for n in selected]

        gate = QualityGatedCall(
            min_links=CROSS_LINK_MIN_LINKS,
            max_links=CROSS_LINK_MAX_LINKS,
            label="cross_links",
        )
        best = gate.run(lambda: self.producers.extract_cross_links(names, topic))
        stats = merger.merge_response(best.payload, is_key_relationship=True)
        logger.info(
            "Cross-links: +%d links (%d rejected) after %d attempt(s)",
            stats.links_added, stats.links_rejected, best.attempts,
        )
        return stats.links_added

    def _run_enrichment(self, merger: GraphMerger, topic: str) -> int:
        """Qualitative enrichment grounded on the quote data.  Returns entities updated."""
        touched = 0
        for batch in _make_batches(merger.graph.nodes, ENRICHMENT_BATCH_SIZE):
            context = [
                {
                    "id": n.id,
                    "name": n.display_name,
                    "country": n.country,
                    "ticker": n.ticker,
                    "marketCap": n.market_cap,
                    "sector": n.sector,
                }
                for n in batch
            ]
            raw = self._call("enrichment", self.producers.enrich_qualitative, context, topic)
            payload = parse_producer_json(raw)
            if not payload:
                logger.error("Enrichment batch failed for %d node(s)", len(batch))
                continue
            touched += merger.apply_updates(payload.get("updates"))
        logger.info("Enrichment: %d entities updated", touched)
        return touched

    def _run_report(self, graph: EcosystemGraph) -> Optional[ResearchReport]:
        clean_graph = {
            "topic": graph.topic,
            "nodes": [n.to_dict() for n in graph.nodes],
            "links": [
                {"source": l.source_id, "target": l.target_id, "type": l.type}
                for l in graph.links
            ],
        }
        report = ResearchReport.from_payload(
            parse_producer_json(self._call("report", self.producers.write_report, clean_graph))
        )
        if report is None:
            logger.warning("Report generation returned nothing usable.")
            return None
        graph.report = report
        graph.summary = report.theme_overview
        return report

    def _call(self, label: str, fn: Callable[..., Optional[str]], *args) -> Optional[str]:
        """Invoke a producer; any failure is an empty response."""
        try:
            return fn(*args)
        except Exception as exc:
            logger.error("Producer %s failed: %s", label, exc)
            return None

    # ── Events ────────────────────────────────────────────────────────

    def _status(self, stage: str, message: str, progress: int) -> None:
        logger.info("[%s] %s", stage, message)
        if self.on_status:
            self.on_status(stage, message, progress)

    def _emit(self, graph: EcosystemGraph) -> None:
        if self.on_graph:
            self.on_graph(graph.to_dict())


# ── Helpers ──────────────────────────────────────────────────────────

def _lift_inferred_seeds(payload: dict) -> tuple[list[str], dict[str, str]]:
    """Flatten ``{"layers": [{"name", "seeds"}]}`` or ``{"seeds": [...]}``."""
    seeds: list[str] = []
    layers: dict[str, str] = {}

    raw_layers = payload.get("layers")
    for layer in raw_layers if isinstance(raw_layers, list) else []:
        if not isinstance(layer, dict):
            continue
        label = layer.get("name") if isinstance(layer.get("name"), str) else None
        for seed in layer.get("seeds") or []:
            if isinstance(seed, str) and seed.strip() and seed.strip() not in seeds:
                seeds.append(seed.strip())
                if label:
                    layers[seed.strip()] = label.strip()

    raw_seeds = payload.get("seeds")
    for seed in raw_seeds if isinstance(raw_seeds, list) else []:
        if isinstance(seed, str) and seed.strip() and seed.strip() not in seeds:
            seeds.append(seed.strip())

    return seeds, layers


def _make_batches(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)]
