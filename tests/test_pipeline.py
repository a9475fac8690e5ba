import json

import pytest

from ecograph.core.errors import NoGraphDataError, PipelineInputError, SeedInferenceError
from ecograph.pipeline import DEFAULT_TOPIC, Pipeline, _lift_inferred_seeds, _make_batches

from conftest import FakeProducers, citation, link, make_response, star_response

REPORT = json.dumps({
    "themeOverview": "GPU demand is pulling the whole server chain.",
    "keyPlayers": [{"nodeId": "nvidia", "rationale": "Sets the roadmap"}],
    "riskNodes": [{"nodeId": "tsmc", "riskFactor": "Single-source CoWoS"}],
    "suggestedNextSteps": ["Track HBM allocation"],
    "disclaimer": "Not investment advice.",
})


def ego_set():
    return {
        "NVIDIA": [star_response("NVIDIA", ["Micron", "SK Hynix", "Foxconn", "Wistron", "Quanta"])],
        "TSMC": [star_response("TSMC", ["ASML", "Applied Materials", "Tokyo Electron", "Lam Research", "KLA"])],
    }


def cross_links():
    return make_response(
        links=[
            link("TSMC", "NVIDIA", "SupplyChain", source_ids=[1]),
            link("Micron", "TSMC", "Partner", source_ids=[1]),
            link("NVIDIA", "Cloud Providers", "Customer", source_ids=[1]),
        ],
        sources=[citation(1, url="https://www.bloomberg.com/tsmc-nvidia")],
    )


def make_producers(**overrides):
    kwargs = dict(
        ego=ego_set(),
        cross=[cross_links()],
        quotes=json.dumps({"updates": {
            "NVIDIA": {"ticker": "NVDA", "marketCap": "$3.2T", "sizeBucket": "Mega"},
            "TSMC": {"ticker": "TSM", "primaryExchange": "NYSE"},
            "Foxconn": {"note": "ticker_not_found"},
        }}),
        enrichment=json.dumps({"updates": {
            "NVIDIA": {"growthProfile": "High Growth", "riskNotes": "Export controls"},
        }}),
        report=REPORT,
    )
    kwargs.update(overrides)
    return FakeProducers(**kwargs)


def test_full_run_builds_enriched_graph():
    statuses, graphs = [], []
    producers = make_producers()
    pipeline = Pipeline(
        producers,
        on_status=lambda stage, msg, pct: statuses.append((stage, pct)),
        on_graph=graphs.append,
        max_rounds=1,
    )

    graph = pipeline.run(seeds=["NVIDIA", "TSMC"], topic="AI GPU Server Supply Chain")

    assert graph.topic == "AI GPU Server Supply Chain"
    assert len(graph.nodes) == 12
    nvidia = next(n for n in graph.nodes if n.id == "nvidia")
    assert nvidia.role == "Core"
    assert nvidia.ticker == "NVDA"
    assert nvidia.growth_profile == "High Growth"
    assert nvidia.risk_notes == "Export controls"

    key_links = [l for l in graph.links if l.is_key_relationship]
    assert [(l.source_id, l.target_id) for l in key_links] == [("tsmc", "nvidia"), ("micron", "tsmc")]

    assert graph.report is not None
    assert graph.summary.startswith("GPU demand")
    assert graph.report.risk_nodes == [{"nodeId": "tsmc", "riskFactor": "Single-source CoWoS"}]
    assert graph.completeness is not None

    assert statuses[-1] == ("complete", 100)
    stages = [s for s, _ in statuses]
    for stage in ("expansion", "quotes", "cross-links", "enrichment", "report"):
        assert stage in stages
    assert graphs[-1]["report"]["themeOverview"].startswith("GPU demand")
    assert pipeline.expansion.processed == ["nvidia", "tsmc"]


def test_stages_call_producers_in_batches():
    producers = make_producers()
    Pipeline(producers, max_rounds=1).run(seeds=["NVIDIA", "TSMC"], topic="AI")

    kinds = [c[0] for c in producers.calls]
    assert kinds.index("quotes") < kinds.index("cross") < kinds.index("enrichment") < kinds.index("report")
    # 12 nodes → one quote batch, three enrichment batches
    assert kinds.count("quotes") == 1
    assert kinds.count("enrichment") == 3
    # cross-link response never reaches the link minimum, so every attempt is used
    assert kinds.count("cross") == 3


def test_topic_inferred_from_seeds():
    inferred = []
    producers = make_producers(topic=json.dumps({"topic": "AI Accelerator Supply Chain"}))
    graph = Pipeline(producers, on_topic_inferred=inferred.append, max_rounds=1).run(
        seeds=["NVIDIA", "TSMC"],
    )
    assert graph.topic == "AI Accelerator Supply Chain"
    assert inferred == ["AI Accelerator Supply Chain"]
    assert ("infer_topic", ("NVIDIA", "TSMC")) in producers.calls


def test_failed_topic_inference_falls_back_to_default():
    statuses, inferred = [], []
    producers = make_producers(topic="not json")
    graph = Pipeline(
        producers,
        on_status=lambda stage, msg, pct: statuses.append((stage, msg)),
        on_topic_inferred=inferred.append,
        max_rounds=1,
    ).run(seeds=["NVIDIA"])

    assert graph.topic == DEFAULT_TOPIC
    assert inferred == [DEFAULT_TOPIC]
    assert any(stage == "topic-inference" and "failed" in msg for stage, msg in statuses)


def test_seeds_inferred_from_topic_with_layers():
    inferred = []
    producers = make_producers(seeds=json.dumps({"layers": [
        {"name": "Foundry", "seeds": ["TSMC"]},
        {"name": "Accelerators", "seeds": ["NVIDIA", "TSMC"]},
    ]}))
    Pipeline(producers, on_seeds_inferred=inferred.append, max_rounds=1).run(topic="AI GPUs")

    assert inferred == [["TSMC", "NVIDIA"]]
    assert sorted(producers.ego_calls()) == [("ego", "NVIDIA", "Accelerators"), ("ego", "TSMC", "Foundry")]


def test_seed_inference_failure_is_fatal():
    producers = make_producers(seeds=json.dumps({"layers": []}))
    with pytest.raises(SeedInferenceError):
        Pipeline(producers).run(topic="Quantum Sensors")
    assert producers.ego_calls() == []


def test_missing_seeds_and_topic_is_fatal():
    with pytest.raises(PipelineInputError):
        Pipeline(make_producers()).run(seeds=["  "], topic="")


def test_no_graph_data_propagates():
    with pytest.raises(NoGraphDataError):
        Pipeline(make_producers(ego={}), max_rounds=1).run(seeds=["NVIDIA"], topic="AI")


class FailingProducers(FakeProducers):
    def fetch_quotes(self, names):
        raise RuntimeError("rate limited")

    def write_report(self, graph_payload):
        raise RuntimeError("rate limited")


def test_stage_failures_do_not_abort_the_run():
    producers = FailingProducers(ego=ego_set(), cross=[cross_links()])
    graph = Pipeline(producers, max_rounds=1).run(seeds=["NVIDIA", "TSMC"], topic="AI")

    assert len(graph.nodes) == 12
    assert all(n.ticker is None for n in graph.nodes)
    assert graph.report is None
    assert graph.completeness is not None


def test_cross_links_skipped_for_tiny_graphs():
    producers = make_producers(ego={"Arm": [make_response(
        nodes=[{"id": "Arm", "role": "Core"}, {"id": "Qualcomm", "role": "Customer"}],
        links=[link("Arm", "Qualcomm", "Customer")],
        sources=[citation(1)],
    )]})
    Pipeline(producers, max_rounds=1).run(seeds=["Arm"], topic="Mobile SoCs")
    assert not [c for c in producers.calls if c[0] == "cross"]


def test_lift_inferred_seeds_accepts_flat_list():
    seeds, layers = _lift_inferred_seeds({"seeds": ["ASML", " ASML ", "", 3, "Zeiss"]})
    assert seeds == ["ASML", "Zeiss"]
    assert layers == {}


def test_make_batches():
    assert _make_batches(list(range(7)), 3) == [[0, 1, 2], [3, 4, 5], [6]]
    assert _make_batches([], 3) == []
