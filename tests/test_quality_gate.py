import json

from ecograph.graphrag.graph_merge import GraphMerger
from ecograph.graphrag.quality_gate import (
    CROSS_LINK_MAX_LINKS,
    EGO_NETWORK_MIN_LINKS,
    QualityGatedCall,
    valid_link_count,
)

from conftest import citation, link, make_response, node, star_response


def _scripted(responses):
    """Callable returning the next canned response on each call."""
    calls = {"n": 0}

    def call():
        i = calls["n"]
        calls["n"] += 1
        item = responses[min(i, len(responses) - 1)]
        if isinstance(item, Exception):
            raise item
        return item

    return call, calls


def test_valid_link_count_requires_fields_and_valid_citation():
    payload = json.loads(make_response(
        links=[
            link("A", "B", source_ids=[1]),
            link("A", "C", source_ids=[2]),          # cites invalid url
            link("A", "D", source_ids=[3]),          # dangling
            {"source": "A", "target": "E", "sourceIds": [1]},   # no type
            link("A", "F", source_ids=[1, 2]),
        ],
        sources=[citation(1), citation(2, url="not-a-url")],
    ))
    assert valid_link_count(payload) == 2
    assert valid_link_count({}) == 0
    assert valid_link_count("nope") == 0


def test_stops_early_once_min_links_reached():
    call, calls = _scripted([star_response("NVIDIA", [f"S{i}" for i in range(6)])])
    result = QualityGatedCall(min_links=EGO_NETWORK_MIN_LINKS).run(call)

    assert calls["n"] == 1
    assert result.attempts == 1
    assert result.score == 6


def test_keeps_best_attempt_across_retries():
    weak = star_response("NVIDIA", ["A1", "A2"])
    strong = star_response("NVIDIA", ["B1", "B2", "B3"])
    weaker = star_response("NVIDIA", ["C1"])
    call, calls = _scripted([weak, strong, weaker])

    result = QualityGatedCall(min_links=5).run(call)

    assert calls["n"] == 3
    assert result.score == 3
    assert {l["target"] for l in result.payload["links"]} == {"B1", "B2", "B3"}


def test_failures_count_as_empty_responses():
    good = star_response("TSMC", ["A1", "A2"])
    call, calls = _scripted([RuntimeError("timeout"), None, good])

    result = QualityGatedCall(min_links=5).run(call)

    assert calls["n"] == 3
    assert result.score == 2
    assert result.payload["nodes"][0]["id"] == "TSMC"


def test_all_attempts_failing_yields_empty_payload():
    call, _ = _scripted([None])
    result = QualityGatedCall(min_links=5).run(call)
    assert result.payload == {}
    assert result.score == 0
    assert result.attempts == 3


def test_ties_keep_earlier_attempt():
    first = star_response("X Inc", ["A1"])
    second = star_response("Y Inc", ["B1"])
    call, _ = _scripted([first, second, second])
    result = QualityGatedCall(min_links=5).run(call)
    assert result.payload["nodes"][0]["id"] == "X Inc"


def test_cross_link_cap():
    call, _ = _scripted([star_response("Hub", [f"N{i}" for i in range(25)])])
    result = QualityGatedCall(min_links=10, max_links=CROSS_LINK_MAX_LINKS).run(call)
    assert len(result.payload["links"]) == 20


def _hub_response(invalid, valid):
    """Hub links: ``invalid`` cite a missing source first, then ``valid`` cite source 1."""
    names = [f"N{i}" for i in range(valid)]
    links = [link("Hub", f"D{i}", source_ids=[99]) for i in range(invalid)]
    links += [link("Hub", n, source_ids=[1]) for n in names]
    nodes = [node("Hub", "Core")] + [node(n, "Supplier") for n in names]
    return make_response(nodes, links, [citation(1)])


def test_cap_counts_only_scoring_links():
    call, _ = _scripted([_hub_response(invalid=10, valid=15)])
    result = QualityGatedCall(min_links=10, max_links=CROSS_LINK_MAX_LINKS).run(call)

    assert result.score == 15
    assert len(result.payload["links"]) == 15

    merger = GraphMerger()
    stats = merger.merge_response(result.payload)
    assert stats.links_added == 15


def test_cap_applies_after_dropping_unusable_links():
    call, _ = _scripted([_hub_response(invalid=5, valid=25)])
    result = QualityGatedCall(min_links=10, max_links=CROSS_LINK_MAX_LINKS).run(call)

    kept = result.payload["links"]
    assert len(kept) == 20
    assert [l["target"] for l in kept] == [f"N{i}" for i in range(20)]


def test_valid_link_count_accepts_alternate_endpoint_keys():
    payload = {
        "links": [
            {"sourceId": "A", "targetId": "B", "type": "Partner", "sourceIds": [1]},
            {"source_id": "A", "target_id": "C", "type": "Partner", "sourceIds": [1]},
            {"sourceId": "A", "type": "Partner", "sourceIds": [1]},
        ],
        "sources": [citation(1)],
    }
    assert valid_link_count(payload) == 2
