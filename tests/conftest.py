"""
Shared fixtures: canned producer responses, no network.
"""

import json

import pytest


def make_response(nodes=(), links=(), sources=()) -> str:
    """Serialise a producer response the way an LLM would return it."""
    return json.dumps({"nodes": list(nodes), "links": list(links), "sources": list(sources)})


def node(name, role="Other", **extra) -> dict:
    return {"id": name, "name": name, "role": role, **extra}


def link(source, target, rel_type="SupplyChain", source_ids=(1,), **extra) -> dict:
    return {"source": source, "target": target, "type": rel_type,
            "description": f"{source} {rel_type} {target}", "sourceIds": list(source_ids), **extra}


def citation(local_id, url=None, title="Reuters") -> dict:
    return {"id": local_id, "title": title,
            "url": url if url is not None else f"https://www.reuters.com/article/{local_id}",
            "note": "Reuters 2024-05"}


def star_response(center, neighbours, rel_type="SupplyChain", center_role="Core") -> str:
    """Ego network with one citation per edge."""
    nodes = [node(center, center_role)] + [node(n, "Supplier") for n in neighbours]
    links = [link(center, n, rel_type, source_ids=[i]) for i, n in enumerate(neighbours, start=1)]
    sources = [citation(i) for i in range(1, len(neighbours) + 1)]
    return make_response(nodes, links, sources)


class FakeProducers:
    """
    Deterministic producer set.

    ``ego`` maps a seed name to a list of per-attempt responses; the last
    one repeats once the list is exhausted.  Every call is recorded.
    """

    def __init__(self, ego=None, cross=None, quotes=None, enrichment=None,
                 report=None, topic=None, seeds=None):
        self.ego = ego or {}
        self.cross = cross or [None]
        self.quotes = quotes
        self.enrichment = enrichment
        self.report = report
        self.topic = topic
        self.seeds = seeds
        self.calls: list[tuple] = []
        self._ego_attempts: dict[str, int] = {}
        self._cross_attempts = 0

    def infer_topic(self, seeds):
        self.calls.append(("infer_topic", tuple(seeds)))
        return self.topic

    def infer_seeds(self, topic):
        self.calls.append(("infer_seeds", topic))
        return self.seeds

    def extract_ego_network(self, seed, topic, layer):
        self.calls.append(("ego", seed, layer))
        responses = self.ego.get(seed, [None])
        attempt = self._ego_attempts.get(seed, 0)
        self._ego_attempts[seed] = attempt + 1
        return responses[min(attempt, len(responses) - 1)]

    def extract_cross_links(self, node_names, topic):
        self.calls.append(("cross", tuple(node_names)))
        attempt = self._cross_attempts
        self._cross_attempts += 1
        return self.cross[min(attempt, len(self.cross) - 1)]

    def fetch_quotes(self, names):
        self.calls.append(("quotes", tuple(names)))
        return self.quotes

    def enrich_qualitative(self, nodes, topic):
        self.calls.append(("enrichment", tuple(n["id"] for n in nodes)))
        return self.enrichment

    def write_report(self, graph_payload):
        self.calls.append(("report", len(graph_payload["nodes"])))
        return self.report

    def ego_calls(self):
        return [c for c in self.calls if c[0] == "ego"]


@pytest.fixture
def fake_producers():
    return FakeProducers
