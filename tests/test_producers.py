import json
from types import SimpleNamespace

from ecograph.core.json_utils import parse_producer_json, strip_fences
from ecograph.graphrag.producers import LLMProducers


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_ego_network_request_shape():
    completions = FakeCompletions(content='{"nodes": []}')
    producers = LLMProducers(model="test-model", client=fake_client(completions))

    raw = producers.extract_ego_network("NVIDIA", "AI GPUs", "seed")

    assert raw == '{"nodes": []}'
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["response_format"] == {"type": "json_object"}
    assert json.loads(request["messages"][1]["content"]) == {
        "seed": "NVIDIA", "topic": "AI GPUs", "layer": "seed",
    }
    system = request["messages"][0]["content"]
    assert "SupplyChain" in system
    assert "{roles}" not in system


def test_failures_become_none():
    failing = LLMProducers(model="m", client=fake_client(FakeCompletions(error=RuntimeError("503"))))
    assert failing.fetch_quotes(["NVIDIA"]) is None

    empty = LLMProducers(model="m", client=fake_client(FakeCompletions(content="")))
    assert empty.write_report({"nodes": []}) is None


def test_every_producer_method_returns_raw_text():
    completions = FakeCompletions(content='{"ok": true}')
    producers = LLMProducers(model="m", client=fake_client(completions))

    assert producers.infer_topic(["NVIDIA"]) == '{"ok": true}'
    assert producers.infer_seeds("EV Batteries") == '{"ok": true}'
    assert producers.extract_cross_links(["NVIDIA", "TSMC"], "AI") == '{"ok": true}'
    assert producers.enrich_qualitative([{"id": "nvidia"}], "AI") == '{"ok": true}'
    assert len(completions.requests) == 4


def test_parse_producer_json_variants():
    assert parse_producer_json({"a": 1}) == {"a": 1}
    assert parse_producer_json('{"a": 1}') == {"a": 1}
    assert parse_producer_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_producer_json('Here you go: {"a": {"b": 2}} hope it helps') == {"a": {"b": 2}}
    assert parse_producer_json("[1, 2]") == {}
    assert parse_producer_json("no json here") == {}
    assert parse_producer_json("{broken") == {}
    assert parse_producer_json(None) == {}
    assert parse_producer_json(42) == {}


def test_strip_fences():
    assert strip_fences('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences("plain") == "plain"
    assert strip_fences(None) == ""
