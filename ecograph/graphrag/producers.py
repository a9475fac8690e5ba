"""
Producers
=========
The external text generators the graph build consumes.  Every method
returns the producer's raw text, or None when the call failed; nothing
here validates output.  Parsing and trust decisions belong to the merge
engine, the evidence ledger and the quality gate.

``Producers`` is the interface the controller and pipeline depend on;
``LLMProducers`` implements it on an OpenAI-compatible endpoint.  Tests
substitute their own implementation with canned responses.
"""

import json
import logging
from typing import Optional, Protocol

from ecograph.core.config import settings
from ecograph.core.openrouter import get_client
from ecograph.core.prompts import (
    cross_link_system_prompt,
    ego_network_system_prompt,
    qualitative_enrichment_system_prompt,
    quote_lookup_system_prompt,
    report_system_prompt,
    seed_inference_system_prompt,
    topic_inference_system_prompt,
)
from ecograph.domain.ontology import ENTITY_ROLES, RELATIONSHIP_TYPES

logger = logging.getLogger(__name__)


class Producers(Protocol):
    def infer_topic(self, seeds: list[str]) -> Optional[str]: ...

    def infer_seeds(self, topic: str) -> Optional[str]: ...

    def extract_ego_network(self, seed: str, topic: str, layer: Optional[str]) -> Optional[str]: ...

    def extract_cross_links(self, node_names: list[str], topic: str) -> Optional[str]: ...

    def fetch_quotes(self, names: list[str]) -> Optional[str]: ...

    def enrich_qualitative(self, nodes: list[dict], topic: str) -> Optional[str]: ...

    def write_report(self, graph_payload: dict) -> Optional[str]: ...


class LLMProducers:
    """
    Chat-completions backed producers.

    Usage::

        producers = LLMProducers()
        raw = producers.extract_ego_network("NVIDIA", "AI GPU Server Supply Chain", None)
    """

    def __init__(self, model: str | None = None, client=None) -> None:
        self.model = model or settings.MODEL_NAME
        self._client = client

        roles = json.dumps([r for r in ENTITY_ROLES if r != "Other"])
        rel_types = json.dumps(RELATIONSHIP_TYPES)
        self.ego_network_prompt = ego_network_system_prompt.format(
            roles=roles, relationship_types=rel_types,
        )
        self.cross_link_prompt = cross_link_system_prompt.format(
            relationship_types=rel_types,
        )

    # ── Input resolution ──────────────────────────────────────────────

    def infer_topic(self, seeds: list[str]) -> Optional[str]:
        return self._call_llm(topic_inference_system_prompt, json.dumps(seeds), "infer_topic")

    def infer_seeds(self, topic: str) -> Optional[str]:
        return self._call_llm(seed_inference_system_prompt, topic, "infer_seeds", temperature=0.3)

    # ── Graph extraction ──────────────────────────────────────────────

    def extract_ego_network(self, seed: str, topic: str, layer: Optional[str]) -> Optional[str]:
        payload = json.dumps({"seed": seed, "topic": topic, "layer": layer})
        return self._call_llm(self.ego_network_prompt, payload, f"ego_network:{seed}")

    def extract_cross_links(self, node_names: list[str], topic: str) -> Optional[str]:
        payload = json.dumps({"nodes": node_names, "topic": topic})
        return self._call_llm(self.cross_link_prompt, payload, "cross_links")

    # ── Enrichment ────────────────────────────────────────────────────

    def fetch_quotes(self, names: list[str]) -> Optional[str]:
        return self._call_llm(quote_lookup_system_prompt, json.dumps(names), "quotes")

    def enrich_qualitative(self, nodes: list[dict], topic: str) -> Optional[str]:
        payload = json.dumps({"nodes": nodes, "topic": topic})
        return self._call_llm(qualitative_enrichment_system_prompt, payload, "enrichment")

    def write_report(self, graph_payload: dict) -> Optional[str]:
        return self._call_llm(report_system_prompt, json.dumps(graph_payload), "report", temperature=0.3)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _call_llm(
        self,
        system_prompt: str,
        user_message: str,
        label: str,
        temperature: float = 0.1,
    ) -> Optional[str]:
        client = self._client or get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
        except Exception as exc:
            logger.error("LLM call failed for %s: %s", label, exc)
            return None
        if not content:
            logger.warning("LLM returned empty content for %s", label)
            return None
        return content
