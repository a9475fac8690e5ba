"""
Quality-Gated Call Wrapper
==========================
Producers are probabilistic: calling one twice with identical input often
yields a materially different, better-evidenced answer.  This wrapper
re-invokes a producer up to ``MAX_ATTEMPTS`` times, scores every attempt
with a cheap heuristic and keeps the best one.

Score = number of relationship records that name a source, a target and a
type AND reference at least one citation that would survive the Evidence
Ledger.  Calling stops early once the score reaches ``min_links``.
With ``max_links`` set, the winning payload keeps only its first
``max_links`` scoring records; non-scoring records never count against it.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ecograph.core.json_utils import parse_producer_json
from ecograph.graphrag.evidence import (
    SOURCE_KEYS,
    TARGET_KEYS,
    local_citation_id,
    raw_endpoint,
    raw_evidence_ids,
    valid_citation_ids,
)

logger = logging.getLogger(__name__)

# ── Tuneable knobs ────────────────────────────────────────────────────
MAX_ATTEMPTS = 3
EGO_NETWORK_MIN_LINKS = 5
CROSS_LINK_MIN_LINKS = 10
CROSS_LINK_MAX_LINKS = 20
# ──────────────────────────────────────────────────────────────────────


@dataclass
class AttemptResult:
    """Best attempt of one gated call."""
    payload: dict            # parsed response, {} if every attempt failed
    score: int
    attempts: int


def _is_valid_link(link, valid_ids: set[int]) -> bool:
    if not isinstance(link, dict) or not link.get("type"):
        return False
    if raw_endpoint(link, SOURCE_KEYS) is None or raw_endpoint(link, TARGET_KEYS) is None:
        return False
    refs = {local_citation_id({"id": ref}) for ref in raw_evidence_ids(link)}
    return bool(refs & valid_ids)


def valid_link_count(payload: dict) -> int:
    """Count relationship records that are complete and cite a usable source."""
    if not isinstance(payload, dict):
        return 0
    links = payload.get("links")
    if not isinstance(links, list):
        return 0
    valid_ids = valid_citation_ids(payload.get("sources"))
    return sum(1 for link in links if _is_valid_link(link, valid_ids))


def cap_valid_links(payload: dict, max_links: int) -> dict:
    """Keep only the first ``max_links`` relationship records that would score."""
    links = payload.get("links")
    if not isinstance(links, list):
        return payload
    valid_ids = valid_citation_ids(payload.get("sources"))
    kept = [link for link in links if _is_valid_link(link, valid_ids)]
    return {**payload, "links": kept[:max_links]}


class QualityGatedCall:
    """
    Best-of-N wrapper around one producer invocation.

    ``call`` is any zero-argument callable returning raw producer text (or
    None on failure); tests inject canned per-attempt responses through it.

    Usage::

        gate = QualityGatedCall(min_links=EGO_NETWORK_MIN_LINKS, label="ego:NVIDIA")
        best = gate.run(lambda: producers.extract_ego_network("NVIDIA", topic, "seed"))
    """

    def __init__(
        self,
        min_links: int,
        max_attempts: int = MAX_ATTEMPTS,
        max_links: Optional[int] = None,
        label: str = "producer",
    ) -> None:
        self.min_links = min_links
        self.max_attempts = max_attempts
        self.max_links = max_links
        self.label = label

    def run(self, call: Callable[[], Optional[str]]) -> AttemptResult:
        best: dict = {}
        best_score = -1
        attempts = 0

        for attempt in range(1, self.max_attempts + 1):
            attempts = attempt
            try:
                raw = call()
            except Exception as exc:
                # a failed call is an empty response, never fatal
                logger.error("%s attempt %d failed: %s", self.label, attempt, exc)
                raw = None

            payload = parse_producer_json(raw)
            score = valid_link_count(payload)
            logger.info("%s attempt %d/%d → %d valid links",
                        self.label, attempt, self.max_attempts, score)

            if score > best_score:
                best, best_score = payload, score
            if best_score >= self.min_links:
                break

        if self.max_links is not None:
            best = cap_valid_links(best, self.max_links)

        return AttemptResult(payload=best, score=max(best_score, 0), attempts=attempts)
