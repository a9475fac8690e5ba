"""
Evidence Ledger
===============
Validates the citation records of ONE producer response and remaps their
producer-local ids into the graph's global id space.

Every producer restarts its citation ids at 1, so two responses in the same
round can both declare "source 1" for unrelated articles.  The remap is
therefore done per response, at merge time, never globally.

Rules
-----
1. A citation survives only with a numeric local id and an http/https url.
   Anything else is dropped silently: noisy producers routinely emit
   unusable citations and that is not an error.
2. Survivors get global id ``graph max id + n`` (n = 1, 2, ...).
3. Relationship evidence lists are rewritten through the local→global map;
   a relationship left with no evidence is discarded.  No evidence, no edge.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

from ecograph.graphrag.models import Evidence

logger = logging.getLogger(__name__)

# producers have used both spellings for the citation list on a link
EVIDENCE_ID_KEYS = ("sourceIds", "evidenceIds", "source_ids", "evidence_ids")
SOURCE_KEYS = ("source", "sourceId", "source_id")
TARGET_KEYS = ("target", "targetId", "target_id")


def is_valid_url(url: Any) -> bool:
    """Syntactic http/https check; reachability is not probed."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def local_citation_id(record: Any) -> Optional[int]:
    """Numeric local id of a raw citation record, or None if it has none."""
    if not isinstance(record, dict):
        return None
    raw = record.get("id")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def valid_citation_ids(raw_sources: Any) -> set[int]:
    """Local ids of the citations in a raw response that pass rule 1."""
    ids: set[int] = set()
    if not isinstance(raw_sources, list):
        return ids
    for record in raw_sources:
        local_id = local_citation_id(record)
        if local_id is not None and is_valid_url(record.get("url")):
            ids.add(local_id)
    return ids


def raw_endpoint(raw_link: dict, keys: tuple[str, ...]) -> Any:
    """First non-empty endpoint reference under any of ``keys``."""
    for key in keys:
        if raw_link.get(key) not in (None, ""):
            return raw_link[key]
    return None


def raw_evidence_ids(raw_link: dict) -> list:
    for key in EVIDENCE_ID_KEYS:
        value = raw_link.get(key)
        if isinstance(value, list):
            return value
        if value is not None and not isinstance(value, (dict, str)):
            return [value]
    return []


@dataclass
class LedgerResult:
    """Output of one ledger pass."""
    citations: list[Evidence] = field(default_factory=list)
    id_map: dict[int, int] = field(default_factory=dict)          # local → global
    links: list[dict] = field(default_factory=list)               # raw links, evidence remapped
    dropped_citations: int = 0
    dropped_links: int = 0


class EvidenceLedger:
    """
    Stateless per-response remapper.

    Usage::

        result = EvidenceLedger(graph.max_evidence_id()).process(raw_sources, raw_links)
    """

    def __init__(self, current_max_id: int) -> None:
        self.current_max_id = current_max_id

    def process(self, raw_sources: Any, raw_links: Any) -> LedgerResult:
        result = LedgerResult()

        # ── Pass 1: validate citations, assign global ids ─────────────
        counter = 0
        for record in raw_sources if isinstance(raw_sources, list) else []:
            local_id = local_citation_id(record)
            if local_id is None or not is_valid_url(record.get("url")):
                result.dropped_citations += 1
                continue
            if local_id in result.id_map:
                # first declaration of a local id wins
                result.dropped_citations += 1
                continue
            counter += 1
            global_id = self.current_max_id + counter
            result.id_map[local_id] = global_id
            result.citations.append(Evidence(
                id=global_id,
                url=record["url"].strip(),
                title=str(record.get("title") or ""),
                note=str(record.get("note") or ""),
            ))

        # ── Pass 2: remap relationship evidence ───────────────────────
        for raw in raw_links if isinstance(raw_links, list) else []:
            if not isinstance(raw, dict):
                result.dropped_links += 1
                continue
            remapped: list[int] = []
            for ref in raw_evidence_ids(raw):
                local_id = local_citation_id({"id": ref})
                global_id = result.id_map.get(local_id) if local_id is not None else None
                if global_id is not None and global_id not in remapped:
                    remapped.append(global_id)
            if not remapped:
                result.dropped_links += 1
                continue
            result.links.append({**raw, "evidence_ids": remapped})

        if result.dropped_citations or result.dropped_links:
            logger.debug(
                "Evidence ledger: kept %d citations (%d dropped), %d links (%d dropped)",
                len(result.citations), result.dropped_citations,
                len(result.links), result.dropped_links,
            )
        return result
