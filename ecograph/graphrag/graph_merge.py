"""
Canonical Merge Engine
======================
Folds producer responses into the running ``EcosystemGraph``.

All graph mutation goes through ``GraphMerger`` so the invariants live in
one place:

* exactly one entity per canonical id (see ``identity.normalize_id``);
* roles are only ever promoted to ``Core``, never demoted;
* optional scalar fields are first-write-wins, key themes are unioned;
* a relationship needs two known endpoints, a known type and at least one
  citation that survived the Evidence Ledger;
* ``(source, target, type)`` is unique; later duplicates are dropped.

Entity resolution strategy
--------------------------
The canonical id is always derived from the entity's name; a producer's own
``id`` is only used when the record carries no name.

1. **Response-local ids** – producers label nodes ``n1``, ``n2``, ... and
   restart in every response.  Those ids are mapped to canonical ids for the
   duration of one ``merge_response`` call only, so links inside that
   response can use them and later responses reusing them cannot collide.
2. **Name alias table** – every display name seen on a merged entity is
   remembered for the lifetime of the merger.
3. **Normalised name** – otherwise the raw string is normalised directly.
4. **Fuzzy name match** (enrichment updates only) – keys that still do not
   resolve are matched against display names with RapidFuzz
   ``token_sort_ratio`` ≥ FUZZY_THRESHOLD.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from rapidfuzz import fuzz

from ecograph.core.json_utils import parse_producer_json
from ecograph.domain.ontology import DEFAULT_ROLE, ENTITY_ROLES, RELATIONSHIP_TYPES
from ecograph.graphrag.evidence import SOURCE_KEYS, TARGET_KEYS, EvidenceLedger, raw_endpoint
from ecograph.graphrag.identity import is_generic_name, normalize_id
from ecograph.graphrag.models import (
    ENTITY_FIELD_ALIASES,
    EcosystemGraph,
    Entity,
    Relationship,
)

logger = logging.getLogger(__name__)

# ── Tuneable knobs ────────────────────────────────────────────────────
FUZZY_THRESHOLD = 88          # token_sort_ratio score to treat names as same entity
PLACEHOLDER_VALUES = {"unknown", "n/a", "na", "none", "null", "-"}
# ──────────────────────────────────────────────────────────────────────

_ROLE_LOOKUP = {r.lower(): r for r in ENTITY_ROLES}
_TYPE_LOOKUP = {t.lower(): t for t in RELATIONSHIP_TYPES}
_NAME_KEYS = ("name", "displayName", "display_name")


@dataclass
class MergeStats:
    """Counts for one merged producer response."""
    entities_added: int = 0
    entities_merged: int = 0
    entities_rejected: int = 0
    links_added: int = 0
    links_rejected: int = 0
    sources_added: int = 0
    sources_dropped: int = 0

    def __iadd__(self, other: "MergeStats") -> "MergeStats":
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(self, name) + getattr(other, name))
        return self


class GraphMerger:
    """
    Single owner of an ``EcosystemGraph``.

    Usage::

        merger = GraphMerger()
        merger.merge_response(raw_json_string, layer="seed", core_names=["NVIDIA"])
        graph = merger.graph
    """

    def __init__(
        self,
        graph: Optional[EcosystemGraph] = None,
        fuzzy_threshold: int = FUZZY_THRESHOLD,
    ) -> None:
        self.graph = graph if graph is not None else EcosystemGraph()
        self.threshold = fuzzy_threshold
        # canonical_id → live Entity
        self._index: dict[str, Entity] = {e.id: e for e in self.graph.nodes}
        # display name → canonical_id; producer-local ids never land here
        self._aliases: dict[str, str] = {}
        self._link_keys: set[tuple[str, str, str]] = {l.key for l in self.graph.links}
        self._evidence_ids: set[int] = {s.id for s in self.graph.sources}

    # ── lookups ───────────────────────────────────────────────────────

    def get(self, canonical_id: str) -> Optional[Entity]:
        return self._index.get(canonical_id)

    def has_entity(self, canonical_id: str) -> bool:
        return canonical_id in self._index

    # ── public API ────────────────────────────────────────────────────

    def merge_response(
        self,
        raw: Any,
        *,
        layer: Optional[str] = None,
        core_names: Iterable[str] = (),
        is_key_relationship: Optional[bool] = None,
    ) -> MergeStats:
        """
        Merge one producer response (raw string or decoded dict).

        Citations are remapped first, then entities, then relationships,
        so links inside the response can reference nodes it declares.
        """
        payload = parse_producer_json(raw)
        stats = MergeStats()
        if not payload:
            return stats

        ledger = EvidenceLedger(self.graph.max_evidence_id()).process(
            payload.get("sources"), payload.get("links"),
        )
        for citation in ledger.citations:
            self.graph.sources.append(citation)
            self._evidence_ids.add(citation.id)
        stats.sources_added = len(ledger.citations)
        stats.sources_dropped = ledger.dropped_citations
        stats.links_rejected += ledger.dropped_links

        core_ids = {normalize_id(n) for n in core_names} - {""}
        # producer-local node id → canonical id, valid for this response only
        local_ids: dict[str, str] = {}
        raw_nodes = payload.get("nodes")
        for record in raw_nodes if isinstance(raw_nodes, list) else []:
            existed = self._resolve_entity_id(record, local_ids) in self._index
            entity = self.merge_entity(record, layer=layer, core_ids=core_ids, local_ids=local_ids)
            if entity is None:
                stats.entities_rejected += 1
            elif existed:
                stats.entities_merged += 1
            else:
                stats.entities_added += 1

        for record in ledger.links:
            if self.add_relationship(record, is_key_relationship=is_key_relationship, local_ids=local_ids):
                stats.links_added += 1
            else:
                stats.links_rejected += 1

        return stats

    def merge_entity(
        self,
        record: Any,
        *,
        layer: Optional[str] = None,
        core_ids: Iterable[str] = (),
        local_ids: Optional[dict[str, str]] = None,
    ) -> Optional[Entity]:
        """
        Insert or merge one raw node record.  Returns the live entity, or
        None if the record names a category or has no usable name.

        When ``local_ids`` is given, the record's producer id is recorded in
        it so links from the same response can refer to the entity.
        """
        if not isinstance(record, dict):
            return None
        raw_id = _clean_str(record.get("id"))
        name = _first_str(record, _NAME_KEYS)
        if is_generic_name(raw_id) or is_generic_name(name):
            logger.debug("Rejecting generic entity name %r / %r", raw_id, name)
            return None

        canonical_id = self._resolve_entity_id(record, local_ids)
        if not canonical_id:
            return None

        role = _lift_role(record.get("role"))
        if canonical_id in set(core_ids):
            role = "Core"

        entity = self._index.get(canonical_id)
        if entity is None:
            entity = Entity(
                id=canonical_id,
                display_name=name or raw_id,
                role=role,
                layer=layer,
            )
            self._fill(entity, record)
            self._index[canonical_id] = entity
            self.graph.nodes.append(entity)
        else:
            if role == "Core":
                entity.role = "Core"
            if entity.layer is None and layer:
                entity.layer = layer
            self._fill(entity, record)

        self._aliases.setdefault(name or raw_id, canonical_id)
        if local_ids is not None and raw_id:
            local_ids.setdefault(raw_id, canonical_id)
        return entity

    def map_to_canonical_id(self, raw_ref: Any, local_ids: Optional[dict[str, str]] = None) -> str:
        """
        Resolve a raw endpoint reference (string, dict or object exposing
        ``id``/``name``) to a canonical id.  Returns ``""`` for generic or
        empty references.

        ``local_ids`` holds the producer ids declared by the response being
        merged; they take precedence over the name alias table.
        """
        local_ids = local_ids or {}
        if isinstance(raw_ref, dict):
            name = _first_str(raw_ref, _NAME_KEYS)
            raw_id = _clean_str(raw_ref.get("id"))
            if name:
                return self._canonical_from_name(name)
            if raw_id in local_ids:
                return local_ids[raw_id]
            raw = raw_id
        elif isinstance(raw_ref, str):
            raw = raw_ref.strip()
            if raw in local_ids:
                return local_ids[raw]
        else:
            raw = _clean_str(getattr(raw_ref, "id", None)) or _clean_str(getattr(raw_ref, "name", None))
        return self._canonical_from_name(raw)

    def add_relationship(
        self,
        record: Any,
        *,
        is_key_relationship: Optional[bool] = None,
        local_ids: Optional[dict[str, str]] = None,
    ) -> Optional[Relationship]:
        """
        Admit one relationship whose ``evidence_ids`` were already remapped
        by the Evidence Ledger.  Returns the new edge or None if rejected.
        """
        if not isinstance(record, dict):
            return None

        rel_type = _TYPE_LOOKUP.get(str(record.get("type") or "").strip().lower())
        if rel_type is None:
            logger.warning("Skipping unknown relationship type '%s'", record.get("type"))
            return None

        source_id = self.map_to_canonical_id(raw_endpoint(record, SOURCE_KEYS), local_ids)
        target_id = self.map_to_canonical_id(raw_endpoint(record, TARGET_KEYS), local_ids)
        if not source_id or not target_id:
            return None
        if source_id not in self._index or target_id not in self._index:
            logger.debug("Dropping link %s → %s: unknown endpoint", source_id, target_id)
            return None
        if source_id == target_id:
            return None

        evidence_ids = [i for i in record.get("evidence_ids") or [] if i in self._evidence_ids]
        if not evidence_ids:
            return None

        key = (source_id, target_id, rel_type)
        if key in self._link_keys:
            return None

        flag = record.get("isKeyRelationship")
        rel = Relationship(
            source_id=source_id,
            target_id=target_id,
            type=rel_type,
            evidence_ids=evidence_ids,
            description=_clean_str(record.get("description")),
            is_key_relationship=is_key_relationship if is_key_relationship is not None
            else (flag if isinstance(flag, bool) else None),
            evidence_strength=_clean_str(record.get("evidenceStrength")) or None,
            materiality=_clean_str(record.get("materiality")) or None,
            dependency_direction=_clean_str(record.get("dependencyDirection")) or None,
        )
        self._link_keys.add(key)
        self.graph.links.append(rel)
        return rel

    def apply_updates(self, updates: Any) -> int:
        """
        Fold enrichment updates ``{name_or_id: {field: value}}`` into live
        entities.  Returns the number of entities touched.
        """
        if not isinstance(updates, dict):
            return 0
        touched = 0
        for key, fields in updates.items():
            if not isinstance(fields, dict):
                continue
            entity = self._match_entity(str(key))
            if entity is None:
                logger.debug("Update for unknown entity %r ignored", key)
                continue
            if set(fields) <= {"note"}:
                # per-name lookup failure, e.g. {"note": "ticker_not_found"}
                logger.debug("No data for %s: %s", entity.id, fields.get("note"))
                continue
            self._fill(entity, fields)
            touched += 1
        return touched

    # ── private helpers ───────────────────────────────────────────────

    def _resolve_entity_id(self, record: Any, local_ids: Optional[dict[str, str]] = None) -> str:
        """Name first; a bare producer id only when the record has no name."""
        if not isinstance(record, dict):
            return ""
        name = _first_str(record, _NAME_KEYS)
        if name:
            return self._canonical_from_name(name)
        raw_id = _clean_str(record.get("id"))
        if local_ids and raw_id in local_ids:
            return local_ids[raw_id]
        return self._canonical_from_name(raw_id)

    def _canonical_from_name(self, raw: str) -> str:
        if not raw or is_generic_name(raw):
            return ""
        return self._aliases.get(raw) or normalize_id(raw)

    def _match_entity(self, key: str) -> Optional[Entity]:
        """Return the entity an update key refers to, or None."""
        entity = self._index.get(self.map_to_canonical_id(key))
        if entity is not None:
            return entity

        best: Optional[Entity] = None
        best_score = 0.0
        for candidate in self._index.values():
            score = fuzz.token_sort_ratio(key.lower(), candidate.display_name.lower())
            if score >= self.threshold and score > best_score:
                best, best_score = candidate, score
        if best is not None:
            logger.info(
                "Entity resolution: update key '%s' ≈ '%s' (id=%s)  score=%d",
                key, best.display_name, best.id, best_score,
            )
        return best

    @staticmethod
    def _fill(entity: Entity, record: dict) -> None:
        """First-write-wins for scalars, union for key themes."""
        for key, value in record.items():
            attr = ENTITY_FIELD_ALIASES.get(key)
            if attr is None or getattr(entity, attr) not in (None, ""):
                continue
            lifted = _lift_scalar(value)
            if lifted:
                setattr(entity, attr, lifted)

        themes = record.get("keyThemes", record.get("key_themes"))
        if isinstance(themes, str):
            themes = [themes]
        for theme in themes if isinstance(themes, list) else []:
            tag = _clean_str(theme)
            if tag and tag not in entity.key_themes:
                entity.key_themes.append(tag)


# ── Module-level helpers ─────────────────────────────────────────────

def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _first_str(record: dict, keys: Iterable[str]) -> str:
    for key in keys:
        value = _clean_str(record.get(key))
        if value:
            return value
    return ""


def _lift_role(raw: Any) -> str:
    return _ROLE_LOOKUP.get(_clean_str(raw).lower(), DEFAULT_ROLE)


def _lift_scalar(value: Any) -> str:
    """Scalar display value as a string; "" for placeholders and non-scalars."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return ""
    text = str(value).strip()
    if text.lower() in PLACEHOLDER_VALUES:
        return ""
    return text
