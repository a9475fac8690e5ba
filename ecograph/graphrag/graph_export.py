"""
Graph Export Module
===================
Hands the finished ``EcosystemGraph`` to durable storage.

* ``GraphExporter.write_json`` dumps the wire-shape graph under OUTPUT_DIR.
* ``Neo4jGraphWriter`` writes companies, relationships and citations to
  Neo4j with idempotent MERGE operations, so re-exporting the same build
  updates nodes in place instead of duplicating them.
"""

import json
import logging
import os
import re

from neo4j import Driver, GraphDatabase

from ecograph.core.config import settings
from ecograph.graphrag.models import EcosystemGraph

logger = logging.getLogger(__name__)

# ── Tuneable knobs ────────────────────────────────────────────────────
BATCH_SIZE = 200              # Neo4j UNWIND batch size
# ──────────────────────────────────────────────────────────────────────


class GraphExporter:
    """Writes graph JSON files under ``output_dir``."""

    def __init__(self, output_dir: str | None = None) -> None:
        self.output_dir = output_dir or settings.OUTPUT_DIR

    def write_json(self, graph: EcosystemGraph, name: str | None = None) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        file_name = f"graph_{_slugify(name or graph.topic or 'untitled')}.json"
        output_path = os.path.join(self.output_dir, file_name)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(graph.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info("Graph written to %s", output_path)
        return output_path


class Neo4jGraphWriter:
    """
    Writes one finished graph into Neo4j.

    Usage::

        with Neo4jGraphWriter() as writer:
            summary = writer.write(graph)
    """

    def __init__(
        self,
        neo4j_uri: str | None = None,
        neo4j_user: str | None = None,
        neo4j_password: str | None = None,
        driver: Driver | None = None,
    ) -> None:
        self._uri = neo4j_uri or settings.NEO4J_URI
        self._user = neo4j_user or settings.NEO4J_USER
        self._password = neo4j_password or settings.NEO4J_PASSWORD
        self.driver: Driver = driver or GraphDatabase.driver(
            self._uri, auth=(self._user, self._password),
        )

    # ── public API ────────────────────────────────────────────────────

    def write(self, graph: EcosystemGraph) -> dict:
        """Write constraints, companies, sources and relationships.  Returns counts."""
        self.ensure_constraints()
        summary = {
            "topic": graph.topic,
            "companies_written": self.write_companies(graph),
            "sources_written": self.write_sources(graph),
            "relationships_written": self.write_relationships(graph),
        }
        logger.info("Neo4j export complete: %s", summary)
        return summary

    def ensure_constraints(self) -> None:
        """Create uniqueness constraints so MERGE is efficient."""
        with self.driver.session() as session:
            session.run(
                "CREATE CONSTRAINT IF NOT EXISTS "
                "FOR (n:Company) REQUIRE n.entity_id IS UNIQUE"
            )
            session.run(
                "CREATE CONSTRAINT IF NOT EXISTS "
                "FOR (s:Source) REQUIRE s.url IS UNIQUE"
            )
        logger.info("Neo4j uniqueness constraints ensured.")

    def write_companies(self, graph: EcosystemGraph) -> int:
        rows = []
        for entity in graph.nodes:
            props = entity.to_dict()
            props.pop("id", None)
            rows.append({
                "entity_id": entity.id,
                "props": _clean_props(props),
                "topic": graph.topic,
            })

        total = 0
        with self.driver.session() as session:
            for batch in _make_batches(rows, BATCH_SIZE):
                session.run(
                    "UNWIND $rows AS row "
                    "MERGE (n:Company {entity_id: row.entity_id}) "
                    "SET n += row.props, n.topic = row.topic",
                    {"rows": batch},
                )
                total += len(batch)
        logger.info("Wrote %d company nodes.", total)
        return total

    def write_sources(self, graph: EcosystemGraph) -> int:
        rows = [_clean_props(s.to_dict()) for s in graph.sources]
        with self.driver.session() as session:
            for batch in _make_batches(rows, BATCH_SIZE):
                session.run(
                    "UNWIND $rows AS row "
                    "MERGE (s:Source {url: row.url}) "
                    "SET s.title = row.title, s.note = row.note",
                    {"rows": batch},
                )
        logger.info("Wrote %d source nodes.", len(rows))
        return len(rows)

    def write_relationships(self, graph: EcosystemGraph) -> int:
        """MERGE relationship edges; the type becomes the Neo4j relationship type."""
        urls = {s.id: s.url for s in graph.sources}
        total = 0
        with self.driver.session() as session:
            for rel in graph.links:
                props = rel.to_dict()
                params = {
                    "src_id": rel.source_id,
                    "tgt_id": rel.target_id,
                    "props": _clean_props({k: v for k, v in props.items()
                                           if k not in ("source", "target", "type")}),
                    "urls": [urls[i] for i in rel.evidence_ids if i in urls],
                }
                cypher = (
                    "MATCH (a:Company {entity_id: $src_id}), (b:Company {entity_id: $tgt_id}) "
                    f"MERGE (a)-[r:`{_rel_label(rel.type)}`]->(b) "
                    "SET r += $props, r.source_urls = $urls"
                )
                session.run(cypher, params)
                total += 1
        logger.info("Wrote %d relationships.", total)
        return total

    # ── context manager ───────────────────────────────────────────────

    def close(self) -> None:
        self.driver.close()
        logger.info("Neo4j driver closed.")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# ── Module-level helpers ─────────────────────────────────────────────

def _rel_label(rel_type: str) -> str:
    """SupplyChain → SUPPLY_CHAIN"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", rel_type).upper()


def _clean_props(props: dict) -> dict:
    """
    Sanitise property values for Neo4j.
    Neo4j cannot store None / nested dicts as property values.
    """
    clean: dict = {}
    for k, v in props.items():
        if v is None:
            continue
        if isinstance(v, dict):
            clean[k] = json.dumps(v)
        elif isinstance(v, list):
            # Neo4j supports homogeneous lists of primitives
            if all(isinstance(i, (str, int, float, bool)) for i in v):
                clean[k] = v
            else:
                clean[k] = json.dumps(v)
        else:
            clean[k] = v
    return clean


def _make_batches(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _slugify(text: str) -> str:
    """Convert text to a clean slug: lowercase, underscores, no special chars."""
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9]+", "_", text)
    text = text.strip("_")
    return text or "untitled"
