"""
Graph data model
================
Strict internal types for the ecosystem graph.  Producer JSON never lands
here directly: it is lifted field-by-field by the merge engine.

``to_dict()`` on each type emits the camelCase wire shape the report and
UI collaborators consume.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Entity:
    id: str                        # canonical id, see identity.normalize_id
    display_name: str
    role: str = "Other"            # one of ENTITY_ROLES
    key_themes: list[str] = field(default_factory=list)   # set semantics, insertion ordered

    country: Optional[str] = None
    note: Optional[str] = None
    ticker: Optional[str] = None
    primary_exchange: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    size_bucket: Optional[str] = None
    growth_profile: Optional[str] = None
    risk_notes: Optional[str] = None
    latest_price: Optional[str] = None
    market_cap: Optional[str] = None
    revenue: Optional[str] = None
    net_income: Optional[str] = None
    layer: Optional[str] = None    # provenance: seed layer / expansion round

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.display_name,
            "role": self.role,
            "keyThemes": list(self.key_themes),
        }
        for attr, key in _ENTITY_WIRE_KEYS.items():
            value = getattr(self, attr)
            if value not in (None, ""):
                data[key] = value
        return data


@dataclass
class Relationship:
    source_id: str
    target_id: str
    type: str                      # one of RELATIONSHIP_TYPES
    evidence_ids: list[int] = field(default_factory=list)
    description: str = ""
    is_key_relationship: Optional[bool] = None
    evidence_strength: Optional[str] = None       # Confirmed | Speculative
    materiality: Optional[str] = None             # High | Medium | Low
    dependency_direction: Optional[str] = None    # OneWay | Mutual

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source_id, self.target_id, self.type)

    def to_dict(self) -> dict:
        data = {
            "source": self.source_id,
            "target": self.target_id,
            "type": self.type,
            "description": self.description,
            "sourceIds": list(self.evidence_ids),
        }
        optional = {
            "isKeyRelationship": self.is_key_relationship,
            "evidenceStrength": self.evidence_strength,
            "materiality": self.materiality,
            "dependencyDirection": self.dependency_direction,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class Evidence:
    id: int                        # graph-local, assigned at merge time
    url: str
    title: str = ""
    note: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "url": self.url, "note": self.note}


@dataclass(frozen=True)
class CompletenessSnapshot:
    """Derived, disposable view of graph quality.  Rebuilt after every round."""
    score: float
    seed_coverage: float
    role_diversity: float
    depth_reach: float
    source_density: float
    novelty: float
    under_covered_entities: list[dict] = field(default_factory=list)   # {id, name, degree}
    missing_roles: list[str] = field(default_factory=list)
    frontier_entities: list[dict] = field(default_factory=list)        # {id, name, role, depth, degree}
    recommended_seeds: list[str] = field(default_factory=list)
    high_impact_entities: list[dict] = field(default_factory=list)     # {id, name, degree}

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "subScores": {
                "seedCoverage": self.seed_coverage,
                "roleDiversity": self.role_diversity,
                "depthReach": self.depth_reach,
                "sourceDensity": self.source_density,
                "novelty": self.novelty,
            },
            "underCoveredEntities": [dict(e) for e in self.under_covered_entities],
            "missingRoles": list(self.missing_roles),
            "frontierEntities": [dict(e) for e in self.frontier_entities],
            "recommendedSeeds": list(self.recommended_seeds),
            "highImpactEntities": [dict(e) for e in self.high_impact_entities],
        }


@dataclass
class ResearchReport:
    theme_overview: str = ""
    key_players: list[dict] = field(default_factory=list)               # {nodeId, rationale}
    second_tier_beneficiaries: list[dict] = field(default_factory=list)  # {nodeId, rationale}
    risk_nodes: list[dict] = field(default_factory=list)                # {nodeId, riskFactor}
    suggested_next_steps: list[str] = field(default_factory=list)
    disclaimer: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> Optional["ResearchReport"]:
        """Lift an untrusted report payload; ``None`` if nothing usable is in it."""
        if not isinstance(payload, dict):
            return None

        def _entries(key: str, detail_key: str) -> list[dict]:
            entries = []
            for item in payload.get(key) or []:
                if isinstance(item, dict) and item.get("nodeId"):
                    entries.append({"nodeId": str(item["nodeId"]),
                                    detail_key: str(item.get(detail_key, ""))})
            return entries

        report = cls(
            theme_overview=str(payload.get("themeOverview") or ""),
            key_players=_entries("keyPlayers", "rationale"),
            second_tier_beneficiaries=_entries("secondTierBeneficiaries", "rationale"),
            risk_nodes=_entries("riskNodes", "riskFactor"),
            suggested_next_steps=[str(s) for s in payload.get("suggestedNextSteps") or []
                                  if isinstance(s, str) and s.strip()],
            disclaimer=str(payload.get("disclaimer") or ""),
        )
        if not report.theme_overview and not report.key_players:
            return None
        return report

    def to_dict(self) -> dict:
        return {
            "themeOverview": self.theme_overview,
            "keyPlayers": self.key_players,
            "secondTierBeneficiaries": self.second_tier_beneficiaries,
            "riskNodes": self.risk_nodes,
            "suggestedNextSteps": self.suggested_next_steps,
            "disclaimer": self.disclaimer,
        }


@dataclass
class EcosystemGraph:
    """The running graph.  Mutated in place by exactly one GraphMerger."""
    topic: str = ""
    summary: str = ""
    nodes: list[Entity] = field(default_factory=list)
    links: list[Relationship] = field(default_factory=list)
    sources: list[Evidence] = field(default_factory=list)
    completeness: Optional[CompletenessSnapshot] = None
    report: Optional[ResearchReport] = None

    def max_evidence_id(self) -> int:
        return max((s.id for s in self.sources), default=0)

    def to_dict(self) -> dict:
        data = {
            "topic": self.topic,
            "summary": self.summary,
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [l.to_dict() for l in self.links],
            "sources": [s.to_dict() for s in self.sources],
        }
        if self.completeness is not None:
            data["completeness"] = self.completeness.to_dict()
        if self.report is not None:
            data["report"] = self.report.to_dict()
        return data


# snake_case attribute → camelCase wire key
_ENTITY_WIRE_KEYS = {
    "country": "country",
    "note": "note",
    "ticker": "ticker",
    "primary_exchange": "primaryExchange",
    "sector": "sector",
    "industry": "industry",
    "size_bucket": "sizeBucket",
    "growth_profile": "growthProfile",
    "risk_notes": "riskNotes",
    "latest_price": "latestPrice",
    "market_cap": "marketCap",
    "revenue": "revenue",
    "net_income": "netIncome",
    "layer": "layer",
}

# inverse, used when lifting producer payloads
ENTITY_FIELD_ALIASES = {wire: attr for attr, wire in _ENTITY_WIRE_KEYS.items()}
ENTITY_FIELD_ALIASES.update({attr: attr for attr in _ENTITY_WIRE_KEYS})
