"""
Identity normalisation for company names.

Producers refer to the same company as "NVIDIA Inc.", "nvidia, inc" or
plain "NVIDIA".  Everything that becomes a node id goes through
``normalize_id`` so all of those collapse onto ``"nvidia"``.
"""

import re

from ecograph.domain.ontology import GENERIC_NAME_TERMS, LEGAL_SUFFIXES

_PUNCTUATION_RE = re.compile(r"[,.'\"]")
_SUFFIX_RE = re.compile(r"\b(?:" + "|".join(LEGAL_SUFFIXES) + r")\b")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_id(name: str | None) -> str:
    """
    Canonical id for a free-text entity name.

    Returns ``""`` for empty input; callers must treat that as a rejection.
    """
    if not name:
        return ""
    text = _PUNCTUATION_RE.sub(" ", str(name).lower())
    text = _SUFFIX_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def is_generic_name(name: str | None) -> bool:
    """True when ``name`` names a category ("cloud providers") instead of a company."""
    normalized = normalize_id(name)
    if not normalized:
        return False
    return any(term == normalized or term in normalized for term in GENERIC_NAME_TERMS)
