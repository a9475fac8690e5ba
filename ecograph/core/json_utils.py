import json
import re
from typing import Any

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def strip_fences(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```"):
        nl = s.find("\n")
        if nl != -1:
            s = s[nl + 1:].strip()
        if s.endswith("```"):
            s = s[:-3].strip()
    return s


def parse_producer_json(raw: Any) -> dict:
    """
    Permissive parse of producer output.

    Accepts an already-decoded dict, a bare JSON string, a fenced code
    block, or prose wrapping one JSON object.  Returns ``{}`` when nothing
    object-shaped can be recovered; never raises.
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return {}

    for candidate in (raw, strip_fences(raw)):
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        return data if isinstance(data, dict) else {}

    match = _OBJECT_RE.search(raw)
    if not match:
        return {}
    try:
        data = json.loads(match.group(0))
    except (json.JSONDecodeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}
