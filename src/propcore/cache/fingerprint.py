"""Deterministic request fingerprints used as cache keys."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping, Optional


def canonical_json(value: Any) -> str:
    """Stable JSON: sorted keys, no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint(
    category: str,
    *,
    method: str = "GET",
    url: str = "",
    body: Any = None,
    query: Optional[Mapping[str, Any]] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> str:
    """Key for a normalized request, ``{category}_{md5}``.

    Equal requests always map to the same key regardless of mapping order.
    """
    payload = {
        "method": method.upper(),
        "url": url,
        "body": body or {},
        "query": dict(query or {}),
        "params": dict(params or {}),
    }
    digest = hashlib.md5(canonical_json(payload).encode("utf-8")).hexdigest()
    return f"{category}_{digest}"
