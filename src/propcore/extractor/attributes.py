"""
Bedroom, bathroom and surface recovery.

The three numeric attributes are read from, in order: their own field
selectors, the portal's attribute list, the characteristics table, and
finally a regex sweep over free text.
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from ..protocols import ElementLike
from .strategies import normalize_text

logger = structlog.get_logger(__name__)

ATTRIBUTES: Tuple[str, ...] = ("dormitorios", "banos", "superficie")

# Checked in order; one text item fills at most one attribute.
ATTRIBUTE_KEYWORDS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("dormitorios", re.compile(r"dormitorio|habitaci[oó]n|\bdorms?\b", re.IGNORECASE)),
    ("banos", re.compile(r"\bbaños?\b|\bbanos?\b", re.IGNORECASE)),
    ("superficie", re.compile(r"m²|\bm2\b|superficie", re.IGNORECASE)),
)

TEXT_PATTERNS: Mapping[str, re.Pattern] = {
    "dormitorios": re.compile(r"(\d+)\s*(?:dormitorios?|habitaciones?|dorms?\b)", re.IGNORECASE),
    "banos": re.compile(r"(\d+)\s*(?:baños?|banos?)\b", re.IGNORECASE),
    "superficie": re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:m²|m2\b|mts2?\b|metros cuadrados)", re.IGNORECASE),
}


def match_attribute_texts(texts: Sequence[str], found: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Assign attribute-list texts ("3 dormitorios", "120 m² útiles") by keyword."""
    found = dict(found or {})
    for raw in texts:
        text = normalize_text(raw)
        if not text:
            continue
        for name, pattern in ATTRIBUTE_KEYWORDS:
            if pattern.search(text):
                if name not in found:
                    found[name] = text
                break
    return found


async def collect_attribute_texts(scope: ElementLike, selectors: Sequence[str]) -> Dict[str, str]:
    """Walk attribute-list selectors until all three attributes are filled."""
    found: Dict[str, str] = {}
    for selector in selectors:
        try:
            elements = await scope.query_selector_all(selector)
            texts: List[str] = [await element.text_content() or "" for element in elements]
        except Exception as e:
            logger.debug("Attribute list selector failed", selector=selector, error=str(e))
            continue
        found = match_attribute_texts(texts, found)
        if all(name in found for name in ATTRIBUTES):
            break
    return found


def format_attribute(name: str, value: str) -> str:
    """Render a bare count or surface ("3", "120") with its unit."""
    value = normalize_text(value)
    if not re.fullmatch(r"\d+(?:[.,]\d+)?", value):
        return value
    if name == "dormitorios":
        return f"{value} dormitorio" if value == "1" else f"{value} dormitorios"
    if name == "banos":
        return f"{value} baño" if value == "1" else f"{value} baños"
    if name == "superficie":
        return f"{value} m²"
    return value


def from_characteristics(characteristics: Mapping[str, str]) -> Dict[str, str]:
    found: Dict[str, str] = {}
    for name in ATTRIBUTES:
        value = characteristics.get(name)
        if name == "superficie" and not value:
            value = characteristics.get("superficie_util")
        if value:
            found[name] = format_attribute(name, value)
    return found


def recover_from_text(*texts: Optional[str]) -> Dict[str, str]:
    """Regex recovery over free text, first text to match an attribute wins."""
    found: Dict[str, str] = {}
    for text in texts:
        if not text:
            continue
        for name, pattern in TEXT_PATTERNS.items():
            if name in found:
                continue
            match = pattern.search(text)
            if match:
                found[name] = format_attribute(name, match.group(1))
    return found
