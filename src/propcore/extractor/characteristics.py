"""
Label/value characteristics tables ("Dormitorios: 3", "Superficie total: 120 m²").

Several regions of a page may describe the same property; they are read in
profile order and the first region to define a label keeps it.
"""

from __future__ import annotations

import re
from typing import Dict, Optional, Sequence

import structlog

from ..protocols import ElementLike
from .strategies import normalize_text

logger = structlog.get_logger(__name__)

LABEL_ALIASES: Dict[str, str] = {
    "dormitorios": "dormitorios",
    "dormitorio": "dormitorios",
    "habitaciones": "dormitorios",
    "baños": "banos",
    "baño": "banos",
    "banos": "banos",
    "superficie total": "superficie",
    "superficie": "superficie",
    "superficie útil": "superficie_util",
    "superficie construida": "superficie_util",
    "cantidad de pisos": "pisos",
    "número de piso de la unidad": "piso",
    "estacionamientos": "estacionamientos",
    "bodegas": "bodegas",
    "jardín": "jardin",
    "antigüedad": "antiguedad",
    "con condominio cerrado": "condominio_cerrado",
    "gastos comunes": "gastos_comunes",
    "orientación": "orientacion",
    "tipo de inmueble": "tipo",
}

_NON_KEY = re.compile(r"[^\w]+")


def normalize_label(label: str) -> str:
    """Map a visible label to a stable snake_case key."""
    text = normalize_text(label).rstrip(":").strip().lower()
    if text in LABEL_ALIASES:
        return LABEL_ALIASES[text]
    return _NON_KEY.sub("_", text).strip("_")


async def _text_of(element: Optional[ElementLike]) -> str:
    if element is None:
        return ""
    return normalize_text(await element.text_content())


async def _read_row(row: ElementLike, region) -> Optional[tuple]:
    if region.key_selector:
        key = await _text_of(await row.query_selector(region.key_selector))
        value = ""
        if region.value_selector:
            value = await _text_of(await row.query_selector(region.value_selector))
        return (key, value) if key and value else None

    text = await _text_of(row)
    if region.separator not in text:
        return None
    key, _, value = text.partition(region.separator)
    key, value = key.strip(), value.strip()
    return (key, value) if key and value else None


async def extract_characteristics(scope: ElementLike, regions: Sequence) -> Dict[str, str]:
    """Merge every characteristics region into one label→value map."""
    merged: Dict[str, str] = {}
    for region in regions:
        try:
            rows = await scope.query_selector_all(region.row_selector)
        except Exception as e:
            logger.debug("Characteristics region failed", selector=region.row_selector, error=str(e))
            continue

        for row in rows:
            try:
                pair = await _read_row(row, region)
            except Exception as e:
                logger.debug("Characteristics row failed", selector=region.row_selector, error=str(e))
                continue
            if pair is None:
                continue
            label = normalize_label(pair[0])
            if label and label not in merged:
                merged[label] = pair[1]

    return merged
