"""
Field extraction: selector strategies, price parsing and result models.

``FieldExtractor`` is imported from :mod:`propcore.extractor.field_extractor`
directly; the site profiles import the strategy helpers from this package.
"""

from .models import NOT_AVAILABLE, TEXT_FIELDS, USEFUL_FIELDS, ExtractionRequest, ExtractionResult, is_present
from .strategies import SelectorStrategy, as_strategies, normalize_text, try_strategies

__all__ = [
    "NOT_AVAILABLE",
    "TEXT_FIELDS",
    "USEFUL_FIELDS",
    "ExtractionRequest",
    "ExtractionResult",
    "is_present",
    "SelectorStrategy",
    "as_strategies",
    "normalize_text",
    "try_strategies",
]
