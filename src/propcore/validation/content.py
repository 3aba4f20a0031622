"""
Semantic post-check on an extraction result.

A result is accepted iff it has a title and at least one useful field.
The number of useful fields found is always reported for observability.
"""

from __future__ import annotations

from typing import Optional

import structlog

from ..errors import DEFAULT_MESSAGES, ErrorKind
from ..extractor.models import ExtractionResult
from ..portals.profiles import SiteProfile
from .outcome import ValidationOutcome, ValidationReason

logger = structlog.get_logger(__name__)


class ContentValidator:
    def __init__(self) -> None:
        self.logger = logger.bind(component="content_validator")

    def validate(self, result: ExtractionResult, profile: Optional[SiteProfile] = None) -> ValidationOutcome:
        useful = result.useful_fields()
        diagnostics = {
            "useful_fields_found": len(useful),
            "useful_fields": list(useful),
            "has_title": result.title is not None,
        }
        if profile is not None and result.title:
            text = " ".join(str(result.get(name, "")) for name in ("titulo", "descripcion")).lower()
            diagnostics["property_markers"] = sum(1 for marker in profile.property_markers if marker in text)

        if result.title is None:
            self.logger.info("Content rejected: no title", url=result.url, **diagnostics)
            return ValidationOutcome.failed(
                ValidationReason.MISSING_TITLE,
                ErrorKind.NOT_A_PROPERTY_PAGE,
                DEFAULT_MESSAGES[ErrorKind.NOT_A_PROPERTY_PAGE],
                **diagnostics,
            )

        if not useful:
            self.logger.info("Content rejected: no useful fields", url=result.url, **diagnostics)
            return ValidationOutcome.failed(
                ValidationReason.NO_USEFUL_FIELDS,
                ErrorKind.INSUFFICIENT_DATA,
                DEFAULT_MESSAGES[ErrorKind.INSUFFICIENT_DATA],
                **diagnostics,
            )

        return ValidationOutcome.passed(**diagnostics)
