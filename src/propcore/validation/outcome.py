"""Shared result type for the response and content validators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ErrorKind


class ValidationReason(Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    SERVER_ERROR = "server_error"
    GENERIC_HTTP_ERROR = "generic_http_error"
    CONTENT_GONE = "content_gone"
    MISSING_TITLE = "missing_title"
    NO_USEFUL_FIELDS = "no_useful_fields"


@dataclass(frozen=True)
class ValidationOutcome:
    """``Valid`` when ``valid`` is True, otherwise ``Invalid(reason, diagnostics)``."""

    valid: bool
    reason: Optional[ValidationReason] = None
    kind: Optional[ErrorKind] = None
    message: str = ""
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def passed(cls, **diagnostics: Any) -> "ValidationOutcome":
        return cls(valid=True, diagnostics=diagnostics)

    @classmethod
    def failed(
        cls, reason: ValidationReason, kind: ErrorKind, message: str, **diagnostics: Any
    ) -> "ValidationOutcome":
        return cls(valid=False, reason=reason, kind=kind, message=message, diagnostics=diagnostics)

    def __bool__(self) -> bool:
        return self.valid
