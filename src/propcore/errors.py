"""
Error taxonomy and exception hierarchy for PropCore.

Every page-level failure leaves the core as exactly one :class:`ErrorRecord`
whose ``kind`` is a member of the closed :class:`ErrorKind` enum. The
exceptions below are raised inside the core and converted at the pipeline
boundary by :class:`propcore.recovery.ErrorClassifier`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(Enum):
    """Closed failure taxonomy, each member with a caller-facing status code."""

    INVALID_URL = ("InvalidUrl", 400)
    NOT_FOUND = ("NotFound", 404)
    FORBIDDEN = ("Forbidden", 403)
    TIMEOUT = ("Timeout", 408)
    NOT_A_PROPERTY_PAGE = ("NotAPropertyPage", 422)
    INSUFFICIENT_DATA = ("InsufficientData", 422)
    INTERNAL = ("Internal", 500)

    def __init__(self, label: str, status_code: int) -> None:
        self.label = label
        self.status_code = status_code


DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.INVALID_URL: "URL inválida",
    ErrorKind.NOT_FOUND: "La propiedad no existe o la publicación ya no está disponible",
    ErrorKind.FORBIDDEN: "El portal denegó el acceso a la página",
    ErrorKind.TIMEOUT: "Tiempo de espera agotado al cargar la página",
    ErrorKind.NOT_A_PROPERTY_PAGE: "La página no corresponde a una propiedad",
    ErrorKind.INSUFFICIENT_DATA: "No se pudo extraer información suficiente de la propiedad",
    ErrorKind.INTERNAL: "Error interno durante la extracción",
}


@dataclass(frozen=True)
class ErrorRecord:
    """Classified failure returned to callers in place of a result."""

    kind: ErrorKind
    message: str
    url: Optional[str] = None
    causes: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "type": self.kind.label,
            "status_code": self.status_code,
            "timestamp": self.timestamp,
        }
        if self.url:
            payload["url"] = self.url
        if self.causes:
            payload["causes"] = list(self.causes)
        if self.details:
            payload["details"] = dict(self.details)
        return payload


# ============================================================================
# Exceptions
# ============================================================================


class PropCoreError(Exception):
    """Base class for failures raised inside the acquisition core.

    ``kind`` is set when the raiser already knows the taxonomy member;
    the classifier trusts it over any text matching.
    """

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str, *, url: Optional[str] = None, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        if kind is not None:
            self.kind = kind


class InvalidUrlError(PropCoreError):
    kind = ErrorKind.INVALID_URL


class InvalidCriteriaError(PropCoreError, ValueError):
    """Search criteria rejected before the core is entered."""

    def __init__(self, message: str, *, parameter: Optional[str] = None) -> None:
        super().__init__(message, kind=ErrorKind.INVALID_URL)
        self.parameter = parameter


class NavigationError(PropCoreError):
    """Every navigation attempt failed at the transport level."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        attempts: int = 0,
        kind: Optional[ErrorKind] = None,
    ) -> None:
        super().__init__(message, url=url, kind=kind)
        self.attempts = attempts


class ResponseValidationError(PropCoreError):
    """The transport status or rendered page matched a failure signature."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status: Optional[int] = None,
        reason: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ) -> None:
        super().__init__(message, url=url, kind=kind)
        self.status = status
        self.reason = reason


class ContentValidationError(PropCoreError):
    """The extracted result lacks the minimum set of useful fields."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        useful_fields_found: int = 0,
        kind: Optional[ErrorKind] = None,
    ) -> None:
        super().__init__(message, url=url, kind=kind)
        self.useful_fields_found = useful_fields_found


class SearchFormError(PropCoreError):
    """The search form on the portal home page could not be driven."""
