"""
Data models for extraction requests and results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..protocols import ExtractionMode, PortalId

NOT_AVAILABLE = "No disponible"

TEXT_FIELDS: Tuple[str, ...] = (
    "titulo",
    "precio",
    "moneda",
    "ubicacion",
    "dormitorios",
    "banos",
    "superficie",
    "link",
    "imagen",
    "descripcion",
)

# A result is only worth returning with a title and at least one of these.
USEFUL_FIELDS: Tuple[str, ...] = ("precio", "ubicacion", "dormitorios", "banos", "superficie")

FieldValue = Union[str, Dict[str, str]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_present(value: Any) -> bool:
    """True when a field holds real data rather than the sentinel or nothing."""
    if value is None:
        return False
    if isinstance(value, str):
        stripped = value.strip()
        return bool(stripped) and stripped != NOT_AVAILABLE
    if isinstance(value, Mapping):
        return bool(value)
    return True


@dataclass(frozen=True, slots=True)
class ExtractionRequest:
    """One incoming extract call."""

    url: str
    portal: PortalId
    created_at: str = field(default_factory=_now)


@dataclass(slots=True)
class ExtractionResult:
    """Normalized fields read from one page.

    ``fields`` always holds every name in :data:`TEXT_FIELDS`, with
    :data:`NOT_AVAILABLE` for the ones no strategy could read.
    """

    url: str
    portal: PortalId
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    mode: ExtractionMode = ExtractionMode.SINGLE_DETAIL
    success: bool = False
    timestamp: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        for name in TEXT_FIELDS:
            self.fields.setdefault(name, NOT_AVAILABLE)
        self.fields.setdefault("caracteristicas", {})

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    @property
    def title(self) -> Optional[str]:
        value = self.fields.get("titulo")
        return value if is_present(value) else None  # type: ignore[return-value]

    def useful_fields(self) -> Tuple[str, ...]:
        return tuple(name for name in USEFUL_FIELDS if is_present(self.fields.get(name)))

    def missing_fields(self) -> Tuple[str, ...]:
        return tuple(name for name in TEXT_FIELDS if not is_present(self.fields.get(name)))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            name: (dict(value) if isinstance(value, dict) else value) for name, value in self.fields.items()
        }
        payload.update(
            {
                "success": self.success,
                "portal": self.portal.value,
                "url": self.url,
                "mode": self.mode.value,
                "timestamp": self.timestamp,
            }
        )
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ExtractionResult":
        """Rebuild a result from its cached JSON form."""
        data = dict(payload)
        url = data.pop("url", "")
        portal = PortalId(data.pop("portal", PortalId.UNKNOWN.value))
        mode = ExtractionMode(data.pop("mode", ExtractionMode.SINGLE_DETAIL.value))
        success = bool(data.pop("success", False))
        timestamp = data.pop("timestamp", None) or _now()
        return cls(url=url, portal=portal, fields=data, mode=mode, success=success, timestamp=timestamp)
