"""
Search criteria, validated before the core is entered.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import InvalidCriteriaError

# Accepted price bounds per filter currency (CLF is the UF).
PRICE_RANGES: Dict[str, tuple] = {
    "CLP": (1_000_000, 5_000_000_000),
    "CLF": (50, 20_000),
    "USD": (50_000, 5_000_000),
}

PROPERTY_TYPE_OPTIONS: Dict[str, str] = {"Casa": "Casas", "Departamento": "Departamentos"}


class SearchCriteria(BaseModel):
    """What to search for on Portal Inmobiliario.

    Build it with :meth:`build` to get :class:`InvalidCriteriaError` instead
    of pydantic's ``ValidationError``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tipo: Literal["Casa", "Departamento"]
    operacion: Literal["Venta", "Arriendo"]
    ubicacion: str = Field(min_length=1)
    max_pages: int = Field(default=3, ge=1, le=3)
    precio_minimo: Optional[float] = None
    precio_maximo: Optional[float] = None
    moneda: str = "CLF"

    @field_validator("ubicacion")
    @classmethod
    def strip_location(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ubicacion must not be blank")
        return v

    @model_validator(mode="after")
    def check_price_filters(self) -> "SearchCriteria":
        if self.precio_minimo is None and self.precio_maximo is None:
            return self
        if self.moneda not in PRICE_RANGES:
            raise ValueError(f"moneda must be one of {', '.join(PRICE_RANGES)}")
        low, high = PRICE_RANGES[self.moneda]
        for name in ("precio_minimo", "precio_maximo"):
            value = getattr(self, name)
            if value is not None and not low <= value <= high:
                raise ValueError(f"{name} must be between {low} and {high}")
        if self.precio_minimo is not None and self.precio_maximo is not None:
            if self.precio_minimo > self.precio_maximo:
                raise ValueError("precio_minimo must not exceed precio_maximo")
        return self

    @classmethod
    def build(cls, **values: Any) -> "SearchCriteria":
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            parameter = ".".join(str(part) for part in first.get("loc", ())) or None
            raise InvalidCriteriaError(
                f"Parámetros de búsqueda inválidos: {first.get('msg', str(e))}", parameter=parameter
            ) from e

    @property
    def property_type_option(self) -> str:
        return PROPERTY_TYPE_OPTIONS[self.tipo]

    @property
    def price_filters(self) -> Optional[Dict[str, Any]]:
        if self.precio_minimo is None and self.precio_maximo is None:
            return None
        return {"precio_minimo": self.precio_minimo, "precio_maximo": self.precio_maximo, "moneda": self.moneda}

    def cache_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
