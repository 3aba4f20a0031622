"""
Currency-aware price parsing with Chilean (es-CL) number conventions.

Chilean listings group thousands with dots and use the comma as decimal
separator ("UF 5.990,50", "$150.000.000"), but UF amounts are also seen
with a dot decimal ("UF 6.5"). :func:`parse_chilean_number` resolves the
ambiguity the way the portals print numbers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from .models import NOT_AVAILABLE

logger = structlog.get_logger(__name__)

UF = "UF"
CLP = "$"
USD = "US$"

_NUMBER = re.compile(r"^\d+(\.\d+)?$")
_NOT_NUMERIC = re.compile(r"[^\d.,]")
_UF_MARK = re.compile(r"\bUF\b", re.IGNORECASE)
_USD_MARK = re.compile(r"US\$|\bUSD\b|\bU\$S\b", re.IGNORECASE)
_CLP_MARK = re.compile(r"\$|\bCLP\b", re.IGNORECASE)


def detect_currency(text: Optional[str]) -> Optional[str]:
    """Currency named in a price string, or None when it names none."""
    if not text:
        return None
    if _UF_MARK.search(text):
        return UF
    if _USD_MARK.search(text):
        return USD
    if _CLP_MARK.search(text):
        return CLP
    return None


def parse_chilean_number(text: Optional[str]) -> Optional[float]:
    """Parse "1.234.567", "6.900", "6.5", "5.990,50" or "6,5" into a float.

    Returns None for anything that is not a plain number once currency
    markers and separators are resolved.
    """
    if not text or not isinstance(text, str):
        return None

    clean = re.sub(r"UF|US\$|USD|CLP|\$|\s", "", text.strip(), flags=re.IGNORECASE)
    has_dot = "." in clean
    has_comma = "," in clean

    if has_dot and not has_comma:
        parts = clean.split(".")
        if len(parts) == 2:
            # exactly three digits after a single dot is a thousands group
            if re.fullmatch(r"\d{3}", parts[1]):
                clean = parts[0] + parts[1]
        elif len(parts) > 2:
            clean = "".join(parts)
    elif has_dot and has_comma:
        parts = clean.split(",")
        if len(parts) == 2:
            clean = parts[0].replace(".", "") + "." + parts[1]
    elif has_comma:
        clean = clean.replace(",", ".", 1)

    if not _NUMBER.match(clean):
        logger.debug("Unparseable number", original=text, cleaned=clean)
        return None
    return float(clean)


def format_es_cl(value: float, decimals: int = 0) -> str:
    """Format with dot thousands grouping and comma decimals."""
    formatted = f"{value:,.{decimals}f}"
    return formatted.replace(",", "\x00").replace(".", ",").replace("\x00", ".")


def format_price(raw: Optional[str], currency: Optional[str]) -> str:
    """Render a raw amount in the canonical form for its currency.

    Amounts that cannot be parsed are returned trimmed and unchanged.
    """
    if not raw:
        return "0"
    clean = _NOT_NUMERIC.sub("", raw)
    if not clean:
        return "0"

    value = parse_chilean_number(clean)
    if value is None:
        return raw.strip()

    if currency == UF:
        if value != int(value):
            return f"UF {format_es_cl(value, 2)}"
        return f"UF {format_es_cl(value)}"
    prefix = USD if currency == USD else CLP
    return f"{prefix}{format_es_cl(round(value))}"


@dataclass(frozen=True)
class PriceInfo:
    """Main price plus the UF and peso renderings when the page shows both."""

    precio: str
    moneda: str
    precio_uf: str = NOT_AVAILABLE
    precio_clp: str = NOT_AVAILABLE


def build_price(
    amount: Optional[str],
    currency_text: Optional[str] = None,
    cents: Optional[str] = None,
    secondary: Optional[str] = None,
) -> Optional[PriceInfo]:
    """Combine the pieces a portal renders separately into one :class:`PriceInfo`.

    ``amount`` is the integer part (or the whole price text), ``cents`` the
    decimal part some portals render in a separate element, ``secondary``
    the alternative-currency subtitle.
    """
    if not amount:
        return None

    currency = detect_currency(currency_text) or detect_currency(amount) or CLP
    digits = amount
    if cents and cents.strip().isdigit():
        digits = f"{_NOT_NUMERIC.sub('', amount)},{cents.strip()}"

    precio = format_price(digits, currency)
    precio_uf = precio if currency == UF else NOT_AVAILABLE
    precio_clp = precio if currency == CLP else NOT_AVAILABLE

    if secondary:
        secondary_currency = detect_currency(secondary) or (CLP if currency == UF else UF)
        rendered = format_price(secondary, secondary_currency)
        if secondary_currency == CLP and precio_clp == NOT_AVAILABLE:
            precio_clp = rendered
        elif secondary_currency == UF and precio_uf == NOT_AVAILABLE:
            precio_uf = rendered

    return PriceInfo(precio=precio, moneda=currency, precio_uf=precio_uf, precio_clp=precio_clp)
