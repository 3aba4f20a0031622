"""
Profile-driven field extraction.

The extractor first decides whether the page is a listing (read the first
result card) or a single property detail page, then evaluates the profile's
cascading strategies for every field. Fields no strategy can read are filled
with :data:`NOT_AVAILABLE`; extraction itself never fails because of a
missing field.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import structlog

from ..config import ExtractionConfig
from ..observability import increment
from ..protocols import ElementLike, ExtractionMode, PageLike
from .attributes import (
    ATTRIBUTES,
    collect_attribute_texts,
    format_attribute,
    from_characteristics,
    recover_from_text,
)
from .characteristics import extract_characteristics
from .models import NOT_AVAILABLE, TEXT_FIELDS, ExtractionRequest, ExtractionResult, is_present
from .pricing import build_price
from .strategies import SelectorStrategy, normalize_text, try_strategies

logger = structlog.get_logger(__name__)

# Pieces read by strategies that are folded into other fields.
_PRICE_PARTS: Tuple[str, ...] = ("moneda", "precio_centavos", "precio_secundario")


class FieldExtractor:
    """Reads a normalized :class:`ExtractionResult` from a loaded page."""

    def __init__(self, config: Optional[ExtractionConfig] = None) -> None:
        self.config = config or ExtractionConfig()
        self.logger = logger.bind(component="field_extractor")

    async def detect_mode(self, page: PageLike, profile: Any) -> Tuple[ExtractionMode, Optional[ElementLike]]:
        """Check the profile's listing containers; the first one present selects listing mode."""
        for selector in profile.listing_item_selectors:
            try:
                await page.wait_for_selector(selector, timeout=self.config.listing_wait_timeout_ms)
                item = await page.query_selector(selector)
            except Exception as e:
                self.logger.debug("Listing container missed", selector=selector, error=str(e))
                continue
            if item is not None:
                self.logger.debug("Listing container found", selector=selector)
                return ExtractionMode.LISTING_FIRST_ITEM, item
        return ExtractionMode.SINGLE_DETAIL, None

    async def extract(self, page: PageLike, profile: Any, request: ExtractionRequest) -> ExtractionResult:
        mode, item = await self.detect_mode(page, profile)

        if mode is ExtractionMode.LISTING_FIRST_ITEM and item is not None:
            fields = await self.extract_listing_item(item, profile)
        else:
            fields = await self.extract_detail(page, profile, request.url)

        result = ExtractionResult(url=request.url, portal=profile.portal, fields=fields, mode=mode)

        missing = result.missing_fields()
        for name in missing:
            increment("field_misses_total", labels={"portal": profile.portal.value, "field": name})
        self.logger.info(
            "Fields extracted",
            url=request.url,
            portal=profile.portal.value,
            mode=mode.value,
            useful_fields=len(result.useful_fields()),
            missing=list(missing),
        )
        return result

    async def extract_listing_item(self, item: ElementLike, profile: Any) -> Dict[str, Any]:
        """Read one result card. Also used by search for every card on a page."""
        raw = await self._read_fields(item, profile.listing_fields)
        attributes = await collect_attribute_texts(item, profile.listing_attribute_selectors)
        fields = self._assemble(raw, profile, attributes, characteristics={}, default_link=None)
        return fields

    async def extract_detail(self, page: PageLike, profile: Any, url: str) -> Dict[str, Any]:
        raw = await self._read_fields(page, profile.detail_fields)

        if not raw.get("titulo"):
            raw["titulo"] = await self._emergency_title(page)

        attributes = await collect_attribute_texts(page, profile.attribute_selectors)
        characteristics = await extract_characteristics(page, profile.characteristic_regions)
        return self._assemble(raw, profile, attributes, characteristics, default_link=url)

    async def _read_fields(
        self, scope: ElementLike, strategies: Mapping[str, Sequence[SelectorStrategy]]
    ) -> Dict[str, Optional[str]]:
        return {name: await try_strategies(scope, chain, field=name) for name, chain in strategies.items()}

    async def _emergency_title(self, page: PageLike) -> Optional[str]:
        try:
            title = normalize_text(await page.title())
        except Exception as e:
            self.logger.debug("Document title unavailable", error=str(e))
            return None
        # "Casa en venta en Ñuñoa | Portal Inmobiliario"
        title = normalize_text(title.split("|")[0])
        return title or None

    def _assemble(
        self,
        raw: Mapping[str, Optional[str]],
        profile: Any,
        attributes: Mapping[str, str],
        characteristics: Mapping[str, str],
        default_link: Optional[str],
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            name: value for name, value in raw.items() if value and name not in _PRICE_PARTS and name in TEXT_FIELDS
        }

        price = build_price(
            raw.get("precio"),
            currency_text=raw.get("moneda"),
            cents=raw.get("precio_centavos"),
            secondary=raw.get("precio_secundario"),
        )
        if price is not None:
            fields["precio"] = price.precio
            fields["moneda"] = price.moneda
            fields["precio_uf"] = price.precio_uf
            fields["precio_clp"] = price.precio_clp
        else:
            fields.pop("precio", None)

        link = raw.get("link")
        if link:
            fields["link"] = profile.absolutize(link)
        elif default_link:
            fields["link"] = default_link

        description = fields.get("descripcion")
        if description and len(description) > self.config.max_description_length:
            fields["descripcion"] = description[: self.config.max_description_length]

        for name in ATTRIBUTES:
            if is_present(fields.get(name)):
                fields[name] = format_attribute(name, fields[name])

        for source in (attributes, from_characteristics(characteristics)):
            for name in ATTRIBUTES:
                if not is_present(fields.get(name)) and source.get(name):
                    fields[name] = source[name]

        if not all(is_present(fields.get(name)) for name in ATTRIBUTES):
            recovered = recover_from_text(fields.get("descripcion"), fields.get("titulo"))
            for name, value in recovered.items():
                if not is_present(fields.get(name)):
                    fields[name] = value

        for name in TEXT_FIELDS:
            if not is_present(fields.get(name)):
                fields[name] = NOT_AVAILABLE
        fields.setdefault("precio_uf", NOT_AVAILABLE)
        fields.setdefault("precio_clp", NOT_AVAILABLE)
        fields["caracteristicas"] = dict(characteristics)
        return fields
