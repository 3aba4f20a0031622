"""
Site profiles: the declarative description of how each portal is read.

Adding a portal means adding a :class:`SiteProfile` to :data:`PROFILES`;
the field extractor has no portal-specific branches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from ..extractor.strategies import SelectorStrategy, StrategyLike, as_strategies
from ..protocols import PortalId

FieldStrategies = Mapping[str, Tuple[SelectorStrategy, ...]]


def _fields(**fields: Tuple[StrategyLike, ...]) -> FieldStrategies:
    return MappingProxyType({name: as_strategies(*items) for name, items in fields.items()})


def _image(selector: str, attribute: str = "src") -> SelectorStrategy:
    return SelectorStrategy(selector, attribute=attribute, require_prefix="http", reject_substrings=("placeholder",))


def _href(selector: str) -> SelectorStrategy:
    return SelectorStrategy(selector, attribute="href")


def _long(selector: str, min_length: int = 11) -> SelectorStrategy:
    return SelectorStrategy(selector, min_length=min_length)


@dataclass(frozen=True, slots=True)
class CharacteristicRegion:
    """A repeated DOM block holding one label/value pair per row.

    When ``key_selector`` is None the row text itself is split on
    ``separator`` ("Dormitorios: 3").
    """

    row_selector: str
    key_selector: Optional[str] = None
    value_selector: Optional[str] = None
    separator: str = ":"


GONE_TITLE_MARKERS: Tuple[str, ...] = (
    "publicación finalizada",
    "publicación pausada",
    "publicacion finalizada",
    "ya no está disponible",
    "ya no esta disponible",
    "página no encontrada",
    "pagina no encontrada",
    "no encontramos",
    "no existe",
    "aviso expirado",
    "page not found",
    "error 404",
)

GONE_URL_MARKERS: Tuple[str, ...] = (
    "pagina-no-encontrada",
    "publicacion-finalizada",
    "not-found",
    "notfound",
)

PROPERTY_MARKERS: Tuple[str, ...] = (
    "dormitorio",
    "baño",
    "m²",
    "m2",
    "venta",
    "arriendo",
    "casa",
    "departamento",
    "propiedad",
    "terreno",
    "parcela",
    "oficina",
)


@dataclass(frozen=True)
class SiteProfile:
    """Immutable extraction recipe for one portal."""

    portal: PortalId
    name: str
    base_url: Optional[str]
    detail_fields: FieldStrategies
    critical_selectors: Tuple[str, ...] = ()
    listing_item_selectors: Tuple[str, ...] = ()
    listing_fields: FieldStrategies = field(default_factory=lambda: MappingProxyType({}))
    listing_attribute_selectors: Tuple[str, ...] = ()
    attribute_selectors: Tuple[str, ...] = ()
    characteristic_regions: Tuple[CharacteristicRegion, ...] = ()
    gone_title_markers: Tuple[str, ...] = GONE_TITLE_MARKERS
    gone_url_markers: Tuple[str, ...] = GONE_URL_MARKERS
    property_markers: Tuple[str, ...] = PROPERTY_MARKERS
    supported: bool = False

    def absolutize(self, href: str) -> str:
        """Resolve a site-relative link against the profile base URL."""
        if href.startswith("//"):
            return f"https:{href}"
        if href.startswith("/") and self.base_url:
            return f"{self.base_url.rstrip('/')}{href}"
        return href


# ============================================================================
# Shared selector groups
# ============================================================================

# Detail pages of both MercadoLibre and Portal Inmobiliario render with the
# same "ui-pdp" component library.
PDP_CHARACTERISTIC_REGIONS: Tuple[CharacteristicRegion, ...] = (
    CharacteristicRegion(
        ".ui-vpp-highlighted-specs__key-value",
        ".ui-pdp-color--BLACK.ui-pdp-size--XSMALL.ui-pdp-family--REGULAR",
        ".ui-pdp-color--BLACK.ui-pdp-size--XSMALL.ui-pdp-family--SEMIBOLD",
    ),
    CharacteristicRegion(".ui-vpp-striped-specs__table tr", "th", "td"),
    CharacteristicRegion(".andes-table__row", ".andes-table__header", ".andes-table__column--value"),
)

PDP_ATTRIBUTE_SELECTORS: Tuple[str, ...] = (
    ".ui-pdp-highlighted-specs-res__icon-label",
    ".ui-vpp-striped-specs__table tr",
    ".ui-vpp-highlighted-specs__key-value",
    ".specs-item",
)

PDP_IMAGES: Tuple[SelectorStrategy, ...] = (
    _image(".ui-pdp-gallery__figure img"),
    _image(".ui-pdp-gallery__figure img", attribute="data-zoom"),
    _image(".gallery-image img"),
    _image(".item-image img"),
    _image(".ui-pdp-image img"),
    _image('img[src*="http"]'),
)

PDP_CURRENCY: Tuple[StrategyLike, ...] = (
    ".ui-pdp-price__second-line .andes-money-amount__currency-symbol",
    ".andes-money-amount__currency-symbol",
)

PDP_PRICE_CENTS: Tuple[StrategyLike, ...] = (".ui-pdp-price__second-line .andes-money-amount__cents",)

PDP_SECONDARY_PRICE: Tuple[StrategyLike, ...] = (
    ".ui-pdp-price__subtitles .andes-money-amount__fraction",
    ".ui-pdp-price__subtitles",
)

PDP_DESCRIPTION: Tuple[StrategyLike, ...] = (".ui-pdp-description__content",)


# ============================================================================
# Profiles
# ============================================================================

MERCADOLIBRE = SiteProfile(
    portal=PortalId.MERCADOLIBRE,
    name="MercadoLibre",
    base_url="https://casa.mercadolibre.cl",
    critical_selectors=(".ui-pdp-title", "h1", ".andes-money-amount"),
    detail_fields=_fields(
        titulo=(".ui-pdp-title", "h1"),
        moneda=PDP_CURRENCY,
        precio=(
            ".ui-pdp-price__second-line .andes-money-amount__fraction",
            ".andes-money-amount__fraction",
            ".andes-money-amount",
        ),
        precio_centavos=PDP_PRICE_CENTS,
        precio_secundario=PDP_SECONDARY_PRICE,
        ubicacion=(
            _long(".ui-pdp-media__title"),
            _long(".ui-pdp-color--BLACK.ui-pdp-size--SMALL"),
            _long(".ui-vip-location"),
            _long('[class*="location"]'),
        ),
        descripcion=PDP_DESCRIPTION,
        imagen=PDP_IMAGES,
    ),
    attribute_selectors=PDP_ATTRIBUTE_SELECTORS,
    characteristic_regions=PDP_CHARACTERISTIC_REGIONS,
    supported=True,
)

PORTAL_INMOBILIARIO = SiteProfile(
    portal=PortalId.PORTAL_INMOBILIARIO,
    name="Portal Inmobiliario",
    base_url="https://www.portalinmobiliario.com",
    critical_selectors=(".ui-search-layout__item", ".ui-pdp-title", "h1", ".andes-money-amount"),
    listing_item_selectors=(
        ".ui-search-layout__item",
        ".ui-search-results__item",
        '[data-testid="search-result-item"]',
    ),
    listing_fields=_fields(
        titulo=(
            ".poly-component__title",
            ".ui-search-item__title",
            "h2 a",
            "h3 a",
            '[data-testid="item-title"]',
            ".item-title",
        ),
        ubicacion=(
            ".poly-component__location",
            ".ui-search-item__location",
            ".item-location",
            '[data-testid="item-location"]',
        ),
        moneda=(
            ".andes-money-amount__currency-symbol",
            ".price-tag-symbol",
            ".ui-search-price__currency",
        ),
        precio=(
            ".andes-money-amount__fraction",
            ".price-tag-fraction",
            ".ui-search-price__fraction",
            ".price-fraction",
        ),
        link=(
            _href(".poly-component__title"),
            _href(".poly-component__title a"),
            _href(".ui-search-item__title a"),
            _href("h2 a"),
        ),
        imagen=(
            _image(".poly-component__picture"),
            _image(".poly-component__picture", attribute="data-src"),
            _image(".poly-component__picture img"),
            _image(".ui-search-item__image img"),
            _image(".item-image img"),
        ),
    ),
    listing_attribute_selectors=(
        ".poly-attributes_list__item",
        ".poly-attributes-list__item",
        ".ui-search-item__attributes li",
        ".item-attributes li",
    ),
    detail_fields=_fields(
        titulo=("h1", ".property-title", ".ui-pdp-title", '[data-testid="property-title"]'),
        moneda=PDP_CURRENCY,
        precio=(
            ".ui-pdp-price__second-line .andes-money-amount__fraction",
            ".price",
            ".property-price",
            ".ui-pdp-price",
            '[data-testid="price"]',
        ),
        precio_centavos=PDP_PRICE_CENTS,
        precio_secundario=PDP_SECONDARY_PRICE,
        ubicacion=(
            ".location",
            ".property-location",
            _long(".ui-pdp-media__title"),
            _long(".ui-pdp-color--BLACK.ui-pdp-size--SMALL"),
            '[data-testid="location"]',
        ),
        descripcion=PDP_DESCRIPTION + (".property-description", '[data-testid="description"]'),
        imagen=PDP_IMAGES,
    ),
    attribute_selectors=PDP_ATTRIBUTE_SELECTORS,
    characteristic_regions=PDP_CHARACTERISTIC_REGIONS,
    supported=True,
)

GENERIC = SiteProfile(
    portal=PortalId.UNKNOWN,
    name="Genérico",
    base_url=None,
    detail_fields=_fields(
        titulo=("h1", "h2", '[class*="title"]', '[class*="titulo"]'),
        precio=('[class*="price"]', '[class*="precio"]', '[class*="valor"]'),
        ubicacion=('[class*="location"]', '[class*="ubicacion"]', '[class*="direccion"]'),
        dormitorios=('[class*="dormitorio"]', '[class*="bedroom"]'),
        banos=('[class*="bano"]', '[class*="bathroom"]'),
        superficie=('[class*="superficie"]', '[class*="surface"]'),
        descripcion=('[class*="description"]', '[class*="descripcion"]'),
        imagen=(_image('img[src*="http"]'),),
    ),
    characteristic_regions=(CharacteristicRegion("dl > div", "dt", "dd"),),
)

PROFILES: Dict[PortalId, SiteProfile] = {
    PortalId.MERCADOLIBRE: MERCADOLIBRE,
    PortalId.PORTAL_INMOBILIARIO: PORTAL_INMOBILIARIO,
}


def profile_for(portal: PortalId) -> SiteProfile:
    """Profile for a portal; portals without a dedicated recipe use the generic one."""
    return PROFILES.get(portal, GENERIC)
