"""
Listing search on Portal Inmobiliario.

The portal has no search URL scheme worth relying on, so the home page form
is driven like a user would: operation and property-type dropdowns, the
location box with its first suggestion, then the search button (or Enter).
Result pages are read with the same listing strategies the field extractor
uses for listing-first-item pages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ..config import NavigationConfig, SearchConfig
from ..errors import ResponseValidationError, SearchFormError
from ..extractor.field_extractor import FieldExtractor
from ..extractor.models import NOT_AVAILABLE, ExtractionResult, is_present
from ..portals.profiles import PORTAL_INMOBILIARIO, SiteProfile
from ..protocols import ElementLike, ExtractionMode, PageLike
from ..validation.response import ResponseValidator
from .criteria import SearchCriteria

logger = structlog.get_logger(__name__)

OPERATION_DROPDOWN = 'button[aria-label="Tipo de operación"]'
PROPERTY_TYPE_DROPDOWN = 'button[aria-label="Tipo de propiedad"]'
LOCATION_INPUT = 'input[placeholder="Ingresa comuna o ciudad"]'
LOCATION_SUGGESTION = ".andes-list__item .andes-list__item-action"
SEARCH_BUTTON = '.andes-button:has-text("Buscar")'

NEXT_PAGE_SELECTORS: Sequence[str] = (
    ".andes-pagination__button--next:not([disabled])",
    '.ui-search-pagination .ui-search-link:has-text("Siguiente")',
    'a[aria-label="Siguiente"]:not([disabled])',
)

UI_DELAY_MS = 1_000
OPTION_TIMEOUT_MS = 5_000
SUGGESTION_TIMEOUT_MS = 3_000
TYPING_DELAY_MS = 2_000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def operation_option(operacion: str) -> str:
    # "Venta temporal" and "Arriendo temporal" sit next to the real options
    return f'li:has-text("{operacion}"):not(:has-text("temporal"))'


@dataclass
class SearchOutcome:
    criteria: SearchCriteria
    items: List[ExtractionResult] = field(default_factory=list)
    pages_processed: int = 0
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "data": [item.to_dict() for item in self.items],
            "metadata": {
                "tipo": self.criteria.tipo,
                "operacion": self.criteria.operacion,
                "ubicacion": self.criteria.ubicacion,
                "total": len(self.items),
                "pages_processed": self.pages_processed,
                "filters": self.criteria.price_filters,
                "criteria": self.criteria.cache_params(),
                "timestamp": self.timestamp,
            },
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SearchOutcome":
        """Rebuild an outcome from its cached JSON form."""
        metadata = payload.get("metadata", {})
        return cls(
            criteria=SearchCriteria(**metadata["criteria"]),
            items=[ExtractionResult.from_dict(item) for item in payload.get("data", [])],
            pages_processed=metadata.get("pages_processed", 1),
            timestamp=metadata.get("timestamp") or _now(),
        )


class SearchService:
    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        extractor: Optional[FieldExtractor] = None,
        navigation: Optional[NavigationConfig] = None,
        profile: SiteProfile = PORTAL_INMOBILIARIO,
        response_validator: Optional[ResponseValidator] = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.extractor = extractor or FieldExtractor()
        self.navigation = navigation or NavigationConfig()
        self.profile = profile
        self.response_validator = response_validator if response_validator is not None else ResponseValidator()
        self.logger = logger.bind(component="search")

    @property
    def result_selectors(self) -> Sequence[str]:
        return tuple(self.profile.listing_item_selectors) + (".poly-component",)

    async def run(self, page: PageLike, criteria: SearchCriteria) -> SearchOutcome:
        self.logger.info(
            "Search started",
            tipo=criteria.tipo,
            operacion=criteria.operacion,
            ubicacion=criteria.ubicacion,
            max_pages=criteria.max_pages,
        )
        await self.open_home(page)
        await self.fill_form(page, criteria)

        outcome = SearchOutcome(criteria=criteria)
        page_number = 1
        while page_number <= criteria.max_pages:
            items = await self.extract_page(page)
            if not items:
                self.logger.info("No results on page", page=page_number)
                break

            for item in items:
                item.fields["pagina"] = page_number
            outcome.items.extend(items)
            outcome.pages_processed = page_number
            self.logger.info("Results page read", page=page_number, items=len(items))

            if page_number < criteria.max_pages and not await self.go_next(page):
                self.logger.info("No further result pages")
                break
            page_number += 1

        outcome.pages_processed = max(outcome.pages_processed, 1)
        self.logger.info("Search finished", total=len(outcome.items), pages=outcome.pages_processed)
        return outcome

    # ------------------------------------------------------------------
    # Form
    # ------------------------------------------------------------------

    async def open_home(self, page: PageLike) -> None:
        """Load the search home page; an error status or a gone page aborts the search."""
        home_url = self.config.home_url
        response = await page.goto(home_url, timeout=self.navigation.goto_timeout_ms, wait_until="domcontentloaded")
        status = response.status if response is not None else None
        outcome = await self.response_validator.validate(status, page, self.profile)
        if not outcome.valid:
            raise ResponseValidationError(
                outcome.message,
                url=home_url,
                status=status,
                reason=outcome.reason.value if outcome.reason else None,
                kind=outcome.kind,
            )

    async def fill_form(self, page: PageLike, criteria: SearchCriteria) -> None:
        """Drive the home page form. Only a failed submit is fatal."""
        await self._settle(page)

        await self._pick_option(page, OPERATION_DROPDOWN, operation_option(criteria.operacion), "operacion")
        await page.wait_for_timeout(UI_DELAY_MS)
        await self._pick_option(
            page, PROPERTY_TYPE_DROPDOWN, f'li:has-text("{criteria.property_type_option}")', "tipo"
        )
        await page.wait_for_timeout(UI_DELAY_MS)
        await self._enter_location(page, criteria.ubicacion)
        await page.wait_for_timeout(UI_DELAY_MS)
        await self._submit(page)

    async def _pick_option(self, page: PageLike, dropdown: str, option: str, name: str) -> None:
        try:
            await page.wait_for_selector(dropdown, timeout=self.config.form_timeout_ms)
            await page.click(dropdown, timeout=self.config.form_timeout_ms)
            await page.wait_for_timeout(UI_DELAY_MS)
            await page.wait_for_selector(option, timeout=OPTION_TIMEOUT_MS)
            await page.click(option, timeout=OPTION_TIMEOUT_MS)
            self.logger.debug("Form option selected", field=name, option=option)
        except Exception as e:
            self.logger.warning("Could not select form option, portal default kept", field=name, error=str(e))

    async def _enter_location(self, page: PageLike, location: str) -> None:
        try:
            await page.wait_for_selector(LOCATION_INPUT, timeout=self.config.form_timeout_ms)
            await page.fill(LOCATION_INPUT, "", timeout=self.config.form_timeout_ms)
            await page.fill(LOCATION_INPUT, location, timeout=self.config.form_timeout_ms)
            await page.wait_for_timeout(TYPING_DELAY_MS)
        except Exception as e:
            self.logger.warning("Could not enter location", location=location, error=str(e))
            return

        try:
            await page.wait_for_selector(LOCATION_SUGGESTION, timeout=SUGGESTION_TIMEOUT_MS)
            await page.click(f"{LOCATION_SUGGESTION}:first-child", timeout=SUGGESTION_TIMEOUT_MS)
        except Exception as e:
            self.logger.debug("No location suggestion, searching with typed text", error=str(e))

    async def _submit(self, page: PageLike) -> None:
        try:
            await page.wait_for_selector(SEARCH_BUTTON, timeout=self.config.form_timeout_ms)
            await page.click(SEARCH_BUTTON, timeout=self.config.form_timeout_ms)
        except Exception as e:
            self.logger.debug("Search button unavailable, pressing Enter", error=str(e))
            try:
                await page.press(LOCATION_INPUT, "Enter", timeout=self.config.form_timeout_ms)
            except Exception as enter_error:
                raise SearchFormError("No se pudo ejecutar la búsqueda", url=self.config.home_url) from enter_error
        await self._settle(page)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def extract_page(self, page: PageLike) -> List[ExtractionResult]:
        await self._settle(page)

        cards = await self._find_cards(page)
        items: List[ExtractionResult] = []
        for position, card in enumerate(cards[: self.config.items_per_page], start=1):
            try:
                fields = await self.extractor.extract_listing_item(card, self.profile)
            except Exception as e:
                self.logger.warning("Result card skipped", position=position, error=str(e))
                continue
            if fields.get("titulo") == NOT_AVAILABLE:
                continue
            fields["posicion"] = position
            items.append(
                ExtractionResult(
                    url=fields["link"] if is_present(fields.get("link")) else self.config.home_url,
                    portal=self.profile.portal,
                    fields=fields,
                    mode=ExtractionMode.LISTING_FIRST_ITEM,
                    success=True,
                )
            )
        return items

    async def _find_cards(self, page: PageLike) -> List[ElementLike]:
        for selector in self.result_selectors:
            try:
                await page.wait_for_selector(selector, timeout=self.config.results_timeout_ms)
                cards = await page.query_selector_all(selector)
            except Exception as e:
                self.logger.debug("Result container missed", selector=selector, error=str(e))
                continue
            if cards:
                self.logger.debug("Result container found", selector=selector, count=len(cards))
                return list(cards)
        return []

    async def go_next(self, page: PageLike) -> bool:
        for selector in NEXT_PAGE_SELECTORS:
            try:
                button = await page.query_selector(selector)
                if button is None:
                    continue
                if await button.is_visible() and await button.is_enabled():
                    await button.click()
                    await self._settle(page)
                    return True
            except Exception as e:
                self.logger.debug("Next page control failed", selector=selector, error=str(e))
        return False

    async def _settle(self, page: PageLike) -> None:
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=self.config.form_timeout_ms)
        except Exception as e:
            self.logger.debug("DOM ready wait timed out", error=str(e))
        await page.wait_for_timeout(self.config.page_settle_ms)
