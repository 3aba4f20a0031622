"""
Acquisition pipeline orchestration for PropCore.

One call moves through::

    Idle -> CacheLookup -> CacheHit -> Done(success)
                        -> CacheMiss -> Navigating -> Validating -> Extracting
                           -> ContentValidating -> CacheStore -> Done(success)
                                                -> ErrorClassify -> Done(error)

Any failure after the cache miss ends in ``ErrorClassify``; callers get an
:class:`ExtractionResult` (or a search outcome) or exactly one
:class:`ErrorRecord`, never a raw exception. Invalid search criteria are the
one exception: they are rejected before the pipeline is entered.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Mapping, Optional, Union
from uuid import uuid4

import structlog
from structlog.contextvars import bound_contextvars

from propcore.cache import CacheLayer, CacheLookup
from propcore.config import Config
from propcore.crawler import BrowserPool, DomainRateLimiter, NavigationController
from propcore.errors import (
    ContentValidationError,
    ErrorRecord,
    InvalidUrlError,
    NavigationError,
    ResponseValidationError,
)
from propcore.extractor.field_extractor import FieldExtractor
from propcore.extractor.models import ExtractionRequest, ExtractionResult
from propcore.observability import histogram, increment
from propcore.portals import PortalClassifier, SiteProfile, UrlCheck, is_http_url, profile_for
from propcore.protocols import PortalId
from propcore.recovery import ClassificationContext, ErrorClassifier
from propcore.search import SearchCriteria, SearchOutcome, SearchService
from propcore.validation import ContentValidator, ResponseValidator

SCRAPING = "scraping"
SEARCH = "search"


class RequestState(Enum):
    """Per-request states."""

    IDLE = "idle"
    CACHE_LOOKUP = "cache_lookup"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    NAVIGATING = "navigating"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    CONTENT_VALIDATING = "content_validating"
    CACHE_STORE = "cache_store"
    ERROR_CLASSIFY = "error_classify"
    DONE_SUCCESS = "done_success"
    DONE_ERROR = "done_error"


_S = RequestState
TRANSITIONS: Dict[RequestState, frozenset] = {
    _S.IDLE: frozenset({_S.CACHE_LOOKUP, _S.ERROR_CLASSIFY}),
    _S.CACHE_LOOKUP: frozenset({_S.CACHE_HIT, _S.CACHE_MISS}),
    _S.CACHE_HIT: frozenset({_S.DONE_SUCCESS}),
    _S.CACHE_MISS: frozenset({_S.NAVIGATING, _S.ERROR_CLASSIFY}),
    _S.NAVIGATING: frozenset({_S.VALIDATING, _S.CACHE_STORE, _S.ERROR_CLASSIFY}),
    _S.VALIDATING: frozenset({_S.EXTRACTING, _S.ERROR_CLASSIFY}),
    _S.EXTRACTING: frozenset({_S.CONTENT_VALIDATING, _S.ERROR_CLASSIFY}),
    _S.CONTENT_VALIDATING: frozenset({_S.CACHE_STORE, _S.ERROR_CLASSIFY}),
    _S.CACHE_STORE: frozenset({_S.DONE_SUCCESS}),
    _S.ERROR_CLASSIFY: frozenset({_S.DONE_ERROR}),
    _S.DONE_SUCCESS: frozenset(),
    _S.DONE_ERROR: frozenset(),
}

TERMINAL_STATES = frozenset({_S.DONE_SUCCESS, _S.DONE_ERROR})


@dataclass
class RequestTrace:
    """The states one request passed through."""

    request_id: str
    operation: str
    target: str
    states: List[RequestState] = field(default_factory=lambda: [RequestState.IDLE])
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def state(self) -> RequestState:
        return self.states[-1]

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: RequestState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal request transition {self.state.value} -> {state.value}")
        self.states.append(state)

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "operation": self.operation,
            "target": self.target,
            "states": [s.value for s in self.states],
        }


class AcquisitionPipeline:
    """
    Entry point used by callers: extraction, search, portal classification
    and cache administration.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        browser_pool: Optional[BrowserPool] = None,
        cache: Optional[CacheLayer] = None,
        rate_limiter: Optional[DomainRateLimiter] = None,
        classifier: Optional[PortalClassifier] = None,
        navigation: Optional[NavigationController] = None,
        extractor: Optional[FieldExtractor] = None,
        error_classifier: Optional[ErrorClassifier] = None,
        search_service: Optional[SearchService] = None,
        trace_history: int = 100,
    ) -> None:
        self.config = config or Config()
        self.browser_pool = browser_pool if browser_pool is not None else BrowserPool(self.config.browser)
        self.cache = cache if cache is not None else CacheLayer(self.config.cache)
        if rate_limiter is None and self.config.rate_limit.enabled:
            rate_limiter = DomainRateLimiter(self.config.rate_limit)
        self.rate_limiter = rate_limiter
        self.classifier = classifier if classifier is not None else PortalClassifier()
        self.navigation = navigation if navigation is not None else NavigationController(self.config.navigation)
        self.extractor = extractor if extractor is not None else FieldExtractor(self.config.extraction)
        self.response_validator = ResponseValidator()
        self.content_validator = ContentValidator()
        self.errors = error_classifier if error_classifier is not None else ErrorClassifier()
        self.search_service = search_service if search_service is not None else SearchService(
            self.config.search, self.extractor, self.config.navigation
        )
        self.traces: Deque[RequestTrace] = deque(maxlen=trace_history)
        self.logger = structlog.get_logger(self.__class__.__name__)

    async def initialize(self) -> None:
        await self.cache.initialize()
        await self.browser_pool.initialize()

    async def close(self) -> None:
        await self.browser_pool.close()
        await self.cache.close()

    # ------------------------------------------------------------------
    # Portals
    # ------------------------------------------------------------------

    def classify_portal(self, url: Any) -> PortalId:
        return self.classifier.classify(url)

    def validate_url(self, url: Any) -> UrlCheck:
        return self.classifier.validate_url(url)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract(self, url: str) -> Union[ExtractionResult, ErrorRecord]:
        trace = self._new_trace("extract", url)
        with bound_contextvars(request_id=trace.request_id):
            if not is_http_url(url):
                failure = InvalidUrlError("URL inválida", url=url if isinstance(url, str) else None)
                return self._fail(trace, failure, PortalId.UNKNOWN)

            url = url.strip()
            portal = self.classifier.classify(url)
            profile = profile_for(portal)
            key = self.cache.fingerprint(SCRAPING, method="GET", url=url)

            trace.advance(RequestState.CACHE_LOOKUP)
            lookup = await self.cache.get(SCRAPING, key)
            if lookup.hit:
                trace.advance(RequestState.CACHE_HIT)
                result = ExtractionResult.from_dict(lookup.value)
                self._finish(trace, portal, "cache_hit", tier=lookup.tier)
                return result

            trace.advance(RequestState.CACHE_MISS)
            try:
                result = await self._acquire(trace, url, portal, profile)
            except Exception as e:
                return self._fail(trace, e, portal)

            trace.advance(RequestState.CACHE_STORE)
            await self.cache.set(SCRAPING, key, result.to_dict())
            self._finish(trace, portal, "success", useful_fields=len(result.useful_fields()))
            return result

    async def _acquire(
        self, trace: RequestTrace, url: str, portal: PortalId, profile: SiteProfile
    ) -> ExtractionResult:
        request = ExtractionRequest(url=url, portal=portal)
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire(url)

        async with self.browser_pool.page_session() as page:
            trace.advance(RequestState.NAVIGATING)
            load = await self.navigation.load(page, url, profile.critical_selectors or None)

            trace.advance(RequestState.VALIDATING)
            response = await self.response_validator.validate(load.status, page, profile)
            if not response.valid:
                raise ResponseValidationError(
                    response.message,
                    url=url,
                    status=load.status,
                    reason=response.reason.value if response.reason else None,
                    kind=response.kind,
                )

            trace.advance(RequestState.EXTRACTING)
            result = await self.extractor.extract(page, profile, request)

            trace.advance(RequestState.CONTENT_VALIDATING)
            content = self.content_validator.validate(result, profile)
            if not content.valid:
                if not load.navigated and load.last_error is not None:
                    raise NavigationError(
                        f"Navigation failed after {load.attempts} attempts",
                        url=url,
                        attempts=load.attempts,
                    ) from load.last_error
                raise ContentValidationError(
                    content.message,
                    url=url,
                    useful_fields_found=content.diagnostics.get("useful_fields_found", 0),
                    kind=content.kind,
                )

        result.success = True
        return result

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self, criteria: Union[SearchCriteria, Mapping[str, Any]]
    ) -> Union[SearchOutcome, ErrorRecord]:
        """Run a listing search.

        Raises:
            InvalidCriteriaError: when ``criteria`` is a mapping that does not
                validate. Everything that fails afterwards is returned as an
                :class:`ErrorRecord`.
        """
        if not isinstance(criteria, SearchCriteria):
            criteria = SearchCriteria.build(**dict(criteria))

        home_url = self.config.search.home_url
        trace = self._new_trace("search", home_url)
        with bound_contextvars(request_id=trace.request_id):
            key = self.cache.fingerprint(SEARCH, method="POST", url=home_url, body=criteria.cache_params())

            trace.advance(RequestState.CACHE_LOOKUP)
            lookup: CacheLookup = await self.cache.get(SEARCH, key)
            if lookup.hit:
                trace.advance(RequestState.CACHE_HIT)
                trace.advance(RequestState.DONE_SUCCESS)
                increment("searches_total", labels={"outcome": "cache_hit"})
                self.logger.info("Search served from cache", tier=lookup.tier, elapsed=round(trace.elapsed, 3))
                return SearchOutcome.from_dict(lookup.value)

            trace.advance(RequestState.CACHE_MISS)
            try:
                if self.rate_limiter is not None:
                    await self.rate_limiter.acquire(home_url)
                async with self.browser_pool.page_session() as page:
                    trace.advance(RequestState.NAVIGATING)
                    outcome = await self.search_service.run(page, criteria)
            except Exception as e:
                trace.advance(RequestState.ERROR_CLASSIFY)
                record = self.errors.classify(e, self._context_for(e, home_url))
                trace.advance(RequestState.DONE_ERROR)
                increment("searches_total", labels={"outcome": record.kind.label})
                return record

            trace.advance(RequestState.CACHE_STORE)
            await self.cache.set(SEARCH, key, outcome.to_dict())
            trace.advance(RequestState.DONE_SUCCESS)
            increment("searches_total", labels={"outcome": "success"})
            self.logger.info(
                "Search completed",
                total=len(outcome.items),
                pages=outcome.pages_processed,
                elapsed=round(trace.elapsed, 3),
            )
            return outcome

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    async def cache_get(self, category: str, key: str) -> CacheLookup:
        return await self.cache.get(category, key)

    async def cache_set(self, category: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await self.cache.set(category, key, value, ttl)

    async def cache_delete(self, category: str, key: str) -> bool:
        return await self.cache.delete(category, key)

    async def cache_clear(self, category: str = "all") -> int:
        return await self.cache.clear(category)

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    async def cache_health(self) -> Dict[str, Any]:
        return await self.cache.health_check()

    async def cache_type_info(self, category: str) -> Dict[str, Any]:
        return await self.cache.type_info(category)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_trace(self, operation: str, target: Any) -> RequestTrace:
        trace = RequestTrace(request_id=uuid4().hex[:12], operation=operation, target=str(target))
        self.traces.append(trace)
        return trace

    @staticmethod
    def _context_for(failure: BaseException, url: Optional[str]) -> ClassificationContext:
        details: Dict[str, Any] = {}
        for attribute in ("reason", "useful_fields_found", "attempts"):
            value = getattr(failure, attribute, None)
            if value is not None:
                details[attribute] = value
        status = getattr(failure, "status", None)
        return ClassificationContext(url=url, status=status if isinstance(status, int) else None, details=details)

    def _fail(self, trace: RequestTrace, failure: BaseException, portal: PortalId) -> ErrorRecord:
        trace.advance(RequestState.ERROR_CLASSIFY)
        url = trace.target if is_http_url(trace.target) else None
        record = self.errors.classify(failure, self._context_for(failure, url))
        trace.advance(RequestState.DONE_ERROR)
        increment("extractions_total", labels={"portal": portal.value, "outcome": record.kind.label})
        histogram("extraction_duration_seconds", trace.elapsed, labels={"portal": portal.value})
        self.logger.warning(
            "Extraction failed",
            url=trace.target,
            kind=record.kind.label,
            states=[s.value for s in trace.states],
            elapsed=round(trace.elapsed, 3),
        )
        return record

    def _finish(self, trace: RequestTrace, portal: PortalId, outcome: str, **extra: Any) -> None:
        trace.advance(RequestState.DONE_SUCCESS)
        increment("extractions_total", labels={"portal": portal.value, "outcome": outcome})
        histogram("extraction_duration_seconds", trace.elapsed, labels={"portal": portal.value})
        self.logger.info(
            "Extraction completed",
            url=trace.target,
            portal=portal.value,
            outcome=outcome,
            elapsed=round(trace.elapsed, 3),
            **extra,
        )
