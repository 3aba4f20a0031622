"""
Maps heterogeneous failures into the closed :class:`ErrorKind` taxonomy.

Structured signals are consulted first, in this order: the transport status
code, an explicit ``kind`` carried by a :class:`PropCoreError` anywhere in the
cause chain, and timeout exception types. Only when none of these decide is
the concatenated message text (plus, optionally, the traceback) matched
against keyword rules. The request URL is removed from that text before
matching so path fragments such as ``/404-case`` cannot steer the result.
"""

from __future__ import annotations

import asyncio
import re
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

import structlog
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import DEFAULT_MESSAGES, ErrorKind, ErrorRecord, PropCoreError
from ..observability import increment

logger = structlog.get_logger(__name__)

MAX_CAUSE_DEPTH = 8

STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_URL,
    401: ErrorKind.FORBIDDEN,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    408: ErrorKind.TIMEOUT,
    410: ErrorKind.NOT_FOUND,
    504: ErrorKind.TIMEOUT,
}

KEYWORD_RULES: Tuple[Tuple[ErrorKind, Pattern[str]], ...] = (
    (
        ErrorKind.INVALID_URL,
        re.compile(r"invalid url|url inv[aá]lida|err_invalid_url|unsupported protocol|cannot navigate to invalid"),
    ),
    (
        ErrorKind.TIMEOUT,
        re.compile(r"timeout|timed out|tiempo (?:de espera )?agotado"),
    ),
    (
        ErrorKind.FORBIDDEN,
        re.compile(r"\b403\b|forbidden|access denied|acceso denegado|captcha"),
    ),
    (
        ErrorKind.NOT_FOUND,
        re.compile(
            r"\b404\b|not found|no encontrad[ao]|no existe|err_name_not_resolved"
            r"|publicaci[oó]n finalizada|ya no est[aá] disponible"
        ),
    ),
    (
        ErrorKind.NOT_A_PROPERTY_PAGE,
        re.compile(r"not a property|no es una propiedad"),
    ),
    (
        ErrorKind.INSUFFICIENT_DATA,
        re.compile(r"insufficient|insuficiente"),
    ),
)

TIMEOUT_TYPES: Tuple[type, ...] = (PlaywrightTimeoutError, asyncio.TimeoutError, TimeoutError)


@dataclass
class ClassificationContext:
    """What the caller knows about the failing request."""

    url: Optional[str] = None
    status: Optional[int] = None
    include_stack: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


class ErrorClassifier:
    """Turns any failure into exactly one :class:`ErrorRecord`."""

    def __init__(self, rules: Sequence[Tuple[ErrorKind, Pattern[str]]] = KEYWORD_RULES) -> None:
        self.rules = tuple(rules)
        self.logger = logger.bind(component="ErrorClassifier")

    def classify(self, failure: BaseException, context: Optional[ClassificationContext] = None) -> ErrorRecord:
        context = context or ClassificationContext()
        chain = self._cause_chain(failure)
        url = context.url or next((getattr(exc, "url", None) for exc in chain if getattr(exc, "url", None)), None)

        kind, signal = self._classify_structured(chain, context)
        if kind is None:
            text = self._failure_text(chain, context, url)
            kind, signal = self._classify_text(text)

        messages = [self._message_of(exc) for exc in chain]
        record = ErrorRecord(
            kind=kind,
            message=DEFAULT_MESSAGES[kind],
            url=url,
            causes=[m for m in messages if m],
            details=dict(context.details),
        )

        increment("errors_classified_total", labels={"kind": kind.label})
        self.logger.info(
            "Failure classified",
            kind=kind.label,
            signal=signal,
            url=url,
            status=context.status,
            cause=messages[0] if messages else None,
        )
        return record

    # ------------------------------------------------------------------
    # Structured signals
    # ------------------------------------------------------------------

    def _classify_structured(
        self, chain: List[BaseException], context: ClassificationContext
    ) -> Tuple[Optional[ErrorKind], str]:
        status = context.status
        if status is None:
            statuses = [getattr(exc, "status", None) for exc in chain]
            status = next((s for s in statuses if isinstance(s, int)), None)
        if isinstance(status, int) and status >= 400:
            return STATUS_KINDS.get(status, ErrorKind.INTERNAL), f"status:{status}"

        for exc in chain:
            if isinstance(exc, PropCoreError) and exc.kind is not None:
                return exc.kind, f"kind:{type(exc).__name__}"

        for exc in chain:
            if isinstance(exc, TIMEOUT_TYPES):
                return ErrorKind.TIMEOUT, "timeout_type"

        return None, ""

    # ------------------------------------------------------------------
    # Text heuristics
    # ------------------------------------------------------------------

    def _classify_text(self, text: str) -> Tuple[ErrorKind, str]:
        for kind, pattern in self.rules:
            match = pattern.search(text)
            if match:
                return kind, f"keyword:{match.group(0)}"
        return ErrorKind.INTERNAL, "default"

    def _failure_text(self, chain: List[BaseException], context: ClassificationContext, url: Optional[str]) -> str:
        parts = [self._message_of(exc) for exc in chain]
        if context.include_stack:
            for exc in chain:
                parts.append("".join(traceback.format_tb(exc.__traceback__)))
        text = " | ".join(p for p in parts if p)
        if url:
            text = text.replace(url, " ")
        return text.lower()

    @staticmethod
    def _cause_chain(failure: BaseException) -> List[BaseException]:
        chain: List[BaseException] = []
        current: Optional[BaseException] = failure
        while current is not None and current not in chain and len(chain) < MAX_CAUSE_DEPTH:
            chain.append(current)
            current = current.__cause__ or current.__context__
        return chain

    @staticmethod
    def _message_of(exc: BaseException) -> str:
        message = getattr(exc, "message", None)
        if isinstance(message, str) and message:
            return message
        return str(exc)
