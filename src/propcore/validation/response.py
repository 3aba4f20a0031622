"""
Pre-extraction checks on the transport status and the rendered page.

A status of 400 or above invalidates the response on its own. Independently,
the document title and final URL are scanned for the profile's
"content gone" phrases, so a soft 404 served with status 200 is caught too.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from ..errors import DEFAULT_MESSAGES, ErrorKind
from ..portals.profiles import GENERIC, SiteProfile
from ..protocols import PageLike
from ..recovery.classifier import STATUS_KINDS
from .outcome import ValidationOutcome, ValidationReason

logger = structlog.get_logger(__name__)


def _status_reason(status: int) -> ValidationReason:
    if status in (404, 410):
        return ValidationReason.NOT_FOUND
    if status in (401, 403):
        return ValidationReason.FORBIDDEN
    if status >= 500:
        return ValidationReason.SERVER_ERROR
    return ValidationReason.GENERIC_HTTP_ERROR


class ResponseValidator:
    def __init__(self) -> None:
        self.logger = logger.bind(component="response_validator")

    async def validate(
        self,
        status: Optional[int],
        page: PageLike,
        profile: SiteProfile = GENERIC,
    ) -> ValidationOutcome:
        if status is not None and status >= 400:
            reason = _status_reason(status)
            kind = STATUS_KINDS.get(status, ErrorKind.INTERNAL)
            self.logger.info("Response rejected by status", status=status, reason=reason.value)
            return ValidationOutcome.failed(reason, kind, f"HTTP {status}", status=status)

        title = await self._title_of(page)
        marker = self._match(title.lower(), profile.gone_title_markers)
        if marker is None:
            marker = self._match(self._url_of(page).lower(), profile.gone_url_markers)

        if marker is not None:
            self.logger.info("Response rejected by content marker", marker=marker, title=title, status=status)
            return ValidationOutcome.failed(
                ValidationReason.CONTENT_GONE,
                ErrorKind.NOT_FOUND,
                DEFAULT_MESSAGES[ErrorKind.NOT_FOUND],
                status=status,
                marker=marker,
                title=title,
            )

        return ValidationOutcome.passed(status=status, title=title)

    @staticmethod
    def _match(text: str, markers: Any) -> Optional[str]:
        if not text:
            return None
        return next((marker for marker in markers if marker in text), None)

    async def _title_of(self, page: PageLike) -> str:
        try:
            return (await page.title()) or ""
        except Exception as e:
            self.logger.debug("Could not read document title", error=str(e))
            return ""

    @staticmethod
    def _url_of(page: PageLike) -> str:
        return getattr(page, "url", "") or ""
