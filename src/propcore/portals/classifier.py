"""
URL to portal classification.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

import structlog

from ..protocols import PortalId
from .profiles import profile_for

logger = structlog.get_logger(__name__)

# First match wins.
PORTAL_DOMAINS: Tuple[Tuple[PortalId, Tuple[str, ...]], ...] = (
    (PortalId.PORTAL_INMOBILIARIO, ("portalinmobiliario.com",)),
    (PortalId.MERCADOLIBRE, ("mercadolibre.cl",)),
    (PortalId.YAPO, ("yapo.cl",)),
    (PortalId.TOCTOC, ("toctoc.com",)),
    (PortalId.CMF_SIMULADOR, ("cmfchile.cl",)),
)


@dataclass(frozen=True)
class UrlCheck:
    """Outcome of validating a URL without navigating to it."""

    url: str
    valid: bool
    portal: PortalId
    supported: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": self.url,
            "valid": self.valid,
            "portal": self.portal.value,
            "supported": self.supported,
        }
        if self.reason:
            payload["reason"] = self.reason
        return payload


def _host_of(url: str) -> Optional[str]:
    try:
        return urlsplit(url.strip()).hostname
    except ValueError:
        return None


def is_http_url(url: Any) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


class PortalClassifier:
    """Maps URLs to :class:`PortalId`. Total: never raises, unmatched input is ``UNKNOWN``."""

    def __init__(self, table: Tuple[Tuple[PortalId, Tuple[str, ...]], ...] = PORTAL_DOMAINS) -> None:
        self.table = table

    def classify(self, url: Any) -> PortalId:
        if not isinstance(url, str) or not url:
            return PortalId.UNKNOWN

        host = _host_of(url)
        haystack = (host or url).lower()
        for portal, domains in self.table:
            for domain in domains:
                if host is not None:
                    if haystack == domain or haystack.endswith(f".{domain}"):
                        return portal
                elif domain in haystack:
                    return portal

        logger.debug("Portal not recognised, generic extraction will be used", url=url)
        return PortalId.UNKNOWN

    def validate_url(self, url: Any) -> UrlCheck:
        """Report whether a URL is well-formed and which portal serves it."""
        text = url if isinstance(url, str) else ""
        if not is_http_url(url):
            return UrlCheck(
                url=text,
                valid=False,
                portal=PortalId.UNKNOWN,
                supported=False,
                reason="Formato de URL inválido",
            )
        portal = self.classify(url)
        return UrlCheck(url=text, valid=True, portal=portal, supported=profile_for(portal).supported)


_default_classifier = PortalClassifier()


def classify_portal(url: Any) -> PortalId:
    """Module-level shortcut using the default domain table."""
    return _default_classifier.classify(url)
