"""Portal recognition and per-portal extraction recipes."""

from .classifier import PortalClassifier, UrlCheck, classify_portal, is_http_url
from .profiles import GENERIC, PROFILES, CharacteristicRegion, SiteProfile, profile_for

__all__ = [
    "CharacteristicRegion",
    "GENERIC",
    "PROFILES",
    "PortalClassifier",
    "SiteProfile",
    "UrlCheck",
    "classify_portal",
    "is_http_url",
    "profile_for",
]
