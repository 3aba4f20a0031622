"""Portal Inmobiliario listing search."""

from .criteria import SearchCriteria
from .service import SearchOutcome, SearchService

__all__ = ["SearchCriteria", "SearchOutcome", "SearchService"]
