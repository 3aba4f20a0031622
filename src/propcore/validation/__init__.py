"""Response and content validation stages."""

from .content import ContentValidator
from .outcome import ValidationOutcome, ValidationReason
from .response import ResponseValidator

__all__ = ["ContentValidator", "ResponseValidator", "ValidationOutcome", "ValidationReason"]
