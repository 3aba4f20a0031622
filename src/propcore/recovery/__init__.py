"""Failure classification for the acquisition core."""

from .classifier import ClassificationContext, ErrorClassifier

__all__ = ["ClassificationContext", "ErrorClassifier"]
