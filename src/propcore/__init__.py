"""
PropCore - Resilient acquisition and caching of Chilean real-estate listings.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import DependencyContainer
from .pipeline import AcquisitionPipeline

__all__ = ["__version__", "Config", "DependencyContainer", "AcquisitionPipeline"]
