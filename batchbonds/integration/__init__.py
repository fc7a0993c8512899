"""
Batch clearing, lifecycle and the request-handling engine
"""

from .clearing import ClearingEngine, clearing_prices
from .config import EngineConfig
from .engine import BondsEngine
from .lifecycle import LifecycleController

__all__ = [
    "ClearingEngine",
    "clearing_prices",
    "EngineConfig",
    "BondsEngine",
    "LifecycleController",
]
