"""
Dual-pool constant-product exchange simulator with a two-pool arbitrage strategy.
"""

from .errors import DualPoolError

__version__ = "0.1.0"

__all__ = ["DualPoolError", "__version__"]
