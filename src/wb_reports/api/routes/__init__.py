"""
API route modules.
"""

from . import cost_prices, health, reports, tokens

__all__ = ["cost_prices", "health", "reports", "tokens"]
