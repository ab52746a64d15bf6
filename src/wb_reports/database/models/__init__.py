"""
SQLAlchemy database models for WB Reports.

Models:
- ApiToken: Named Wildberries seller credentials
- CostPrice: Saved cost prices per token and product variant
"""

from .base import Base
from .token import ApiToken, PaymentStatus
from .cost_price import CostPrice

__all__ = [
    "Base",
    "ApiToken",
    "PaymentStatus",
    "CostPrice",
]
