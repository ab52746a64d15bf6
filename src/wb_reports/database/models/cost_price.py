"""
Saved cost price per product variant and token.
"""

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, String, UniqueConstraint

from .base import Base, TimestampMixin


class CostPrice(Base, TimestampMixin):
    """
    Cost price keyed by "{nmID}-{barcode}".

    Unique per (token_id, product_key); written by the cost price routes,
    read by the catalog report.
    """

    __tablename__ = "cost_prices"
    __table_args__ = (
        UniqueConstraint("token_id", "product_key", name="uq_cost_prices_token_product"),
        Index("ix_cost_prices_token_nm_barcode", "token_id", "nm_id", "barcode"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(
        String(36),
        ForeignKey("api_tokens.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_key = Column(String(255), nullable=False)
    nm_id = Column(Integer, nullable=False)
    barcode = Column(String(255), nullable=False, default="")
    cost_price = Column(Float, nullable=False)
    updated_by = Column(String(100))

    def __repr__(self) -> str:
        return f"<CostPrice(token_id={self.token_id}, product_key={self.product_key}, cost_price={self.cost_price})>"
