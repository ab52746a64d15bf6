"""
API token model: a named Wildberries seller credential.
"""

import enum
from uuid import uuid4

from sqlalchemy import Column, Enum, String, Text

from .base import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    """Billing state of the seller account a token belongs to."""
    FREE = "free"
    TRIAL = "trial"
    PENDING = "pending"
    DISABLED = "disabled"


class ApiToken(Base, TimestampMixin):
    """
    Stored seller credential.

    The api_key is sent upstream as-is; report pipelines only read it.
    """

    __tablename__ = "api_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(255), nullable=False)
    api_key = Column(Text, nullable=False)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=PaymentStatus.FREE,
        nullable=False
    )
    comment = Column(Text, default="")

    def to_dict(self, include_key: bool = True) -> dict:
        """Convert to API representation."""
        data = {
            "id": self.id,
            "name": self.name,
            "paymentStatus": self.payment_status.value if self.payment_status else None,
            "comment": self.comment or "",
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_key:
            data["apiKey"] = self.api_key
        return data

    def __repr__(self) -> str:
        return f"<ApiToken(id={self.id}, name={self.name})>"
