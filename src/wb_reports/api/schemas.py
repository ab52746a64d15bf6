"""
Pydantic schemas for API request/response validation.

Field names follow the camelCase JSON used by the web client.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Token schemas
class TokenCreate(CamelModel):
    """Token creation request; name and key are checked by the repository."""
    name: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    comment: Optional[str] = None


class TokenUpdate(CamelModel):
    """Partial token update."""
    name: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    comment: Optional[str] = None


# Cost price schemas
class CostPricesSave(CamelModel):
    """Cost prices keyed by "{nmID}-{barcode}"."""
    token_id: str = Field(..., min_length=1, alias="tokenId")
    cost_prices: Dict[str, Any] = Field(..., alias="costPrices")


class CostPricesResponse(CamelModel):
    cost_prices: Dict[str, float] = Field(..., alias="costPrices")


class CostPricesSaved(BaseModel):
    message: str
    saved: int


# Report schemas
class ReportGenerateRequest(CamelModel):
    """Report download request; dates are YYYY-MM-DD."""
    report_type: str = Field(..., alias="reportType")
    token_id: Optional[str] = Field(default=None, alias="tokenId")
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")
    client_name: Optional[str] = Field(default=None, alias="clientName")


class MessageResponse(BaseModel):
    message: str
