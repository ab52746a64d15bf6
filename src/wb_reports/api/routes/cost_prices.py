"""
Saved cost price routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wb_reports.api.schemas import CostPricesResponse, CostPricesSave, CostPricesSaved, MessageResponse
from wb_reports.database.connection import get_db
from wb_reports.database.operations import CostPriceStore
from wb_reports.utils.exceptions import NotFoundError, ValidationError
from wb_reports.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=CostPricesResponse, response_model_by_alias=True)
def get_cost_prices(token_id: Optional[str] = Query(None, alias="tokenId"),
                    db: Session = Depends(get_db)):
    """Cost prices of a token keyed by "{nmID}-{barcode}"."""
    if not token_id:
        raise ValidationError("Требуется указать tokenId", field="tokenId")
    return CostPricesResponse(cost_prices=CostPriceStore(db).load(token_id))


@router.post("", response_model=CostPricesSaved)
def save_cost_prices(payload: CostPricesSave, db: Session = Depends(get_db)):
    """Upsert cost prices; invalid keys and values are skipped."""
    saved = CostPriceStore(db).save(payload.token_id, payload.cost_prices)
    return CostPricesSaved(message=f"Сохранено {saved} записей себестоимости", saved=saved)


@router.delete("", response_model=MessageResponse)
def delete_cost_price(token_id: Optional[str] = Query(None, alias="tokenId"),
                      product_key: Optional[str] = Query(None, alias="productKey"),
                      db: Session = Depends(get_db)):
    if not token_id or not product_key:
        raise ValidationError("Требуется указать tokenId и productKey", field="productKey")

    if not CostPriceStore(db).delete(token_id, product_key):
        raise NotFoundError("Запись не найдена", {"token_id": token_id, "product_key": product_key})
    return MessageResponse(message="Себестоимость удалена")
