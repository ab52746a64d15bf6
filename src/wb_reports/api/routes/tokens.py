"""
Seller token management routes.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from wb_reports.api.schemas import MessageResponse, TokenCreate, TokenUpdate
from wb_reports.database.connection import get_db
from wb_reports.database.operations import TokenRepository
from wb_reports.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("")
def list_tokens(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    """List stored tokens, newest first."""
    return [token.to_dict() for token in TokenRepository(db).list_tokens()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_token(payload: TokenCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Store a new token. Name and API key are required."""
    token = TokenRepository(db).create(
        name=payload.name,
        api_key=payload.api_key,
        payment_status=payload.payment_status,
        comment=payload.comment,
    )
    return token.to_dict()


@router.put("/{token_id}")
def update_token(token_id: str, payload: TokenUpdate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Update any subset of token fields."""
    token = TokenRepository(db).update(
        token_id,
        name=payload.name,
        api_key=payload.api_key,
        payment_status=payload.payment_status,
        comment=payload.comment,
    )
    return token.to_dict()


@router.delete("/{token_id}", response_model=MessageResponse)
def delete_token(token_id: str, db: Session = Depends(get_db)):
    TokenRepository(db).delete(token_id)
    return MessageResponse(message="Токен успешно удален")
