"""
Database operations for tokens and saved cost prices.

Repositories take an open Session; committing is their responsibility so
route handlers and the CLI stay free of transaction code.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wb_reports.database.models import ApiToken, CostPrice, PaymentStatus
from wb_reports.utils.exceptions import DatabaseError, NotFoundError, ValidationError
from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)


def parse_payment_status(value: str) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown payment status: {value}", field="paymentStatus", value=value)


class TokenRepository:
    """CRUD for stored seller credentials."""

    def __init__(self, db: Session):
        self.db = db

    def list_tokens(self) -> List[ApiToken]:
        """All tokens, newest first."""
        return list(self.db.scalars(select(ApiToken).order_by(ApiToken.created_at.desc())))

    def get(self, token_id: str) -> ApiToken:
        """
        Get a token by id.

        Raises:
            NotFoundError: If no token has this id
        """
        token = self.db.get(ApiToken, token_id)
        if token is None:
            raise NotFoundError("Токен не найден", {"token_id": token_id})
        return token

    def create(self, name: str, api_key: str,
               payment_status: Optional[str] = None,
               comment: Optional[str] = None) -> ApiToken:
        """
        Store a new token.

        Raises:
            ValidationError: If name or api key is empty
        """
        name = (name or "").strip()
        api_key = (api_key or "").strip()
        if not name or not api_key:
            raise ValidationError("Название и API-ключ обязательны", field="name" if not name else "apiKey")

        token = ApiToken(
            name=name,
            api_key=api_key,
            payment_status=parse_payment_status(payment_status) if payment_status else PaymentStatus.FREE,
            comment=comment or "",
        )
        self._commit(lambda: self.db.add(token), "create")
        self.db.refresh(token)
        logger.info(f"Created token {token.id} ({token.name})")
        return token

    def update(self, token_id: str, name: Optional[str] = None,
               api_key: Optional[str] = None,
               payment_status: Optional[str] = None,
               comment: Optional[str] = None) -> ApiToken:
        """Partially update a token; empty name/key values are ignored."""
        token = self.get(token_id)

        if name and name.strip():
            token.name = name.strip()
        if api_key and api_key.strip():
            token.api_key = api_key.strip()
        if payment_status:
            token.payment_status = parse_payment_status(payment_status)
        if comment is not None:
            token.comment = comment

        self._commit(lambda: None, "update")
        self.db.refresh(token)
        return token

    def delete(self, token_id: str) -> None:
        """Delete a token together with its saved cost prices."""
        token = self.get(token_id)

        def _delete():
            self.db.query(CostPrice).filter(CostPrice.token_id == token_id).delete()
            self.db.delete(token)

        self._commit(_delete, "delete")
        logger.info(f"Deleted token {token_id}")

    def _commit(self, action, operation: str) -> None:
        try:
            action()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DatabaseError(f"Token {operation} failed: {e}", operation=operation,
                                table="api_tokens") from e


def parse_product_key(product_key: str) -> Optional[Tuple[int, str]]:
    """
    Split "{nmID}-{barcode}" into its parts.

    Returns:
        (nm_id, barcode), or None when the key is not usable
    """
    if not product_key or not isinstance(product_key, str) or "-" not in product_key:
        return None
    nm_part, barcode = product_key.split("-", 1)
    try:
        nm_id = int(nm_part)
    except ValueError:
        return None
    if nm_id <= 0:
        return None
    return nm_id, barcode


def parse_cost_price(value: Any) -> Optional[float]:
    """Non-negative cost price, or None when the value is not usable."""
    if isinstance(value, bool):
        return None
    try:
        price = float(str(value).replace(",", "."))
    except (TypeError, ValueError):
        return None
    if price != price or price < 0:
        return None
    return price


class CostPriceStore:
    """Saved cost prices keyed by product key, per token."""

    def __init__(self, db: Session):
        self.db = db

    def load(self, token_id: str) -> Dict[str, float]:
        """
        Cost prices for a token.

        Returns:
            productKey -> cost price; invalid rows are skipped

        Raises:
            DatabaseError: If the query fails
        """
        if not token_id or not token_id.strip():
            return {}

        try:
            rows = self.db.scalars(select(CostPrice).where(CostPrice.token_id == token_id)).all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to load cost prices: {e}", operation="load",
                                table="cost_prices") from e

        prices: Dict[str, float] = {}
        for row in rows:
            if row.product_key and parse_cost_price(row.cost_price) is not None:
                prices[row.product_key] = float(row.cost_price)

        if len(prices) != len(rows):
            logger.warning(f"⚠️ Skipped {len(rows) - len(prices)} invalid cost price rows for token {token_id}")
        logger.debug(f"Loaded {len(prices)} cost prices for token {token_id}")
        return prices

    def save(self, token_id: str, cost_prices: Mapping[str, Any],
             updated_by: str = "system") -> int:
        """
        Upsert cost prices.

        Keys without "-", non-positive product ids and negative or
        non-numeric prices are skipped.

        Returns:
            Number of saved entries
        """
        if not token_id or not cost_prices:
            return 0

        saved = 0
        skipped = 0
        try:
            for product_key, value in cost_prices.items():
                parsed = parse_product_key(product_key)
                price = parse_cost_price(value)
                if parsed is None or price is None:
                    skipped += 1
                    continue

                nm_id, barcode = parsed
                entry = self.db.scalars(
                    select(CostPrice).where(
                        CostPrice.token_id == token_id,
                        CostPrice.product_key == product_key,
                    )
                ).first()
                if entry is None:
                    entry = CostPrice(token_id=token_id, product_key=product_key)
                    self.db.add(entry)

                entry.nm_id = nm_id
                entry.barcode = barcode
                entry.cost_price = price
                entry.updated_by = updated_by
                saved += 1

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DatabaseError(f"Failed to save cost prices: {e}", operation="save",
                                table="cost_prices") from e

        logger.info(f"💾 Saved {saved} cost prices for token {token_id} (skipped {skipped})")
        return saved

    def delete(self, token_id: str, product_key: str) -> bool:
        """
        Delete one saved cost price.

        Returns:
            True if an entry was deleted
        """
        try:
            deleted = self.db.query(CostPrice).filter(
                CostPrice.token_id == token_id,
                CostPrice.product_key == product_key,
            ).delete()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DatabaseError(f"Failed to delete cost price: {e}", operation="delete",
                                table="cost_prices") from e
        return bool(deleted)
