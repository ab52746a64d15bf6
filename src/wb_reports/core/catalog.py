"""
Product catalog merge.

Combines content-API cards, paid storage records (subject enrichment), saved
cost prices and optionally sales ledger rows into one CatalogRow per product
variant (size x barcode).
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from wb_reports.core.models import CatalogRow, LedgerRecord, SourceTag
from wb_reports.core.pagination import card_product_id
from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)


def product_key(product_id: Any, barcode: str) -> str:
    """Cost price key: "{productId}-{barcode}"."""
    return f"{product_id if product_id is not None else ''}-{barcode or ''}"


class ProductCatalogMerger:
    """Merge catalog, storage, cost price and ledger sources into catalog rows."""

    def __init__(self):
        self.subjects: Dict[str, str] = {}

    def build_subject_lookup(self, cards: Iterable[Dict[str, Any]],
                             storage_records: Iterable[Dict[str, Any]]) -> Dict[str, str]:
        """
        Subject (category) names keyed by product id and by vendor code.

        Card subjects win; storage records only fill keys the cards leave empty.
        """
        lookup: Dict[str, str] = {}

        for card in cards:
            subject = card.get("object") or card.get("subjectName") or ""
            if not subject:
                continue
            if card.get("nmID") is not None:
                lookup[str(card["nmID"])] = subject
            if card.get("vendorCode"):
                lookup[str(card["vendorCode"])] = subject

        filled = 0
        for record in storage_records:
            subject = record.get("subject") or record.get("subjectName") or ""
            if not subject:
                continue
            for key in (record.get("nmId"), record.get("vendorCode")):
                if key is None or key == "":
                    continue
                if str(key) not in lookup:
                    lookup[str(key)] = subject
                    filled += 1

        if filled:
            logger.debug(f"Storage records filled {filled} subject keys")
        self.subjects = lookup
        return lookup

    def _subject_for(self, product_id: Any, vendor_code: str, own: str = "") -> str:
        if own:
            return own
        return self.subjects.get(str(product_id), "") or self.subjects.get(vendor_code or "", "")

    def expand_card(self, card: Dict[str, Any],
                    cost_prices: Mapping[str, float]) -> List[CatalogRow]:
        """
        One row per (size x barcode); a size without barcodes or a card
        without sizes still yields exactly one row.
        """
        nm_id = card_product_id(card)
        vendor_code = card.get("vendorCode") or ""
        base = {
            "product_id": nm_id,
            "vendor_code": vendor_code,
            "subject": self._subject_for(nm_id, vendor_code,
                                         card.get("object") or card.get("subjectName") or ""),
            "brand": card.get("brand") or "",
            "source_tag": SourceTag.CATALOG,
            "created_at": card.get("createdAt") or "",
            "updated_at": card.get("updatedAt") or "",
        }

        sizes = card.get("sizes") or []
        if not sizes:
            return [CatalogRow(size="", barcode="", price=0,
                               cost_price=cost_prices.get(product_key(nm_id, ""), 0), **base)]

        rows = []
        for size in sizes:
            size_name = size.get("techSize") or size.get("wbSize") or ""
            price = size.get("price") or 0
            barcodes = [str(sku) for sku in (size.get("skus") or []) if sku not in (None, "")] or [""]
            for barcode in barcodes:
                rows.append(CatalogRow(
                    size=size_name,
                    barcode=barcode,
                    price=price,
                    cost_price=cost_prices.get(product_key(nm_id, barcode), 0),
                    **base
                ))
        return rows

    def ledger_rows(self, ledger_records: Iterable[LedgerRecord],
                    known_keys: set,
                    cost_prices: Mapping[str, float]) -> List[CatalogRow]:
        """
        Rows for products sold per the ledger but missing from the catalog,
        matched by vendor code + barcode, one row per distinct key.
        """
        rows = []
        for record in ledger_records:
            if not record.vendor_code and not record.barcode:
                # service lines (logistics, penalties) reference no product
                continue
            key: Tuple[str, str] = (record.vendor_code, record.barcode)
            if key in known_keys:
                continue
            known_keys.add(key)
            rows.append(CatalogRow(
                product_id=record.product_id,
                vendor_code=record.vendor_code,
                subject=self._subject_for(record.product_id, record.vendor_code, record.subject),
                brand=record.brand,
                size=record.size,
                barcode=record.barcode,
                price=record.retail_price_with_discount,
                cost_price=cost_prices.get(product_key(record.product_id, record.barcode), 0),
                source_tag=SourceTag.LEDGER_DERIVED,
            ))
        return rows

    def merge(self, cards: List[Dict[str, Any]],
              storage_records: Optional[List[Dict[str, Any]]] = None,
              saved_cost_prices: Optional[Mapping[str, float]] = None,
              ledger_records: Optional[List[LedgerRecord]] = None) -> List[CatalogRow]:
        """
        Merge all sources into catalog rows.

        Args:
            cards: Product cards from the content API
            storage_records: Paid storage rows for subject enrichment
            saved_cost_prices: productKey -> cost price
            ledger_records: Sales ledger rows for products absent from the catalog

        Returns:
            Catalog rows (card order), then ledger-derived rows
        """
        cost_prices = dict(saved_cost_prices or {})
        self.build_subject_lookup(cards, storage_records or [])

        rows: List[CatalogRow] = []
        for card in cards:
            rows.extend(self.expand_card(card, cost_prices))

        derived: List[CatalogRow] = []
        if ledger_records:
            known = {(row.vendor_code, row.barcode) for row in rows}
            derived = self.ledger_rows(ledger_records, known, cost_prices)

        with_cost = sum(1 for row in rows + derived if row.cost_price > 0)
        logger.info(
            f"📦 Catalog merge: {len(cards)} cards -> {len(rows)} rows, "
            f"{len(derived)} ledger-derived, {with_cost} with cost price"
        )
        return rows + derived
