"""
Cursor pagination over Wildberries ledgers and the content catalog.

Both pagers share the same rules: strictly sequential pages with a pause
between requests, a boundary-duplicate check on the first item of every
non-first page, termination on an empty/short page or a cursor that makes no
progress, a final dedup pass, and a hard page bound that fails loudly.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from wb_reports.api.client import RateLimitedHttpClient
from wb_reports.core.models import LedgerRecord
from wb_reports.utils.exceptions import (
    DataIntegrityError, MalformedResponseError, TooManyPagesError
)
from wb_reports.utils.logger import get_logger
from wb_reports.utils.rate_limiting import Phase, Sleeper


logger = get_logger(__name__)


def to_upstream_range(date_from: date, date_to: date) -> tuple:
    """RFC3339 bounds without offset, in the seller's (Moscow) wall-clock time."""
    return f"{date_from.isoformat()}T00:00:00", f"{date_to.isoformat()}T23:59:59"


def dedup_by(items: Iterable[Any], key) -> List[Any]:
    """
    Keep the first occurrence of every key, preserving order.

    Items whose key is None are always kept.
    """
    seen = set()
    result = []
    for item in items:
        item_key = key(item)
        if item_key is None:
            result.append(item)
            continue
        if item_key in seen:
            continue
        seen.add(item_key)
        result.append(item)
    return result


class PaginatedLedgerFetcher:
    """
    Sales-detail ledger pager (reportDetailByPeriod).

    Each call to fetch_all re-fetches from scratch and returns a fully
    materialized, deduplicated list.
    """

    def __init__(self, client: RateLimitedHttpClient, url: str,
                 page_size: int = 100000,
                 max_pages: int = 50,
                 page_interval: float = 60.0,
                 cursor_param: str = "rrdid",
                 sleeper: Optional[Sleeper] = None):
        self.client = client
        self.url = url
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_interval = page_interval
        self.cursor_param = cursor_param
        self.sleeper = sleeper or client.sleeper

    async def fetch_all(self, date_from: date, date_to: date,
                        period: Optional[str] = None) -> List[LedgerRecord]:
        """
        Fetch every ledger row for the window.

        Args:
            date_from: First day of the window
            date_to: Last day of the window
            period: Optional upstream aggregation ("daily" or "weekly")

        Returns:
            Rows in upstream order, each row_id at most once

        Raises:
            TooManyPagesError: If more than max_pages pages would be needed
            MalformedResponseError: If a page is not a JSON array of objects
        """
        upstream_from, upstream_to = to_upstream_range(date_from, date_to)
        logger.info(f"📊 Fetching sales ledger {upstream_from} - {upstream_to}")

        records: List[LedgerRecord] = []
        seen_ids = set()
        cursor: Any = 0
        pages = 0

        while True:
            if pages >= self.max_pages:
                logger.error(f"❌ Ledger pagination exceeded {self.max_pages} pages")
                raise TooManyPagesError(
                    f"Sales ledger needs more than {self.max_pages} pages",
                    max_pages=self.max_pages,
                    records=len(records)
                )
            if pages > 0:
                await self.sleeper.sleep(self.page_interval, Phase.PAGING,
                                         f"ledger page {pages + 1}")

            params = {
                "dateFrom": upstream_from,
                "dateTo": upstream_to,
                "limit": self.page_size,
                self.cursor_param: cursor,
            }
            if period:
                params["period"] = period

            data = await self.client.call_json("GET", self.url, params=params)
            pages += 1

            if data is None:
                data = []
            if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
                raise MalformedResponseError(
                    "Sales ledger page is not an array of records",
                    response_data=str(data)[:300],
                    endpoint=self.url
                )
            if not data:
                logger.debug(f"Ledger page {pages} empty, done")
                break

            page = [LedgerRecord.from_api(row) for row in data]
            if pages > 1 and page[0].row_id is not None and page[0].row_id in seen_ids:
                logger.debug(f"Dropping boundary duplicate rrd_id={page[0].row_id}")
                page = page[1:]

            records.extend(page)
            seen_ids.update(r.row_id for r in page if r.row_id is not None)
            logger.info(f"Ledger page {pages}: {len(data)} rows (total {len(records)})")

            if len(data) < self.page_size:
                break

            next_cursor = data[-1].get("rrd_id")
            if next_cursor in (None, ""):
                logger.warning("⚠️ Last ledger row has no rrd_id, stopping pagination")
                break
            if next_cursor == cursor:
                logger.warning(f"⚠️ Ledger cursor did not advance ({cursor}), stopping pagination")
                break
            cursor = next_cursor

        result = dedup_by(records, lambda r: r.row_id)
        if len(result) != len(records):
            logger.info(f"Removed {len(records) - len(result)} duplicate ledger rows")
        logger.info(f"✅ Sales ledger: {len(result)} rows in {pages} pages")
        return result


def card_product_id(card: Dict[str, Any]) -> int:
    """
    Numeric nmID of a catalog card.

    Raises:
        DataIntegrityError: If the card carries no usable nmID
    """
    value = card.get("nmID")
    if isinstance(value, bool) or value is None:
        raise DataIntegrityError("Catalog card without nmID", {"vendorCode": card.get("vendorCode")})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise DataIntegrityError("Catalog card with non-numeric nmID", {"nmID": value})


class CatalogPager:
    """
    Content catalog pager (/content/v2/get/cards/list).

    The cursor is the (updatedAt, nmID) pair returned with each page. A 429
    is retried on the same page by the HTTP client.
    """

    def __init__(self, client: RateLimitedHttpClient, url: str,
                 page_size: int = 100,
                 max_pages: int = 100,
                 page_interval: float = 0.5,
                 sleeper: Optional[Sleeper] = None):
        self.client = client
        self.url = url
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_interval = page_interval
        self.sleeper = sleeper or client.sleeper

    def _body(self, updated_at: Optional[str], nm_id: Optional[int]) -> Dict[str, Any]:
        cursor: Dict[str, Any] = {"limit": self.page_size}
        if updated_at:
            cursor["updatedAt"] = updated_at
        if nm_id:
            cursor["nmID"] = nm_id
        return {"settings": {"cursor": cursor, "filter": {"withPhoto": -1}}}

    async def fetch_all(self) -> List[Dict[str, Any]]:
        """
        Fetch every product card.

        Returns:
            Cards in upstream order, each nmID at most once

        Raises:
            TooManyPagesError: If more than max_pages pages would be needed
            DataIntegrityError: If a card has no numeric nmID
            MalformedResponseError: If a page has an unexpected shape
        """
        logger.info("📦 Fetching product catalog")

        cards: List[Dict[str, Any]] = []
        seen_ids = set()
        cursor = (None, None)
        pages = 0

        while True:
            if pages >= self.max_pages:
                logger.error(f"❌ Catalog pagination exceeded {self.max_pages} pages")
                raise TooManyPagesError(
                    f"Product catalog needs more than {self.max_pages} pages",
                    max_pages=self.max_pages,
                    records=len(cards)
                )
            if pages > 0:
                await self.sleeper.sleep(self.page_interval, Phase.PAGING,
                                         f"catalog page {pages + 1}")

            data = await self.client.call_json("POST", self.url, json=self._body(*cursor))
            pages += 1

            if data is None:
                break
            if not isinstance(data, dict) or not isinstance(data.get("cards") or [], list):
                raise MalformedResponseError(
                    "Catalog page has no cards array",
                    response_data=str(data)[:300],
                    endpoint=self.url
                )

            page = data.get("cards") or []
            if not page:
                break

            ids = [card_product_id(card) for card in page]
            if pages > 1 and ids[0] in seen_ids:
                logger.debug(f"Dropping boundary duplicate nmID={ids[0]}")
                page, ids = page[1:], ids[1:]

            cards.extend(page)
            seen_ids.update(ids)
            logger.info(f"Catalog page {pages}: {len(data.get('cards') or [])} cards (total {len(cards)})")

            if len(data.get("cards") or []) < self.page_size:
                break

            upstream_cursor = data.get("cursor") or {}
            next_cursor = (upstream_cursor.get("updatedAt"), upstream_cursor.get("nmID"))
            if not next_cursor[0] and not next_cursor[1]:
                break
            if next_cursor == cursor:
                logger.warning("⚠️ Catalog cursor did not advance, stopping pagination")
                break
            cursor = next_cursor

        result = dedup_by(cards, card_product_id)
        logger.info(f"✅ Product catalog: {len(result)} cards in {pages} pages")
        return result
