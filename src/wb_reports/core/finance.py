"""
Advertising finance aggregation.

Joins the advertising expense ledger (/adv/v1/upd), reconciled over buffer
days, with campaign metadata and per-campaign SKU attribution. Metadata and
SKU lookups degrade to placeholders; the expense ledger itself is required.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from wb_reports.api.client import RateLimitedHttpClient
from wb_reports.api.endpoints import WBEndpoints
from wb_reports.core.models import (
    UNKNOWN_CAMPAIGN, UNKNOWN_OPERATION, Campaign, FinanceRecord, FinanceRow
)
from wb_reports.core.reconciler import BufferDayReconciler
from wb_reports.utils.exceptions import (
    APIError, InvalidCredentialError, MalformedResponseError,
    RetryBudgetExhaustedError, UpstreamUnavailableError
)
from wb_reports.utils.logger import get_logger
from wb_reports.utils.rate_limiting import Sleeper, run_in_batches


logger = get_logger(__name__)

NO_SKU = "Нет SKU"
SKU_BATCH_FAILED = "Ошибка получения SKU"
SKU_REQUEST_FAILED = "Ошибка запроса"
SKU_MISSING = "Нет данных SKU"

AUTO_CAMPAIGN = 8
AUCTION_CAMPAIGN = 9

CAMPAIGN_TYPES = {
    4: "Каталог",
    5: "Карточка товара",
    6: "Поиск",
    7: "Рекомендации",
    8: "Автоматическая",
    9: "Аукцион",
}

CAMPAIGN_STATUSES = {
    -1: "Удаляется",
    4: "Готова к запуску",
    7: "Завершена",
    8: "Отменена",
    9: "Активна",
    11: "На паузе",
}


def _label(value: Any, names: Dict[int, str]) -> str:
    if value is None or value == "":
        return UNKNOWN_OPERATION
    try:
        return names.get(int(value), str(value))
    except (TypeError, ValueError):
        return str(value)


def extract_skus(detail: Dict[str, Any]) -> str:
    """
    SKU (nm) attribution of one campaign detail record.

    Auto campaigns list nms in autoParams, auction campaigns per bid;
    unitedParams and the legacy params block apply to any type.

    Returns:
        Unique SKUs joined with ", " in discovery order, or NO_SKU
    """
    skus: List[Any] = []
    campaign_type = detail.get("type")

    if campaign_type == AUTO_CAMPAIGN:
        auto_params = detail.get("autoParams") or {}
        if isinstance(auto_params.get("nms"), list):
            skus.extend(auto_params["nms"])

    if campaign_type == AUCTION_CAMPAIGN and isinstance(detail.get("auction_multibids"), list):
        skus.extend(bid.get("nm") for bid in detail["auction_multibids"] if isinstance(bid, dict))

    for block in ("unitedParams", "params"):
        if not isinstance(detail.get(block), list):
            continue
        for param in detail[block]:
            if not isinstance(param, dict):
                continue
            for nm in param.get("nms") or []:
                skus.append(nm.get("nm") if isinstance(nm, dict) else nm)

    unique = []
    for sku in skus:
        if sku and sku not in unique:
            unique.append(sku)

    return ", ".join(str(sku) for sku in unique) or NO_SKU


class CampaignFinanceAggregator:
    """Build advertising finance rows for a date window."""

    def __init__(self, client: RateLimitedHttpClient,
                 endpoints: Optional[WBEndpoints] = None,
                 batch_size: int = 50,
                 batch_pause: float = 0.25,
                 concurrency: int = 3,
                 sleeper: Optional[Sleeper] = None):
        self.client = client
        self.endpoints = endpoints or WBEndpoints()
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.concurrency = concurrency
        self.sleeper = sleeper or client.sleeper
        self.reconciler: BufferDayReconciler[FinanceRecord] = BufferDayReconciler(
            date_of=lambda r: r.date,
            document_of=lambda r: r.document_number,
        )

    async def fetch_campaigns(self) -> Dict[int, Campaign]:
        """
        Campaign metadata keyed by campaign id.

        Failures other than an invalid credential degrade to empty metadata.
        """
        try:
            data = await self.client.call_json("GET", self.endpoints.campaign_count)
        except InvalidCredentialError:
            raise
        except APIError as e:
            logger.warning(f"⚠️ Campaign list unavailable, continuing without metadata: {e}")
            return {}

        campaigns: Dict[int, Campaign] = {}
        groups = data.get("adverts") if isinstance(data, dict) else None
        for group in groups or []:
            if not isinstance(group, dict):
                continue
            entries = group.get("advert_list")
            if not isinstance(entries, list):
                entries = [group]
            for entry in entries:
                if not isinstance(entry, dict) or not entry.get("advertId"):
                    continue
                campaign_id = int(entry["advertId"])
                campaigns[campaign_id] = Campaign(
                    campaign_id=campaign_id,
                    name=entry.get("name") or "",
                    type=_label(entry.get("type", group.get("type")), CAMPAIGN_TYPES),
                    status=_label(entry.get("status", group.get("status")), CAMPAIGN_STATUSES),
                )

        logger.info(f"📢 Loaded metadata for {len(campaigns)} campaigns")
        return campaigns

    async def fetch_finance(self, date_from: date, date_to: date) -> List[FinanceRecord]:
        """Expense ledger over the buffer-extended window, reconciled to the request."""
        fetch_from, fetch_to = self.reconciler.extend_window(date_from, date_to)
        params = {"from": fetch_from.isoformat(), "to": fetch_to.isoformat()}

        data = await self.client.call_json("GET", self.endpoints.advert_finance, params=params)
        if data is None:
            data = []
        if not isinstance(data, list):
            raise MalformedResponseError(
                "Advert finance response is not an array",
                response_data=str(data)[:300],
                endpoint=self.endpoints.advert_finance
            )

        records = [FinanceRecord.from_api(row) for row in data if isinstance(row, dict)]
        logger.info(f"💰 Loaded {len(records)} finance records for {fetch_from} - {fetch_to}")
        return self.reconciler.reconcile(records, date_from, date_to)

    async def _fetch_sku_batch(self, batch: List[int]) -> Tuple[Dict[int, str], Dict[int, Dict[str, Any]]]:
        try:
            data = await self.client.call_json("POST", self.endpoints.campaign_details, json=batch)
        except InvalidCredentialError:
            raise
        except (UpstreamUnavailableError, RetryBudgetExhaustedError) as e:
            logger.error(f"❌ SKU request failed for batch starting {batch[0]}: {e}")
            return {campaign_id: SKU_REQUEST_FAILED for campaign_id in batch}, {}
        except APIError as e:
            logger.warning(f"⚠️ SKU lookup failed for batch starting {batch[0]}: {e}")
            return {campaign_id: SKU_BATCH_FAILED for campaign_id in batch}, {}

        skus: Dict[int, str] = {}
        details: Dict[int, Dict[str, Any]] = {}
        for detail in data if isinstance(data, list) else []:
            if not isinstance(detail, dict) or not detail.get("advertId"):
                continue
            campaign_id = int(detail["advertId"])
            skus[campaign_id] = extract_skus(detail)
            details[campaign_id] = detail
        return skus, details

    async def fetch_skus(self, campaign_ids: List[int]) -> Tuple[Dict[int, str], Dict[int, Dict[str, Any]]]:
        """
        SKU attribution and raw detail per campaign id.

        Returns:
            (campaign id -> SKU string, campaign id -> detail record)
        """
        skus: Dict[int, str] = {}
        details: Dict[int, Dict[str, Any]] = {}
        if not campaign_ids:
            return skus, details

        results = await run_in_batches(
            campaign_ids,
            self._fetch_sku_batch,
            batch_size=self.batch_size,
            concurrency=self.concurrency,
            pause=self.batch_pause,
            sleeper=self.sleeper,
        )
        for batch_skus, batch_details in results:
            skus.update(batch_skus)
            details.update(batch_details)

        for campaign_id in campaign_ids:
            skus.setdefault(campaign_id, SKU_MISSING)
        return skus, details

    async def aggregate(self, date_from: date, date_to: date) -> List[FinanceRow]:
        """
        Finance rows for the window.

        Returns:
            Rows sorted by date, campaign id and document number
        """
        campaigns = await self.fetch_campaigns()
        records = await self.fetch_finance(date_from, date_to)

        campaign_ids = list(dict.fromkeys(r.campaign_id for r in records if r.campaign_id))
        skus, details = await self.fetch_skus(campaign_ids)

        rows = []
        for record in records:
            campaign = campaigns.get(record.campaign_id) or Campaign(campaign_id=record.campaign_id)
            detail = details.get(record.campaign_id) or {}

            name = detail.get("name") or campaign.name or record.campaign_name or UNKNOWN_CAMPAIGN
            campaign_type = campaign.type
            if campaign_type == UNKNOWN_OPERATION and detail.get("type") is not None:
                campaign_type = _label(detail.get("type"), CAMPAIGN_TYPES)
            status = campaign.status
            if status == UNKNOWN_OPERATION and detail.get("status") is not None:
                status = _label(detail.get("status"), CAMPAIGN_STATUSES)

            rows.append(FinanceRow(
                date=record.date,
                campaign_id=record.campaign_id,
                campaign_name=name,
                campaign_type=campaign_type,
                campaign_status=status,
                skus=skus.get(record.campaign_id, SKU_MISSING),
                operation_type=record.operation_type,
                amount=record.amount,
                bill_source=record.bill_source,
                document_number=record.document_number,
            ))

        rows.sort(key=lambda r: (r.date, r.campaign_id, r.document_number))
        unresolved = sum(1 for r in rows if r.campaign_name == UNKNOWN_CAMPAIGN)
        logger.info(f"✅ Finance aggregation: {len(rows)} rows, {unresolved} with unknown campaign")
        return rows
