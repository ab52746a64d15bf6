"""
Report pipelines.

One ReportPipeline variant per acquisition pattern. Each variant supplies
its endpoints and row shape and reuses the shared job runner, pagers,
reconciler, merger and aggregator.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from wb_reports.api.client import RateLimitedHttpClient
from wb_reports.api.endpoints import JobEndpoints, WBEndpoints
from wb_reports.core.catalog import ProductCatalogMerger
from wb_reports.core.finance import CampaignFinanceAggregator
from wb_reports.core.formatter import ReportFormatter
from wb_reports.core.jobs import AsyncReportJobRunner
from wb_reports.core.models import (
    LedgerRecord, ReportKind, ReportRequest, ReportResult
)
from wb_reports.core.pagination import CatalogPager, PaginatedLedgerFetcher
from wb_reports.core.reconciler import BufferDayReconciler
from wb_reports.utils.config import PipelineConfig, get_config
from wb_reports.utils.exceptions import ValidationError, WBReportsError
from wb_reports.utils.logger import get_logger
from wb_reports.utils.rate_limiting import Phase, Sleeper


logger = get_logger(__name__)

CostPriceLoader = Callable[[str], Mapping[str, float]]
Rows = Tuple[List[str], List[List[Any]]]


class ReportPipeline(ABC):
    """Base class: fetch upstream data for a request and shape it into rows."""

    kinds: Tuple[ReportKind, ...] = ()

    def __init__(self, client: RateLimitedHttpClient,
                 config: Optional[PipelineConfig] = None,
                 endpoints: Optional[WBEndpoints] = None,
                 sleeper: Optional[Sleeper] = None):
        self.client = client
        self.config = config or get_config().pipelines
        self.endpoints = endpoints or WBEndpoints()
        self.sleeper = sleeper or client.sleeper

    async def run(self, request: ReportRequest) -> ReportResult:
        """
        Produce the report for a request.

        Returns:
            ReportResult; an empty row list means no data for the period

        Raises:
            ValidationError: If the pipeline does not serve the request kind
        """
        if request.kind not in self.kinds:
            raise ValidationError(
                f"{type(self).__name__} cannot build {request.kind.value} reports",
                field="reportType", value=request.kind.value
            )

        logger.info(f"🚀 {request.kind.value} report {request.date_from} - {request.date_to}")
        headers, rows = await self.collect(request)

        if not rows:
            logger.warning(f"⚠️ No {request.kind.value} data for {request.date_from} - {request.date_to}")
        else:
            logger.info(f"✅ {request.kind.value} report ready: {len(rows)} rows")

        return ReportResult(kind=request.kind, headers=headers, rows=rows, file_name=request.file_name)

    @abstractmethod
    async def collect(self, request: ReportRequest) -> Rows:
        """Fetch, reconcile and format rows for the request."""


class LedgerPipeline(ReportPipeline):
    """Sales detail: paginated ledger, buffer-day reconciliation by report date."""

    kinds = (ReportKind.SALES_DETAIL,)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fetcher = PaginatedLedgerFetcher(
            self.client,
            self.endpoints.sales_detail,
            page_size=self.config.ledger_page_size,
            max_pages=self.config.ledger_max_pages,
            page_interval=self.config.ledger_page_interval,
            cursor_param=self.config.ledger_cursor_param,
            sleeper=self.sleeper,
        )
        self.reconciler: BufferDayReconciler[LedgerRecord] = BufferDayReconciler(
            date_of=lambda r: r.report_day,
            document_of=lambda r: r.report_document_id,
        )

    async def fetch_records(self, date_from: date, date_to: date) -> List[LedgerRecord]:
        """Ledger rows for the window, reconciled when buffer days are enabled."""
        if not self.config.sales_detail_buffer_days:
            return await self.fetcher.fetch_all(date_from, date_to)

        fetch_from, fetch_to = self.reconciler.extend_window(date_from, date_to)
        records = await self.fetcher.fetch_all(fetch_from, fetch_to)
        return self.reconciler.reconcile(records, date_from, date_to)

    async def collect(self, request: ReportRequest) -> Rows:
        records = await self.fetch_records(request.date_from, request.date_to)
        return ReportFormatter.sales_detail(records)


class AsyncJobPipeline(ReportPipeline):
    """
    Paid storage and paid acceptance: server-side report tasks.

    Paid storage accepts at most 8 days per task, so longer windows run as
    consecutive chunks with a pause between tasks.
    """

    kinds = (ReportKind.PAID_STORAGE, ReportKind.PAID_ACCEPTANCE)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.runner = AsyncReportJobRunner(
            self.client,
            poll_interval=self.config.job_poll_interval,
            max_polls=self.config.job_max_polls,
            sleeper=self.sleeper,
        )

    def job_endpoints(self, kind: ReportKind) -> JobEndpoints:
        if kind is ReportKind.PAID_STORAGE:
            return self.endpoints.paid_storage
        return self.endpoints.paid_acceptance

    async def fetch_storage(self, request: ReportRequest) -> List[Dict[str, Any]]:
        windows = request.windows(self.config.paid_storage_max_days)
        if len(windows) > 1:
            logger.info(f"Paid storage window split into {len(windows)} chunks")

        records: List[Dict[str, Any]] = []
        for index, (chunk_from, chunk_to) in enumerate(windows):
            if index > 0:
                await self.sleeper.sleep(self.config.paid_storage_chunk_pause, Phase.THROTTLING,
                                         "paid storage allows one task per minute")
            records.extend(await self.runner.run(self.endpoints.paid_storage, chunk_from, chunk_to))
        return records

    async def fetch_acceptance(self, request: ReportRequest) -> List[Dict[str, Any]]:
        return await self.runner.run(self.endpoints.paid_acceptance, request.date_from, request.date_to)

    async def collect(self, request: ReportRequest) -> Rows:
        if request.kind is ReportKind.PAID_STORAGE:
            return ReportFormatter.paid_storage(await self.fetch_storage(request))
        return ReportFormatter.paid_acceptance(await self.fetch_acceptance(request))


class CatalogPipeline(ReportPipeline):
    """
    Product catalog with cost price.

    The catalog is required; storage enrichment, saved cost prices and
    ledger-derived products each degrade to nothing on failure.
    """

    kinds = (ReportKind.PRODUCT_CATALOG,)

    def __init__(self, *args, cost_price_loader: Optional[CostPriceLoader] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.cost_price_loader = cost_price_loader
        self.pager = CatalogPager(
            self.client,
            self.endpoints.cards_list,
            page_size=self.config.catalog_page_size,
            max_pages=self.config.catalog_max_pages,
            page_interval=self.config.catalog_page_interval,
            sleeper=self.sleeper,
        )
        self.runner = AsyncReportJobRunner(
            self.client,
            poll_interval=self.config.job_poll_interval,
            max_polls=self.config.job_max_polls,
            sleeper=self.sleeper,
        )
        self.ledger = LedgerPipeline(self.client, self.config, self.endpoints, self.sleeper)
        self.merger = ProductCatalogMerger()

    async def fetch_storage_enrichment(self, request: ReportRequest) -> List[Dict[str, Any]]:
        # paid storage serves at most 8 days, the end of the window is enough for subjects
        storage_from = max(request.date_from,
                           request.date_to - timedelta(days=self.config.paid_storage_max_days - 1))
        try:
            return await self.runner.run(self.endpoints.paid_storage, storage_from, request.date_to)
        except WBReportsError as e:
            logger.warning(f"⚠️ Storage enrichment unavailable, subjects from catalog only: {e}")
            return []

    async def load_cost_prices(self, token_id: Optional[str]) -> Mapping[str, float]:
        if not token_id or self.cost_price_loader is None:
            return {}
        try:
            # blocking database read
            return await asyncio.to_thread(self.cost_price_loader, token_id)
        except WBReportsError as e:
            logger.warning(f"⚠️ Saved cost prices unavailable, using 0: {e}")
            return {}

    async def fetch_ledger_products(self, request: ReportRequest) -> List[LedgerRecord]:
        if not self.config.catalog_include_ledger:
            return []
        try:
            return await self.ledger.fetch_records(request.date_from, request.date_to)
        except WBReportsError as e:
            logger.warning(f"⚠️ Sales ledger unavailable, no ledger-derived products: {e}")
            return []

    async def collect(self, request: ReportRequest) -> Rows:
        cards = await self.pager.fetch_all()
        storage = await self.fetch_storage_enrichment(request)
        cost_prices = await self.load_cost_prices(request.token_id)
        ledger = await self.fetch_ledger_products(request)

        rows = self.merger.merge(cards, storage, cost_prices, ledger or None)
        return ReportFormatter.product_catalog(rows)


class FinancePipeline(ReportPipeline):
    """Advertising finances joined with campaign metadata and SKUs."""

    kinds = (ReportKind.AD_FINANCE,)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.aggregator = CampaignFinanceAggregator(
            self.client,
            self.endpoints,
            batch_size=self.config.campaign_batch_size,
            batch_pause=self.config.campaign_batch_pause,
            concurrency=self.config.campaign_batch_concurrency,
            sleeper=self.sleeper,
        )

    async def collect(self, request: ReportRequest) -> Rows:
        rows = await self.aggregator.aggregate(request.date_from, request.date_to)
        return ReportFormatter.ad_finance(rows)


PIPELINES = {
    ReportKind.SALES_DETAIL: LedgerPipeline,
    ReportKind.PAID_STORAGE: AsyncJobPipeline,
    ReportKind.PAID_ACCEPTANCE: AsyncJobPipeline,
    ReportKind.PRODUCT_CATALOG: CatalogPipeline,
    ReportKind.AD_FINANCE: FinancePipeline,
}


def build_pipeline(kind: ReportKind, client: RateLimitedHttpClient,
                   config: Optional[PipelineConfig] = None,
                   endpoints: Optional[WBEndpoints] = None,
                   sleeper: Optional[Sleeper] = None,
                   cost_price_loader: Optional[CostPriceLoader] = None) -> ReportPipeline:
    """
    Factory function returning the pipeline serving a report kind.

    Args:
        kind: Report kind
        client: HTTP client bound to the seller's credential
        config: Pipeline pacing; defaults from configuration
        endpoints: Upstream URLs; defaults from configuration
        sleeper: Suspension point shared by the pipeline's components
        cost_price_loader: token id -> saved cost prices (catalog only)
    """
    pipeline_cls = PIPELINES[ReportKind.parse(kind)]
    if pipeline_cls is CatalogPipeline:
        return CatalogPipeline(client, config, endpoints, sleeper, cost_price_loader=cost_price_loader)
    return pipeline_cls(client, config, endpoints, sleeper)
