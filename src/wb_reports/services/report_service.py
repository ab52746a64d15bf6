"""
Report generation service.

Resolves the seller credential, runs the pipeline for the requested kind
and hands the result to an export sink. Used by the HTTP API and the CLI.
"""

import asyncio
from datetime import date
from typing import Callable, Optional, Tuple, Union

from sqlalchemy.orm import Session

from wb_reports.api.client import RateLimitedHttpClient, create_http_client
from wb_reports.api.endpoints import WBEndpoints
from wb_reports.core.models import ReportKind, ReportRequest, ReportResult
from wb_reports.database.operations import CostPriceStore, TokenRepository
from wb_reports.database.workbook import TabularExportSink, WorkbookExportSink
from wb_reports.services.pipelines import build_pipeline
from wb_reports.utils.config import PipelineConfig
from wb_reports.utils.exceptions import ValidationError
from wb_reports.utils.logger import get_logger
from wb_reports.utils.rate_limiting import Sleeper


logger = get_logger(__name__)

ClientFactory = Callable[[str], RateLimitedHttpClient]


class ReportService:
    """Generate reports for stored tokens or raw API keys."""

    def __init__(self, db: Optional[Session] = None,
                 client_factory: Optional[ClientFactory] = None,
                 config: Optional[PipelineConfig] = None,
                 endpoints: Optional[WBEndpoints] = None,
                 sleeper: Optional[Sleeper] = None):
        """
        Initialize the service.

        Args:
            db: Session for token and cost price lookups; without it only raw
                API keys are accepted and no saved cost prices are applied
            client_factory: api key -> HTTP client (tests inject fakes)
            config: Pipeline pacing; defaults from configuration
            endpoints: Upstream URLs; defaults from configuration
            sleeper: Suspension point shared by all pipeline components
        """
        self.db = db
        self.sleeper = sleeper or Sleeper()
        self.client_factory = client_factory or (lambda key: create_http_client(key, sleeper=self.sleeper))
        self.config = config
        self.endpoints = endpoints

    def resolve_credential(self, token_id: Optional[str], api_key: Optional[str]) -> str:
        """
        API key for the request: an explicit key wins over a stored token.

        Raises:
            ValidationError: If neither is given
            NotFoundError: If the token id is unknown
        """
        if api_key and api_key.strip():
            return api_key.strip()
        if not token_id:
            raise ValidationError("tokenId or apiKey is required", field="tokenId")
        if self.db is None:
            raise ValidationError("Stored tokens need a database session", field="tokenId", value=token_id)
        return TokenRepository(self.db).get(token_id).api_key

    def build_request(self, kind: Union[str, ReportKind],
                      date_from: Union[str, date], date_to: Union[str, date],
                      token_id: Optional[str] = None,
                      api_key: Optional[str] = None) -> ReportRequest:
        credential = self.resolve_credential(token_id, api_key)
        return ReportRequest(kind=kind, date_from=date_from, date_to=date_to,
                             credential=credential, token_id=token_id)

    async def run(self, request: ReportRequest) -> ReportResult:
        """Run the pipeline serving the request kind."""
        client = self.client_factory(request.credential)
        cost_price_loader = CostPriceStore(self.db).load if self.db is not None else None
        try:
            pipeline = build_pipeline(
                request.kind, client, self.config, self.endpoints, self.sleeper,
                cost_price_loader=cost_price_loader,
            )
            return await pipeline.run(request)
        finally:
            client.close()

    async def generate(self, kind: Union[str, ReportKind],
                       date_from: Union[str, date], date_to: Union[str, date],
                       token_id: Optional[str] = None,
                       api_key: Optional[str] = None,
                       client_name: Optional[str] = None) -> ReportResult:
        """
        Build a report.

        Returns:
            ReportResult with headers and rows; empty rows mean no data
        """
        request = await asyncio.to_thread(self.build_request, kind, date_from, date_to, token_id, api_key)
        label = client_name or token_id or "api key"
        logger.info(f"📊 Generating {request.kind.title} for {label}")
        return await self.run(request)

    async def export(self, sink: TabularExportSink, *args, **kwargs) -> ReportResult:
        """Build a report and write it to a sink."""
        result = await self.generate(*args, **kwargs)
        sink.write(result.sheet_title, result.headers, result.rows)
        return result

    async def generate_workbook(self, *args, **kwargs) -> Tuple[str, bytes]:
        """
        Build a report as an XLSX workbook.

        Returns:
            (file name, XLSX bytes)
        """
        sink = WorkbookExportSink()
        result = await self.export(sink, *args, **kwargs)
        return result.file_name, sink.to_bytes()
