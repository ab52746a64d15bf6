"""
Unit tests for ReportService, configuration and the CLI
"""
import threading

import pytest

from wb_reports.cli import create_parser, run
from wb_reports.core.models import ReportKind
from wb_reports.database.operations import CostPriceStore, TokenRepository
from wb_reports.database.workbook import WorkbookExportSink
from wb_reports.services.report_service import ReportService
from wb_reports.utils.config import PipelineConfig, reload_config
from wb_reports.utils.exceptions import ConfigurationError, NotFoundError, ValidationError

LEDGER = "/api/v5/supplier/reportDetailByPeriod"
CARDS = "/content/v2/get/cards/list"


@pytest.fixture
def service(db_session, make_client, pipeline_config, endpoints, sleeper):
    return ReportService(db_session, client_factory=make_client, config=pipeline_config,
                         endpoints=endpoints, sleeper=sleeper)


class TestReportService:

    def test_explicit_key_wins(self, service):
        assert service.resolve_credential("any-token", "  raw-key ") == "raw-key"

    def test_stored_token_resolves(self, service, db_session):
        token = TokenRepository(db_session).create("Кабинет", "stored-key")

        assert service.resolve_credential(token.id, None) == "stored-key"

    def test_unknown_token(self, service):
        with pytest.raises(NotFoundError):
            service.resolve_credential("missing", None)

    def test_credential_required(self, service):
        with pytest.raises(ValidationError):
            service.resolve_credential(None, "  ")

    def test_token_needs_database(self):
        with pytest.raises(ValidationError):
            ReportService().resolve_credential("token-1", None)

    def test_build_request(self, service):
        request = service.build_request("finances", "2025-06-01", "2025-06-02", api_key="key")

        assert request.kind is ReportKind.AD_FINANCE
        assert request.days == 2

    async def test_export_writes_sink_and_closes_client(self, service, upstream, respond):
        upstream.route("GET", LEDGER, respond(200, [{"rrd_id": 1, "realizationreport_id": "7",
                                                     "rr_dt": "2025-06-10"}]))
        sink = WorkbookExportSink()

        result = await service.export(sink, "details", "2025-06-10", "2025-06-10", api_key="key")

        assert len(result.rows) == 1
        assert sink.workbook.active.title == "Отчет детализации"
        assert upstream.closed

    async def test_catalog_uses_saved_cost_prices(self, service, db_session, upstream):
        token = TokenRepository(db_session).create("Кабинет", "stored-key")
        CostPriceStore(db_session).save(token.id, {"5-B5": 30})
        upstream.route("POST", CARDS, {
            "cards": [{"nmID": 5, "vendorCode": "V5", "sizes": [{"techSize": "S", "price": 50, "skus": ["B5"]}]}],
        })
        upstream.route("GET", "/api/v1/paid_storage", {"data": {}})

        result = await service.generate("products", "2025-06-01", "2025-06-05", token_id=token.id)

        assert result.rows[0][7:10] == [30.0, 20.0, "40.00"]

    async def test_stored_token_resolved_off_the_event_loop(self, service, db_session, upstream,
                                                            respond, monkeypatch):
        token = TokenRepository(db_session).create("Кабинет", "stored-key")
        upstream.route("GET", LEDGER, respond(200, []))
        threads = []
        resolve = service.resolve_credential

        def recording_resolve(token_id, api_key):
            threads.append(threading.get_ident())
            return resolve(token_id, api_key)

        monkeypatch.setattr(service, "resolve_credential", recording_resolve)

        await service.generate("details", "2025-06-10", "2025-06-10", token_id=token.id)

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()
        assert upstream.calls[0].authorization == "stored-key"

    async def test_generate_workbook(self, service, upstream, respond):
        upstream.route("GET", LEDGER, respond(200, []))

        file_name, content = await service.generate_workbook("details", "2025-06-10", "2025-06-12",
                                                             api_key="key")

        assert file_name == "Отчет детализации - 2025-06-10–2025-06-12.xlsx"
        assert content[:2] == b"PK"


class TestConfiguration:

    @pytest.fixture(autouse=True)
    def fresh_config(self):
        yield
        reload_config()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_PAGE_SIZE", "500")
        monkeypatch.setenv("SALES_DETAIL_BUFFER_DAYS", "false")
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "7")

        config = reload_config()

        assert config.pipelines.ledger_page_size == 500
        assert config.pipelines.sales_detail_buffer_days is False
        assert config.retry.max_attempts == 7

    def test_pipeline_defaults_shared(self):
        assert reload_config().pipelines == PipelineConfig()

    def test_invalid_value_is_configuration_error(self, monkeypatch):
        monkeypatch.setenv("CAMPAIGN_BATCH_SIZE", "80")

        with pytest.raises(ConfigurationError):
            reload_config()


class TestCLI:

    def test_generate_arguments(self):
        args = create_parser().parse_args([
            "generate", "--kind", "details", "--api-key", "KEY",
            "--date-from", "2025-06-10", "--date-to", "2025-06-12", "-o", "out.xlsx",
        ])

        assert args.command == "generate"
        assert args.api_key == "KEY"
        assert args.output == "out.xlsx"
        assert not args.sheets

    def test_credential_options_are_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([
                "generate", "--kind", "details", "--api-key", "KEY", "--token-id", "T",
                "--date-from", "2025-06-10", "--date-to", "2025-06-12",
            ])

    async def test_no_command_prints_help(self, capsys):
        assert await run([]) == 1
        assert "wb-reports" in capsys.readouterr().out

    async def test_domain_error_exits_with_1(self, capsys):
        code = await run([
            "generate", "--kind", "nonsense", "--api-key", "KEY",
            "--date-from", "2025-06-10", "--date-to", "2025-06-12",
        ])

        assert code == 1
        assert "Operation failed" in capsys.readouterr().out
