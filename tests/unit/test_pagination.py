"""
Unit tests for ledger and catalog pagination
"""
from datetime import date

import pytest

from wb_reports.core.pagination import (
    CatalogPager,
    PaginatedLedgerFetcher,
    dedup_by,
    to_upstream_range,
)
from wb_reports.utils.exceptions import (
    DataIntegrityError,
    MalformedResponseError,
    TooManyPagesError,
)
from wb_reports.utils.rate_limiting import Phase

LEDGER = "/api/v5/supplier/reportDetailByPeriod"
CARDS = "/content/v2/get/cards/list"


def ledger_row(rrd_id, doc="100", day="2025-06-10"):
    return {"rrd_id": rrd_id, "realizationreport_id": doc, "rr_dt": day, "nm_id": 1000 + rrd_id}


def pages_by_cursor(pages):
    """Ledger handler serving a page per rrdid cursor value"""
    def handler(params, body):
        return [ledger_row(i) for i in pages[params["rrdid"]]]
    return handler


def card(nm_id, vendor_code=None):
    return {"nmID": nm_id, "vendorCode": vendor_code or f"VC-{nm_id}", "sizes": []}


@pytest.fixture
def fetcher(wb_client, endpoints, sleeper):
    return PaginatedLedgerFetcher(wb_client, endpoints.sales_detail, page_size=3, max_pages=10,
                                  page_interval=60, sleeper=sleeper)


class TestLedgerPagination:

    async def test_boundary_duplicate_returned_once(self, fetcher, upstream, sleeper):
        """A record repeated at a page boundary appears exactly once"""
        upstream.route("GET", LEDGER, pages_by_cursor({0: [1, 2, 3], 3: [3, 4, 5], 5: [6]}))

        records = await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

        assert [r.row_id for r in records] == [1, 2, 3, 4, 5, 6]
        assert [c.params["rrdid"] for c in upstream.calls] == [0, 3, 5]
        assert sleeper.calls == [(60, Phase.PAGING), (60, Phase.PAGING)]

    async def test_final_pass_removes_inner_duplicates(self, fetcher, upstream):
        upstream.route("GET", LEDGER, pages_by_cursor({0: [1, 2, 3], 3: [4, 2, 5], 5: []}))

        records = await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

        ids = [r.row_id for r in records]
        assert ids == [1, 2, 3, 4, 5]
        assert len(ids) == len(set(ids))

    async def test_endless_upstream_hits_page_bound(self, wb_client, endpoints, upstream, sleeper):
        """An upstream that never ends the data fails with TooManyPagesError"""
        def endless(params, body):
            start = params["rrdid"]
            return [ledger_row(start + i) for i in (1, 2, 3)]

        upstream.route("GET", LEDGER, endless)
        fetcher = PaginatedLedgerFetcher(wb_client, endpoints.sales_detail, page_size=3, max_pages=4,
                                         sleeper=sleeper)

        with pytest.raises(TooManyPagesError) as exc_info:
            await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

        assert len(upstream.calls) == 4
        assert exc_info.value.max_pages == 4
        assert exc_info.value.records == 12

    async def test_repeated_cursor_stops(self, fetcher, upstream):
        upstream.route("GET", LEDGER, lambda params, body: [ledger_row(i) for i in (1, 2, 3)])

        records = await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

        assert [r.row_id for r in records] == [1, 2, 3]
        assert len(upstream.calls) == 2

    async def test_last_row_without_id_stops(self, fetcher, upstream):
        upstream.route("GET", LEDGER, lambda params, body: [ledger_row(1), ledger_row(2), {"rr_dt": "2025-06-10"}])

        records = await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

        assert len(records) == 3
        assert records[-1].row_id is None
        assert len(upstream.calls) == 1

    async def test_empty_body_is_no_data(self, fetcher, upstream, respond, sleeper):
        upstream.route("GET", LEDGER, respond(200, text=""))

        assert await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12)) == []
        assert sleeper.calls == []

    @pytest.mark.parametrize("body", [{"error": "unexpected"}, [1, 2, 3]])
    async def test_non_array_page_is_malformed(self, fetcher, upstream, respond, body):
        upstream.route("GET", LEDGER, respond(200, body))

        with pytest.raises(MalformedResponseError):
            await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

    async def test_upstream_window_and_period(self, fetcher, upstream, respond):
        upstream.route("GET", LEDGER, respond(200, []))

        await fetcher.fetch_all(date(2025, 6, 9), date(2025, 6, 13), period="daily")

        params = upstream.calls[0].params
        assert params["dateFrom"] == "2025-06-09T00:00:00"
        assert params["dateTo"] == "2025-06-13T23:59:59"
        assert params["limit"] == 3
        assert params["period"] == "daily"

    async def test_cursor_param_is_configurable(self, wb_client, endpoints, upstream, sleeper):
        upstream.route("GET", LEDGER, lambda params, body: [
            ledger_row(i) for i in {0: [1, 2, 3], 3: [4]}[params["cursor_id"]]
        ])
        fetcher = PaginatedLedgerFetcher(wb_client, endpoints.sales_detail, page_size=3,
                                         cursor_param="cursor_id", sleeper=sleeper)

        records = await fetcher.fetch_all(date(2025, 6, 10), date(2025, 6, 12))

        assert [r.row_id for r in records] == [1, 2, 3, 4]
        assert [c.params["cursor_id"] for c in upstream.calls] == [0, 3]
        assert all("rrdid" not in c.params for c in upstream.calls)


class TestCatalogPagination:

    @pytest.fixture
    def pager(self, wb_client, endpoints, sleeper):
        return CatalogPager(wb_client, endpoints.cards_list, page_size=2, max_pages=10,
                            page_interval=0.5, sleeper=sleeper)

    async def test_cursor_pagination_with_boundary_duplicate(self, pager, upstream, sleeper):
        pages = {
            None: {"cards": [card(1), card(2)], "cursor": {"updatedAt": "2025-01-01T00:00:00Z", "nmID": 2}},
            2: {"cards": [card(2), card(3)], "cursor": {"updatedAt": "2025-01-02T00:00:00Z", "nmID": 3}},
            3: {"cards": [card(4)], "cursor": {"updatedAt": "2025-01-03T00:00:00Z", "nmID": 4}},
        }
        upstream.route("POST", CARDS, lambda params, body: pages[body["settings"]["cursor"].get("nmID")])

        cards = await pager.fetch_all()

        assert [c["nmID"] for c in cards] == [1, 2, 3, 4]
        assert upstream.calls[0].json == {"settings": {"cursor": {"limit": 2}, "filter": {"withPhoto": -1}}}
        assert upstream.calls[1].json["settings"]["cursor"] == {
            "limit": 2, "updatedAt": "2025-01-01T00:00:00Z", "nmID": 2
        }
        assert sleeper.calls == [(0.5, Phase.PAGING), (0.5, Phase.PAGING)]

    async def test_endless_catalog_hits_page_bound(self, wb_client, endpoints, upstream, sleeper):
        def endless(params, body):
            last = body["settings"]["cursor"].get("nmID") or 0
            return {"cards": [card(last + 1), card(last + 2)], "cursor": {"updatedAt": "t", "nmID": last + 2}}

        upstream.route("POST", CARDS, endless)
        pager = CatalogPager(wb_client, endpoints.cards_list, page_size=2, max_pages=2, sleeper=sleeper)

        with pytest.raises(TooManyPagesError):
            await pager.fetch_all()

        assert len(upstream.calls) == 2

    async def test_card_without_nm_id_is_integrity_error(self, pager, upstream):
        upstream.route("POST", CARDS, {"cards": [card(1), {"vendorCode": "broken"}], "cursor": {}})

        with pytest.raises(DataIntegrityError):
            await pager.fetch_all()

    async def test_throttled_page_is_retried_in_place(self, pager, upstream, respond, sleeper):
        upstream.route("POST", CARDS, [
            respond(429, headers={"X-Ratelimit-Retry": "6"}),
            respond(200, {"cards": [card(1)], "cursor": {"nmID": 1}}),
        ])

        cards = await pager.fetch_all()

        assert [c["nmID"] for c in cards] == [1]
        assert upstream.calls[0].json == upstream.calls[1].json
        assert sleeper.calls == [(6.0, Phase.BACKING_OFF)]


class TestHelpers:

    def test_to_upstream_range(self):
        assert to_upstream_range(date(2025, 6, 1), date(2025, 6, 2)) == (
            "2025-06-01T00:00:00", "2025-06-02T23:59:59"
        )

    def test_dedup_by_keeps_first_and_none_keys(self):
        items = [{"id": 1, "v": "a"}, {"id": None}, {"id": 1, "v": "b"}, {"id": None}, {"id": 2}]

        result = dedup_by(items, lambda item: item["id"])

        assert result == [{"id": 1, "v": "a"}, {"id": None}, {"id": None}, {"id": 2}]
