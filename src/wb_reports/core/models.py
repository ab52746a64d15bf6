"""
Data models for WB Reports.

Defines the records flowing through report pipelines: requests, async jobs,
sales ledger rows, advertising finance rows and merged catalog rows, with
mappings from the Wildberries API payloads.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from wb_reports.utils.exceptions import ValidationError


class ReportKind(Enum):
    """Report kinds served by the pipelines."""
    SALES_DETAIL = "sales_detail"
    PAID_STORAGE = "paid_storage"
    PAID_ACCEPTANCE = "paid_acceptance"
    PRODUCT_CATALOG = "product_catalog"
    AD_FINANCE = "ad_finance"

    @classmethod
    def parse(cls, value: str) -> "ReportKind":
        """
        Resolve a report kind from its value or from a UI identifier.

        Raises:
            ValidationError: If the value names no known report kind
        """
        if isinstance(value, ReportKind):
            return value
        key = (value or "").strip().lower()
        if key in _KIND_ALIASES:
            return _KIND_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Unknown report type: {value}", field="reportType", value=value)

    @property
    def title(self) -> str:
        """Russian display name used for file and sheet names."""
        return _KIND_TITLES[self]


_KIND_ALIASES = {
    "details": ReportKind.SALES_DETAIL,
    "storage": ReportKind.PAID_STORAGE,
    "acceptance": ReportKind.PAID_ACCEPTANCE,
    "products": ReportKind.PRODUCT_CATALOG,
    "finances": ReportKind.AD_FINANCE,
}

_KIND_TITLES = {
    ReportKind.SALES_DETAIL: "Отчет детализации",
    ReportKind.PAID_STORAGE: "Платное хранение",
    ReportKind.PAID_ACCEPTANCE: "Платная приемка",
    ReportKind.PRODUCT_CATALOG: "Список товаров",
    ReportKind.AD_FINANCE: "Финансы РК",
}


class JobStatus(Enum):
    """Async report job status."""
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"

    @classmethod
    def from_upstream(cls, value: Optional[str]) -> "JobStatus":
        """Map an upstream task status string onto the three job states."""
        status = (value or "").strip().lower()
        if status == "done":
            return cls.DONE
        if status in ("error", "failed", "canceled", "cancelled", "purged"):
            return cls.ERROR
        # new, processing, pending and anything not yet known keep polling
        return cls.PENDING


def parse_date(value: Any) -> date:
    """
    Parse a YYYY-MM-DD string (or date/datetime) into a date.

    Raises:
        ValidationError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value}", field="date", value=value)


def day_of(value: Any) -> str:
    """ISO day (YYYY-MM-DD) of an upstream timestamp, or '' when absent."""
    if not value:
        return ""
    return str(value)[:10]


def _num(value: Any) -> float:
    """Numeric value of an upstream field; empty and unparsable values count as 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return 0.0


def _str(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass
class ReportRequest:
    """A single report download request."""

    kind: ReportKind
    date_from: date
    date_to: date
    credential: str = field(repr=False)
    token_id: Optional[str] = None

    def __post_init__(self):
        self.kind = ReportKind.parse(self.kind)
        self.date_from = parse_date(self.date_from)
        self.date_to = parse_date(self.date_to)

        if self.date_to < self.date_from:
            raise ValidationError(
                f"dateTo ({self.date_to}) must not be earlier than dateFrom ({self.date_from})",
                field="dateTo"
            )
        if not self.credential or not str(self.credential).strip():
            raise ValidationError("Credential is required", field="credential")

    @property
    def days(self) -> int:
        """Inclusive window length in days."""
        return (self.date_to - self.date_from).days + 1

    def windows(self, max_days: int) -> List[tuple]:
        """
        Split the request window into consecutive chunks of at most max_days.

        Returns:
            List of (date_from, date_to) tuples covering the window exactly
        """
        chunks = []
        start = self.date_from
        while start <= self.date_to:
            end = min(start + timedelta(days=max_days - 1), self.date_to)
            chunks.append((start, end))
            start = end + timedelta(days=1)
        return chunks

    @property
    def file_name(self) -> str:
        return f"{self.kind.title} - {self.date_from.isoformat()}–{self.date_to.isoformat()}.xlsx"


@dataclass
class AsyncJob:
    """Server-side report generation task."""

    task_id: str
    name: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    polls: int = 0


@dataclass
class LedgerRecord:
    """
    One sales-detail (realization report) row.

    The typed fields cover what the pipelines reason about; `raw` keeps the
    full upstream payload for the export.
    """

    row_id: Optional[int]
    report_document_id: str
    product_id: Optional[int]
    barcode: str = ""
    vendor_code: str = ""
    subject: str = ""
    brand: str = ""
    size: str = ""
    quantity: float = 0.0
    retail_price: float = 0.0
    retail_price_with_discount: float = 0.0
    retail_amount: float = 0.0
    for_pay: float = 0.0
    delivery_cost: float = 0.0
    operation: str = ""
    operation_date: str = ""
    sale_date: str = ""
    report_date: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "LedgerRecord":
        """Create a LedgerRecord from a reportDetailByPeriod row."""
        row_id = data.get("rrd_id")
        product_id = data.get("nm_id")
        return cls(
            row_id=int(row_id) if row_id not in (None, "") else None,
            report_document_id=_str(data.get("realizationreport_id")),
            product_id=int(product_id) if product_id not in (None, "") else None,
            barcode=_str(data.get("barcode")),
            vendor_code=_str(data.get("sa_name")),
            subject=_str(data.get("subject_name")),
            brand=_str(data.get("brand_name")),
            size=_str(data.get("ts_name")),
            quantity=_num(data.get("quantity")),
            retail_price=_num(data.get("retail_price")),
            retail_price_with_discount=_num(data.get("retail_price_withdisc_rub")),
            retail_amount=_num(data.get("retail_amount")),
            for_pay=_num(data.get("ppvz_for_pay")),
            delivery_cost=_num(data.get("delivery_rub")),
            operation=_str(data.get("supplier_oper_name")),
            operation_date=_str(data.get("order_dt")),
            sale_date=_str(data.get("sale_dt")),
            report_date=_str(data.get("rr_dt")),
            raw=dict(data),
        )

    @property
    def report_day(self) -> str:
        return day_of(self.report_date)


BILL_PAYMENT_TYPE = "Счет"
UNKNOWN_OPERATION = "Неизвестно"
UNKNOWN_CAMPAIGN = "Неизвестная кампания"


@dataclass
class FinanceRecord:
    """One advertising expense (UPD) line."""

    campaign_id: int
    date: str
    amount: float
    bill_source: int
    operation_type: str
    document_number: str
    campaign_name: str = UNKNOWN_CAMPAIGN

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "FinanceRecord":
        """Create a FinanceRecord from an /adv/v1/upd row."""
        return cls(
            campaign_id=int(data.get("advertId") or 0),
            date=day_of(data.get("updTime")),
            amount=_num(data.get("updSum")),
            bill_source=1 if data.get("paymentType") == BILL_PAYMENT_TYPE else 0,
            operation_type=data.get("type") or UNKNOWN_OPERATION,
            document_number=_str(data.get("updNum")),
            campaign_name=data.get("campName") or UNKNOWN_CAMPAIGN,
        )


@dataclass
class Campaign:
    """Advertising campaign metadata."""

    campaign_id: int
    name: str = ""
    type: str = UNKNOWN_OPERATION
    status: str = UNKNOWN_OPERATION


@dataclass
class FinanceRow:
    """Finance record joined with campaign metadata and SKU attribution."""

    date: str
    campaign_id: int
    campaign_name: str
    campaign_type: str
    campaign_status: str
    skus: str
    operation_type: str
    amount: float
    bill_source: int
    document_number: str


class SourceTag(Enum):
    """Origin of a merged catalog row."""
    CATALOG = "catalog"
    LEDGER_DERIVED = "ledger-derived"


@dataclass
class CatalogRow:
    """One product variant (size + barcode) with price, cost and margin."""

    product_id: Optional[int]
    vendor_code: str
    subject: str
    brand: str
    size: str
    barcode: str
    price: float
    cost_price: float = 0.0
    source_tag: SourceTag = SourceTag.CATALOG
    created_at: str = ""
    updated_at: str = ""

    @property
    def product_key(self) -> str:
        return f"{self.product_id if self.product_id is not None else ''}-{self.barcode}"

    @property
    def margin(self) -> float:
        if self.cost_price > 0:
            return self.price - self.cost_price
        return 0

    @property
    def profitability(self):
        """Margin as a percentage of price, formatted to two decimals, or 0."""
        if self.cost_price > 0 and self.price > 0:
            return f"{self.margin / self.price * 100:.2f}"
        return 0


@dataclass
class ReportResult:
    """Headers and rows ready for a tabular export sink."""

    kind: ReportKind
    headers: List[str]
    rows: List[List[Any]]
    file_name: str
    sheet_title: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def __post_init__(self):
        if not self.sheet_title:
            self.sheet_title = self.kind.title
