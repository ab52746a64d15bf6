"""
Row formatting for report exports.

Maps pipeline records to spreadsheet headers and row values. Headers are
the Russian column names sellers see in the downloaded workbooks.
"""

from typing import Any, Dict, List, Tuple

from wb_reports.core.models import CatalogRow, FinanceRow, LedgerRecord, SourceTag
from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)

NO_SIZE = "Без размера"
NO_REPORT_ID = "Без ID"

# (header, upstream field, value kind)
SALES_DETAIL_COLUMNS: List[Tuple[str, str, str]] = [
    ("Номер отчёта", "realizationreport_id", "nodots"),
    ("Дата начала отчётного периода", "date_from", "text"),
    ("Дата конца отчётного периода", "date_to", "text"),
    ("Дата формирования отчёта", "create_dt", "text"),
    ("Валюта", "currency_name", "text"),
    ("Код договора поставщика", "suppliercontract_code", "text"),
    ("ID записи", "rrd_id", "nodots"),
    ("Номер поставки", "gi_id", "nodots"),
    ("Процент логистики", "dlv_prc", "num"),
    ("Дата фиксации тарифа с", "fix_tariff_date_from", "text"),
    ("Дата фиксации тарифа по", "fix_tariff_date_to", "text"),
    ("Предмет", "subject_name", "text"),
    ("Артикул WB", "nm_id", "num"),
    ("Бренд", "brand_name", "text"),
    ("Артикул продавца", "sa_name", "text"),
    ("Размер", "ts_name", "text"),
    ("Баркод", "barcode", "text"),
    ("Тип документа", "doc_type_name", "text"),
    ("Количество", "quantity", "num"),
    ("Розничная цена", "retail_price", "num"),
    ("Сумма продаж", "retail_amount", "num"),
    ("Согласованная скидка (%)", "sale_percent", "num"),
    ("Процент комиссии", "commission_percent", "num"),
    ("Склад", "office_name", "text"),
    ("Обоснование для оплаты", "supplier_oper_name", "text"),
    ("Дата заказа", "order_dt", "text"),
    ("Дата продажи", "sale_dt", "text"),
    ("Дата отчета", "rr_dt", "text"),
    ("Штрихкод", "shk_id", "nodots"),
    ("Цена розничная с учетом согласованной скидки", "retail_price_withdisc_rub", "num"),
    ("Количество доставок", "delivery_amount", "num"),
    ("Количество возвратов", "return_amount", "num"),
    ("Стоимость логистики", "delivery_rub", "num"),
    ("Тип коробки", "gi_box_type_name", "text"),
    ("Скидка товара для отчета", "product_discount_for_report", "num"),
    ("Промо от поставщика", "supplier_promo", "num"),
    ("Rid", "rid", "text"),
    ("SPP процент", "ppvz_spp_prc", "num"),
    ("КВВ процент базовый", "ppvz_kvw_prc_base", "num"),
    ("КВВ процент", "ppvz_kvw_prc", "num"),
    ("Процент повышения рейтинга", "sup_rating_prc_up", "num"),
    ("Флаг KGVP v2", "is_kgvp_v2", "num"),
    ("Комиссия за продажи", "ppvz_sales_commission", "num"),
    ("К доплате", "ppvz_for_pay", "num"),
    ("Вознаграждение", "ppvz_reward", "num"),
    ("Комиссия эквайринга", "acquiring_fee", "num"),
    ("Процент эквайринга", "acquiring_percent", "num"),
    ("Обработка платежей", "payment_processing", "text"),
    ("Банк эквайринга", "acquiring_bank", "text"),
    ("PPVZ VW", "ppvz_vw", "num"),
    ("PPVZ VW НДС", "ppvz_vw_nds", "num"),
    ("Название офиса PPVZ", "ppvz_office_name", "text"),
    ("ID офиса PPVZ", "ppvz_office_id", "text"),
    ("ID поставщика PPVZ", "ppvz_supplier_id", "text"),
    ("Имя поставщика PPVZ", "ppvz_supplier_name", "text"),
    ("ИНН PPVZ", "ppvz_inn", "text"),
    ("Номер декларации", "declaration_number", "text"),
    ("Тип бонуса", "bonus_type_name", "text"),
    ("ID стикера", "sticker_id", "text"),
    ("Страна сайта", "site_country", "text"),
    ("Флаг DBS", "srv_dbs", "bool"),
    ("Штраф", "penalty", "num"),
    ("Доплата", "additional_payment", "num"),
    ("Перерасчет логистики", "rebill_logistic_cost", "num"),
    ("Организация перерасчета", "rebill_logistic_org", "text"),
    ("Стоимость хранения", "storage_fee", "num"),
    ("Удержания", "deduction", "num"),
    ("Приемка", "acceptance", "num"),
    ("ID сборочного задания", "assembly_id", "text"),
    ("КИЗ", "kiz", "text"),
    ("SRID", "srid", "text"),
    ("Тип отчета", "report_type", "num"),
    ("Юридическое лицо", "is_legal_entity", "bool"),
    ("ID TRBX", "trbx_id", "text"),
    ("Сумма рассрочки", "installment_cofinancing_amount", "num"),
    ("Процент скидки WB", "wibes_wb_discount_percent", "num"),
]

PAID_STORAGE_COLUMNS: List[Tuple[str, str, str]] = [
    ("Дата", "date", "text"),
    ("Склад", "warehouse", "text"),
    ("Артикул WB", "nmId", "num"),
    ("Артикул продавца", "vendorCode", "text"),
    ("Предмет", "subject", "text"),
    ("Бренд", "brand", "text"),
    ("Размер", "size", "text"),
    ("Баркод", "barcode", "text"),
    ("Объем (л)", "volume", "num"),
    ("Способ расчета", "calcType", "text"),
    ("Стоимость хранения", "warehousePrice", "num"),
    ("Количество баркодов", "barcodesCount", "num"),
    ("Коэффициент склада", "warehouseCoef", "num"),
    ("Скидка лояльности", "loyaltyDiscount", "num"),
    ("Дата фиксации тарифа", "tariffFixDate", "text"),
    ("Дата понижения тарифа", "tariffLowerDate", "text"),
]

PAID_ACCEPTANCE_COLUMNS: List[Tuple[str, str, str]] = [
    ("Дата создания ШК", "shkCreateDate", "text"),
    ("Дата поставки", "giCreateDate", "text"),
    ("Номер поставки", "incomeId", "text"),
    ("Артикул WB", "nmID", "num"),
    ("Предмет", "subjectName", "text"),
    ("Количество", "count", "num"),
    ("Стоимость приёмки", "total", "num"),
]

PRODUCT_CATALOG_HEADERS = [
    "Артикул ВБ", "Артикул продавца", "Предмет", "Бренд", "Размер", "Штрихкод",
    "Цена", "Себестоимость", "Маржа", "Рентабельность (%)", "Источник данных",
    "Дата создания", "Дата обновления",
]

AD_FINANCE_HEADERS = [
    "Дата", "ID кампании", "Название кампании", "Тип кампании", "Статус кампании",
    "Артикулы WB", "Тип операции", "Сумма", "Источник списания", "Номер документа",
]

SOURCE_LABELS = {
    SourceTag.CATALOG: "Из карточек API",
    SourceTag.LEDGER_DERIVED: "Из отчета реализации",
}


def to_number(value: Any) -> float:
    """Numeric cell value; accepts decimal commas, empty means 0."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return 0


def remove_dots(value: Any) -> str:
    """Identifier without dots (spreadsheets otherwise read them as decimals)."""
    if value is None or value == "":
        return ""
    return str(value).replace(".", "")


def format_cell(value: Any, kind: str) -> Any:
    if kind == "num":
        return to_number(value)
    if kind == "nodots":
        return remove_dots(value)
    if kind == "bool":
        return "Да" if value else "Нет"
    return "" if value is None else value


class ReportFormatter:
    """Headers and row mappers for every report kind."""

    @staticmethod
    def _map_columns(record: Dict[str, Any], columns: List[Tuple[str, str, str]]) -> List[Any]:
        return [format_cell(record.get(source), kind) for _, source, kind in columns]

    @staticmethod
    def sales_detail(records: List[LedgerRecord]) -> Tuple[List[str], List[List[Any]]]:
        """
        Full realization report columns, rows grouped by report number in
        first-seen order.
        """
        groups: Dict[str, List[LedgerRecord]] = {}
        for record in records:
            groups.setdefault(record.report_document_id or NO_REPORT_ID, []).append(record)

        rows = []
        for report_id, group in groups.items():
            logger.debug(f"Report {report_id}: {len(group)} rows")
            for record in group:
                rows.append(ReportFormatter._map_columns(record.raw, SALES_DETAIL_COLUMNS))

        headers = [header for header, _, _ in SALES_DETAIL_COLUMNS]
        logger.info(f"Formatted {len(rows)} sales detail rows in {len(groups)} reports")
        return headers, rows

    @staticmethod
    def paid_storage(records: List[Dict[str, Any]]) -> Tuple[List[str], List[List[Any]]]:
        headers = [header for header, _, _ in PAID_STORAGE_COLUMNS]
        return headers, [ReportFormatter._map_columns(r, PAID_STORAGE_COLUMNS) for r in records]

    @staticmethod
    def paid_acceptance(records: List[Dict[str, Any]]) -> Tuple[List[str], List[List[Any]]]:
        headers = [header for header, _, _ in PAID_ACCEPTANCE_COLUMNS]
        return headers, [ReportFormatter._map_columns(r, PAID_ACCEPTANCE_COLUMNS) for r in records]

    @staticmethod
    def catalog_row(row: CatalogRow) -> List[Any]:
        return [
            row.product_id if row.product_id is not None else "",
            row.vendor_code,
            row.subject,
            row.brand,
            row.size or NO_SIZE,
            row.barcode,
            row.price or 0,
            row.cost_price or 0,
            row.margin,
            row.profitability,
            SOURCE_LABELS[row.source_tag],
            row.created_at,
            row.updated_at,
        ]

    @staticmethod
    def product_catalog(rows: List[CatalogRow]) -> Tuple[List[str], List[List[Any]]]:
        return list(PRODUCT_CATALOG_HEADERS), [ReportFormatter.catalog_row(r) for r in rows]

    @staticmethod
    def ad_finance(rows: List[FinanceRow]) -> Tuple[List[str], List[List[Any]]]:
        return list(AD_FINANCE_HEADERS), [
            [
                r.date,
                r.campaign_id,
                r.campaign_name,
                r.campaign_type,
                r.campaign_status,
                r.skus,
                r.operation_type,
                r.amount,
                "Счет" if r.bill_source else "Баланс",
                r.document_number,
            ]
            for r in rows
        ]
