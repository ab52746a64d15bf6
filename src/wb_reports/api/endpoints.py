"""
Wildberries endpoint catalogue.

Paths are relative to the host of their API category; WBEndpoints joins
them with the configured base URLs.
"""

from dataclasses import dataclass
from typing import Optional

from wb_reports.utils.config import WildberriesAPIConfig, get_config


SALES_DETAIL_PATH = "/api/v5/supplier/reportDetailByPeriod"

PAID_STORAGE_PATH = "/api/v1/paid_storage"
PAID_ACCEPTANCE_PATH = "/api/v1/acceptance_report"
TASK_STATUS_SUFFIX = "/tasks/{task_id}/status"
TASK_DOWNLOAD_SUFFIX = "/tasks/{task_id}/download"

CARDS_LIST_PATH = "/content/v2/get/cards/list"

CAMPAIGN_COUNT_PATH = "/adv/v1/promotion/count"
CAMPAIGN_DETAILS_PATH = "/adv/v1/promotion/adverts"
ADVERT_FINANCE_PATH = "/adv/v1/upd"


@dataclass(frozen=True)
class JobEndpoints:
    """Create/status/download URLs of one asynchronous report kind."""

    name: str
    create_url: str
    status_url: str  # contains {task_id}
    download_url: str  # contains {task_id}

    def status_for(self, task_id: str) -> str:
        return self.status_url.format(task_id=task_id)

    def download_for(self, task_id: str) -> str:
        return self.download_url.format(task_id=task_id)


class WBEndpoints:
    """Absolute URLs for every upstream call made by report pipelines."""

    def __init__(self, config: Optional[WildberriesAPIConfig] = None):
        config = config or get_config().wildberries
        self.statistics = config.statistics_base_url.rstrip("/")
        self.analytics = config.analytics_base_url.rstrip("/")
        self.content = config.content_base_url.rstrip("/")
        self.advert = config.advert_base_url.rstrip("/")

    @property
    def sales_detail(self) -> str:
        return self.statistics + SALES_DETAIL_PATH

    @property
    def cards_list(self) -> str:
        return self.content + CARDS_LIST_PATH

    @property
    def campaign_count(self) -> str:
        return self.advert + CAMPAIGN_COUNT_PATH

    @property
    def campaign_details(self) -> str:
        return self.advert + CAMPAIGN_DETAILS_PATH

    @property
    def advert_finance(self) -> str:
        return self.advert + ADVERT_FINANCE_PATH

    def _job(self, name: str, path: str) -> JobEndpoints:
        base = self.analytics + path
        return JobEndpoints(
            name=name,
            create_url=base,
            status_url=base + TASK_STATUS_SUFFIX,
            download_url=base + TASK_DOWNLOAD_SUFFIX,
        )

    @property
    def paid_storage(self) -> JobEndpoints:
        return self._job("paid_storage", PAID_STORAGE_PATH)

    @property
    def paid_acceptance(self) -> JobEndpoints:
        return self._job("paid_acceptance", PAID_ACCEPTANCE_PATH)
