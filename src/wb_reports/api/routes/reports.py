"""
Report download routes.
"""

from urllib.parse import quote

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from wb_reports.api.schemas import ReportGenerateRequest
from wb_reports.database.connection import get_db
from wb_reports.services.report_service import ReportService
from wb_reports.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    return ReportService(db)


def content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII fallback and the UTF-8 file name."""
    fallback = file_name.encode("ascii", "ignore").decode().strip(" -") or "report.xlsx"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


@router.post("/generate")
async def generate_report(payload: ReportGenerateRequest,
                          service: ReportService = Depends(get_report_service)):
    """
    Build a report and return it as an XLSX attachment.

    A period without data yields a workbook with headers only.
    """
    file_name, content = await service.generate_workbook(
        payload.report_type,
        payload.start_date,
        payload.end_date,
        token_id=payload.token_id,
        api_key=payload.api_key,
        client_name=payload.client_name,
    )

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": content_disposition(file_name)},
    )
