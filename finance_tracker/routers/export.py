from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids, get_today
from finance_tracker.models import User
from finance_tracker.routers.tax_report import XLSX_MEDIA_TYPE, resolve_year
from finance_tracker.services.export import (
    YearReport,
    build_year_csv,
    build_year_pdf,
    build_year_workbook,
)

router = APIRouter(tags=["export"])


@router.get("/export")
async def export_data(
    year: Optional[int] = None,
    format: str = "xlsx",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    year = resolve_year(year, today)
    if format not in ("xlsx", "csv", "pdf"):
        raise HTTPException(status_code=400, detail="Formato inválido")

    report = YearReport(db, account_ids, year, today)
    if format == "csv":
        content = build_year_csv(report)
        media_type = "text/csv; charset=utf-8"
    elif format == "pdf":
        content = build_year_pdf(report)
        media_type = "application/pdf"
    else:
        content = build_year_workbook(report)
        media_type = XLSX_MEDIA_TYPE

    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename=financeiro_{year}.{format}"},
    )
