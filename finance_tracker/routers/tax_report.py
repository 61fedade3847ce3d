from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids, get_app_settings, get_today
from finance_tracker.models import User
from finance_tracker.services.budgets import MAX_YEAR, MIN_YEAR
from finance_tracker.services.export import build_tax_report_pdf, build_tax_report_workbook
from finance_tracker.services.settings import SettingsData
from finance_tracker.services.tax import SIMPLES_ANEXO_III
from finance_tracker.services.tax_projection import get_monthly_tax_breakdown, get_tax_projection
from finance_tracker.templating import render

router = APIRouter(tags=["tax"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def resolve_year(year: Optional[int], today: date) -> int:
    if year is None:
        year = today.year
    if year < MIN_YEAR or year > MAX_YEAR:
        raise HTTPException(status_code=400, detail="Ano inválido")
    return year


@router.get("/tax-report")
async def tax_report(
    request: Request,
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    year = resolve_year(year, today)
    return render(
        request,
        "tax-report.html",
        {
            "year": year,
            "projection": get_tax_projection(db, account_ids, settings.inss_config, year, today),
            "breakdown": get_monthly_tax_breakdown(db, account_ids, year, settings.inss_config),
            "brackets": SIMPLES_ANEXO_III,
        },
    )


@router.get("/tax-report/export")
async def export_tax_report(
    year: Optional[int] = None,
    format: str = "xlsx",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    year = resolve_year(year, today)
    if format == "xlsx":
        content = build_tax_report_workbook(db, account_ids, year, settings.inss_config, today)
        media_type = XLSX_MEDIA_TYPE
    elif format == "pdf":
        content = build_tax_report_pdf(db, account_ids, year, settings.inss_config, today)
        media_type = "application/pdf"
    else:
        raise HTTPException(status_code=400, detail="Formato inválido")

    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename=impostos_{year}.{format}"},
    )
