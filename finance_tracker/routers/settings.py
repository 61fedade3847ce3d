from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.models import User
from finance_tracker.schemas import SettingsUpdate
from finance_tracker.services.settings import SettingsCache, get_settings_cache, update_settings
from finance_tracker.templating import render

router = APIRouter(tags=["settings"])


@router.get("/settings")
async def settings_page(
    request: Request,
    current_user: User = Depends(get_current_user),
    cache: SettingsCache = Depends(get_settings_cache),
):
    return render(request, "settings.html", {"settings": cache.get()})


@router.post("/settings")
async def save_settings(
    request: Request,
    pro_labore: float = Form(0),
    inss_ceiling: float = Form(0),
    inss_rate: float = Form(0),
    budget_warning_threshold: float = Form(100),
    record_start_date: Optional[date] = Form(None),
    manual_bracket: int = Form(0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    cache: SettingsCache = Depends(get_settings_cache),
):
    data = SettingsUpdate(
        pro_labore=pro_labore,
        inss_ceiling=inss_ceiling,
        inss_rate=inss_rate,
        budget_warning_threshold=budget_warning_threshold,
        record_start_date=record_start_date,
        manual_bracket=manual_bracket,
    )
    values = data.model_dump()
    values["record_start_date"] = (
        data.record_start_date.isoformat() if data.record_start_date else ""
    )
    update_settings(db, values)
    cache.invalidate()
    return render(request, "partials/settings-form.html", {"settings": cache.get(), "saved": True})
