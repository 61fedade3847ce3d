from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids, get_app_settings, get_today
from finance_tracker.models import User
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.notifications import NotificationService
from finance_tracker.services.settings import SettingsData
from finance_tracker.services.summary import get_monthly_summary, get_revenue_12_months
from finance_tracker.services.tax import get_bracket_info
from finance_tracker.templating import render

router = APIRouter(tags=["dashboard"])


@router.get("/")
async def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    accounts = AccountService(db)
    revenue = get_revenue_12_months(db, account_ids, today)
    bracket, rate, next_at = get_bracket_info(revenue, settings.manual_bracket)

    return render(
        request,
        "dashboard.html",
        {
            "summary": get_monthly_summary(db, account_ids, today.year, today.month),
            "accounts": accounts.with_balances(accounts.get_user_accounts(current_user.id), today),
            "revenue_12m": revenue,
            "bracket": bracket,
            "effective_rate": rate,
            "next_bracket_at": next_at,
            "settings": settings,
            "unread_count": NotificationService(db).unread_count(current_user.id),
        },
    )
