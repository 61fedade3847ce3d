from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_app_settings, get_today
from finance_tracker.models import User
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.expenses import ExpenseService
from finance_tracker.services.settings import SettingsData
from finance_tracker.templating import render

router = APIRouter(tags=["accounts"])


@router.get("/accounts")
async def list_accounts(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    service = AccountService(db)
    service.ensure_individual_account(current_user)
    accounts = service.with_balances(service.get_user_accounts(current_user.id), today)
    return render(request, "accounts.html", {"accounts": accounts})


@router.post("/accounts/{account_id}/limit")
async def set_account_limit(
    request: Request,
    account_id: int,
    budget_limit: Optional[float] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    service = AccountService(db)
    account = service.set_budget_limit(current_user.id, account_id, budget_limit)
    ExpenseService(db).check_budget_limit(account.id, settings.budget_warning_threshold, today)
    accounts = service.with_balances(service.get_user_accounts(current_user.id), today)
    return render(request, "partials/account-list.html", {"accounts": accounts})


@router.get("/accounts/{account_id}/members")
async def account_members(
    request: Request,
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = AccountService(db)
    account = service.get_accessible_account(current_user.id, account_id)
    members = service.get_account_members(account)
    return render(
        request,
        "partials/split-members.html",
        {"account": account, "members": members},
    )
