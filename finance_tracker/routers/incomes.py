from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids, get_app_settings, get_today
from finance_tracker.models import User
from finance_tracker.schemas import IncomeCreate, IncomePreview
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.incomes import IncomeService
from finance_tracker.services.settings import SettingsData
from finance_tracker.templating import render

router = APIRouter(tags=["incomes"])


def _income_list(request: Request, service: IncomeService, account_ids: List[int]) -> HTMLResponse:
    return render(
        request,
        "partials/income-list.html",
        {"incomes": service.list_incomes(account_ids)},
    )


@router.get("/incomes")
async def incomes_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    service = IncomeService(db, settings)
    return render(
        request,
        "income.html",
        {
            "incomes": service.list_incomes(account_ids),
            "accounts": AccountService(db).get_user_accounts(current_user.id),
            "today": today,
        },
    )


@router.get("/incomes/preview", response_model=IncomePreview)
async def preview_income(
    amount_usd: float = 0,
    exchange_rate: float = 0,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    if amount_usd < 0 or exchange_rate < 0:
        raise HTTPException(status_code=400, detail="Dados inválidos")
    return IncomeService(db, settings).preview(current_user.id, amount_usd, exchange_rate, today)


@router.post("/incomes")
async def create_income(
    request: Request,
    income_date: date = Form(..., alias="date"),
    amount_usd: float = Form(...),
    exchange_rate: float = Form(...),
    description: str = Form(""),
    account_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    # values must be positive
    if amount_usd <= 0 or exchange_rate <= 0:
        raise HTTPException(status_code=400, detail="Valor e câmbio devem ser positivos")

    service = IncomeService(db, settings)
    data = IncomeCreate(
        account_id=account_id,
        date=income_date,
        amount_usd=amount_usd,
        exchange_rate=exchange_rate,
        description=description,
    )
    service.create_income(current_user, data, today)
    return _income_list(request, service, account_ids)


@router.delete("/incomes/{income_id}")
async def delete_income(
    request: Request,
    income_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
):
    service = IncomeService(db, settings)
    service.delete_income(income_id, current_user.id)
    return _income_list(request, service, account_ids)
