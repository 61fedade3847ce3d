from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids
from finance_tracker.models import Frequency, TransactionType, User
from finance_tracker.schemas import RecurringTransactionIn
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.recurring import RecurringTransactionService
from finance_tracker.templating import render

router = APIRouter(tags=["recurring"])


def _recurring_list(request, service, account_ids):
    return render(
        request,
        "partials/recurring-list.html",
        {"transactions": service.list_for_accounts(account_ids)},
    )


def _form_data(
    transaction_type: TransactionType = Form(...),
    frequency: Frequency = Form(...),
    amount: float = Form(...),
    description: str = Form(...),
    category: str = Form("Outros"),
    start_date: date = Form(...),
    end_date: Optional[date] = Form(None),
    account_id: Optional[int] = Form(None),
) -> RecurringTransactionIn:
    return RecurringTransactionIn(
        account_id=account_id,
        transaction_type=transaction_type,
        frequency=frequency,
        amount=amount,
        description=description,
        category=category,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/recurring")
async def recurring_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
):
    service = RecurringTransactionService(db)
    return render(
        request,
        "recurring.html",
        {
            "transactions": service.list_for_accounts(account_ids),
            "accounts": AccountService(db).get_user_accounts(current_user.id),
            "frequencies": [f.value for f in Frequency],
        },
    )


@router.post("/recurring")
async def create_recurring(
    request: Request,
    data: RecurringTransactionIn = Depends(_form_data),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = RecurringTransactionService(db)
    service.create(current_user, data)
    return _recurring_list(request, service, service.accounts.get_user_account_ids(current_user.id))


@router.post("/recurring/{recurring_id}")
async def update_recurring(
    request: Request,
    recurring_id: int,
    data: RecurringTransactionIn = Depends(_form_data),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
):
    service = RecurringTransactionService(db)
    service.update(recurring_id, current_user, data)
    return _recurring_list(request, service, account_ids)


@router.delete("/recurring/{recurring_id}")
async def delete_recurring(
    request: Request,
    recurring_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
):
    service = RecurringTransactionService(db)
    service.delete(recurring_id, current_user.id)
    return _recurring_list(request, service, account_ids)


@router.post("/recurring/{recurring_id}/toggle")
async def toggle_recurring(
    request: Request,
    recurring_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
):
    service = RecurringTransactionService(db)
    service.toggle(recurring_id, current_user.id)
    return _recurring_list(request, service, account_ids)
