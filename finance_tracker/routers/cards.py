from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids, get_today
from finance_tracker.models import User
from finance_tracker.schemas import CreditCardCreate, InstallmentCreate
from finance_tracker.services.cards import CreditCardService
from finance_tracker.templating import render

router = APIRouter(tags=["cards"])


def _card_list(request, service, account_ids, today):
    return render(
        request,
        "partials/card-list.html",
        {"cards": service.cards_with_totals(account_ids, today), "today": today},
    )


def _installment_list(request, service, account_ids, today):
    return render(
        request,
        "partials/installment-list.html",
        {"installments": service.active_installments(account_ids, today), "today": today},
    )


@router.get("/cards")
async def cards_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = CreditCardService(db)
    return render(
        request,
        "cards.html",
        {
            "cards": service.cards_with_totals(account_ids, today),
            "installments": service.active_installments(account_ids, today),
            "today": today,
        },
    )


@router.post("/cards")
async def create_card(
    request: Request,
    name: str = Form(...),
    closing_day: int = Form(...),
    due_day: int = Form(...),
    limit_amount: float = Form(0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = CreditCardService(db)
    data = CreditCardCreate(
        name=name, closing_day=closing_day, due_day=due_day, limit_amount=limit_amount
    )
    service.create_card(current_user, data)
    # the individual account may have just been created
    account_ids = service.accounts.get_user_account_ids(current_user.id)
    return _card_list(request, service, account_ids, today)


@router.delete("/cards/{card_id}")
async def delete_card(
    request: Request,
    card_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = CreditCardService(db)
    service.delete_card(card_id, current_user.id)
    return _card_list(request, service, account_ids, today)


@router.post("/installments")
async def create_installment(
    request: Request,
    credit_card_id: int = Form(...),
    description: str = Form(...),
    total_amount: float = Form(...),
    total_installments: int = Form(...),
    start_date: date = Form(...),
    category: str = Form("Outros"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = CreditCardService(db)
    data = InstallmentCreate(
        credit_card_id=credit_card_id,
        description=description,
        total_amount=total_amount,
        total_installments=total_installments,
        start_date=start_date,
        category=category,
    )
    service.create_installment(current_user.id, data)
    return _installment_list(request, service, account_ids, today)


@router.delete("/installments/{installment_id}")
async def delete_installment(
    request: Request,
    installment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = CreditCardService(db)
    service.delete_installment(installment_id, current_user.id)
    return _installment_list(request, service, account_ids, today)
