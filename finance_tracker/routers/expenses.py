from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_account_ids, get_app_settings, get_today
from finance_tracker.models import ExpenseType, User
from finance_tracker.schemas import ExpenseCreate, SplitIn
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.expenses import ExpenseService
from finance_tracker.services.settings import SettingsData
from finance_tracker.templating import render

router = APIRouter(tags=["expenses"])


def _list_context(service: ExpenseService, account_ids, expense_type, today, category=None):
    expenses = service.list_expenses(account_ids, expense_type, category)
    context = {"expenses": expenses, "today": today, "category": category}
    if expense_type == ExpenseType.FIXED:
        paid_ids = service.paid_expense_ids([e.id for e in expenses], today.year, today.month)
        active = [e for e in expenses if e.active]
        context.update(
            paid_ids=paid_ids,
            total_paid=sum(e.amount for e in active if e.id in paid_ids),
            total_pending=sum(e.amount for e in active if e.id not in paid_ids),
        )
    else:
        context["total"] = sum(e.amount for e in expenses if e.active)
    return context


def _render_list(request, service, account_ids, expense_type, today):
    template = (
        "partials/fixed-expense-list.html"
        if expense_type == ExpenseType.FIXED
        else "partials/variable-expense-list.html"
    )
    return render(request, template, _list_context(service, account_ids, expense_type, today))


@router.get("/expenses")
async def expenses_page(
    request: Request,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = ExpenseService(db)
    return render(
        request,
        "expenses.html",
        {
            "fixed": _list_context(service, account_ids, ExpenseType.FIXED, today, category),
            "variable": _list_context(service, account_ids, ExpenseType.VARIABLE, today, category),
            "accounts": AccountService(db).get_user_accounts(current_user.id),
            "category": category,
            "today": today,
        },
    )


@router.post("/expenses")
async def create_expense(
    request: Request,
    name: str = Form(...),
    amount: float = Form(...),
    type: ExpenseType = Form(ExpenseType.VARIABLE),
    due_day: Optional[int] = Form(None),
    category: str = Form("Outros"),
    account_id: Optional[int] = Form(None),
    is_split: bool = Form(False),
    split_user_ids: List[int] = Form([]),
    split_percentages: List[float] = Form([]),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    settings: SettingsData = Depends(get_app_settings),
    today: date = Depends(get_today),
):
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Dados inválidos")
    if len(split_user_ids) != len(split_percentages):
        raise HTTPException(status_code=400, detail="Dados inválidos")

    splits = []
    if is_split:
        splits = [
            SplitIn(user_id=uid, percentage=pct)
            for uid, pct in zip(split_user_ids, split_percentages)
        ]

    data = ExpenseCreate(
        account_id=account_id,
        name=name,
        amount=amount,
        type=type,
        due_day=due_day or 1,
        category=category,
        splits=splits,
    )
    service = ExpenseService(db)
    expense = service.create_expense(current_user, data)
    service.check_budget_limit(expense.account_id, settings.budget_warning_threshold, today)
    return _render_list(request, service, account_ids, type, today)


@router.post("/expenses/{expense_id}/toggle")
async def toggle_expense(
    request: Request,
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = ExpenseService(db)
    expense = service.toggle_active(expense_id, current_user.id)
    return _render_list(request, service, account_ids, ExpenseType(expense.type), today)


@router.post("/expenses/{expense_id}/paid")
async def mark_expense_paid(
    request: Request,
    expense_id: int,
    month: Optional[int] = Form(None),
    year: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    # payments default to the current month
    month = month or today.month
    year = year or today.year
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="mês inválido (deve estar entre 1-12)")

    service = ExpenseService(db)
    service.mark_paid(expense_id, current_user.id, year, month)
    return _render_list(request, service, account_ids, ExpenseType.FIXED, today)


@router.post("/expenses/{expense_id}/unpaid")
async def mark_expense_unpaid(
    request: Request,
    expense_id: int,
    month: Optional[int] = Form(None),
    year: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    month = month or today.month
    year = year or today.year
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="mês inválido (deve estar entre 1-12)")

    service = ExpenseService(db)
    service.mark_unpaid(expense_id, current_user.id, year, month)
    return _render_list(request, service, account_ids, ExpenseType.FIXED, today)


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    request: Request,
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    account_ids: List[int] = Depends(get_account_ids),
    today: date = Depends(get_today),
):
    service = ExpenseService(db)
    expense_type = service.delete_expense(expense_id, current_user.id)
    return _render_list(request, service, account_ids, expense_type, today)
