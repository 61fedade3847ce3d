from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_today
from finance_tracker.models import User
from finance_tracker.schemas import BudgetCategoryIn
from finance_tracker.services.budgets import BudgetService
from finance_tracker.services.groups import GroupService
from finance_tracker.templating import render

router = APIRouter(tags=["budgets"])


def _budget_list(request, service: BudgetService, user: User, year: int, month: int):
    return render(
        request,
        "partials/budget-list.html",
        {"budgets": service.get_user_budgets(user.id, year, month), "year": year, "month": month},
    )


@router.get("/budgets")
async def budgets_page(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    year = year or today.year
    month = month or today.month
    service = BudgetService(db)
    return render(
        request,
        "budgets.html",
        {
            "budgets": service.get_user_budgets(current_user.id, year, month),
            "groups": GroupService(db).get_user_groups(current_user.id),
            "year": year,
            "month": month,
        },
    )


@router.get("/budgets/list")
async def budgets_list(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return _budget_list(
        request, BudgetService(db), current_user, year or today.year, month or today.month
    )


@router.post("/budgets")
async def create_budget(
    request: Request,
    name: str = Form(...),
    year: int = Form(...),
    month: int = Form(...),
    group_id: Optional[int] = Form(None),
    categories: List[str] = Form([]),
    limits: List[float] = Form([]),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if len(categories) != len(limits):
        raise HTTPException(status_code=400, detail="Dados inválidos")
    items = [BudgetCategoryIn(category=c, limit=l) for c, l in zip(categories, limits)]

    service = BudgetService(db)
    budget = service.create_budget(
        current_user.id,
        year,
        month,
        name.strip(),
        [(i.category, i.limit) for i in items],
        group_id=group_id,
    )
    if budget.is_group_budget:
        return _group_budget_list(request, service, budget.group_id, current_user)
    return _budget_list(request, service, current_user, year, month)


@router.post("/budgets/copy")
async def copy_budget(
    request: Request,
    year: int = Form(...),
    month: int = Form(...),
    group_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = BudgetService(db)
    service.copy_from_previous_month(current_user.id, year, month, group_id)
    if group_id is not None:
        return _group_budget_list(request, service, group_id, current_user)
    return _budget_list(request, service, current_user, year, month)


@router.post("/budgets/categories/{category_id}")
async def update_budget_category(
    request: Request,
    category_id: int,
    limit: float = Form(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if limit <= 0:
        raise HTTPException(status_code=400, detail="Dados inválidos")
    service = BudgetService(db)
    item = service.update_category(category_id, current_user.id, limit)
    return render(request, "partials/budget-detail.html", {"budget": item.budget})


@router.delete("/budgets/categories/{category_id}")
async def delete_budget_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    BudgetService(db).delete_category(category_id, current_user.id)
    return Response(status_code=200)


@router.get("/budgets/{budget_id}")
async def budget_detail(
    request: Request,
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    budget = BudgetService(db).get_budget(budget_id, current_user.id)
    return render(request, "budget-detail.html", {"budget": budget})


@router.post("/budgets/{budget_id}")
async def update_budget(
    request: Request,
    budget_id: int,
    name: str = Form(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    budget = BudgetService(db).update_budget(budget_id, current_user.id, name.strip())
    return render(request, "partials/budget-detail.html", {"budget": budget})


@router.delete("/budgets/{budget_id}")
async def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    BudgetService(db).delete_budget(budget_id, current_user.id)
    return Response(status_code=200, headers={"HX-Trigger": "budgets-changed"})


@router.post("/budgets/{budget_id}/archive")
async def archive_budget(
    request: Request,
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    budget = BudgetService(db).archive_budget(budget_id, current_user.id)
    return render(request, "partials/budget-detail.html", {"budget": budget})


@router.post("/budgets/{budget_id}/categories")
async def add_budget_category(
    request: Request,
    budget_id: int,
    category: str = Form(...),
    limit: float = Form(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = BudgetCategoryIn(category=category, limit=limit)
    service = BudgetService(db)
    service.add_category(budget_id, current_user.id, item.category, item.limit)
    budget = service.get_budget(budget_id, current_user.id)
    return render(request, "partials/budget-detail.html", {"budget": budget})


def _group_budget_list(request, service: BudgetService, group_id: int, user: User):
    return render(
        request,
        "partials/budget-list.html",
        {"budgets": service.get_group_budgets(group_id, user.id), "group_id": group_id},
    )


@router.get("/groups/{group_id}/budgets")
async def group_budgets(
    request: Request,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _group_budget_list(request, BudgetService(db), group_id, current_user)
