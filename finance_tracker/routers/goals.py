from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_today
from finance_tracker.models import GoalStatus, User
from finance_tracker.schemas import GoalCreate
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.goals import GoalService
from finance_tracker.templating import render

router = APIRouter(tags=["goals"])


def _goal_list(request, service: GoalService, group_id: int, user: User):
    return render(
        request,
        "partials/goal-list.html",
        {"goals": service.get_group_goals(group_id, user.id), "group_id": group_id},
    )


@router.get("/groups/{group_id}/goals")
async def goals_page(
    request: Request,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GoalService(db)
    goals = service.get_group_goals(group_id, current_user.id)
    return render(
        request,
        "goals.html",
        {
            "group": service.groups.get_group(group_id),
            "goals": goals,
            "contributions": {g.id: service.contributions_by_member(g) for g in goals},
            "accounts": AccountService(db).get_group_joint_accounts(group_id),
        },
    )


@router.post("/groups/{group_id}/goals")
async def create_goal(
    request: Request,
    group_id: int,
    name: str = Form(...),
    target_amount: float = Form(...),
    description: str = Form(""),
    target_date: Optional[date] = Form(None),
    account_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    if target_amount <= 0:
        raise HTTPException(status_code=400, detail="Valor da meta deve ser positivo")
    data = GoalCreate(
        name=name,
        description=description,
        target_amount=target_amount,
        target_date=target_date,
        account_id=account_id,
    )
    service = GoalService(db)
    service.create_goal(group_id, current_user.id, data, today)
    return _goal_list(request, service, group_id, current_user)


@router.post("/goals/{goal_id}")
async def update_goal(
    request: Request,
    goal_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    target_amount: Optional[float] = Form(None),
    target_date: Optional[date] = Form(None),
    status: Optional[GoalStatus] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GoalService(db)
    goal = service.update_goal(
        goal_id,
        current_user.id,
        name=name,
        description=description,
        target_amount=target_amount,
        target_date=target_date,
        status=status,
    )
    return _goal_list(request, service, goal.group_id, current_user)


@router.delete("/goals/{goal_id}")
async def delete_goal(
    request: Request,
    goal_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GoalService(db)
    group_id = service.get_goal(goal_id, current_user.id).group_id
    service.delete_goal(goal_id, current_user.id)
    return _goal_list(request, service, group_id, current_user)


@router.post("/goals/{goal_id}/contribution")
async def add_contribution(
    request: Request,
    goal_id: int,
    amount: float = Form(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GoalService(db)
    goal = service.add_contribution(goal_id, current_user.id, amount)
    return _goal_list(request, service, goal.group_id, current_user)
