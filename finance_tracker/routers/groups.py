from datetime import date

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.dependencies import get_today
from finance_tracker.errors import FinanceError, NotAuthenticated
from finance_tracker.models import User
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.budgets import BudgetService
from finance_tracker.services.goals import GoalService
from finance_tracker.services.groups import GroupService
from finance_tracker.services.summary import get_monthly_summary
from finance_tracker.templating import is_htmx, render

router = APIRouter(tags=["groups"])


def get_optional_user(request: Request, db: Session = Depends(get_db)):
    try:
        return get_current_user(request, db)
    except NotAuthenticated:
        return None


def _group_list(request, service: GroupService, user: User):
    return render(
        request,
        "partials/group-list.html",
        {"groups": service.get_user_groups(user.id), "user": user},
    )


@router.get("/groups")
async def groups_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GroupService(db)
    return render(
        request,
        "groups.html",
        {"groups": service.get_user_groups(current_user.id), "user": current_user},
    )


@router.post("/groups")
async def create_group(
    request: Request,
    name: str = Form(...),
    description: str = Form(""),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GroupService(db)
    service.create_group(current_user.id, name.strip(), description.strip())
    return _group_list(request, service, current_user)


@router.delete("/groups/{group_id}")
async def delete_group(
    request: Request,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GroupService(db)
    service.delete_group(group_id, current_user.id)
    return _group_list(request, service, current_user)


@router.post("/groups/{group_id}/invite")
async def generate_invite(
    request: Request,
    group_id: int,
    max_uses: int = Form(0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invite = GroupService(db).generate_invite(group_id, current_user.id, max_uses)
    link = str(request.url_for("join_page", code=invite.code))
    return render(request, "partials/invite-modal.html", {"invite": invite, "link": link})


@router.get("/groups/{group_id}/invites")
async def list_invites(
    request: Request,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invites = GroupService(db).list_invites(group_id, current_user.id)
    return render(request, "partials/invite-list.html", {"invites": invites, "group_id": group_id})


@router.delete("/groups/invites/{invite_id}")
async def revoke_invite(
    request: Request,
    invite_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GroupService(db)
    invite = service.revoke_invite(invite_id, current_user.id)
    invites = service.list_invites(invite.group_id, current_user.id)
    return render(
        request, "partials/invite-list.html", {"invites": invites, "group_id": invite.group_id}
    )


@router.get("/groups/join/{code}", name="join_page")
async def join_page(
    request: Request,
    code: str,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
):
    context = {"code": code, "user": user}
    try:
        invite = GroupService(db).validate_invite(code)
    except FinanceError as exc:
        context["error"] = exc.message
        return render(request, "join-group.html", context, exc.status_code)
    context["group"] = invite.group
    return render(request, "join-group.html", context)


@router.post("/groups/join/{code}")
async def accept_invite(
    request: Request,
    code: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = GroupService(db).accept_invite(code, current_user.id)
    target = f"/groups/{group.id}/dashboard"
    if is_htmx(request):
        return Response(status_code=200, headers={"HX-Redirect": target})
    return RedirectResponse(target, status_code=303)


@router.post("/groups/{group_id}/leave")
async def leave_group(
    request: Request,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    GroupService(db).leave_group(group_id, current_user.id)
    if is_htmx(request):
        return Response(status_code=200, headers={"HX-Redirect": "/groups"})
    return RedirectResponse("/groups", status_code=303)


@router.delete("/groups/{group_id}/members/{user_id}")
async def remove_member(
    request: Request,
    group_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = GroupService(db)
    service.remove_member(group_id, current_user.id, user_id)
    return render(
        request,
        "partials/member-list.html",
        {
            "members": service.get_members(group_id),
            "group_id": group_id,
            "is_admin": True,
            "user": current_user,
        },
    )


@router.post("/groups/{group_id}/accounts")
async def create_joint_account(
    request: Request,
    group_id: int,
    name: str = Form(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    GroupService(db).require_member(group_id, current_user.id)
    accounts = AccountService(db)
    accounts.create_joint_account(group_id, current_user.id, name.strip())
    items = accounts.with_balances(accounts.get_group_joint_accounts(group_id), today)
    return render(request, "partials/account-list.html", {"accounts": items, "group_id": group_id})


@router.delete("/groups/{group_id}/accounts/{account_id}")
async def delete_joint_account(
    request: Request,
    group_id: int,
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    accounts = AccountService(db)
    accounts.delete_joint_account(account_id, group_id, current_user.id)
    items = accounts.with_balances(accounts.get_group_joint_accounts(group_id), today)
    return render(request, "partials/account-list.html", {"accounts": items, "group_id": group_id})


@router.get("/groups/{group_id}/dashboard")
async def group_dashboard(
    request: Request,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    groups = GroupService(db)
    group = groups.require_member(group_id, current_user.id)
    accounts = AccountService(db)
    joint = accounts.get_group_joint_accounts(group_id)
    return render(
        request,
        "group-dashboard.html",
        {
            "group": group,
            "members": groups.get_members(group_id),
            "is_admin": groups.is_admin(group_id, current_user.id),
            "accounts": accounts.with_balances(joint, today),
            "summary": get_monthly_summary(db, [a.id for a in joint], today.year, today.month),
            "goals": GoalService(db).get_group_goals(group_id, current_user.id),
            "budgets": BudgetService(db).get_group_budgets(group_id, current_user.id),
            "user": current_user,
        },
    )
