from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from finance_tracker.auth import get_current_user
from finance_tracker.database import get_db
from finance_tracker.models import User
from finance_tracker.services.notifications import NotificationService
from finance_tracker.templating import render

router = APIRouter(tags=["notifications"])

DROPDOWN_LIMIT = 10


def _badge(request, service: NotificationService, user: User):
    return render(
        request,
        "partials/notification-badge.html",
        {"count": service.unread_count(user.id)},
        headers={"HX-Trigger": "notifications-changed"},
    )


@router.get("/notifications")
async def notifications_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = NotificationService(db)
    return render(
        request,
        "notifications.html",
        {
            "notifications": service.list_for_user(current_user.id),
            "unread_count": service.unread_count(current_user.id),
        },
    )


@router.get("/notifications/badge")
async def notification_badge(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = NotificationService(db)
    return render(
        request, "partials/notification-badge.html", {"count": service.unread_count(current_user.id)}
    )


@router.get("/notifications/dropdown")
async def notification_dropdown(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = NotificationService(db)
    return render(
        request,
        "partials/notification-dropdown.html",
        {"notifications": service.list_for_user(current_user.id, limit=DROPDOWN_LIMIT)},
    )


@router.post("/notifications/mark-all-read")
async def mark_all_read(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = NotificationService(db)
    service.mark_all_as_read(current_user.id)
    return _badge(request, service, current_user)


@router.post("/notifications/{notification_id}/read")
async def mark_read(
    request: Request,
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = NotificationService(db)
    service.mark_as_read(notification_id, current_user.id)
    return _badge(request, service, current_user)


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    request: Request,
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = NotificationService(db)
    service.delete(notification_id, current_user.id)
    return _badge(request, service, current_user)
