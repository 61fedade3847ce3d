from datetime import datetime
from typing import Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from finance_tracker.errors import NotificationNotFound
from finance_tracker.models import Notification, NotificationType, User

logger = structlog.get_logger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        link: str = "",
        group_id: Optional[int] = None,
        invite_id: Optional[int] = None,
        commit: bool = True,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title,
            message=message,
            link=link,
            group_id=group_id,
            invite_id=invite_id,
        )
        self.db.add(notification)
        if commit:
            self.db.commit()
        logger.info("notification_created", user_id=user_id, type=notification.type)
        return notification

    def notify_users(
        self,
        user_ids: Iterable[int],
        type: NotificationType,
        title: str,
        message: str,
        link: str = "",
        group_id: Optional[int] = None,
        commit: bool = True,
    ) -> int:
        count = 0
        for user_id in user_ids:
            self.create(user_id, type, title, message, link, group_id, commit=False)
            count += 1
        if commit:
            self.db.commit()
        return count

    def list_for_user(self, user_id: int, limit: int = 50) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    def unread(self, user_id: int) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .all()
        )

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .count()
        )

    def _get_owned(self, notification_id: int, user_id: int) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if not notification:
            raise NotificationNotFound()
        return notification

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self._get_owned(notification_id, user_id)
        if not notification.read:
            notification.read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .update(
                {Notification.read: True, Notification.read_at: datetime.utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated

    def delete(self, notification_id: int, user_id: int) -> None:
        notification = self._get_owned(notification_id, user_id)
        self.db.delete(notification)
        self.db.commit()

    # Domain notifications

    def notify_group_invite(self, user_id, group, inviter: User, invite_id=None):
        return self.create(
            user_id,
            NotificationType.GROUP_INVITE,
            "Convite para grupo",
            f'Você foi adicionado ao grupo "{group.name}" por {inviter.name}',
            link=f"/groups/{group.id}/dashboard",
            group_id=group.id,
            invite_id=invite_id,
        )

    def notify_partner_expense(self, member_ids, creator: User, expense, group_id):
        recipients = [uid for uid in member_ids if uid != creator.id]
        return self.notify_users(
            recipients,
            NotificationType.EXPENSE,
            "Novo gasto do parceiro",
            f'{creator.name} adicionou "{expense.name}" (R$ {expense.amount:.2f})',
            link="/expenses",
            group_id=group_id,
        )

    def notify_budget_limit_reached(self, user_ids, account, spent, percentage):
        return self.notify_users(
            user_ids,
            NotificationType.BUDGET_ALERT,
            "Limite de gastos atingido",
            f'A conta "{account.name}" atingiu {percentage:.0f}% do limite mensal '
            f"(R$ {spent:.2f} / R$ {account.budget_limit:.2f})",
            link="/accounts",
            group_id=account.group_id,
        )
