"""
Family groups, memberships and invite codes.

Invite codes are 32 hex characters (16 random bytes). An invite is usable
until it expires, is revoked, or reaches ``max_uses`` redemptions
(``max_uses == 0`` means unlimited).
"""

import secrets
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from finance_tracker.config import get_settings
from finance_tracker.errors import (
    AlreadyMember,
    CannotRemoveSelf,
    GroupNotFound,
    InviteExpired,
    InviteInvalid,
    InviteMaxUsed,
    InviteNotFound,
    LastAdminCannotLeave,
    NotGroupAdmin,
    NotGroupMember,
)
from finance_tracker.models import (
    Account,
    Budget,
    FamilyGroup,
    GroupGoal,
    GroupInvite,
    GroupMember,
    GroupRole,
    Notification,
)
from finance_tracker.services.notifications import NotificationService

logger = structlog.get_logger(__name__)


def generate_invite_code() -> str:
    return secrets.token_hex(16)


class GroupService:
    def __init__(self, db: Session):
        self.db = db

    def create_group(self, user_id: int, name: str, description: str = "") -> FamilyGroup:
        group = FamilyGroup(name=name, description=description, created_by_id=user_id)
        self.db.add(group)
        self.db.flush()
        self.db.add(GroupMember(group_id=group.id, user_id=user_id, role=GroupRole.ADMIN.value))
        self.db.commit()
        self.db.refresh(group)
        logger.info("group_created", group_id=group.id, user_id=user_id)
        return group

    def get_group(self, group_id: int) -> FamilyGroup:
        group = self.db.query(FamilyGroup).filter(FamilyGroup.id == group_id).first()
        if not group:
            raise GroupNotFound()
        return group

    def get_user_groups(self, user_id: int) -> List[FamilyGroup]:
        return (
            self.db.query(FamilyGroup)
            .join(GroupMember, GroupMember.group_id == FamilyGroup.id)
            .filter(GroupMember.user_id == user_id)
            .order_by(FamilyGroup.name)
            .all()
        )

    def _membership(self, group_id: int, user_id: int) -> Optional[GroupMember]:
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .first()
        )

    def is_member(self, group_id: int, user_id: int) -> bool:
        return self._membership(group_id, user_id) is not None

    def is_admin(self, group_id: int, user_id: int) -> bool:
        membership = self._membership(group_id, user_id)
        return membership is not None and membership.is_admin

    def require_member(self, group_id: int, user_id: int) -> FamilyGroup:
        group = self.get_group(group_id)
        if not self.is_member(group_id, user_id):
            raise NotGroupMember()
        return group

    def require_admin(self, group_id: int, user_id: int) -> FamilyGroup:
        group = self.get_group(group_id)
        if not self.is_admin(group_id, user_id):
            raise NotGroupAdmin()
        return group

    def get_members(self, group_id: int) -> List[GroupMember]:
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at, GroupMember.id)
            .all()
        )

    def member_ids(self, group_id: int) -> List[int]:
        return [m.user_id for m in self.get_members(group_id)]

    # Invites

    def generate_invite(
        self, group_id: int, user_id: int, max_uses: int = 0, now: datetime = None
    ) -> GroupInvite:
        self.require_admin(group_id, user_id)
        now = now or datetime.utcnow()
        invite = GroupInvite(
            group_id=group_id,
            code=generate_invite_code(),
            created_by_id=user_id,
            expires_at=now + timedelta(days=get_settings().invite_code_days),
            max_uses=max(0, max_uses),
        )
        self.db.add(invite)
        self.db.commit()
        self.db.refresh(invite)
        logger.info("invite_generated", group_id=group_id, invite_id=invite.id)
        return invite

    def get_invite_by_code(self, code: str) -> GroupInvite:
        invite = self.db.query(GroupInvite).filter(GroupInvite.code == code).first()
        if not invite:
            raise InviteNotFound()
        return invite

    def validate_invite(self, code: str, now: datetime = None) -> GroupInvite:
        invite = self.get_invite_by_code(code)
        if invite.revoked:
            raise InviteInvalid()
        if invite.is_expired(now):
            raise InviteExpired()
        if invite.is_exhausted():
            raise InviteMaxUsed()
        return invite

    def accept_invite(self, code: str, user_id: int, now: datetime = None) -> FamilyGroup:
        invite = self.validate_invite(code, now)
        if self.is_member(invite.group_id, user_id):
            raise AlreadyMember()

        self.db.add(
            GroupMember(group_id=invite.group_id, user_id=user_id, role=GroupRole.MEMBER.value)
        )
        invite.used_count += 1
        self.db.commit()

        group = invite.group
        NotificationService(self.db).notify_group_invite(
            user_id, group, invite.created_by, invite_id=invite.id
        )
        logger.info("invite_accepted", group_id=group.id, user_id=user_id)
        return group

    def list_invites(self, group_id: int, user_id: int, now: datetime = None) -> List[GroupInvite]:
        self.require_admin(group_id, user_id)
        now = now or datetime.utcnow()
        invites = (
            self.db.query(GroupInvite)
            .filter(
                GroupInvite.group_id == group_id,
                GroupInvite.revoked.is_(False),
                GroupInvite.expires_at > now,
            )
            .order_by(GroupInvite.created_at.desc())
            .all()
        )
        return [i for i in invites if not i.is_exhausted()]

    def revoke_invite(self, invite_id: int, user_id: int) -> GroupInvite:
        invite = self.db.query(GroupInvite).filter(GroupInvite.id == invite_id).first()
        if not invite:
            raise InviteNotFound()
        self.require_admin(invite.group_id, user_id)
        invite.revoked = True
        self.db.commit()
        return invite

    # Membership changes

    def leave_group(self, group_id: int, user_id: int) -> bool:
        """Returns True when the group was deleted because nobody is left."""
        group = self.get_group(group_id)
        membership = self._membership(group_id, user_id)
        if not membership:
            raise NotGroupMember()

        members = self.get_members(group_id)
        if len(members) == 1:
            self._delete(group)
            return True

        if membership.is_admin and sum(1 for m in members if m.is_admin) == 1:
            raise LastAdminCannotLeave()

        self.db.delete(membership)
        self.db.commit()
        return False

    def remove_member(self, group_id: int, admin_id: int, member_user_id: int) -> None:
        self.require_admin(group_id, admin_id)
        if admin_id == member_user_id:
            raise CannotRemoveSelf()
        membership = self._membership(group_id, member_user_id)
        if not membership:
            raise NotGroupMember("usuário não é membro deste grupo")
        self.db.delete(membership)
        self.db.commit()

    def delete_group(self, group_id: int, user_id: int) -> None:
        group = self.require_admin(group_id, user_id)
        self._delete(group)

    def _delete(self, group: FamilyGroup) -> None:
        group_id = group.id
        # joint accounts keep their history under the creator
        for account in self.db.query(Account).filter(Account.group_id == group_id).all():
            account.group_id = None
        for goal in self.db.query(GroupGoal).filter(GroupGoal.group_id == group_id).all():
            self.db.delete(goal)
        for budget in self.db.query(Budget).filter(Budget.group_id == group_id).all():
            self.db.delete(budget)
        self.db.query(Notification).filter(Notification.group_id == group_id).update(
            {Notification.group_id: None, Notification.invite_id: None},
            synchronize_session=False,
        )
        self.db.delete(group)
        self.db.commit()
        logger.info("group_deleted", group_id=group_id)
