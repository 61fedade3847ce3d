from datetime import datetime, timedelta

import pytest

from finance_tracker.errors import (
    AlreadyMember,
    CannotRemoveSelf,
    InviteExpired,
    InviteInvalid,
    InviteMaxUsed,
    InviteNotFound,
    LastAdminCannotLeave,
    NotGroupAdmin,
)
from finance_tracker.models import (
    Account,
    Budget,
    FamilyGroup,
    GroupMember,
    Notification,
    NotificationType,
)
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.budgets import BudgetService
from finance_tracker.services.groups import GroupService


@pytest.fixture
def service(db):
    return GroupService(db)


@pytest.fixture
def group(service, user):
    return service.create_group(user.id, "Família", "Casa da Ana")


class TestCreateGroup:
    def test_creator_is_admin(self, service, group, user):
        assert service.is_admin(group.id, user.id)
        assert service.member_ids(group.id) == [user.id]

    def test_user_groups(self, service, group, user, make_user):
        assert service.get_user_groups(user.id) == [group]
        assert service.get_user_groups(make_user().id) == []


class TestInvites:
    def test_code_is_32_hex_chars(self, service, group, user):
        invite = service.generate_invite(group.id, user.id)
        assert len(invite.code) == 32
        int(invite.code, 16)

    def test_only_admin_generates(self, service, group, make_user):
        with pytest.raises(NotGroupAdmin):
            service.generate_invite(group.id, make_user().id)

    def test_accept_adds_member_and_notifies(self, db, service, group, user, make_user):
        invitee = make_user(name="Bruno")
        invite = service.generate_invite(group.id, user.id)

        assert service.accept_invite(invite.code, invitee.id) == group
        assert service.is_member(group.id, invitee.id)
        assert not service.is_admin(group.id, invitee.id)
        assert invite.used_count == 1

        note = db.query(Notification).filter(Notification.user_id == invitee.id).one()
        assert note.type == NotificationType.GROUP_INVITE.value
        assert note.invite_id == invite.id

    def test_already_member(self, service, group, user):
        invite = service.generate_invite(group.id, user.id)
        with pytest.raises(AlreadyMember):
            service.accept_invite(invite.code, user.id)
        assert invite.used_count == 0

    def test_unknown_code(self, service, user):
        with pytest.raises(InviteNotFound):
            service.accept_invite("0" * 32, user.id)

    def test_max_uses(self, service, group, user, make_user):
        invite = service.generate_invite(group.id, user.id, max_uses=1)
        service.accept_invite(invite.code, make_user().id)

        late = make_user()
        with pytest.raises(InviteMaxUsed):
            service.accept_invite(invite.code, late.id)
        assert not service.is_member(group.id, late.id)

    def test_expired(self, service, group, user, make_user):
        created = datetime(2024, 1, 1)
        invite = service.generate_invite(group.id, user.id, now=created)

        late = make_user()
        with pytest.raises(InviteExpired):
            service.accept_invite(invite.code, late.id, now=created + timedelta(days=8))
        assert not service.is_member(group.id, late.id)

    def test_revoked(self, service, group, user, make_user):
        invite = service.generate_invite(group.id, user.id)
        service.revoke_invite(invite.id, user.id)
        with pytest.raises(InviteInvalid):
            service.accept_invite(invite.code, make_user().id)
        assert service.list_invites(group.id, user.id) == []


class TestMembership:
    def join(self, service, group, admin, member):
        service.accept_invite(service.generate_invite(group.id, admin.id).code, member.id)

    def test_member_leaves(self, service, group, user, make_user):
        member = make_user()
        self.join(service, group, user, member)
        assert service.leave_group(group.id, member.id) is False
        assert not service.is_member(group.id, member.id)

    def test_sole_admin_cannot_leave(self, service, group, user, make_user):
        self.join(service, group, user, make_user())
        with pytest.raises(LastAdminCannotLeave):
            service.leave_group(group.id, user.id)

    def test_last_member_leaving_deletes_group(self, db, service, group, user):
        group_id = group.id
        AccountService(db).create_joint_account(group_id, user.id, "Casa")
        BudgetService(db).create_budget(user.id, 2024, 6, "Casa", group_id=group_id)

        assert service.leave_group(group_id, user.id) is True
        assert db.query(FamilyGroup).count() == 0
        assert db.query(GroupMember).count() == 0
        assert db.query(Budget).count() == 0
        # joint accounts are detached, not deleted
        assert db.query(Account).filter(Account.name == "Casa").one().group_id is None

    def test_detached_account_stays_listed_for_creator(self, db, service, group, user, make_user):
        accounts = AccountService(db)
        joint = accounts.create_joint_account(group.id, user.id, "Casa")
        service.delete_group(group.id, user.id)

        assert joint.id in accounts.get_user_account_ids(user.id)
        assert joint.id not in accounts.get_user_account_ids(make_user().id)

    def test_remove_member(self, service, group, user, make_user):
        member = make_user()
        self.join(service, group, user, member)
        service.remove_member(group.id, user.id, member.id)
        assert not service.is_member(group.id, member.id)

    def test_admin_cannot_remove_self(self, service, group, user):
        with pytest.raises(CannotRemoveSelf):
            service.remove_member(group.id, user.id, user.id)

    def test_member_cannot_remove_others(self, service, group, user, make_user):
        member = make_user()
        self.join(service, group, user, member)
        with pytest.raises(NotGroupAdmin):
            service.remove_member(group.id, member.id, user.id)
