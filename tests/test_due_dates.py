from datetime import date

import pytest

from finance_tracker.models import Expense, ExpenseType, Notification, NotificationType
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.due_dates import check_upcoming_due_dates
from finance_tracker.services.expenses import ExpenseService
from finance_tracker.services.groups import GroupService

TODAY = date(2024, 6, 15)


@pytest.fixture
def account(db, user):
    return AccountService(db).get_individual_account(user.id)


def add_fixed(db, account_id, due_day, active=True, type=ExpenseType.FIXED):
    expense = Expense(
        account_id=account_id,
        name="Internet",
        amount=120,
        type=type.value,
        due_day=due_day,
        category="Serviços",
        active=active,
    )
    db.add(expense)
    db.commit()
    return expense


def reminders(db):
    return db.query(Notification).filter(Notification.type == NotificationType.DUE_DATE.value).all()


class TestDueDates:
    def test_reminds_three_days_ahead(self, db, user, account):
        add_fixed(db, account.id, due_day=18)
        assert check_upcoming_due_dates(db, TODAY) == 1
        [note] = reminders(db)
        assert note.user_id == user.id
        assert "18/06" in note.message

    def test_other_days_ignored(self, db, account):
        add_fixed(db, account.id, due_day=17)
        add_fixed(db, account.id, due_day=19)
        assert check_upcoming_due_dates(db, TODAY) == 0

    def test_paid_inactive_and_variable_are_skipped(self, db, user, account):
        paid = add_fixed(db, account.id, due_day=18)
        ExpenseService(db).mark_paid(paid.id, user.id, 2024, 6)
        add_fixed(db, account.id, due_day=18, active=False)
        add_fixed(db, account.id, due_day=18, type=ExpenseType.VARIABLE)
        assert check_upcoming_due_dates(db, TODAY) == 0

    def test_month_rollover_checks_next_month_payment(self, db, user, account):
        expense = add_fixed(db, account.id, due_day=2)
        ExpenseService(db).mark_paid(expense.id, user.id, 2024, 6)
        # due on 2 July, June payment does not count
        assert check_upcoming_due_dates(db, date(2024, 6, 29)) == 1

    def test_joint_account_reminds_every_member(self, db, user, make_user):
        partner = make_user()
        groups = GroupService(db)
        group = groups.create_group(user.id, "Família")
        groups.accept_invite(groups.generate_invite(group.id, user.id).code, partner.id)
        joint = AccountService(db).create_joint_account(group.id, user.id, "Casa")

        add_fixed(db, joint.id, due_day=18)
        assert check_upcoming_due_dates(db, TODAY) == 2
        assert {n.user_id for n in reminders(db)} == {user.id, partner.id}
