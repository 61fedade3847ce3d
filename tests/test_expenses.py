import pytest

from finance_tracker.errors import AccountAccessDenied, ExpenseNotFound, InvalidSplit
from finance_tracker.models import (
    Expense,
    ExpensePayment,
    ExpenseSplit,
    ExpenseType,
    Notification,
    NotificationType,
)
from finance_tracker.schemas import ExpenseCreate, SplitIn
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.expenses import ExpenseService, validate_splits
from finance_tracker.services.groups import GroupService


@pytest.fixture
def service(db):
    return ExpenseService(db)


@pytest.fixture
def family(db, user, make_user):
    """A group with two members and one joint account."""
    partner = make_user(name="Bruno")
    groups = GroupService(db)
    group = groups.create_group(user.id, "Família")
    groups.accept_invite(groups.generate_invite(group.id, user.id).code, partner.id)
    joint = AccountService(db).create_joint_account(group.id, user.id, "Casa")
    return partner, group, joint


class TestValidateSplits:
    def test_empty_is_valid(self):
        validate_splits([])

    def test_within_tolerance(self):
        validate_splits([SplitIn(user_id=1, percentage=33.33), SplitIn(user_id=2, percentage=66.675)])

    def test_sum_must_be_hundred(self):
        with pytest.raises(InvalidSplit) as exc:
            validate_splits([SplitIn(user_id=1, percentage=50), SplitIn(user_id=2, percentage=40)])
        assert exc.value.message == "A soma dos percentuais deve ser 100%"

    def test_zero_percentage(self):
        with pytest.raises(InvalidSplit):
            validate_splits([SplitIn(user_id=1, percentage=100), SplitIn(user_id=2, percentage=0)])


class TestCreateExpense:
    def test_defaults_to_individual_account(self, db, service, user):
        expense = service.create_expense(user, ExpenseCreate(name="Café", amount=12.5))
        account = AccountService(db).get_individual_account(user.id)
        assert expense.account_id == account.id
        assert expense.type == ExpenseType.VARIABLE.value
        assert not expense.is_split

    def test_invalid_split_writes_nothing(self, db, service, user, family):
        partner, _, joint = family
        data = ExpenseCreate(
            account_id=joint.id,
            name="Mercado",
            amount=300,
            splits=[
                SplitIn(user_id=user.id, percentage=60),
                SplitIn(user_id=partner.id, percentage=30),
            ],
        )
        with pytest.raises(InvalidSplit):
            service.create_expense(user, data)
        assert db.query(Expense).count() == 0
        assert db.query(ExpenseSplit).count() == 0

    def test_split_amounts(self, db, service, user, family):
        partner, _, joint = family
        data = ExpenseCreate(
            account_id=joint.id,
            name="Mercado",
            amount=300,
            splits=[
                SplitIn(user_id=user.id, percentage=60),
                SplitIn(user_id=partner.id, percentage=40),
            ],
        )
        expense = service.create_expense(user, data)
        assert expense.is_split
        amounts = {s.user_id: s.amount for s in expense.splits}
        assert amounts == {user.id: pytest.approx(180), partner.id: pytest.approx(120)}

    def test_joint_expense_notifies_partner_only(self, db, service, user, family):
        partner, group, joint = family
        service.create_expense(user, ExpenseCreate(account_id=joint.id, name="Luz", amount=200))

        notes = (
            db.query(Notification)
            .filter(Notification.type == NotificationType.EXPENSE.value)
            .all()
        )
        assert [n.user_id for n in notes] == [partner.id]
        assert notes[0].title == "Novo gasto do parceiro"
        assert notes[0].group_id == group.id

    def test_foreign_account_is_rejected(self, db, service, user, make_user):
        stranger = make_user()
        foreign = AccountService(db).get_individual_account(stranger.id)
        with pytest.raises(AccountAccessDenied):
            service.create_expense(user, ExpenseCreate(account_id=foreign.id, name="x", amount=1))


class TestPayments:
    def test_mark_paid_is_idempotent(self, db, service, user):
        expense = service.create_expense(
            user, ExpenseCreate(name="Aluguel", amount=1500, type=ExpenseType.FIXED, due_day=5)
        )
        first = service.mark_paid(expense.id, user.id, 2024, 6)
        second = service.mark_paid(expense.id, user.id, 2024, 6)
        assert first.id == second.id
        assert db.query(ExpensePayment).count() == 1
        assert service.paid_expense_ids([expense.id], 2024, 6) == {expense.id}
        assert service.paid_expense_ids([expense.id], 2024, 7) == set()

    def test_mark_unpaid(self, db, service, user):
        expense = service.create_expense(
            user, ExpenseCreate(name="Aluguel", amount=1500, type=ExpenseType.FIXED)
        )
        service.mark_paid(expense.id, user.id, 2024, 6)
        service.mark_unpaid(expense.id, user.id, 2024, 6)
        service.mark_unpaid(expense.id, user.id, 2024, 6)
        assert db.query(ExpensePayment).count() == 0

    def test_other_users_expense_is_hidden(self, service, user, make_user):
        expense = service.create_expense(user, ExpenseCreate(name="Café", amount=10))
        with pytest.raises(ExpenseNotFound):
            service.mark_paid(expense.id, make_user().id, 2024, 6)


class TestMisc:
    def test_delete_returns_type(self, db, service, user):
        expense = service.create_expense(
            user, ExpenseCreate(name="Internet", amount=100, type=ExpenseType.FIXED)
        )
        assert service.delete_expense(expense.id, user.id) == ExpenseType.FIXED
        assert db.query(Expense).count() == 0

    def test_toggle_active(self, service, user):
        expense = service.create_expense(user, ExpenseCreate(name="Café", amount=10))
        assert service.toggle_active(expense.id, user.id).active is False
        assert service.toggle_active(expense.id, user.id).active is True

    def test_account_limit_alert(self, db, service, user, today):
        account = AccountService(db).set_budget_limit(
            user.id, AccountService(db).get_individual_account(user.id).id, 1000
        )
        service.create_expense(
            user, ExpenseCreate(name="Aluguel", amount=850, type=ExpenseType.FIXED)
        )
        assert service.check_budget_limit(account.id, 80, today) is True
        assert service.check_budget_limit(account.id, 90, today) is False
        titles = [n.title for n in db.query(Notification).filter(Notification.user_id == user.id)]
        assert titles == ["Limite de gastos atingido"]
