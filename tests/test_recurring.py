from datetime import date

import pytest
from pydantic import ValidationError

from finance_tracker.errors import RecurringNotFound
from finance_tracker.models import Expense, Frequency, Income, Notification, TransactionType
from finance_tracker.schemas import RecurringTransactionIn
from finance_tracker.services.recurring import RecurringTransactionService, next_run_date


@pytest.fixture
def service(db):
    return RecurringTransactionService(db)


def recurring_in(**overrides):
    values = dict(
        transaction_type=TransactionType.EXPENSE,
        frequency=Frequency.MONTHLY,
        amount=50,
        description="Academia",
        category="Saúde",
        start_date=date(2024, 6, 1),
    )
    values.update(overrides)
    return RecurringTransactionIn(**values)


class TestNextRunDate:
    @pytest.mark.parametrize(
        "frequency,expected",
        [
            ("daily", date(2024, 1, 31)),
            ("weekly", date(2024, 2, 6)),
            ("monthly", date(2024, 2, 29)),
            ("yearly", date(2025, 1, 30)),
        ],
    )
    def test_frequencies(self, frequency, expected):
        assert next_run_date(date(2024, 1, 30), frequency) == expected


class TestSchema:
    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValidationError):
            recurring_in(end_date=date(2024, 5, 1))


class TestProcessDue:
    def test_generates_expense_and_advances(self, db, service, user, today):
        recurring = service.create(user, recurring_in())
        assert recurring.next_run_date == date(2024, 6, 1)

        assert service.process_due(today) == 1
        expense = db.query(Expense).one()
        assert (expense.name, expense.amount, expense.category) == ("Academia", 50, "Saúde")
        assert expense.type == "variable"
        assert recurring.next_run_date == date(2024, 7, 1)
        assert recurring.active

        note = db.query(Notification).filter(Notification.user_id == user.id).one()
        assert note.title == "Despesa recorrente gerada"

    def test_not_yet_due(self, db, service, user):
        service.create(user, recurring_in(start_date=date(2024, 7, 1)))
        assert service.process_due(date(2024, 6, 15)) == 0
        assert db.query(Expense).count() == 0

    def test_income_has_no_tax(self, db, service, user, today):
        service.create(
            user, recurring_in(transaction_type=TransactionType.INCOME, amount=2000, description="Aluguel recebido")
        )
        service.process_due(today)
        income = db.query(Income).one()
        assert income.gross_amount == income.net_amount == 2000
        assert income.tax_amount == 0
        assert income.date == date(2024, 6, 1)

    def test_deactivates_after_last_run(self, service, user, today):
        recurring = service.create(user, recurring_in(end_date=date(2024, 6, 20)))
        service.process_due(today)
        assert recurring.next_run_date == date(2024, 7, 1)
        assert not recurring.active

    def test_past_end_date_generates_nothing(self, db, service, user):
        recurring = service.create(
            user, recurring_in(start_date=date(2024, 1, 1), end_date=date(2024, 3, 1))
        )
        assert service.process_due(date(2024, 6, 15)) == 0
        assert not recurring.active
        assert db.query(Expense).count() == 0

    def test_paused_items_are_skipped(self, db, service, user, today):
        recurring = service.create(user, recurring_in())
        service.toggle(recurring.id, user.id)
        assert service.process_due(today) == 0


class TestOwnership:
    def test_other_user_cannot_delete(self, service, user, make_user):
        recurring = service.create(user, recurring_in())
        with pytest.raises(RecurringNotFound):
            service.delete(recurring.id, make_user().id)

    def test_update_resets_next_run_when_start_changes(self, service, user):
        recurring = service.create(user, recurring_in())
        service.update(recurring.id, user, recurring_in(start_date=date(2024, 8, 1), amount=70))
        assert recurring.next_run_date == date(2024, 8, 1)
        assert recurring.amount == 70
