from datetime import date
from typing import List, Sequence

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from finance_tracker.errors import RecurringNotFound
from finance_tracker.models import (
    Expense,
    ExpenseType,
    Frequency,
    Income,
    NotificationType,
    RecurringTransaction,
    TransactionType,
    User,
)
from finance_tracker.schemas import RecurringTransactionIn
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.notifications import NotificationService

logger = structlog.get_logger(__name__)

FREQUENCY_DELTAS = {
    Frequency.DAILY.value: relativedelta(days=+1),
    Frequency.WEEKLY.value: relativedelta(weeks=+1),
    Frequency.MONTHLY.value: relativedelta(months=+1),
    Frequency.YEARLY.value: relativedelta(years=+1),
}


def next_run_date(current: date, frequency: str) -> date:
    return current + FREQUENCY_DELTAS[Frequency(frequency).value]


class RecurringTransactionService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountService(db)

    def list_for_accounts(self, account_ids: Sequence[int]) -> List[RecurringTransaction]:
        if not account_ids:
            return []
        return (
            self.db.query(RecurringTransaction)
            .filter(RecurringTransaction.account_id.in_(account_ids))
            .order_by(RecurringTransaction.next_run_date)
            .all()
        )

    def get_for_user(self, recurring_id: int, user_id: int) -> RecurringTransaction:
        recurring = (
            self.db.query(RecurringTransaction)
            .filter(RecurringTransaction.id == recurring_id)
            .first()
        )
        if not recurring or not self.accounts.can_access(user_id, recurring.account):
            raise RecurringNotFound()
        return recurring

    def create(self, user: User, data: RecurringTransactionIn) -> RecurringTransaction:
        account = self.accounts.resolve_account(user, data.account_id)
        recurring = RecurringTransaction(
            account_id=account.id,
            transaction_type=data.transaction_type.value,
            frequency=data.frequency.value,
            amount=data.amount,
            description=data.description,
            category=data.category,
            start_date=data.start_date,
            end_date=data.end_date,
            next_run_date=data.start_date,
            active=True,
        )
        self.db.add(recurring)
        self.db.commit()
        self.db.refresh(recurring)
        return recurring

    def update(self, recurring_id: int, user: User, data: RecurringTransactionIn) -> RecurringTransaction:
        recurring = self.get_for_user(recurring_id, user.id)
        if data.account_id:
            recurring.account_id = self.accounts.get_accessible_account(user.id, data.account_id).id
        if data.start_date != recurring.start_date:
            recurring.next_run_date = data.start_date
        recurring.transaction_type = data.transaction_type.value
        recurring.frequency = data.frequency.value
        recurring.amount = data.amount
        recurring.description = data.description
        recurring.category = data.category
        recurring.start_date = data.start_date
        recurring.end_date = data.end_date
        self.db.commit()
        return recurring

    def delete(self, recurring_id: int, user_id: int) -> None:
        recurring = self.get_for_user(recurring_id, user_id)
        self.db.delete(recurring)
        self.db.commit()

    def toggle(self, recurring_id: int, user_id: int) -> RecurringTransaction:
        recurring = self.get_for_user(recurring_id, user_id)
        recurring.active = not recurring.active
        self.db.commit()
        return recurring

    def process_due(self, today: date = None) -> int:
        """Generate the expenses/incomes whose next run date has arrived.

        Returns how many transactions were generated.
        """
        today = today or date.today()
        due = (
            self.db.query(RecurringTransaction)
            .filter(
                RecurringTransaction.active.is_(True),
                RecurringTransaction.next_run_date <= today,
            )
            .all()
        )

        generated = 0
        for recurring in due:
            try:
                if self._process_one(recurring, today):
                    generated += 1
            except Exception:
                self.db.rollback()
                logger.exception("recurring_processing_failed", recurring_id=recurring.id)
        logger.info("recurring_processed", due=len(due), generated=generated)
        return generated

    def _process_one(self, recurring: RecurringTransaction, today: date) -> bool:
        if recurring.end_date and today > recurring.end_date:
            recurring.active = False
            self.db.commit()
            return False

        run_date = recurring.next_run_date
        if recurring.transaction_type == TransactionType.EXPENSE.value:
            self.db.add(
                Expense(
                    account_id=recurring.account_id,
                    name=recurring.description,
                    amount=recurring.amount,
                    type=ExpenseType.VARIABLE.value,
                    due_day=run_date.day,
                    category=recurring.category,
                    active=True,
                )
            )
            title = "Despesa recorrente gerada"
            link = "/expenses"
        else:
            self.db.add(
                Income(
                    account_id=recurring.account_id,
                    date=run_date,
                    amount_usd=0.0,
                    exchange_rate=1.0,
                    amount_brl=recurring.amount,
                    gross_amount=recurring.amount,
                    tax_amount=0.0,
                    net_amount=recurring.amount,
                    description=recurring.description,
                )
            )
            title = "Receita recorrente gerada"
            link = "/incomes"

        recurring.next_run_date = next_run_date(run_date, recurring.frequency)
        if recurring.end_date and recurring.next_run_date > recurring.end_date:
            recurring.active = False

        NotificationService(self.db).create(
            recurring.account.user_id,
            NotificationType.EXPENSE,
            title,
            f'"{recurring.description}" de R$ {recurring.amount:.2f}',
            link=link,
            commit=False,
        )
        self.db.commit()
        return True
