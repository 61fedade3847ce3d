from datetime import date
from typing import List, Optional, Sequence, Set

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finance_tracker.errors import ExpenseNotFound, InvalidSplit
from finance_tracker.models import Expense, ExpensePayment, ExpenseSplit, ExpenseType, User
from finance_tracker.schemas import ExpenseCreate
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.budgets import BudgetService
from finance_tracker.services.notifications import NotificationService
from finance_tracker.services.summary import (
    fixed_expenses_total,
    installments_total,
    variable_expenses_total,
)

logger = structlog.get_logger(__name__)

SPLIT_TOLERANCE = 0.01


def validate_splits(splits) -> None:
    if not splits:
        return
    if any(s.percentage <= 0 for s in splits):
        raise InvalidSplit("Percentuais devem ser maiores que zero")
    total = sum(s.percentage for s in splits)
    if abs(total - 100) > SPLIT_TOLERANCE:
        raise InvalidSplit()


class ExpenseService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountService(db)

    def list_expenses(
        self,
        account_ids: Sequence[int],
        expense_type: ExpenseType,
        category: Optional[str] = None,
    ) -> List[Expense]:
        if not account_ids:
            return []
        query = self.db.query(Expense).filter(
            Expense.account_id.in_(account_ids), Expense.type == expense_type.value
        )
        if category:
            query = query.filter(Expense.category == category)
        if expense_type == ExpenseType.FIXED:
            query = query.order_by(Expense.due_day, Expense.name)
        else:
            query = query.order_by(Expense.created_at.desc())
        return query.all()

    def paid_expense_ids(self, expense_ids: Sequence[int], year: int, month: int) -> Set[int]:
        if not expense_ids:
            return set()
        rows = self.db.query(ExpensePayment.expense_id).filter(
            ExpensePayment.expense_id.in_(expense_ids),
            ExpensePayment.year == year,
            ExpensePayment.month == month,
        )
        return {row.expense_id for row in rows}

    def create_expense(self, user: User, data: ExpenseCreate) -> Expense:
        """Create an expense, with its splits when ``data.splits`` is set.

        Splits are validated before anything is written and the expense and
        its splits are committed together.
        """
        account = self.accounts.resolve_account(user, data.account_id)
        validate_splits(data.splits)

        expense = Expense(
            account_id=account.id,
            name=data.name,
            amount=data.amount,
            type=data.type.value,
            due_day=data.due_day,
            category=data.category,
            active=True,
            is_split=bool(data.splits),
        )
        try:
            self.db.add(expense)
            self.db.flush()
            for split in data.splits:
                self.db.add(
                    ExpenseSplit(
                        expense_id=expense.id,
                        user_id=split.user_id,
                        percentage=split.percentage,
                        amount=data.amount * split.percentage / 100,
                    )
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(expense)
        logger.info("expense_created", expense_id=expense.id, account_id=account.id)

        if account.is_joint:
            NotificationService(self.db).notify_partner_expense(
                self.accounts.get_account_member_ids(account), user, expense, account.group_id
            )
        return expense

    def get_for_user(self, expense_id: int, user_id: int) -> Expense:
        expense = self.db.query(Expense).filter(Expense.id == expense_id).first()
        if not expense or not self.accounts.can_access(user_id, expense.account):
            raise ExpenseNotFound()
        return expense

    def toggle_active(self, expense_id: int, user_id: int) -> Expense:
        expense = self.get_for_user(expense_id, user_id)
        expense.active = not expense.active
        self.db.commit()
        return expense

    def delete_expense(self, expense_id: int, user_id: int) -> ExpenseType:
        expense = self.get_for_user(expense_id, user_id)
        expense_type = ExpenseType(expense.type)
        self.db.delete(expense)
        self.db.commit()
        return expense_type

    def mark_paid(self, expense_id: int, user_id: int, year: int, month: int) -> ExpensePayment:
        """Record the payment for (month, year). Repeated calls are no-ops."""
        expense = self.get_for_user(expense_id, user_id)
        payment = self._payment(expense.id, year, month)
        if payment:
            return payment

        payment = ExpensePayment(expense_id=expense.id, month=month, year=year, amount=expense.amount)
        self.db.add(payment)
        try:
            self.db.commit()
        except IntegrityError:
            # concurrent request stored it first
            self.db.rollback()
            return self._payment(expense.id, year, month)

        self._after_payment_change(expense, user_id, year, month)
        return payment

    def mark_unpaid(self, expense_id: int, user_id: int, year: int, month: int) -> None:
        expense = self.get_for_user(expense_id, user_id)
        payment = self._payment(expense.id, year, month)
        if not payment:
            return
        self.db.delete(payment)
        self.db.commit()
        self._after_payment_change(expense, user_id, year, month)

    def _payment(self, expense_id: int, year: int, month: int) -> Optional[ExpensePayment]:
        return (
            self.db.query(ExpensePayment)
            .filter(
                ExpensePayment.expense_id == expense_id,
                ExpensePayment.year == year,
                ExpensePayment.month == month,
            )
            .first()
        )

    def _after_payment_change(self, expense: Expense, user_id: int, year: int, month: int) -> None:
        account = expense.account
        owner_id = account.user_id if account.is_individual else user_id
        BudgetService(self.db).update_category_spent(
            owner_id,
            expense.category,
            year,
            month,
            group_id=account.group_id if account.is_joint else None,
        )

    def check_budget_limit(self, account_id: int, threshold: float, today: date = None) -> bool:
        """Alert the account members when monthly spending reaches the limit.

        ``threshold`` is the percentage of ``budget_limit`` that triggers it.
        """
        account = self.accounts.get_account(account_id)
        if not account.budget_limit:
            return False
        today = today or date.today()
        spent = (
            fixed_expenses_total(self.db, [account.id])
            + variable_expenses_total(self.db, [account.id], today.year, today.month)
            + installments_total(self.db, [account.id], today.year, today.month)
        )
        percentage = spent / account.budget_limit * 100
        if percentage < threshold:
            return False
        NotificationService(self.db).notify_budget_limit_reached(
            self.accounts.get_account_member_ids(account), account, spent, percentage
        )
        return True

