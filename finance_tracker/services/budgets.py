"""
Monthly budgets and category threshold alerts.

``spent`` on a category is derived from expense payments, never edited by
hand. Every payment mutation calls :meth:`BudgetService.update_category_spent`,
which re-sums the period and sends the 80% and 100% alerts. Each alert is sent
at most once per category: the ``notified_at_*`` timestamps are set on the
first crossing and stay set even if spending later drops.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from finance_tracker.errors import (
    BudgetNotFound,
    CategoryNotFound,
    InvalidBudgetMonth,
    InvalidBudgetYear,
    NotGroupMember,
    Unauthorized,
)
from finance_tracker.models import (
    Account,
    AccountType,
    Budget,
    BudgetCategory,
    BudgetStatus,
    Expense,
    ExpensePayment,
    GroupMember,
    NotificationType,
)
from finance_tracker.models.budget import EXCEEDED_PERCENT, WARNING_PERCENT
from finance_tracker.services.notifications import NotificationService

logger = structlog.get_logger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 3000


def validate_period(year: int, month: int) -> None:
    if month < 1 or month > 12:
        raise InvalidBudgetMonth()
    if year < MIN_YEAR or year > MAX_YEAR:
        raise InvalidBudgetYear()


def previous_period(year: int, month: int):
    if month == 1:
        return year - 1, 12
    return year, month - 1


class BudgetService:
    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    # Access

    def _is_member(self, group_id: int, user_id: int) -> bool:
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .first()
            is not None
        )

    def _is_admin(self, group_id: int, user_id: int) -> bool:
        member = (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .first()
        )
        return member is not None and member.is_admin

    def _can_view(self, budget: Budget, user_id: int) -> bool:
        if budget.is_group_budget:
            return self._is_member(budget.group_id, user_id)
        return budget.user_id == user_id

    def _can_modify(self, budget: Budget, user_id: int) -> bool:
        if budget.user_id == user_id:
            return True
        return budget.group_id is not None and self._is_admin(budget.group_id, user_id)

    def get_budget(self, budget_id: int, user_id: int) -> Budget:
        budget = self.db.query(Budget).filter(Budget.id == budget_id).first()
        if not budget:
            raise BudgetNotFound()
        if not self._can_view(budget, user_id):
            raise Unauthorized()
        return budget

    def _get_modifiable(self, budget_id: int, user_id: int) -> Budget:
        budget = self.get_budget(budget_id, user_id)
        if not self._can_modify(budget, user_id):
            raise Unauthorized()
        return budget

    # Budgets

    def create_budget(
        self,
        user_id: int,
        year: int,
        month: int,
        name: str,
        categories: Iterable = (),
        group_id: Optional[int] = None,
    ) -> Budget:
        validate_period(year, month)
        if group_id is not None and not self._is_member(group_id, user_id):
            raise NotGroupMember()

        budget = Budget(user_id=user_id, group_id=group_id, year=year, month=month, name=name)
        for category, limit in categories:
            budget.categories.append(BudgetCategory(category=category, limit=limit, spent=0.0))
        self.db.add(budget)
        self.db.commit()
        self.db.refresh(budget)
        self.recalculate_budget_spent(budget)
        logger.info("budget_created", budget_id=budget.id, group_id=group_id)
        return budget

    def get_user_budgets(self, user_id: int, year: int = None, month: int = None) -> List[Budget]:
        query = self.db.query(Budget).filter(Budget.user_id == user_id, Budget.group_id.is_(None))
        if year:
            query = query.filter(Budget.year == year)
        if month:
            query = query.filter(Budget.month == month)
        return query.order_by(Budget.year.desc(), Budget.month.desc()).all()

    def get_group_budgets(self, group_id: int, user_id: int) -> List[Budget]:
        if not self._is_member(group_id, user_id):
            raise NotGroupMember()
        return (
            self.db.query(Budget)
            .filter(Budget.group_id == group_id)
            .order_by(Budget.year.desc(), Budget.month.desc())
            .all()
        )

    def update_budget(self, budget_id: int, user_id: int, name: str) -> Budget:
        budget = self._get_modifiable(budget_id, user_id)
        budget.name = name
        self.db.commit()
        return budget

    def archive_budget(self, budget_id: int, user_id: int) -> Budget:
        budget = self._get_modifiable(budget_id, user_id)
        budget.status = BudgetStatus.ARCHIVED.value
        self.db.commit()
        return budget

    def delete_budget(self, budget_id: int, user_id: int) -> None:
        budget = self._get_modifiable(budget_id, user_id)
        self.db.delete(budget)
        self.db.commit()

    def copy_from_previous_month(
        self, user_id: int, year: int, month: int, group_id: Optional[int] = None
    ) -> Budget:
        validate_period(year, month)
        prev_year, prev_month = previous_period(year, month)
        query = self.db.query(Budget).filter(Budget.year == prev_year, Budget.month == prev_month)
        if group_id is not None:
            query = query.filter(Budget.group_id == group_id)
        else:
            query = query.filter(Budget.user_id == user_id, Budget.group_id.is_(None))
        previous = query.order_by(Budget.id.desc()).first()
        if not previous:
            raise BudgetNotFound()

        return self.create_budget(
            user_id,
            year,
            month,
            previous.name,
            [(c.category, c.limit) for c in previous.categories],
            group_id=group_id,
        )

    # Categories

    def add_category(self, budget_id: int, user_id: int, category: str, limit: float) -> BudgetCategory:
        budget = self._get_modifiable(budget_id, user_id)
        item = BudgetCategory(budget_id=budget.id, category=category, limit=limit, spent=0.0)
        self.db.add(item)
        self.db.commit()
        item.spent = self._category_spent(budget, category)
        self.db.commit()
        return item

    def _get_category(self, category_id: int, user_id: int) -> BudgetCategory:
        item = self.db.query(BudgetCategory).filter(BudgetCategory.id == category_id).first()
        if not item:
            raise CategoryNotFound()
        self._get_modifiable(item.budget_id, user_id)
        return item

    def update_category(self, category_id: int, user_id: int, limit: float) -> BudgetCategory:
        item = self._get_category(category_id, user_id)
        item.limit = limit
        self.db.commit()
        return item

    def delete_category(self, category_id: int, user_id: int) -> None:
        item = self._get_category(category_id, user_id)
        self.db.delete(item)
        self.db.commit()

    # Spending

    def _budget_account_ids(self, budget: Budget) -> List[int]:
        query = self.db.query(Account.id)
        if budget.is_group_budget:
            query = query.filter(
                Account.group_id == budget.group_id, Account.type == AccountType.JOINT.value
            )
        else:
            query = query.filter(
                Account.user_id == budget.user_id, Account.type == AccountType.INDIVIDUAL.value
            )
        return [row.id for row in query]

    def _category_spent(self, budget: Budget, category: str) -> float:
        account_ids = self._budget_account_ids(budget)
        if not account_ids:
            return 0.0
        total = (
            self.db.query(func.coalesce(func.sum(ExpensePayment.amount), 0.0))
            .join(Expense, Expense.id == ExpensePayment.expense_id)
            .filter(
                Expense.account_id.in_(account_ids),
                Expense.category == category,
                ExpensePayment.year == budget.year,
                ExpensePayment.month == budget.month,
            )
            .scalar()
        )
        return float(total)

    def _affected_budgets(self, user_id: int, year: int, month: int, group_ids: Sequence[int]):
        conditions = [(Budget.user_id == user_id) & Budget.group_id.is_(None)]
        if group_ids:
            conditions.append(Budget.group_id.in_(group_ids))
        return (
            self.db.query(Budget)
            .filter(
                Budget.year == year,
                Budget.month == month,
                Budget.status == BudgetStatus.ACTIVE.value,
                or_(*conditions),
            )
            .all()
        )

    def update_category_spent(
        self,
        user_id: int,
        category: str,
        year: int,
        month: int,
        group_id: Optional[int] = None,
    ) -> int:
        """Refresh ``spent`` for ``category`` and send threshold alerts.

        ``user_id`` selects the personal budgets, ``group_id`` the group
        budgets the payment belongs to. Returns the number of alerts sent.
        """
        group_ids = [group_id] if group_id is not None else []
        sent = 0
        for budget in self._affected_budgets(user_id, year, month, group_ids):
            for item in budget.categories:
                if item.category != category:
                    continue
                previous = item.progress_percentage
                item.spent = self._category_spent(budget, category)
                now = datetime.utcnow()
                if item.should_notify_at_80(previous):
                    sent += self._notify_threshold(budget, item, WARNING_PERCENT)
                    item.notified_at_80 = now
                if item.should_notify_at_100(previous):
                    sent += self._notify_threshold(budget, item, EXCEEDED_PERCENT)
                    item.notified_at_100 = now
        self.db.commit()
        return sent

    def recalculate_budget_spent(self, budget: Budget) -> Budget:
        for item in budget.categories:
            item.spent = self._category_spent(budget, item.category)
        self.db.commit()
        return budget

    def _notify_threshold(self, budget: Budget, item: BudgetCategory, threshold: int) -> int:
        if threshold >= EXCEEDED_PERCENT:
            title, status = "Orçamento atingido", "atingiu o limite"
        else:
            title, status = "Alerta de orçamento", "próximo do limite"

        figures = f"(R$ {item.spent:.2f} / R$ {item.limit:.2f} - {item.progress_percentage:.0f}%)"
        if budget.is_group_budget:
            recipients = [
                m.user_id
                for m in self.db.query(GroupMember).filter(GroupMember.group_id == budget.group_id)
            ]
            message = (
                f'A categoria "{item.category}" do orçamento "{budget.name}" do grupo '
                f"{budget.group.name} {status} {figures}"
            )
        else:
            recipients = [budget.user_id]
            message = (
                f'A categoria "{item.category}" do seu orçamento "{budget.name}" '
                f"{status} {figures}"
            )

        logger.info(
            "budget_threshold_crossed",
            budget_id=budget.id,
            category=item.category,
            threshold=threshold,
        )
        return self.notifications.notify_users(
            recipients,
            NotificationType.BUDGET_ALERT,
            title,
            message,
            link="/budgets",
            group_id=budget.group_id,
            commit=False,
        )
