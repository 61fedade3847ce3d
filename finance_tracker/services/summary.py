"""Monthly and yearly money-in / money-out summaries for a set of accounts."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from finance_tracker.models import (
    CreditCard,
    Expense,
    ExpenseType,
    Income,
    Installment,
    months_between,
)


@dataclass
class MonthlySummary:
    year: int
    month: int
    total_income_gross: float = 0.0
    total_income_net: float = 0.0
    total_tax: float = 0.0
    total_fixed: float = 0.0
    total_variable: float = 0.0
    total_cards: float = 0.0

    @property
    def total_expenses(self) -> float:
        return self.total_fixed + self.total_variable + self.total_cards

    @property
    def balance(self) -> float:
        return self.total_income_net - self.total_expenses


def month_bounds(year: int, month: int):
    start = date(year, month, 1)
    return start, start + relativedelta(months=1)


def sum_incomes(db: Session, account_ids: Sequence[int], start: date, end: date):
    """(gross, tax, net) of incomes dated in [start, end)."""
    if not account_ids:
        return 0.0, 0.0, 0.0
    gross, tax, net = (
        db.query(
            func.coalesce(func.sum(Income.gross_amount), 0.0),
            func.coalesce(func.sum(Income.tax_amount), 0.0),
            func.coalesce(func.sum(Income.net_amount), 0.0),
        )
        .filter(Income.account_id.in_(account_ids), Income.date >= start, Income.date < end)
        .one()
    )
    return float(gross), float(tax), float(net)


def fixed_expenses_total(db: Session, account_ids: Sequence[int]) -> float:
    if not account_ids:
        return 0.0
    total = (
        db.query(func.coalesce(func.sum(Expense.amount), 0.0))
        .filter(
            Expense.account_id.in_(account_ids),
            Expense.type == ExpenseType.FIXED.value,
            Expense.active.is_(True),
        )
        .scalar()
    )
    return float(total)


def variable_expenses_total(db: Session, account_ids: Sequence[int], year: int, month: int) -> float:
    if not account_ids:
        return 0.0
    start, end = month_bounds(year, month)
    total = (
        db.query(func.coalesce(func.sum(Expense.amount), 0.0))
        .filter(
            Expense.account_id.in_(account_ids),
            Expense.type == ExpenseType.VARIABLE.value,
            Expense.active.is_(True),
            Expense.created_at >= datetime.combine(start, datetime.min.time()),
            Expense.created_at < datetime.combine(end, datetime.min.time()),
        )
        .scalar()
    )
    return float(total)


def installments_for_accounts(db: Session, account_ids: Sequence[int]) -> List[Installment]:
    if not account_ids:
        return []
    return (
        db.query(Installment)
        .join(CreditCard, CreditCard.id == Installment.credit_card_id)
        .filter(CreditCard.account_id.in_(account_ids))
        .order_by(Installment.start_date)
        .all()
    )


def installments_total(db: Session, account_ids: Sequence[int], year: int, month: int) -> float:
    reference = date(year, month, 1)
    return sum(
        i.installment_amount
        for i in installments_for_accounts(db, account_ids)
        if 0 <= months_between(i.start_date, reference) < i.total_installments
    )


def get_monthly_summary(db: Session, account_ids: Sequence[int], year: int, month: int) -> MonthlySummary:
    start, end = month_bounds(year, month)
    gross, tax, net = sum_incomes(db, account_ids, start, end)
    return MonthlySummary(
        year=year,
        month=month,
        total_income_gross=gross,
        total_income_net=net,
        total_tax=tax,
        total_fixed=fixed_expenses_total(db, account_ids),
        total_variable=variable_expenses_total(db, account_ids, year, month),
        total_cards=installments_total(db, account_ids, year, month),
    )


def get_yearly_summaries(db: Session, account_ids: Sequence[int], year: int) -> List[MonthlySummary]:
    # always one row per month, zero-filled
    return [get_monthly_summary(db, account_ids, year, month) for month in range(1, 13)]


def get_revenue_12_months(db: Session, account_ids: Sequence[int], today: date = None) -> float:
    """Gross revenue of the trailing twelve months, up to and including today."""
    today = today or date.today()
    start = today - relativedelta(years=1)
    gross, _, _ = sum_incomes(db, account_ids, start, today + relativedelta(days=1))
    return gross


def get_account_balance(db: Session, account_id: int, today: date = None) -> float:
    """All-time net income minus this month's commitments."""
    today = today or date.today()
    _, _, net = sum_incomes(db, [account_id], date(1900, 1, 1), date(3000, 1, 1))
    expenses = (
        fixed_expenses_total(db, [account_id])
        + variable_expenses_total(db, [account_id], today.year, today.month)
        + installments_total(db, [account_id], today.year, today.month)
    )
    return net - expenses
