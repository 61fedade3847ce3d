from datetime import date, timedelta

import structlog
from sqlalchemy.orm import Session

from finance_tracker.models import Expense, ExpensePayment, ExpenseType, NotificationType
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.notifications import NotificationService

logger = structlog.get_logger(__name__)

DAYS_AHEAD = 3


def check_upcoming_due_dates(db: Session, today: date = None) -> int:
    """Remind account members of unpaid fixed expenses due in three days."""
    today = today or date.today()
    due = today + timedelta(days=DAYS_AHEAD)

    expenses = (
        db.query(Expense)
        .filter(
            Expense.type == ExpenseType.FIXED.value,
            Expense.active.is_(True),
            Expense.due_day == due.day,
        )
        .all()
    )

    accounts = AccountService(db)
    notifications = NotificationService(db)
    sent = 0
    for expense in expenses:
        paid = (
            db.query(ExpensePayment)
            .filter(
                ExpensePayment.expense_id == expense.id,
                ExpensePayment.year == due.year,
                ExpensePayment.month == due.month,
            )
            .first()
        )
        if paid:
            continue
        sent += notifications.notify_users(
            accounts.get_account_member_ids(expense.account),
            NotificationType.DUE_DATE,
            "Despesa próxima do vencimento",
            f'"{expense.name}" (R$ {expense.amount:.2f}) vence em {due.strftime("%d/%m")}',
            link="/expenses",
            group_id=expense.account.group_id,
            commit=False,
        )
    db.commit()
    logger.info("due_date_check", expenses=len(expenses), notifications=sent)
    return sent
