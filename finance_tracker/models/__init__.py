from finance_tracker.models.user import User, RefreshToken
from finance_tracker.models.account import Account, AccountType
from finance_tracker.models.group import FamilyGroup, GroupMember, GroupInvite, GroupRole
from finance_tracker.models.expense import (
    EXPENSE_CATEGORIES,
    Expense,
    ExpensePayment,
    ExpenseSplit,
    ExpenseType,
)
from finance_tracker.models.income import Income
from finance_tracker.models.credit_card import CreditCard, Installment, months_between
from finance_tracker.models.budget import (
    Budget,
    BudgetCategory,
    BudgetStatus,
    CategoryStatus,
)
from finance_tracker.models.goal import GroupGoal, GoalContribution, GoalStatus
from finance_tracker.models.notification import Notification, NotificationType
from finance_tracker.models.recurring import (
    Frequency,
    RecurringTransaction,
    TransactionType,
)
from finance_tracker.models.settings import Setting

__all__ = [
    "User",
    "RefreshToken",
    "Account",
    "AccountType",
    "FamilyGroup",
    "GroupMember",
    "GroupInvite",
    "GroupRole",
    "EXPENSE_CATEGORIES",
    "Expense",
    "ExpensePayment",
    "ExpenseSplit",
    "ExpenseType",
    "Income",
    "CreditCard",
    "Installment",
    "months_between",
    "Budget",
    "BudgetCategory",
    "BudgetStatus",
    "CategoryStatus",
    "GroupGoal",
    "GoalContribution",
    "GoalStatus",
    "Notification",
    "NotificationType",
    "Frequency",
    "RecurringTransaction",
    "TransactionType",
    "Setting",
]
