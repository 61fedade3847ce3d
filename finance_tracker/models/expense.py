from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from finance_tracker.database import Base


class ExpenseType(str, Enum):
    FIXED = "fixed"
    VARIABLE = "variable"


EXPENSE_CATEGORIES = [
    "Moradia",
    "Alimentação",
    "Transporte",
    "Saúde",
    "Educação",
    "Lazer",
    "Serviços",
    "Impostos",
    "Outros",
]


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(String, nullable=False, default=ExpenseType.VARIABLE.value)
    due_day = Column(Integer, default=1)
    category = Column(String, default="Outros")
    active = Column(Boolean, default=True, nullable=False)
    is_split = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    account = relationship("Account")
    splits = relationship(
        "ExpenseSplit", back_populates="expense", cascade="all, delete-orphan"
    )
    payments = relationship(
        "ExpensePayment", back_populates="expense", cascade="all, delete-orphan"
    )

    @property
    def is_fixed(self):
        return self.type == ExpenseType.FIXED.value


class ExpensePayment(Base):
    __tablename__ = "expense_payments"
    __table_args__ = (
        UniqueConstraint("expense_id", "month", "year", name="uq_expense_payment_period"),
    )

    id = Column(Integer, primary_key=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False)
    paid_at = Column(DateTime, default=datetime.utcnow)

    expense = relationship("Expense", back_populates="payments")


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(Integer, primary_key=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    percentage = Column(Float, nullable=False)
    amount = Column(Float, nullable=False)

    expense = relationship("Expense", back_populates="splits")
    user = relationship("User")
