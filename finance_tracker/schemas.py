# schemas.py
from pydantic import BaseModel, Field, constr, field_validator
from datetime import date
from typing import List, Optional

from finance_tracker.models import ExpenseType, Frequency, TransactionType


class SplitIn(BaseModel):
    user_id: int
    percentage: float


class ExpenseCreate(BaseModel):
    account_id: Optional[int] = None
    name: constr(strip_whitespace=True, min_length=1)
    amount: float = Field(gt=0)
    type: ExpenseType = ExpenseType.VARIABLE
    due_day: int = Field(default=1, ge=1, le=31)
    category: str = "Outros"
    splits: List[SplitIn] = []


class IncomeCreate(BaseModel):
    account_id: Optional[int] = None
    date: date
    amount_usd: float = Field(gt=0)
    exchange_rate: float = Field(gt=0)
    description: str = ""


class BracketWarningOut(BaseModel):
    previous_bracket: int
    new_bracket: int
    threshold: float
    percent_to_next: float
    new_effective_rate: float

    class Config:
        from_attributes = True


class IncomePreview(BaseModel):
    amount_brl: float
    gross_amount: float
    tax: float
    net: float
    effective_rate: float
    bracket: int
    bracket_warning: Optional[BracketWarningOut] = None


class CreditCardCreate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    closing_day: int = Field(ge=1, le=31)
    due_day: int = Field(ge=1, le=31)
    limit_amount: float = Field(default=0, ge=0)


class InstallmentCreate(BaseModel):
    credit_card_id: int
    description: constr(strip_whitespace=True, min_length=1)
    total_amount: float = Field(gt=0)
    total_installments: int = Field(ge=1)
    start_date: date
    category: str = "Outros"


class RecurringTransactionIn(BaseModel):
    account_id: Optional[int] = None
    transaction_type: TransactionType
    frequency: Frequency
    amount: float = Field(gt=0)
    description: constr(strip_whitespace=True, min_length=1)
    category: str = "Outros"
    start_date: date
    end_date: Optional[date] = None

    @field_validator("end_date")
    @classmethod
    def end_after_start(cls, value, info):
        start = info.data.get("start_date")
        if value is not None and start is not None and value < start:
            raise ValueError("end_date before start_date")
        return value


class GoalCreate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    description: str = ""
    target_amount: float = Field(gt=0)
    target_date: Optional[date] = None
    account_id: Optional[int] = None


class BudgetCategoryIn(BaseModel):
    category: constr(strip_whitespace=True, min_length=1)
    limit: float = Field(gt=0)


class SettingsUpdate(BaseModel):
    pro_labore: float = Field(default=0, ge=0)
    inss_ceiling: float = Field(default=0, ge=0)
    inss_rate: float = Field(default=0, ge=0, le=100)
    budget_warning_threshold: float = Field(default=100, gt=0, le=1000)
    record_start_date: Optional[date] = None
    manual_bracket: int = Field(default=0, ge=0, le=6)
