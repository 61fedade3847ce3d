from datetime import date
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from finance_tracker.errors import IncomeNotFound
from finance_tracker.models import Income, User
from finance_tracker.schemas import IncomeCreate, IncomePreview, BracketWarningOut
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.settings import SettingsData
from finance_tracker.services.summary import get_revenue_12_months
from finance_tracker.services.tax import TaxCalculation, calculate_tax, check_bracket_crossing

logger = structlog.get_logger(__name__)


class IncomeService:
    def __init__(self, db: Session, settings: SettingsData):
        self.db = db
        self.settings = settings
        self.accounts = AccountService(db)

    def list_incomes(self, account_ids: Sequence[int], year: Optional[int] = None) -> List[Income]:
        if not account_ids:
            return []
        query = self.db.query(Income).filter(Income.account_id.in_(account_ids))
        if year:
            query = query.filter(Income.date >= date(year, 1, 1), Income.date <= date(year, 12, 31))
        return query.order_by(Income.date.desc(), Income.id.desc()).all()

    def calculate(self, user_id: int, gross_amount: float, today: date = None) -> TaxCalculation:
        revenue = get_revenue_12_months(self.db, self.accounts.get_user_account_ids(user_id), today)
        return calculate_tax(
            revenue,
            gross_amount,
            self.settings.inss_config,
            manual_bracket=self.settings.manual_bracket,
        )

    def preview(self, user_id: int, amount_usd: float, exchange_rate: float, today: date = None) -> IncomePreview:
        amount_brl = amount_usd * exchange_rate
        revenue = get_revenue_12_months(self.db, self.accounts.get_user_account_ids(user_id), today)
        calc = calculate_tax(
            revenue, amount_brl, self.settings.inss_config, manual_bracket=self.settings.manual_bracket
        )
        crossing = check_bracket_crossing(revenue, amount_brl)
        return IncomePreview(
            amount_brl=round(amount_brl, 2),
            gross_amount=round(calc.gross_amount, 2),
            tax=round(calc.tax_amount, 2),
            net=round(calc.net_amount, 2),
            effective_rate=round(calc.effective_rate * 100, 2),
            bracket=calc.bracket_applied,
            bracket_warning=BracketWarningOut.model_validate(crossing) if crossing else None,
        )

    def create_income(self, user: User, data: IncomeCreate, today: date = None) -> Income:
        account = self.accounts.resolve_account(user, data.account_id)
        amount_brl = data.amount_usd * data.exchange_rate
        calc = self.calculate(user.id, amount_brl, today)

        income = Income(
            account_id=account.id,
            date=data.date,
            amount_usd=data.amount_usd,
            exchange_rate=data.exchange_rate,
            amount_brl=amount_brl,
            gross_amount=amount_brl,
            tax_amount=calc.tax_amount,
            net_amount=calc.net_amount,
            description=data.description,
        )
        self.db.add(income)
        self.db.commit()
        self.db.refresh(income)
        logger.info(
            "income_created",
            income_id=income.id,
            bracket=calc.bracket_applied,
            effective_rate=round(calc.effective_rate, 4),
        )
        return income

    def delete_income(self, income_id: int, user_id: int) -> None:
        income = self.db.query(Income).filter(Income.id == income_id).first()
        if not income or not self.accounts.can_access(user_id, income.account):
            raise IncomeNotFound()
        self.db.delete(income)
        self.db.commit()
