"""
Year-to-date tax figures, annual projection and bracket warnings.

The projection extrapolates the year-to-date gross income linearly over
twelve months and runs it through the Anexo III table to tell the user how
close they are to the next bracket.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from finance_tracker.formatting import format_brl, month_name
from finance_tracker.services.summary import month_bounds, sum_incomes
from finance_tracker.services.tax import (
    INSSConfig,
    LAST_BRACKET,
    SIMPLES_ANEXO_III,
    calculate_inss,
    calculate_tax,
    effective_rate,
    find_bracket,
    percent_of_bracket,
)

WARNING_LEVEL_LOW = 70
WARNING_LEVEL_MEDIUM = 85
WARNING_LEVEL_HIGH = 95


@dataclass
class BracketWarning:
    is_approaching: bool = False
    amount_until_next: float = 0.0
    percent_to_next: float = 0.0
    warning_level: str = "none"  # none, low, medium, high, critical
    message: str = ""
    next_bracket_rate: float = 0.0
    projected_bracket: int = 1


@dataclass
class TaxProjection:
    year: int
    months_elapsed: int = 0
    ytd_gross_income: float = 0.0
    ytd_tax_paid: float = 0.0
    ytd_inss_paid: float = 0.0
    ytd_net_income: float = 0.0
    projected_annual_income: float = 0.0
    projected_annual_tax: float = 0.0
    projected_annual_inss: float = 0.0
    projected_net_income: float = 0.0
    current_bracket: int = 1
    current_effective_rate: float = 0.0
    next_bracket_at: float = SIMPLES_ANEXO_III[0].max_revenue
    warning: BracketWarning = field(default_factory=BracketWarning)
    calculated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class MonthlyTaxRow:
    month: int
    month_name: str
    gross_income: float
    tax_paid: float
    net_income: float
    inss_paid: float


def get_bracket_warning(current_revenue: float, projected_revenue: float) -> BracketWarning:
    current = find_bracket(current_revenue)
    projected = find_bracket(projected_revenue)

    if current.number == LAST_BRACKET.number:
        return BracketWarning(
            percent_to_next=100.0,
            projected_bracket=projected.number,
            message="Você já está na última faixa do Simples Nacional.",
        )

    following = SIMPLES_ANEXO_III[current.number]
    percent = percent_of_bracket(current_revenue, current)
    warning = BracketWarning(
        amount_until_next=max(0.0, current.max_revenue - current_revenue),
        percent_to_next=percent,
        next_bracket_rate=following.rate * 100,
        projected_bracket=projected.number,
    )

    if projected.number > current.number:
        warning.is_approaching = True
        warning.warning_level = "critical"
        warning.message = (
            f"Pela projeção anual você passará para a faixa {projected.number} "
            f"(alíquota nominal de {projected.rate * 100:.1f}%)."
        )
    elif percent >= WARNING_LEVEL_HIGH:
        warning.is_approaching = True
        warning.warning_level = "high"
        warning.message = (
            f"Faltam apenas R$ {format_brl(warning.amount_until_next)} para a próxima faixa."
        )
    elif percent >= WARNING_LEVEL_MEDIUM:
        warning.is_approaching = True
        warning.warning_level = "medium"
        warning.message = (
            f"Você já percorreu {percent:.0f}% da faixa atual. "
            f"Faltam R$ {format_brl(warning.amount_until_next)}."
        )
    elif percent >= WARNING_LEVEL_LOW:
        warning.is_approaching = True
        warning.warning_level = "low"
        warning.message = f"Você está em {percent:.0f}% do caminho para a próxima faixa."
    return warning


def get_tax_projection(
    db: Session,
    account_ids: Sequence[int],
    inss: INSSConfig,
    year: Optional[int] = None,
    today: Optional[date] = None,
) -> TaxProjection:
    today = today or date.today()
    year = year or today.year

    if year > today.year:
        return TaxProjection(year=year)
    months_elapsed = 12 if year < today.year else today.month

    if year == today.year:
        _, end = month_bounds(today.year, today.month)
    else:
        end = date(year + 1, 1, 1)
    gross, tax, net = sum_incomes(db, account_ids, date(year, 1, 1), end)

    monthly_inss = calculate_inss(inss)
    projected_income = gross / months_elapsed * 12 if months_elapsed else 0.0
    projected_tax = calculate_tax(0.0, projected_income).tax_amount
    projected_inss = monthly_inss * 12

    bracket = find_bracket(gross)
    projection = TaxProjection(
        year=year,
        months_elapsed=months_elapsed,
        ytd_gross_income=gross,
        ytd_tax_paid=tax,
        ytd_inss_paid=monthly_inss * months_elapsed,
        ytd_net_income=net,
        projected_annual_income=projected_income,
        projected_annual_tax=projected_tax,
        projected_annual_inss=projected_inss,
        projected_net_income=projected_income - projected_tax - projected_inss,
        current_bracket=bracket.number,
        current_effective_rate=(
            effective_rate(bracket, gross) * 100 if gross > 0 else bracket.rate * 100
        ),
        next_bracket_at=bracket.max_revenue,
        warning=get_bracket_warning(gross, projected_income),
    )

    if year < today.year:
        # a closed year has nothing left to project
        projection.projected_annual_income = gross
        projection.projected_annual_tax = tax
        projection.projected_net_income = gross - tax - projected_inss
    return projection


def get_monthly_tax_breakdown(
    db: Session, account_ids: Sequence[int], year: int, inss: INSSConfig
) -> List[MonthlyTaxRow]:
    monthly_inss = calculate_inss(inss)
    rows = []
    for month in range(1, 13):
        start, end = month_bounds(year, month)
        gross, tax, net = sum_incomes(db, account_ids, start, end)
        rows.append(
            MonthlyTaxRow(
                month=month,
                month_name=month_name(month),
                gross_income=gross,
                tax_paid=tax,
                net_income=net,
                inss_paid=monthly_inss if gross > 0 else 0.0,
            )
        )
    return rows
