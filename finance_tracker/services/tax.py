"""
Simples Nacional (Anexo III) tax calculation.

The effective rate depends on the trailing twelve-month gross revenue (RBT12):
``(RBT12 * nominal_rate - deduction) / RBT12``. The rate is then applied to
the amount being taxed.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class TaxBracket:
    number: int
    min_revenue: float
    max_revenue: float
    rate: float
    deduction: float


SIMPLES_ANEXO_III: List[TaxBracket] = [
    TaxBracket(1, 0.0, 180_000.0, 0.06, 0.0),
    TaxBracket(2, 180_000.0, 360_000.0, 0.112, 9_360.0),
    TaxBracket(3, 360_000.0, 720_000.0, 0.135, 17_640.0),
    TaxBracket(4, 720_000.0, 1_800_000.0, 0.16, 35_640.0),
    TaxBracket(5, 1_800_000.0, 3_600_000.0, 0.21, 125_640.0),
    TaxBracket(6, 3_600_000.0, 4_800_000.0, 0.33, 648_000.0),
]

LAST_BRACKET = SIMPLES_ANEXO_III[-1]


@dataclass
class INSSConfig:
    pro_labore: float = 0.0
    ceiling: float = 0.0
    rate: float = 0.0  # fraction, 0.11 for 11%


@dataclass
class TaxCalculation:
    bracket_applied: int
    gross_amount: float
    revenue_12m: float
    effective_rate: float
    tax_amount: float
    inss_amount: float
    total_tax: float
    net_amount: float


@dataclass
class BracketCrossing:
    previous_bracket: int
    new_bracket: int
    threshold: float
    percent_to_next: float
    new_effective_rate: float


def find_bracket(revenue: float) -> TaxBracket:
    """Bracket whose half-open range (min, max] holds ``revenue``."""
    if revenue <= 0:
        return SIMPLES_ANEXO_III[0]
    for bracket in SIMPLES_ANEXO_III:
        if revenue <= bracket.max_revenue:
            return bracket
    return LAST_BRACKET


def effective_rate(bracket: TaxBracket, revenue: float) -> float:
    if revenue <= 0:
        return 0.0
    return (revenue * bracket.rate - bracket.deduction) / revenue


def calculate_inss(config: INSSConfig) -> float:
    if config.pro_labore <= 0:
        return 0.0
    return min(config.pro_labore, config.ceiling) * config.rate


def calculate_tax(
    revenue_12m: float,
    gross_amount: float,
    inss: Optional[INSSConfig] = None,
    manual_bracket: int = 0,
) -> TaxCalculation:
    """Tax owed on ``gross_amount`` given the revenue already earned in the
    trailing twelve months.

    The bracket is chosen by the revenue including the new amount. A
    ``manual_bracket`` between 1 and 6 forces that bracket; the revenue used
    in the formula is then clamped into the forced bracket's range.
    """
    basis = revenue_12m + gross_amount

    if 1 <= manual_bracket <= len(SIMPLES_ANEXO_III):
        bracket = SIMPLES_ANEXO_III[manual_bracket - 1]
        basis = min(max(basis, bracket.min_revenue + 0.01), bracket.max_revenue)
    else:
        bracket = find_bracket(basis)

    rate = effective_rate(bracket, basis) if gross_amount > 0 else 0.0
    tax = gross_amount * rate
    inss_amount = calculate_inss(inss) if inss else 0.0

    return TaxCalculation(
        bracket_applied=bracket.number,
        gross_amount=gross_amount,
        revenue_12m=revenue_12m,
        effective_rate=rate,
        tax_amount=tax,
        inss_amount=inss_amount,
        total_tax=tax + inss_amount,
        net_amount=gross_amount - tax,
    )


def get_bracket_info(revenue: float, manual_bracket: int = 0) -> Tuple[int, float, float]:
    """Returns (bracket number, effective rate in percent, next threshold)."""
    if 1 <= manual_bracket <= len(SIMPLES_ANEXO_III):
        bracket = SIMPLES_ANEXO_III[manual_bracket - 1]
        basis = min(max(revenue, bracket.min_revenue + 0.01), bracket.max_revenue)
        return bracket.number, effective_rate(bracket, basis) * 100, bracket.max_revenue

    if revenue <= 0:
        first = SIMPLES_ANEXO_III[0]
        return first.number, first.rate * 100, first.max_revenue

    bracket = find_bracket(revenue)
    return bracket.number, effective_rate(bracket, revenue) * 100, bracket.max_revenue


def percent_of_bracket(revenue: float, bracket: TaxBracket) -> float:
    span = bracket.max_revenue - bracket.min_revenue
    if span <= 0:
        return 100.0
    percent = (revenue - bracket.min_revenue) / span * 100
    return max(0.0, min(100.0, percent))


def check_bracket_crossing(revenue_12m: float, new_income: float) -> Optional[BracketCrossing]:
    """Warn when ``new_income`` pushes the trailing revenue into a higher bracket."""
    before = find_bracket(revenue_12m)
    after_revenue = revenue_12m + new_income
    after = find_bracket(after_revenue)
    if after.number <= before.number:
        return None

    return BracketCrossing(
        previous_bracket=before.number,
        new_bracket=after.number,
        threshold=before.max_revenue,
        percent_to_next=percent_of_bracket(revenue_12m, before),
        new_effective_rate=effective_rate(after, after_revenue) * 100,
    )
