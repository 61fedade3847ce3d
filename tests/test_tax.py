import pytest

from finance_tracker.services.tax import (
    INSSConfig,
    calculate_inss,
    calculate_tax,
    check_bracket_crossing,
    find_bracket,
    get_bracket_info,
    percent_of_bracket,
    SIMPLES_ANEXO_III,
)


class TestFindBracket:
    """Brackets cover the half-open range (previous max, max]."""

    @pytest.mark.parametrize(
        "revenue,expected",
        [
            (0, 1),
            (180_000, 1),
            (180_000.01, 2),
            (360_000, 2),
            (360_000.01, 3),
            (4_800_000, 6),
            (9_000_000, 6),
        ],
    )
    def test_boundaries(self, revenue, expected):
        assert find_bracket(revenue).number == expected


class TestCalculateTax:
    def test_first_bracket_uses_nominal_rate(self):
        calc = calculate_tax(0, 10_000)
        assert calc.bracket_applied == 1
        assert calc.effective_rate == pytest.approx(0.06)
        assert calc.tax_amount == pytest.approx(600)
        assert calc.net_amount == pytest.approx(9_400)

    def test_basis_includes_new_amount(self):
        """300k already earned plus 60k lands exactly on the bracket 2 ceiling."""
        calc = calculate_tax(300_000, 60_000)
        assert calc.bracket_applied == 2
        assert calc.effective_rate == pytest.approx(0.086)
        assert calc.tax_amount == pytest.approx(5_160)

    def test_crossing_into_third_bracket(self):
        calc = calculate_tax(300_000, 60_000.01)
        assert calc.bracket_applied == 3

    def test_zero_gross_has_no_tax(self):
        calc = calculate_tax(500_000, 0)
        assert calc.tax_amount == 0
        assert calc.effective_rate == 0

    def test_manual_bracket_overrides_revenue(self):
        calc = calculate_tax(0, 10_000, manual_bracket=3)
        assert calc.bracket_applied == 3
        bracket = SIMPLES_ANEXO_III[2]
        basis = bracket.min_revenue + 0.01
        expected = (basis * bracket.rate - bracket.deduction) / basis
        assert calc.effective_rate == pytest.approx(expected)

    def test_out_of_range_manual_bracket_is_ignored(self):
        assert calculate_tax(0, 10_000, manual_bracket=9).bracket_applied == 1

    def test_inss_is_reported_separately(self):
        inss = INSSConfig(pro_labore=5_000, ceiling=7_786.02, rate=0.11)
        calc = calculate_tax(0, 10_000, inss)
        assert calc.inss_amount == pytest.approx(550)
        assert calc.total_tax == pytest.approx(1_150)
        assert calc.net_amount == pytest.approx(9_400)


class TestINSS:
    def test_capped_by_ceiling(self):
        assert calculate_inss(INSSConfig(10_000, 7_000, 0.11)) == pytest.approx(770)

    def test_no_pro_labore(self):
        assert calculate_inss(INSSConfig(0, 7_000, 0.11)) == 0

    def test_zero_ceiling_caps_everything(self):
        assert calculate_inss(INSSConfig(pro_labore=5_000, ceiling=0, rate=0.11)) == 0


class TestBracketInfo:
    def test_no_revenue_returns_first_bracket(self):
        number, rate, next_at = get_bracket_info(0)
        assert (number, next_at) == (1, 180_000)
        assert rate == pytest.approx(6.0)

    def test_second_bracket(self):
        number, rate, next_at = get_bracket_info(360_000)
        assert number == 2
        assert rate == pytest.approx(8.6)
        assert next_at == 360_000

    def test_manual_bracket(self):
        number, _, next_at = get_bracket_info(1_000, manual_bracket=4)
        assert number == 4
        assert next_at == 1_800_000


class TestBracketCrossing:
    def test_no_crossing_inside_bracket(self):
        assert check_bracket_crossing(100_000, 10_000) is None

    def test_crossing_reports_new_bracket(self):
        crossing = check_bracket_crossing(170_000, 20_000)
        assert crossing.previous_bracket == 1
        assert crossing.new_bracket == 2
        assert crossing.threshold == 180_000

    def test_percent_of_bracket_is_clamped(self):
        bracket = SIMPLES_ANEXO_III[1]
        assert percent_of_bracket(270_000, bracket) == pytest.approx(50)
        assert percent_of_bracket(1_000_000, bracket) == 100
