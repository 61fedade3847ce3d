import csv
from datetime import date
from io import BytesIO, StringIO

import pytest
from openpyxl import load_workbook

from finance_tracker.models import Income
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.export import (
    SUMMARY_HEADERS,
    YearReport,
    build_tax_report_pdf,
    build_tax_report_workbook,
    build_year_csv,
    build_year_pdf,
    build_year_workbook,
)
from finance_tracker.services.tax import INSSConfig


@pytest.fixture
def account_ids(db, user):
    ids = AccountService(db).get_user_account_ids(user.id)
    db.add(
        Income(
            account_id=ids[0],
            date=date(2024, 3, 5),
            amount_usd=1000,
            exchange_rate=5.1234,
            amount_brl=5123.4,
            gross_amount=5123.4,
            tax_amount=307.4,
            net_amount=4816.0,
            description="Cliente A",
        )
    )
    db.commit()
    return ids


@pytest.fixture
def report(db, account_ids, today):
    return YearReport(db, account_ids, 2024, today)


class TestYearExport:
    def test_workbook_sheets(self, report):
        wb = load_workbook(BytesIO(build_year_workbook(report)))
        assert wb.sheetnames == ["Resumo Mensal", "Recebimentos", "Despesas", "Parcelamentos"]

        summary = wb["Resumo Mensal"]
        assert [c.value for c in summary[1]] == SUMMARY_HEADERS
        assert summary.max_row == 13
        assert summary["A4"].value == "Março"
        assert summary["B4"].value == pytest.approx(5123.4)
        assert wb["Recebimentos"].max_row == 2

    def test_csv_sections(self, report):
        rows = list(csv.reader(StringIO(build_year_csv(report))))
        assert rows[0] == ["RESUMO MENSAL"]
        assert rows[1] == SUMMARY_HEADERS
        months = rows[2:14]
        assert len(months) == 12
        assert months[2][1] == "5123.40"
        assert months[0][1] == "0.00"

        start = rows.index(["RECEBIMENTOS"])
        income = rows[start + 2]
        assert income[0] == "05/03/2024"
        assert income[3] == "5.1234"
        assert ["PARCELAMENTOS"] in rows

    def test_empty_account_list_still_has_twelve_months(self, db, today):
        report = YearReport(db, [], 2024, today)
        assert len(report.summaries) == 12
        assert report.incomes == []

    def test_pdf(self, report):
        assert build_year_pdf(report).startswith(b"%PDF")


class TestTaxReportExport:
    def test_workbook(self, db, account_ids, today):
        content = build_tax_report_workbook(db, account_ids, 2024, INSSConfig(), today)
        wb = load_workbook(BytesIO(content))
        assert wb.sheetnames == ["Resumo", "Mensal", "Faixas"]
        assert wb["Mensal"].max_row == 13
        assert wb["Faixas"].max_row == 7

    def test_pdf(self, db, account_ids, today):
        content = build_tax_report_pdf(db, account_ids, 2024, INSSConfig(), today)
        assert content.startswith(b"%PDF")
