"""
Yearly financial report and tax report exports (xlsx, csv, pdf).

The monthly summary section always has twelve rows, zero-filled for months
without movement.
"""

import csv
from datetime import date
from io import BytesIO, StringIO
from typing import List, Sequence

import structlog
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from finance_tracker.formatting import format_brl, month_name
from finance_tracker.models import Expense, Income
from finance_tracker.services.summary import (
    MonthlySummary,
    get_yearly_summaries,
    installments_for_accounts,
)
from finance_tracker.services.tax import SIMPLES_ANEXO_III, INSSConfig
from finance_tracker.services.tax_projection import (
    get_monthly_tax_breakdown,
    get_tax_projection,
)

logger = structlog.get_logger(__name__)

SUMMARY_HEADERS = [
    "Mês",
    "Receita Bruta",
    "Imposto",
    "Receita Líquida",
    "Despesas Fixas",
    "Despesas Variáveis",
    "Cartões",
    "Total Despesas",
    "Saldo",
]
INCOME_HEADERS = ["Data", "Descrição", "Valor USD", "Câmbio", "Valor BRL", "Imposto", "Líquido"]
EXPENSE_HEADERS = ["Nome", "Tipo", "Categoria", "Valor", "Dia Vencimento", "Ativa"]
INSTALLMENT_HEADERS = [
    "Descrição",
    "Cartão",
    "Valor Total",
    "Valor Parcela",
    "Parcela Atual",
    "Total Parcelas",
    "Início",
]

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill("solid", fgColor="1F4E78")


def _summary_row(s: MonthlySummary):
    return [
        month_name(s.month),
        s.total_income_gross,
        s.total_tax,
        s.total_income_net,
        s.total_fixed,
        s.total_variable,
        s.total_cards,
        s.total_expenses,
        s.balance,
    ]


def _income_row(i: Income):
    return [
        i.date.strftime("%d/%m/%Y"),
        i.description,
        i.amount_usd,
        i.exchange_rate,
        i.amount_brl,
        i.tax_amount,
        i.net_amount,
    ]


def _expense_row(e: Expense):
    kind = "Fixa" if e.is_fixed else "Variável"
    return [e.name, kind, e.category, e.amount, e.due_day, "Sim" if e.active else "Não"]


class YearReport:
    """Everything one yearly export contains, loaded once."""

    def __init__(self, db: Session, account_ids: Sequence[int], year: int, today: date = None):
        today = today or date.today()
        self.year = year
        self.summaries: List[MonthlySummary] = get_yearly_summaries(db, account_ids, year)
        if account_ids:
            self.incomes = (
                db.query(Income)
                .filter(
                    Income.account_id.in_(account_ids),
                    Income.date >= date(year, 1, 1),
                    Income.date <= date(year, 12, 31),
                )
                .order_by(Income.date)
                .all()
            )
            self.expenses = (
                db.query(Expense)
                .filter(Expense.account_id.in_(account_ids))
                .order_by(Expense.type, Expense.name)
                .all()
            )
        else:
            self.incomes, self.expenses = [], []
        self.installments = [
            i for i in installments_for_accounts(db, account_ids) if i.is_active(today)
        ]
        self.today = today

    def installment_row(self, i):
        return [
            i.description,
            i.credit_card.name,
            i.total_amount,
            i.installment_amount,
            i.current_installment(self.today),
            i.total_installments,
            i.start_date.strftime("%d/%m/%Y"),
        ]


def _write_sheet(ws, headers, rows):
    ws.append(headers)
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    for row in rows:
        ws.append(row)
    for column in ws.columns:
        width = max(len(str(c.value)) if c.value is not None else 0 for c in column)
        ws.column_dimensions[column[0].column_letter].width = min(40, width + 2)


def build_year_workbook(report: YearReport) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Resumo Mensal"
    _write_sheet(ws, SUMMARY_HEADERS, [_summary_row(s) for s in report.summaries])

    _write_sheet(wb.create_sheet("Recebimentos"), INCOME_HEADERS, [_income_row(i) for i in report.incomes])
    _write_sheet(wb.create_sheet("Despesas"), EXPENSE_HEADERS, [_expense_row(e) for e in report.expenses])
    _write_sheet(
        wb.create_sheet("Parcelamentos"),
        INSTALLMENT_HEADERS,
        [report.installment_row(i) for i in report.installments],
    )

    out = BytesIO()
    wb.save(out)
    logger.info("export_built", format="xlsx", year=report.year)
    return out.getvalue()


def _fmt(value, digits=2):
    if isinstance(value, float):
        return f"{value:.{digits}f}"
    return value


def build_year_csv(report: YearReport) -> str:
    out = StringIO()
    writer = csv.writer(out)

    writer.writerow(["RESUMO MENSAL"])
    writer.writerow(SUMMARY_HEADERS)
    for s in report.summaries:
        writer.writerow([_fmt(v) for v in _summary_row(s)])

    writer.writerow([])
    writer.writerow(["RECEBIMENTOS"])
    writer.writerow(INCOME_HEADERS)
    for i in report.incomes:
        row = _income_row(i)
        row[3] = _fmt(i.exchange_rate, 4)
        writer.writerow([_fmt(v) for v in row])

    writer.writerow([])
    writer.writerow(["DESPESAS"])
    writer.writerow(EXPENSE_HEADERS)
    for e in report.expenses:
        writer.writerow([_fmt(v) for v in _expense_row(e)])

    writer.writerow([])
    writer.writerow(["PARCELAMENTOS"])
    writer.writerow(INSTALLMENT_HEADERS)
    for i in report.installments:
        writer.writerow([_fmt(v) for v in report.installment_row(i)])

    logger.info("export_built", format="csv", year=report.year)
    return out.getvalue()


def _pdf_table(rows, header_color="#1F4E78"):
    table = Table(rows, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(header_color)),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#DDDDDD")),
            ]
        )
    )
    return table


def _pdf_document(buffer, pagesize=A4):
    return SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        rightMargin=12 * mm,
        leftMargin=12 * mm,
        topMargin=12 * mm,
        bottomMargin=12 * mm,
    )


TITLE_STYLE = ParagraphStyle("title", fontSize=14, alignment=1, textColor=colors.HexColor("#1F4E78"))


def build_year_pdf(report: YearReport) -> bytes:
    buffer = BytesIO()
    doc = _pdf_document(buffer, landscape(A4))
    rows = [SUMMARY_HEADERS]
    for s in report.summaries:
        row = _summary_row(s)
        rows.append([row[0]] + [format_brl(v) for v in row[1:]])

    doc.build(
        [
            Paragraph(f"Relatório Financeiro {report.year}", TITLE_STYLE),
            Spacer(1, 8 * mm),
            _pdf_table(rows),
        ]
    )
    logger.info("export_built", format="pdf", year=report.year)
    return buffer.getvalue()


def build_tax_report_workbook(
    db: Session, account_ids: Sequence[int], year: int, inss: INSSConfig, today: date = None
) -> bytes:
    projection = get_tax_projection(db, account_ids, inss, year, today)
    breakdown = get_monthly_tax_breakdown(db, account_ids, year, inss)

    wb = Workbook()
    ws = wb.active
    ws.title = "Resumo"
    _write_sheet(
        ws,
        ["Indicador", "Valor"],
        [
            ["Receita bruta acumulada", projection.ytd_gross_income],
            ["Imposto pago", projection.ytd_tax_paid],
            ["INSS pago", projection.ytd_inss_paid],
            ["Receita líquida acumulada", projection.ytd_net_income],
            ["Receita anual projetada", projection.projected_annual_income],
            ["Imposto anual projetado", projection.projected_annual_tax],
            ["Faixa atual", projection.current_bracket],
            ["Alíquota efetiva (%)", round(projection.current_effective_rate, 2)],
        ],
    )
    _write_sheet(
        wb.create_sheet("Mensal"),
        ["Mês", "Receita Bruta", "Imposto", "Receita Líquida", "INSS"],
        [[r.month_name, r.gross_income, r.tax_paid, r.net_income, r.inss_paid] for r in breakdown],
    )
    _write_sheet(
        wb.create_sheet("Faixas"),
        ["Faixa", "Receita até", "Alíquota (%)", "Dedução"],
        [[b.number, b.max_revenue, b.rate * 100, b.deduction] for b in SIMPLES_ANEXO_III],
    )

    out = BytesIO()
    wb.save(out)
    return out.getvalue()


def build_tax_report_pdf(
    db: Session, account_ids: Sequence[int], year: int, inss: INSSConfig, today: date = None
) -> bytes:
    projection = get_tax_projection(db, account_ids, inss, year, today)
    breakdown = get_monthly_tax_breakdown(db, account_ids, year, inss)

    rows = [["Mês", "Receita Bruta", "Imposto", "Receita Líquida", "INSS"]]
    for r in breakdown:
        rows.append(
            [r.month_name]
            + [format_brl(v) for v in (r.gross_income, r.tax_paid, r.net_income, r.inss_paid)]
        )

    body = ParagraphStyle("body", fontSize=9)
    buffer = BytesIO()
    doc = _pdf_document(buffer)
    doc.build(
        [
            Paragraph(f"Relatório de Impostos {year}", TITLE_STYLE),
            Spacer(1, 6 * mm),
            Paragraph(
                f"Faixa atual: {projection.current_bracket} | "
                f"Alíquota efetiva: {projection.current_effective_rate:.2f}% | "
                f"Receita projetada: R$ {format_brl(projection.projected_annual_income)}",
                body,
            ),
            Spacer(1, 6 * mm),
            _pdf_table(rows),
        ]
    )
    return buffer.getvalue()
