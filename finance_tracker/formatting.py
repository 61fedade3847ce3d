MONTH_NAMES = [
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
]


def month_name(month):
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return ""


def format_brl(value):
    """Format a number the Brazilian way: ``1234.5`` -> ``1.234,50``."""
    text = f"{value or 0:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value):
    return f"R$ {format_brl(value)}"


def format_percent(value, digits=1):
    return f"{value or 0:.{digits}f}%".replace(".", ",")
