from pathlib import Path
from typing import Optional

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from finance_tracker.formatting import format_brl, format_currency, format_percent, month_name
from finance_tracker.models import EXPENSE_CATEGORIES

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["brl"] = format_brl
templates.env.filters["currency"] = format_currency
templates.env.filters["percent"] = format_percent
templates.env.filters["month_name"] = month_name
templates.env.globals["expense_categories"] = EXPENSE_CATEGORIES


def is_htmx(request: Request) -> bool:
    return request.headers.get("HX-Request") == "true"


def render(
    request: Request,
    template: str,
    context: dict,
    status_code: int = 200,
    headers: Optional[dict] = None,
) -> HTMLResponse:
    ctx = {"current_user": getattr(request.state, "user", None)}
    ctx.update(context)
    return templates.TemplateResponse(
        request, template, ctx, status_code=status_code, headers=headers
    )
