# main.py
import structlog
import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from finance_tracker.auth import auth_router, set_auth_cookies
from finance_tracker.config import get_settings
from finance_tracker.database import SessionLocal, init_db
from finance_tracker.errors import FinanceError, NotAuthenticated
from finance_tracker.logger import configure_logging
from finance_tracker.routers import (
    accounts,
    budgets,
    cards,
    dashboard,
    expenses,
    export,
    goals,
    groups,
    incomes,
    notifications,
    recurring,
    settings,
    tax_report,
)
from finance_tracker.services.due_dates import check_upcoming_due_dates
from finance_tracker.services.recurring import RecurringTransactionService
from finance_tracker.templating import is_htmx

logger = structlog.get_logger(__name__)

app = FastAPI(title="Family Finance Tracker")
scheduler = BackgroundScheduler()


def process_recurring_transactions():
    with SessionLocal() as db:
        RecurringTransactionService(db).process_due()


def notify_upcoming_due_dates():
    with SessionLocal() as db:
        check_upcoming_due_dates(db)


@app.on_event("startup")
def startup():
    config = get_settings()
    configure_logging(config.log_level, json_logs=config.is_production)
    init_db()

    if config.scheduler_enabled and not scheduler.running:
        # Run daily at midnight
        scheduler.add_job(process_recurring_transactions, "cron", hour=0, minute=0)
        scheduler.add_job(notify_upcoming_due_dates, "cron", hour=0, minute=0)
        scheduler.start()
    logger.info("app_started", environment=config.environment)


@app.on_event("shutdown")
def shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)


@app.middleware("http")
async def refresh_access_cookie(request: Request, call_next):
    response = await call_next(request)
    new_token = getattr(request.state, "new_access_token", None)
    if new_token:
        set_auth_cookies(response, new_token)
    return response


@app.exception_handler(NotAuthenticated)
async def not_authenticated_handler(request: Request, exc: NotAuthenticated):
    if is_htmx(request):
        return Response(status_code=401, headers={"HX-Redirect": "/login"})
    return RedirectResponse("/login", status_code=302)


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc):
    logger.debug("invalid_request", path=request.url.path, errors=str(exc))
    return PlainTextResponse("Dados inválidos", status_code=400)


app.include_router(auth_router, tags=["authentication"])
app.include_router(dashboard.router)
app.include_router(accounts.router)
app.include_router(incomes.router)
app.include_router(expenses.router)
app.include_router(cards.router)
app.include_router(budgets.router)
app.include_router(goals.router)
app.include_router(groups.router)
app.include_router(recurring.router)
app.include_router(notifications.router)
app.include_router(settings.router)
app.include_router(tax_report.router)
app.include_router(export.router)


def run():
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    run()
