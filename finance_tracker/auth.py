from datetime import datetime, timedelta

import jwt
import structlog
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from finance_tracker.config import get_settings
from finance_tracker.database import get_db
from finance_tracker.errors import FinanceError, NotAuthenticated
from finance_tracker.models import User
from finance_tracker.services.groups import GroupService
from finance_tracker.services.users import UserService
from finance_tracker.templating import render

logger = structlog.get_logger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

auth_router = APIRouter()


def create_access_token(data: dict):
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str):
    """User id carried by the token, or None when invalid or expired."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    users = UserService(db)

    user_id = decode_access_token(request.cookies.get(ACCESS_COOKIE, ""))
    if user_id is not None:
        user = users.get(user_id)
        if user:
            request.state.user = user
            return user

    # expired access token: fall back to the refresh token
    refresh = request.cookies.get(REFRESH_COOKIE)
    if refresh:
        user = users.user_for_refresh_token(refresh)
        if user:
            request.state.user = user
            request.state.new_access_token = create_access_token({"sub": str(user.id)})
            return user

    raise NotAuthenticated()


def set_auth_cookies(response, access_token: str, refresh_token: str = None):
    settings = get_settings()
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
    )
    if refresh_token:
        response.set_cookie(
            REFRESH_COOKIE,
            refresh_token,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
            max_age=settings.refresh_token_expire_days * 24 * 3600,
        )


def _login_response(db: Session, user: User, redirect_to: str = "/"):
    refresh = UserService(db).create_refresh_token(user)
    response = RedirectResponse(redirect_to, status_code=303)
    set_auth_cookies(response, create_access_token({"sub": str(user.id)}), refresh.token)
    return response


@auth_router.get("/login")
async def login_page(request: Request):
    return render(request, "login.html", {})


@auth_router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).authenticate(email, password)
    except FinanceError as exc:
        return render(request, "login.html", {"error": exc.message, "email": email}, exc.status_code)
    return _login_response(db, user)


@auth_router.get("/register")
async def register_page(request: Request):
    return render(request, "register.html", {})


@auth_router.post("/register")
async def register(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).register(email, password, name)
    except FinanceError as exc:
        context = {"error": exc.message, "email": email, "name": name}
        return render(request, "register.html", context, exc.status_code)
    return _login_response(db, user)


@auth_router.post("/groups/join/{code}/register")
async def register_and_join(
    request: Request,
    code: str,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    groups = GroupService(db)
    try:
        groups.validate_invite(code)
        user = UserService(db).register(email, password, name)
    except FinanceError as exc:
        context = {"error": exc.message, "code": code, "email": email, "name": name}
        return render(request, "join-group.html", context, exc.status_code)

    # the user stays registered even when joining fails
    try:
        group = groups.accept_invite(code, user.id)
        target = f"/groups/{group.id}/dashboard"
    except FinanceError as exc:
        logger.warning("join_after_register_failed", user_id=user.id, error=exc.message)
        target = "/groups"
    return _login_response(db, user, target)


@auth_router.post("/logout")
@auth_router.get("/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    refresh = request.cookies.get(REFRESH_COOKIE)
    if refresh:
        UserService(db).revoke_refresh_token(refresh)
    response = RedirectResponse("/login", status_code=303)
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
    return response
