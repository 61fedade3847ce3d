from datetime import datetime, timedelta

import pytest

from finance_tracker.auth import ACCESS_COOKIE, REFRESH_COOKIE
from finance_tracker.models import (
    Expense,
    ExpensePayment,
    GroupInvite,
    Notification,
    NotificationType,
)
from finance_tracker.services.groups import GroupService
from finance_tracker.services.notifications import NotificationService
from finance_tracker.services.users import UserService

from tests.conftest import PASSWORD

HTMX = {"HX-Request": "true"}


class TestAuthentication:
    def test_redirects_to_login(self, client):
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    def test_htmx_gets_hx_redirect(self, client):
        response = client.get("/expenses", headers=HTMX, follow_redirects=False)
        assert response.status_code == 401
        assert response.headers["HX-Redirect"] == "/login"

    def test_login_sets_cookies(self, client, user):
        response = client.post(
            "/login", data={"email": user.email, "password": PASSWORD}, follow_redirects=False
        )
        assert response.status_code == 303
        assert ACCESS_COOKIE in response.cookies
        assert REFRESH_COOKIE in response.cookies

    def test_login_failure_renders_form(self, client, user):
        response = client.post("/login", data={"email": user.email, "password": "Errada@123"})
        assert response.status_code == 401
        assert "credenciais inválidas" in response.text

    def test_register_rejects_weak_password(self, client):
        response = client.post(
            "/register", data={"name": "Ana", "email": "ana@example.com", "password": "fraca"}
        )
        assert response.status_code == 400
        assert "pelo menos 8 caracteres" in response.text

    def test_refresh_token_renews_access_cookie(self, client, db, user):
        refresh = UserService(db).create_refresh_token(user)
        client.cookies.set(REFRESH_COOKIE, refresh.token)
        response = client.get("/")
        assert response.status_code == 200
        assert ACCESS_COOKIE in response.cookies


class TestPages:
    def test_dashboard(self, auth_client, user):
        response = auth_client.get("/")
        assert response.status_code == 200
        assert "Junho de 2024" in response.text
        assert user.name in response.text

    def test_every_page_renders(self, auth_client):
        for path in (
            "/accounts",
            "/incomes",
            "/expenses",
            "/cards",
            "/budgets",
            "/recurring",
            "/groups",
            "/notifications",
            "/settings",
            "/tax-report",
        ):
            response = auth_client.get(path)
            assert response.status_code == 200, path

    def test_unknown_route_is_plain_text(self, auth_client):
        response = auth_client.get("/nope")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("text/plain")


class TestExpenseRoutes:
    def test_create_fixed_expense(self, auth_client, db):
        response = auth_client.post(
            "/expenses",
            data={"name": "Aluguel", "amount": "1500", "type": "fixed", "due_day": "5", "category": "Moradia"},
        )
        assert response.status_code == 200
        assert "Aluguel" in response.text
        assert db.query(Expense).count() == 1

    def test_invalid_split_is_plain_text_400(self, auth_client, db, user):
        response = auth_client.post(
            "/expenses",
            data={
                "name": "Mercado",
                "amount": "100",
                "is_split": "true",
                "split_user_ids": [str(user.id)],
                "split_percentages": ["90"],
            },
        )
        assert response.status_code == 400
        assert response.text == "A soma dos percentuais deve ser 100%"
        assert db.query(Expense).count() == 0

    def test_missing_field_is_plain_text_400(self, auth_client):
        response = auth_client.post("/expenses", data={"amount": "10"})
        assert response.status_code == 400
        assert response.text == "Dados inválidos"

    def test_mark_paid_uses_current_month(self, auth_client, db):
        auth_client.post(
            "/expenses", data={"name": "Luz", "amount": "200", "type": "fixed", "due_day": "10"}
        )
        expense = db.query(Expense).one()

        response = auth_client.post(f"/expenses/{expense.id}/paid")
        assert response.status_code == 200
        payment = db.query(ExpensePayment).one()
        assert (payment.year, payment.month) == (2024, 6)

        response = auth_client.post(f"/expenses/{expense.id}/paid", data={"month": "13"})
        assert response.status_code == 400

    def test_missing_expense(self, auth_client):
        response = auth_client.delete("/expenses/999")
        assert response.status_code == 404
        assert response.text == "Despesa não encontrada"


class TestIncomeRoutes:
    def test_preview(self, auth_client):
        response = auth_client.get("/incomes/preview", params={"amount_usd": 1000, "exchange_rate": 5})
        assert response.status_code == 200
        body = response.json()
        assert body["amount_brl"] == 5000
        assert body["tax"] == 300
        assert body["bracket"] == 1
        assert body["bracket_warning"] is None

    def test_create(self, auth_client):
        response = auth_client.post(
            "/incomes",
            data={"date": "2024-06-10", "amount_usd": "1000", "exchange_rate": "5", "description": "Cliente"},
        )
        assert response.status_code == 200
        assert "Cliente" in response.text
        assert "R$ 4.700,00" in response.text

    def test_non_positive_values(self, auth_client):
        response = auth_client.post(
            "/incomes", data={"date": "2024-06-10", "amount_usd": "0", "exchange_rate": "5"}
        )
        assert response.status_code == 400
        assert response.text == "Valor e câmbio devem ser positivos"


class TestGroupRoutes:
    def test_join_flow(self, client, login, db, user, make_user):
        groups = GroupService(db)
        group = groups.create_group(user.id, "Família")
        invite = groups.generate_invite(group.id, user.id)

        invitee = make_user(name="Bruno")
        login(invitee)
        page = client.get(f"/groups/join/{invite.code}")
        assert page.status_code == 200
        assert "Família" in page.text

        response = client.post(f"/groups/join/{invite.code}", headers=HTMX)
        assert response.status_code == 200
        assert response.headers["HX-Redirect"] == f"/groups/{group.id}/dashboard"
        assert groups.is_member(group.id, invitee.id)

        dashboard = client.get(f"/groups/{group.id}/dashboard")
        assert dashboard.status_code == 200

    def test_expired_invite_page(self, client, db, user):
        groups = GroupService(db)
        group = groups.create_group(user.id, "Família")
        invite = groups.generate_invite(group.id, user.id, now=datetime.utcnow() - timedelta(days=30))

        response = client.get(f"/groups/join/{invite.code}")
        assert response.status_code == 400
        assert "convite expirado" in response.text

    def test_register_and_join(self, client, db, user):
        groups = GroupService(db)
        group = groups.create_group(user.id, "Família")
        invite = groups.generate_invite(group.id, user.id)

        response = client.post(
            f"/groups/join/{invite.code}/register",
            data={"name": "Carla", "email": "carla@example.com", "password": "Forte@123"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == f"/groups/{group.id}/dashboard"
        carla = UserService(db).get_by_email("carla@example.com")
        assert groups.is_member(group.id, carla.id)
        assert db.query(GroupInvite).one().used_count == 1

    def test_non_member_dashboard_is_forbidden(self, auth_client, db, make_user):
        group = GroupService(db).create_group(make_user().id, "Outros")
        response = auth_client.get(f"/groups/{group.id}/dashboard")
        assert response.status_code == 403
        assert response.text == "você não é membro deste grupo"


class TestNotificationRoutes:
    def test_mark_all_read_triggers_refresh(self, auth_client, db, user):
        service = NotificationService(db)
        service.create(user.id, NotificationType.SUMMARY, "Aviso", "texto")
        service.create(user.id, NotificationType.SUMMARY, "Aviso", "texto")

        badge = auth_client.get("/notifications/badge")
        assert ">2<" in badge.text

        response = auth_client.post("/notifications/mark-all-read")
        assert response.status_code == 200
        assert response.headers["HX-Trigger"] == "notifications-changed"
        assert db.query(Notification).filter(Notification.read.is_(False)).count() == 0


class TestSettingsAndExport:
    def test_save_settings_invalidates_cache(self, auth_client, settings_cache):
        assert settings_cache.get().pro_labore == 0
        response = auth_client.post(
            "/settings",
            data={"pro_labore": "5000", "inss_ceiling": "7786.02", "inss_rate": "11", "manual_bracket": "2"},
        )
        assert response.status_code == 200
        assert "Configurações salvas" in response.text
        assert settings_cache.get().pro_labore == 5000
        assert settings_cache.get().manual_bracket == 2

    def test_export_csv(self, auth_client):
        response = auth_client.get("/export", params={"year": 2024, "format": "csv"})
        assert response.status_code == 200
        assert response.headers["content-disposition"] == "attachment; filename=financeiro_2024.csv"
        assert response.text.startswith("RESUMO MENSAL")

    def test_export_bad_format(self, auth_client):
        response = auth_client.get("/export", params={"format": "doc"})
        assert response.status_code == 400
        assert response.text == "Formato inválido"

    @pytest.mark.parametrize("year", [9999, 1800])
    def test_export_year_out_of_range(self, auth_client, year):
        response = auth_client.get("/export", params={"year": year, "format": "csv"})
        assert response.status_code == 400
        assert response.text == "Ano inválido"

    @pytest.mark.parametrize("path", ["/tax-report", "/tax-report/export"])
    def test_tax_report_year_out_of_range(self, auth_client, path):
        response = auth_client.get(path, params={"year": -1})
        assert response.status_code == 400
        assert response.text == "Ano inválido"

    def test_tax_report_xlsx(self, auth_client):
        response = auth_client.get("/tax-report/export", params={"year": 2024})
        assert response.status_code == 200
        assert response.headers["content-disposition"].endswith("impostos_2024.xlsx")
