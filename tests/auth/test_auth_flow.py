"""Registration, login and the authenticated user endpoint."""

from __future__ import annotations

from datetime import date

from httpx import AsyncClient
from sqlalchemy import select

from taskkash.database import session_scope
from taskkash.db.models import AdminNotification, Notification
from tests.helpers import TEST_PASSWORD, bearer, get_transactions, get_user, register


async def _login(client: AsyncClient, email: str = "user@example.com", password: str = TEST_PASSWORD):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegister:
    async def test_register_returns_token_and_user(self, client: AsyncClient, mock_email_service):
        data = await register(client, email="Ada@Example.com", name="  Ada  ")
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 24 * 60 * 60
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["name"] == "Ada"
        assert data["user"]["role"] == "user"

    async def test_register_grants_welcome_bonus_once(self, client: AsyncClient):
        data = await register(client)
        assert data["user"]["task_points"] == 50
        assert data["user"]["welcome_bonus_granted"] is True

        # The lazy grant on balance read must not pay it again
        response = await client.get("/api/v1/ledger/balance", headers=bearer(data["access_token"]))
        assert response.json()["task_points"] == 50

        transactions = await get_transactions(data["user"]["id"])
        assert [(t.type, t.amount) for t in transactions] == [("welcome_bonus", 50)]

    async def test_register_creates_notifications(self, client: AsyncClient):
        data = await register(client)
        user_id = data["user"]["id"]
        async with session_scope() as db:
            notes = (await db.execute(select(Notification).where(Notification.user_id == user_id))).scalars().all()
            admin_notes = (await db.execute(select(AdminNotification))).scalars().all()
        assert [n.type for n in notes] == ["welcome_bonus"]
        assert [(n.type, n.reference_id) for n in admin_notes] == [("new_user", user_id)]

    async def test_register_sends_welcome_email(self, client: AsyncClient, mock_email_service):
        await register(client, email="ada@example.com", name="Ada")
        mock_email_service.send_template.assert_awaited_once()
        kwargs = mock_email_service.send_template.await_args.kwargs
        assert kwargs["to"] == "ada@example.com"
        assert kwargs["template_name"] == "welcome"
        assert kwargs["context"]["welcome_bonus"] == 50

    async def test_email_failure_does_not_fail_registration(self, client: AsyncClient, mock_email_service):
        mock_email_service.send_template.side_effect = RuntimeError("smtp down")
        data = await register(client)
        assert data["user"]["task_points"] == 50

    async def test_duplicate_email_conflict(self, client: AsyncClient):
        await register(client)
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Other", "email": "USER@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    async def test_weak_password(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Ada", "email": "ada@example.com", "password": "password"},
        )
        assert response.status_code == 400
        assert "number" in response.json()["detail"]

    async def test_invalid_email_is_validation_error(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Ada", "email": "not-an-email", "password": TEST_PASSWORD},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "Validation error"
        assert body["errors"][0]["field"] == "email"

    async def test_name_too_long(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "x" * 51, "email": "ada@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 400


class TestLogin:
    async def test_login_success_claims_daily_bonus(self, client: AsyncClient):
        data = await register(client)
        response = await _login(client)
        assert response.status_code == 200
        body = response.json()
        assert body["daily_bonus_awarded"] is True
        assert body["user"]["task_points"] == 55
        assert body["user"]["daily_streak"] == 1

        user = await get_user(data["user"]["id"])
        assert user.login_count == 1
        assert user.last_login_bonus_on is not None

    async def test_second_login_same_day_no_bonus(self, client: AsyncClient):
        await register(client)
        await _login(client)
        response = await _login(client)
        body = response.json()
        assert body["daily_bonus_awarded"] is False
        assert body["user"]["task_points"] == 55
        assert body["user"]["daily_streak"] == 1

    async def test_login_is_case_insensitive_on_email(self, client: AsyncClient):
        await register(client)
        response = await _login(client, email="USER@EXAMPLE.COM")
        assert response.status_code == 200

    async def test_wrong_password(self, client: AsyncClient):
        await register(client)
        response = await _login(client, password="WrongPass9")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_unknown_email(self, client: AsyncClient):
        response = await _login(client, email="ghost@example.com")
        assert response.status_code == 401

    async def test_lockout_after_repeated_failures(self, client: AsyncClient):
        await register(client)
        for _ in range(10):
            await _login(client, password="WrongPass9")
        response = await _login(client)
        assert response.status_code == 429
        assert "locked" in response.json()["detail"].lower()

    async def test_streak_failure_does_not_block_login(self, client: AsyncClient, monkeypatch):
        await register(client)

        async def broken(*_args, **_kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("taskkash.auth.service.update_daily_streak", broken)
        response = await _login(client)
        assert response.status_code == 200
        assert response.json()["user"]["daily_streak"] == 0
        assert response.json()["daily_bonus_awarded"] is True

    async def test_daily_bonus_failure_does_not_block_login(self, client: AsyncClient, monkeypatch):
        await register(client)

        async def broken(*_args, **_kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("taskkash.auth.service.claim_daily_login_bonus", broken)
        response = await _login(client)
        assert response.status_code == 200
        assert response.json()["daily_bonus_awarded"] is False
        assert response.json()["user"]["task_points"] == 50

    async def test_suspended_user_cannot_login(self, client: AsyncClient, admin_account, user_account):
        response = await client.patch(
            f"/api/v1/admin/users/{user_account['id']}/status",
            json={"status": "suspended"},
            headers=admin_account["headers"],
        )
        assert response.status_code == 200

        response = await _login(client)
        assert response.status_code == 403
        assert response.json()["detail"] == "Account is suspended"

        # Existing tokens stop working as well
        response = await client.get("/api/v1/auth/me", headers=user_account["headers"])
        assert response.status_code == 403


class TestMe:
    async def test_me(self, client: AsyncClient, user_account):
        response = await client.get("/api/v1/auth/me", headers=user_account["headers"])
        assert response.status_code == 200
        assert response.json()["id"] == user_account["id"]

    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    async def test_me_rejects_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers=bearer("not.a.jwt"))
        assert response.status_code == 401

    async def test_streak_date_is_utc_today(self, client: AsyncClient):
        await register(client)
        body = (await _login(client)).json()
        assert body["user"]["last_streak_date"] is not None
        date.fromisoformat(body["user"]["last_streak_date"])
