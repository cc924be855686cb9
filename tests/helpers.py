"""Plain helpers shared by the API tests."""

from __future__ import annotations

from httpx import AsyncClient
from sqlalchemy import select, update

from taskkash.database import session_scope
from taskkash.db.models import Transaction, User

TEST_PASSWORD = "SecurePass1"


async def register(
    client: AsyncClient,
    email: str = "user@example.com",
    name: str = "Test User",
    password: str = TEST_PASSWORD,
) -> dict:
    """Register through the API and return the token response body."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def make_admin(user_id: int) -> None:
    async with session_scope() as db:
        await db.execute(update(User).where(User.id == user_id).values(role="admin"))
        await db.commit()


async def get_user(user_id: int) -> User:
    async with session_scope() as db:
        user = await db.get(User, user_id)
        assert user is not None
        return user


async def get_transactions(user_id: int) -> list[Transaction]:
    """All ledger rows for a user, oldest first."""
    async with session_scope() as db:
        result = await db.execute(
            select(Transaction).where(Transaction.user_id == user_id).order_by(Transaction.id.asc())
        )
        return list(result.scalars().all())


def task_payload(**overrides) -> dict:
    payload = {
        "title": "Follow us on X",
        "description": "Follow the TaskKash account on X",
        "instructions": "Open the link, follow the account and send a screenshot",
        "category": "social",
        "reward_points": 30,
        "validation_type": "screenshot",
        "task_link": "https://x.com/taskkash",
    }
    payload.update(overrides)
    return payload


async def create_task(client: AsyncClient, admin_headers: dict, **overrides) -> dict:
    response = await client.post("/api/v1/admin/tasks", json=task_payload(**overrides), headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()


async def set_points(client: AsyncClient, admin_headers: dict, user_id: int, points: int) -> None:
    response = await client.patch(
        f"/api/v1/admin/users/{user_id}/points", json={"points": points}, headers=admin_headers
    )
    assert response.status_code == 200, response.text
