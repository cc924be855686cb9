"""Profile updates, streak and leaderboard."""

from __future__ import annotations

from httpx import AsyncClient

from tests.helpers import TEST_PASSWORD, bearer, register, set_points


class TestProfile:
    async def test_get_me(self, client: AsyncClient, user_account):
        response = await client.get("/api/v1/users/me", headers=user_account["headers"])
        assert response.status_code == 200
        assert response.json()["email"] == "user@example.com"

    async def test_update_profile(self, client: AsyncClient, user_account):
        response = await client.patch(
            "/api/v1/users/me",
            json={
                "name": "  Ada Lovelace ",
                "username": "ada_l",
                "avatar_url": "https://cdn.example.com/ada.png",
                "social_links": {" Twitter ": "https://x.com/ada", "github": "  "},
            },
            headers=user_account["headers"],
        )
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Ada Lovelace"
        assert body["username"] == "ada_l"
        assert body["social_links"] == {"twitter": "https://x.com/ada"}

        activities = await client.get(
            "/api/v1/activities", params={"type": "profile_updated"}, headers=user_account["headers"]
        )
        assert activities.json()["activities"][0]["metadata"]["fields"] == [
            "username",
            "name",
            "avatar_url",
            "social_links",
        ]

    async def test_no_change_records_nothing(self, client: AsyncClient, user_account):
        response = await client.patch("/api/v1/users/me", json={"name": "Test User"}, headers=user_account["headers"])
        assert response.status_code == 200
        activities = await client.get(
            "/api/v1/activities", params={"type": "profile_updated"}, headers=user_account["headers"]
        )
        assert activities.json()["total"] == 0

    async def test_username_taken_case_insensitive(self, client: AsyncClient, user_account):
        await client.patch("/api/v1/users/me", json={"username": "ada_l"}, headers=user_account["headers"])
        other = await register(client, email="other@example.com", name="Other")

        response = await client.patch(
            "/api/v1/users/me", json={"username": "ADA_L"}, headers=bearer(other["access_token"])
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Username already taken"

        # Underscore is not a wildcard
        response = await client.patch(
            "/api/v1/users/me", json={"username": "adaxl"}, headers=bearer(other["access_token"])
        )
        assert response.status_code == 200

    async def test_invalid_fields(self, client: AsyncClient, user_account):
        for payload in (
            {"username": "no spaces"},
            {"username": "ab"},
            {"avatar_url": "javascript:alert(1)"},
            {"social_links": {"site": "ftp://example.com"}},
        ):
            response = await client.patch("/api/v1/users/me", json=payload, headers=user_account["headers"])
            assert response.status_code == 400, payload


class TestStreak:
    async def test_streak_after_login(self, client: AsyncClient, user_account):
        before = await client.get("/api/v1/users/me/streak", headers=user_account["headers"])
        assert before.json()["daily_streak"] == 0
        assert before.json()["logged_in_today"] is False

        await client.post("/api/v1/auth/login", json={"email": "user@example.com", "password": TEST_PASSWORD})

        after = await client.get("/api/v1/users/me/streak", headers=user_account["headers"])
        body = after.json()
        assert body["daily_streak"] == 1
        assert body["logged_in_today"] is True
        assert body["cycle_length"] == 7


class TestLeaderboard:
    async def test_ordering_and_rank(self, client: AsyncClient, user_account, admin_account):
        third = await register(client, email="third@example.com", name="Third")
        await set_points(client, admin_account["headers"], user_account["id"], 9000)
        await set_points(client, admin_account["headers"], third["user"]["id"], 300)

        response = await client.get("/api/v1/users/leaderboard", headers=bearer(third["access_token"]))
        assert response.status_code == 200
        body = response.json()
        assert [e["user_id"] for e in body["entries"]] == [
            user_account["id"],
            third["user"]["id"],
            admin_account["id"],
        ]
        assert [e["rank"] for e in body["entries"]] == [1, 2, 3]
        assert body["entries"][0]["level"] == "Advanced"
        assert body["my_rank"] == 2
        assert body["my_level"] == "Beginner"

    async def test_limit_and_suspended_users(self, client: AsyncClient, user_account, admin_account):
        await client.patch(
            f"/api/v1/admin/users/{user_account['id']}/status",
            json={"status": "suspended"},
            headers=admin_account["headers"],
        )
        response = await client.get(
            "/api/v1/users/leaderboard", params={"limit": 1}, headers=admin_account["headers"]
        )
        body = response.json()
        assert [e["user_id"] for e in body["entries"]] == [admin_account["id"]]
        assert body["my_rank"] == 1
