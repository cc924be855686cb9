"""End-to-end task flow: catalogue, start, submit, review."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient
from sqlalchemy import select, update

from taskkash.database import session_scope
from taskkash.db.models import AdminNotification, Notification, Task
from taskkash.tasks import service as tasks_service
from tests.helpers import create_task, get_transactions, get_user

PROOF = {"proof_link": "https://x.com/someone/status/1"}


async def _submit(client: AsyncClient, headers: dict, task_id: int, **extra):
    return await client.post("/api/v1/tasks/submissions", json={"task_id": task_id, **PROOF, **extra}, headers=headers)


async def _review(client: AsyncClient, admin_headers: dict, submission_id: int, status: str, reason: str | None = None):
    body = {"status": status}
    if reason is not None:
        body["rejection_reason"] = reason
    return await client.put(f"/api/v1/admin/submissions/{submission_id}", json=body, headers=admin_headers)


async def _user_status(client: AsyncClient, headers: dict, task_id: int) -> str:
    response = await client.get(f"/api/v1/tasks/{task_id}", headers=headers)
    assert response.status_code == 200
    return response.json()["user_status"]


class TestApprovalFlow:
    async def test_submit_and_approve_credits_reward(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"], reward_points=30)

        response = await _submit(client, user_account["headers"], task["id"])
        assert response.status_code == 201
        body = response.json()
        assert body["task_title"] == task["title"]
        assert body["reward_points"] == 30
        submission_id = body["submission_id"]

        duplicate = await _submit(client, user_account["headers"], task["id"])
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "You already have a pending submission for this task"

        response = await _review(client, admin_account["headers"], submission_id, "approved")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Submission approved. 30 TP awarded.",
            "awarded_points": 30,
            "new_status": "approved",
        }

        balance = await client.get("/api/v1/ledger/balance", headers=user_account["headers"])
        assert balance.json()["task_points"] == 80
        assert balance.json()["tasks_completed"] == 1

        transactions = await get_transactions(user_account["id"])
        assert [(t.type, t.amount) for t in transactions] == [("welcome_bonus", 50), ("task_approved", 30)]
        assert transactions[1].reference_type == "submission"
        assert transactions[1].reference_id == submission_id

    async def test_review_is_final(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]
        await _review(client, admin_account["headers"], submission_id, "approved")

        again = await _review(client, admin_account["headers"], submission_id, "approved")
        assert again.status_code == 409
        assert again.json()["detail"] == "Submission has already been reviewed"
        flipped = await _review(client, admin_account["headers"], submission_id, "rejected")
        assert flipped.status_code == 409

        user = await get_user(user_account["id"])
        assert user.task_points == 80
        assert user.tasks_completed == 1

    async def test_cannot_resubmit_after_approval(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]
        await _review(client, admin_account["headers"], submission_id, "approved")

        response = await _submit(client, user_account["headers"], task["id"])
        assert response.status_code == 409
        assert response.json()["detail"] == "You have already completed this task"

    async def test_duplicate_race_is_a_conflict(self, client: AsyncClient, user_account, admin_account, monkeypatch):
        task = await create_task(client, admin_account["headers"])
        assert (await _submit(client, user_account["headers"], task["id"])).status_code == 201

        # A second request that read before the first one committed sees no open attempt
        async def no_open_attempts(*_args, **_kwargs):
            return set()

        monkeypatch.setattr("taskkash.tasks.service._open_attempts", no_open_attempts)
        response = await _submit(client, user_account["headers"], task["id"])
        assert response.status_code == 409
        assert response.json()["detail"] == "You already have a pending submission for this task"

        submissions = await client.get("/api/v1/admin/submissions", headers=admin_account["headers"])
        assert submissions.json()["total"] == 1

    async def test_zero_reward_task(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"], reward_points=0)
        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]
        response = await _review(client, admin_account["headers"], submission_id, "approved")
        assert response.json()["awarded_points"] == 0

        user = await get_user(user_account["id"])
        assert user.task_points == 50
        assert user.tasks_completed == 1

    async def test_notifications(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]
        await _review(client, admin_account["headers"], submission_id, "approved")

        async with session_scope() as db:
            user_notes = (
                await db.execute(
                    select(Notification.type)
                    .where(Notification.user_id == user_account["id"])
                    .order_by(Notification.id)
                )
            ).scalars().all()
            admin_notes = (
                await db.execute(select(AdminNotification).where(AdminNotification.type == "task_submission"))
            ).scalars().all()

        assert user_notes == ["welcome_bonus", "submission_received", "task_approved"]
        assert [n.reference_id for n in admin_notes] == [submission_id]

    async def test_notification_failure_keeps_review(self, client: AsyncClient, user_account, admin_account, monkeypatch):
        task = await create_task(client, admin_account["headers"])
        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]

        async def broken(*_args, **_kwargs):
            raise RuntimeError("notification store down")

        monkeypatch.setattr("taskkash.social.notification_service.create_notification", broken)
        response = await _review(client, admin_account["headers"], submission_id, "approved")
        assert response.status_code == 200
        assert (await get_user(user_account["id"])).task_points == 80


class TestRejectionFlow:
    async def test_reject_then_resubmit(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        first = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]

        response = await _review(client, admin_account["headers"], first, "rejected", "Screenshot is blurry")
        assert response.status_code == 200
        assert response.json()["message"] == "Submission rejected."
        assert response.json()["awarded_points"] == 0
        assert await _user_status(client, user_account["headers"], task["id"]) == "rejected"

        second = await _submit(client, user_account["headers"], task["id"])
        assert second.status_code == 201
        assert await _user_status(client, user_account["headers"], task["id"]) == "submitted"

        mine = await client.get("/api/v1/tasks/submissions/mine", headers=user_account["headers"])
        statuses = [s["status"] for s in mine.json()["submissions"]]
        assert statuses == ["pending", "rejected"]
        assert mine.json()["submissions"][1]["rejection_reason"] == "Screenshot is blurry"

        user = await get_user(user_account["id"])
        assert user.task_points == 50

    async def test_default_rejection_reason(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]
        await _review(client, admin_account["headers"], submission_id, "rejected")

        response = await client.get(
            "/api/v1/admin/submissions", params={"status": "rejected"}, headers=admin_account["headers"]
        )
        submission = response.json()["submissions"][0]
        assert submission["rejection_reason"] == tasks_service.DEFAULT_REJECTION_REASON
        assert submission["user_email"] == "user@example.com"
        assert submission["task_title"] == task["title"]


class TestTaskStates:
    async def test_progression(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])

        listing = await client.get("/api/v1/tasks", headers=user_account["headers"])
        assert [(t["id"], t["user_status"]) for t in listing.json()["tasks"]] == [(task["id"], "available")]

        started = await client.post(f"/api/v1/tasks/{task['id']}/start", headers=user_account["headers"])
        assert started.status_code == 200
        assert started.json()["task_id"] == task["id"]
        assert await _user_status(client, user_account["headers"], task["id"]) == "started"

        again = await client.post(f"/api/v1/tasks/{task['id']}/start", headers=user_account["headers"])
        assert again.status_code == 400
        assert again.json()["detail"] == "You have already started this task"

        submission_id = (await _submit(client, user_account["headers"], task["id"])).json()["submission_id"]
        assert await _user_status(client, user_account["headers"], task["id"]) == "submitted"

        await _review(client, admin_account["headers"], submission_id, "approved")
        assert await _user_status(client, user_account["headers"], task["id"]) == "approved"

    async def test_states_are_per_user(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        await _submit(client, user_account["headers"], task["id"])
        assert await _user_status(client, admin_account["headers"], task["id"]) == "available"

    async def test_category_filter(self, client: AsyncClient, user_account, admin_account):
        await create_task(client, admin_account["headers"], category="social")
        content = await create_task(client, admin_account["headers"], category="content", title="Write a review")
        response = await client.get(
            "/api/v1/tasks", params={"category": "content"}, headers=user_account["headers"]
        )
        assert [t["id"] for t in response.json()["tasks"]] == [content["id"]]


class TestClosedTasks:
    async def test_disabled_task_is_hidden(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        response = await client.patch(
            f"/api/v1/admin/tasks/{task['id']}", json={"status": "disabled"}, headers=admin_account["headers"]
        )
        assert response.status_code == 200

        listing = await client.get("/api/v1/tasks", headers=user_account["headers"])
        assert listing.json()["total"] == 0
        detail = await client.get(f"/api/v1/tasks/{task['id']}", headers=user_account["headers"])
        assert detail.status_code == 404

        submit = await _submit(client, user_account["headers"], task["id"])
        assert submit.status_code == 400
        assert submit.json()["detail"] == "This task is no longer accepting submissions"

        start = await client.post(f"/api/v1/tasks/{task['id']}/start", headers=user_account["headers"])
        assert start.status_code == 400

    async def test_overdue_tasks_expire(self, client: AsyncClient, user_account, admin_account):
        deadline = datetime.now(timezone.utc) + timedelta(days=1)
        task = await create_task(client, admin_account["headers"], deadline=deadline.isoformat())
        open_task = await create_task(client, admin_account["headers"], title="Open ended")

        async with session_scope() as db:
            past = datetime.now(timezone.utc) - timedelta(hours=1)
            await db.execute(update(Task).where(Task.id == task["id"]).values(deadline=past))
            await db.commit()

        response = await client.post("/api/v1/admin/tasks/expire", headers=admin_account["headers"])
        assert response.status_code == 200
        assert response.json() == {"success": True, "action": "expire", "affected": 1}

        async with session_scope() as db:
            assert (await db.get(Task, task["id"])).status == "expired"
            assert (await db.get(Task, open_task["id"])).status == "active"

        submit = await _submit(client, user_account["headers"], task["id"])
        assert submit.status_code == 400

        again = await client.post("/api/v1/admin/tasks/expire", headers=admin_account["headers"])
        assert again.json()["affected"] == 0

    async def test_expire_requires_admin(self, client: AsyncClient, user_account):
        response = await client.post("/api/v1/admin/tasks/expire", headers=user_account["headers"])
        assert response.status_code == 403

    async def test_unknown_task(self, client: AsyncClient, user_account):
        assert (await _submit(client, user_account["headers"], 999)).status_code == 404
        assert (await client.post("/api/v1/tasks/999/start", headers=user_account["headers"])).status_code == 404
        assert (await client.get("/api/v1/tasks/999", headers=user_account["headers"])).status_code == 404


class TestSubmissionValidation:
    async def test_proof_required(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        response = await client.post(
            "/api/v1/tasks/submissions", json={"task_id": task["id"]}, headers=user_account["headers"]
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Validation error"

    async def test_proof_urls_must_be_http(self, client: AsyncClient, user_account, admin_account):
        task = await create_task(client, admin_account["headers"])
        response = await client.post(
            "/api/v1/tasks/submissions",
            json={"task_id": task["id"], "proof_urls": ["ftp://files.example.com/shot.png"]},
            headers=user_account["headers"],
        )
        assert response.status_code == 400

    async def test_unknown_submission_review(self, client: AsyncClient, admin_account):
        response = await _review(client, admin_account["headers"], 999, "approved")
        assert response.status_code == 404
        assert response.json()["detail"] == "Submission not found"

    async def test_invalid_review_status(self, client: AsyncClient, admin_account):
        response = await client.put(
            "/api/v1/admin/submissions/1", json={"status": "maybe"}, headers=admin_account["headers"]
        )
        assert response.status_code == 400
