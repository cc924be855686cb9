"""Request schema validation."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from taskkash.tasks.schemas import SubmitProofRequest, TaskCreateRequest, TaskUpdateRequest
from taskkash.users.schemas import ProfileUpdateRequest
from tests.helpers import task_payload


class TestTaskCreateRequest:
    def test_valid_payload(self):
        req = TaskCreateRequest(**task_payload())
        assert req.status == "active"
        assert req.reward_points == 30

    def test_requires_a_link(self):
        with pytest.raises(ValidationError, match="Either a task link or an alternate URL is required"):
            TaskCreateRequest(**task_payload(task_link=None))

    def test_alternate_url_is_enough(self):
        req = TaskCreateRequest(**task_payload(task_link=None, alternate_url="https://example.com/a"))
        assert req.alternate_url == "https://example.com/a"

    def test_rejects_non_http_link(self):
        with pytest.raises(ValidationError, match="http"):
            TaskCreateRequest(**task_payload(task_link="ftp://example.com"))

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("title", "ab"),
            ("description", "short"),
            ("instructions", "short"),
            ("category", "gaming"),
            ("reward_points", -1),
            ("reward_points", 10_001),
        ],
    )
    def test_field_bounds(self, field, value):
        with pytest.raises(ValidationError):
            TaskCreateRequest(**task_payload(**{field: value}))

    def test_deadline_must_be_in_future(self):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        with pytest.raises(ValidationError, match="Deadline must be in the future"):
            TaskCreateRequest(**task_payload(deadline=past.isoformat()))

    def test_naive_deadline_is_utc(self):
        future = (datetime.now(timezone.utc) + timedelta(days=2)).replace(tzinfo=None)
        req = TaskCreateRequest(**task_payload(deadline=future.isoformat()))
        assert req.deadline is not None
        assert req.deadline.tzinfo is not None


def test_task_update_only_tracks_sent_fields():
    req = TaskUpdateRequest(reward_points=50)
    assert req.model_dump(exclude_unset=True) == {"reward_points": 50}


class TestSubmitProofRequest:
    def test_requires_some_proof(self):
        with pytest.raises(ValidationError, match="at least one proof"):
            SubmitProofRequest(task_id=1)

    def test_blank_urls_are_dropped(self):
        with pytest.raises(ValidationError):
            SubmitProofRequest(task_id=1, proof_urls=["  "])

    def test_proof_link_only(self):
        req = SubmitProofRequest(task_id=1, proof_link="https://x.com/status/1")
        assert req.proof_urls == []


class TestProfileUpdateRequest:
    @pytest.mark.parametrize("username", ["ab", "has space", "dash-name", "x" * 21])
    def test_invalid_usernames(self, username):
        with pytest.raises(ValidationError):
            ProfileUpdateRequest(username=username)

    def test_valid_username(self):
        assert ProfileUpdateRequest(username="task_fan_01").username == "task_fan_01"

    def test_social_links_are_normalised(self):
        req = ProfileUpdateRequest(social_links={" X ": " https://x.com/me ", "tiktok": ""})
        assert req.social_links == {"x": "https://x.com/me"}

    def test_social_link_must_be_http(self):
        with pytest.raises(ValidationError):
            ProfileUpdateRequest(social_links={"x": "x.com/me"})
