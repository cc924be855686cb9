"""Leaderboard level labels."""

import pytest

from taskkash.gamification.leaderboard_service import compute_level


@pytest.mark.parametrize(
    ("points", "level"),
    [
        (0, "Beginner"),
        (2_999, "Beginner"),
        (3_000, "Intermediate"),
        (7_999, "Intermediate"),
        (8_000, "Advanced"),
        (14_999, "Advanced"),
        (15_000, "Expert"),
        (1_000_000, "Expert"),
    ],
)
def test_compute_level(points, level):
    assert compute_level(points) == level
