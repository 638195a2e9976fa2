"""Learning API tests: subjects, topic map, progress and activity completion."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from studyhall.errors import TransientStoreError
from studyhall.events import PROGRESS_CHANGED

pytestmark = pytest.mark.asyncio


async def test_list_subjects(authed_client: AsyncClient):
    response = await authed_client.get("/api/v1/subjects")
    assert response.status_code == 200
    subjects = response.json()["subjects"]
    assert [s["name"] for s in subjects] == ["Mathematics", "Science"]
    assert all(s["completion_percent"] == 0 for s in subjects)


async def test_topic_map_for_new_learner(authed_client: AsyncClient, seeded: dict):
    response = await authed_client.get(f"/api/v1/subjects/{seeded['math']}/topics")
    assert response.status_code == 200
    data = response.json()
    assert data["completion_percent"] == 0
    assert [t["state"] for t in data["topics"]] == ["available", "locked", "locked"]


async def test_progress_update_and_unlock(authed_client: AsyncClient, seeded: dict, redis):
    response = await authed_client.put(
        "/api/v1/topics/t-add/progress", json={"percent": 100, "additional_minutes": 20}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["progress_percent"] == 100
    assert body["time_spent_minutes"] == 20
    assert body["completed_at"] is not None
    assert redis.events(PROGRESS_CHANGED)[-1]["completed"] is True

    topics = (await authed_client.get(f"/api/v1/subjects/{seeded['math']}/topics")).json()["topics"]
    assert [t["state"] for t in topics] == ["completed", "available", "locked"]


async def test_my_progress(authed_client: AsyncClient):
    await authed_client.put("/api/v1/topics/t-cell/progress", json={"percent": 40})
    response = await authed_client.get("/api/v1/me/progress")
    assert response.status_code == 200
    assert [(r["topic_id"], r["progress_percent"]) for r in response.json()] == [("t-cell", 40)]


async def test_negative_minutes_rejected(authed_client: AsyncClient):
    response = await authed_client.put(
        "/api/v1/topics/t-add/progress", json={"percent": 10, "additional_minutes": -3}
    )
    assert response.status_code == 422


async def test_unknown_topic_progress(authed_client: AsyncClient):
    response = await authed_client.put("/api/v1/topics/nope/progress", json={"percent": 10})
    assert response.status_code == 404


async def test_complete_lesson(authed_client: AsyncClient):
    response = await authed_client.post("/api/v1/topics/t-add/lesson/complete", json={"minutes_spent": 12})
    assert response.status_code == 200
    data = response.json()
    assert data["progress_percent"] == 50
    assert data["xp_awarded"] == 10
    assert data["current_streak"] == 1
    assert data["new_badges"] == ["first_steps"]
    assert data["accuracy"] is None


async def test_complete_practice(authed_client: AsyncClient):
    response = await authed_client.post(
        "/api/v1/topics/t-add/practice/complete", json={"correct": 3, "total": 5}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["accuracy"] == 60
    assert data["progress_percent"] == 60
    assert data["xp_awarded"] == 15


async def test_practice_more_correct_than_total(authed_client: AsyncClient):
    response = await authed_client.post(
        "/api/v1/topics/t-add/practice/complete", json={"correct": 6, "total": 5}
    )
    assert response.status_code == 422


async def test_transient_store_error_is_503(authed_client: AsyncClient):
    failing = AsyncMock(side_effect=TransientStoreError("list_subjects failed: connection reset"))
    with patch("studyhall.learning.progress_service.ProgressService.list_subjects", failing):
        response = await authed_client.get("/api/v1/subjects")
    assert response.status_code == 503
