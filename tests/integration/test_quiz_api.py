"""Quiz session API tests."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from studyhall.errors import AdvisoryCollaboratorError

pytestmark = pytest.mark.asyncio

CORRECT = [1, 1, 0]


async def _start(client: AsyncClient) -> dict:
    response = await client.post("/api/v1/quiz/sessions", json={"topic_id": "t-add"})
    assert response.status_code == 201
    return response.json()


async def test_start_hides_answers(authed_client: AsyncClient):
    data = await _start(authed_client)
    assert data["phase"] == "active"
    assert data["total_questions"] == 3
    assert data["is_fallback"] is False
    assert data["remaining_seconds"] in (599, 600)
    assert set(data["current_question"]) == {"question_text", "options"}
    assert data["review"] is None


async def test_full_quiz(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    for option in CORRECT:
        selected = await authed_client.post(
            f"/api/v1/quiz/sessions/{session_id}/select", json={"option_index": option}
        )
        assert selected.json()["current_selection"] == option
        response = await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/confirm")
        assert response.status_code == 200

    data = response.json()
    assert data["phase"] == "results"
    assert data["score"] == 100
    assert data["outcome"]["xp_awarded"] == 20
    assert all(item["is_correct"] for item in data["review"])

    topics = (await authed_client.get("/api/v1/subjects/subj-math/topics")).json()["topics"]
    assert topics[0]["state"] == "completed"
    assert topics[1]["state"] == "available"


async def test_confirm_after_results_is_409(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    for option in CORRECT:
        await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/select", json={"option_index": option})
        await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/confirm")
    response = await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/confirm")
    assert response.status_code == 409


async def test_confirm_without_selection_is_422(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    response = await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/confirm")
    assert response.status_code == 422


async def test_out_of_range_option_is_422(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    response = await authed_client.post(
        f"/api/v1/quiz/sessions/{session_id}/select", json={"option_index": 9}
    )
    assert response.status_code == 422


async def test_early_expire_keeps_session_active(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    response = await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/expire")
    assert response.json()["phase"] == "active"


async def test_integrity_warning(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    response = await authed_client.post(
        f"/api/v1/quiz/sessions/{session_id}/integrity", json={"kind": "clipboard"}
    )
    warnings = response.json()["warnings"]
    assert [w["kind"] for w in warnings] == ["clipboard"]
    assert response.json()["phase"] == "active"


async def test_fallback_flag_when_generation_fails(authed_client: AsyncClient, advisor):
    advisor.generate_quiz.side_effect = AdvisoryCollaboratorError("timeout")
    data = await _start(authed_client)
    assert data["is_fallback"] is True
    assert data["total_questions"] == 1


async def test_unknown_session_is_404(authed_client: AsyncClient):
    response = await authed_client.get("/api/v1/quiz/sessions/does-not-exist")
    assert response.status_code == 404


async def test_explanations(authed_client: AsyncClient):
    session_id = (await _start(authed_client))["session_id"]
    for option in [0, 1, 0]:
        await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/select", json={"option_index": option})
        await authed_client.post(f"/api/v1/quiz/sessions/{session_id}/confirm")
    response = await authed_client.get(f"/api/v1/quiz/sessions/{session_id}/explanations")
    assert response.status_code == 200
    assert [e["question_index"] for e in response.json()["explanations"]] == [0]


async def _finish(client: AsyncClient, answers: list[int]) -> None:
    session_id = (await _start(client))["session_id"]
    for option in answers:
        await client.post(f"/api/v1/quiz/sessions/{session_id}/select", json={"option_index": option})
        await client.post(f"/api/v1/quiz/sessions/{session_id}/confirm")


async def test_attempt_history(authed_client: AsyncClient):
    await _finish(authed_client, CORRECT)
    await _finish(authed_client, [1, 0, 1])

    response = await authed_client.get("/api/v1/quiz/attempts")
    assert response.status_code == 200
    data = response.json()
    assert data["total_attempts"] == 2
    assert data["average_score"] == 67
    assert len(data["attempts"]) == 2
    assert sorted(a["score"] for a in data["attempts"]) == [33, 100]
    [topic] = data["topics"]
    assert topic["topic_id"] == "t-add"
    assert topic["topic_title"] == "Addition"
    assert topic["attempts"] == 2
    assert topic["best_score"] == 100


async def test_attempt_history_limit(authed_client: AsyncClient):
    await _finish(authed_client, CORRECT)
    await _finish(authed_client, CORRECT)
    data = (await authed_client.get("/api/v1/quiz/attempts", params={"limit": 1})).json()
    assert len(data["attempts"]) == 1
    assert data["total_attempts"] == 2


async def test_attempt_history_empty(authed_client: AsyncClient):
    data = (await authed_client.get("/api/v1/quiz/attempts")).json()
    assert data == {"total_attempts": 0, "average_score": 0, "topics": [], "attempts": []}


async def test_attempt_history_requires_auth(client: AsyncClient):
    response = await client.get("/api/v1/quiz/attempts")
    assert response.status_code in (401, 403)
