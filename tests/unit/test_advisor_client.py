"""Advisor HTTP client tests using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from studyhall.advisor.client import AdvisorClient
from studyhall.advisor.prompts import GRADE_LEVEL_ADAPTATIONS, adaptation_for
from studyhall.errors import AdvisoryCollaboratorError


def _client(handler) -> AdvisorClient:
    return AdvisorClient("http://advisor.test/functions/v1", api_key="k", transport=httpx.MockTransport(handler))


class TestGenerateQuiz:
    async def test_posts_to_function_and_returns_questions(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"questions": [{"question": "Q"}]})

        questions = await _client(handler).generate_quiz("content", "Fractions", "college", question_count=3)
        assert questions == [{"question": "Q"}]
        assert seen["url"] == "http://advisor.test/functions/v1/generate-quiz"
        assert seen["auth"] == "Bearer k"
        assert seen["body"]["questionCount"] == 3
        assert seen["body"]["gradeLevel"] == "college"

    async def test_http_error_raises(self):
        client = _client(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(AdvisoryCollaboratorError):
            await client.generate_quiz("c", "t")

    async def test_error_field_raises(self):
        client = _client(lambda request: httpx.Response(200, json={"error": "rate limited"}))
        with pytest.raises(AdvisoryCollaboratorError, match="rate limited"):
            await client.generate_quiz("c", "t")

    async def test_non_json_raises(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(AdvisoryCollaboratorError):
            await client.generate_quiz("c", "t")

    async def test_transport_failure_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AdvisoryCollaboratorError):
            await _client(handler).generate_quiz("c", "t")


class TestAskTutor:
    async def test_returns_message(self):
        client = _client(lambda request: httpx.Response(200, json={"message": "  Try again.  "}))
        assert await client.ask_tutor([{"role": "user", "content": "hi"}]) == "Try again."

    async def test_empty_message_raises(self):
        client = _client(lambda request: httpx.Response(200, json={"message": ""}))
        with pytest.raises(AdvisoryCollaboratorError):
            await client.ask_tutor([{"role": "user", "content": "hi"}])


def test_adaptation_tiers():
    assert adaptation_for("elementary") == GRADE_LEVEL_ADAPTATIONS["elementary"]
    assert adaptation_for(None) == GRADE_LEVEL_ADAPTATIONS["high_school"]
    assert adaptation_for("unknown") == GRADE_LEVEL_ADAPTATIONS["high_school"]
