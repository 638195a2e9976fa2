"""
HTTP client for the AI advisor collaborator.

The advisor runs as two serverless functions next to the datastore:
``generate-quiz`` (source content -> question list) and ``ai-tutor``
(conversation -> free text). Both are treated as unreliable: any transport
failure, non-2xx status or unexpected body raises AdvisoryCollaboratorError,
and callers substitute a local fallback.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from studyhall.advisor.prompts import DEFAULT_GRADE_LEVEL, adaptation_for
from studyhall.config import Settings, get_settings
from studyhall.errors import AdvisoryCollaboratorError

logger = structlog.get_logger()


class AdvisorClient:
    """Async client for the quiz-generation and tutor functions."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def _invoke(self, function: str, body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/{function}",
                    headers=headers,
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("advisor_call_failed", function=function, error=str(exc))
            raise AdvisoryCollaboratorError(f"{function} failed: {exc}") from exc

        if not isinstance(data, dict):
            raise AdvisoryCollaboratorError(f"{function} returned {type(data).__name__}, expected object")
        if data.get("error"):
            raise AdvisoryCollaboratorError(f"{function} error: {data['error']}")
        return data

    async def generate_quiz(
        self,
        topic_content: str,
        topic_title: str,
        grade_level: str | None = None,
        question_count: int = 5,
        difficulty: str = "medium",
    ) -> Any:
        """Ask for ``question_count`` multiple-choice questions. Returns the raw, unvalidated list."""
        data = await self._invoke("generate-quiz", {
            "topicContent": topic_content,
            "topicTitle": topic_title,
            "gradeLevel": grade_level or DEFAULT_GRADE_LEVEL,
            "questionCount": question_count,
            "difficulty": difficulty,
        })
        questions = data.get("questions")
        logger.info(
            "advisor_quiz_generated",
            topic=topic_title,
            count=len(questions) if isinstance(questions, list) else 0,
        )
        return questions

    async def ask_tutor(
        self,
        messages: list[dict[str, str]],
        grade_level: str | None = None,
        topic_context: str | None = None,
    ) -> str:
        """Send a conversation to the tutor and return its reply text."""
        data = await self._invoke("ai-tutor", {
            "messages": messages,
            "gradeLevel": grade_level or DEFAULT_GRADE_LEVEL,
            "adaptation": adaptation_for(grade_level),
            "topicContext": topic_context,
        })
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            raise AdvisoryCollaboratorError("ai-tutor returned no message")
        return message.strip()


def create_advisor_client(settings: Settings | None = None) -> AdvisorClient:
    """Build a client from configuration."""
    settings = settings or get_settings()
    return AdvisorClient(
        base_url=settings.advisor_base_url,
        api_key=settings.advisor_api_key,
        timeout=settings.advisor_timeout_seconds,
    )
