"""Verification of access tokens issued by the auth provider.

The BaaS signs HS256 tokens with a shared secret. ``sub`` is the learner id;
the grade level travels in ``user_metadata.grade_level`` (or a top-level
``grade_level`` claim) and is only used to pick a prompt-adaptation tier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt

from studyhall.config import get_settings

GRADE_LEVELS: tuple[str, ...] = ("elementary", "middle_school", "high_school", "college", "adult")


@dataclass(frozen=True)
class CurrentLearner:
    """Identity of the caller as far as this service cares."""

    learner_id: str
    grade_level: str


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload


def learner_from_claims(payload: dict[str, Any]) -> CurrentLearner:
    """Build the caller identity; unknown grade levels fall back to the default tier."""
    metadata = payload.get("user_metadata") or {}
    grade_level = metadata.get("grade_level") or payload.get("grade_level")
    if grade_level not in GRADE_LEVELS:
        grade_level = get_settings().default_grade_level
    return CurrentLearner(learner_id=str(payload["sub"]), grade_level=grade_level)
