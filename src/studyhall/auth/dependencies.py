"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from studyhall.auth.jwt import CurrentLearner, learner_from_claims, verify_token

_bearer = HTTPBearer()


async def get_current_learner(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),  # noqa: B008
) -> CurrentLearner:
    """Extract and verify the bearer token. Raises 401 on failure."""
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return learner_from_claims(payload)
