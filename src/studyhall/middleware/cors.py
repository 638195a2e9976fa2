"""CORS for the learner web app."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyhall.config import Settings

# Tokens travel in the Authorization header, never in cookies.
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Request-Id"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-Id"],
        max_age=600,
    )
