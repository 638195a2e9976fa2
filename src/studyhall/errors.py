"""Error taxonomy shared by every service.

HTTP status codes are assigned in ``studyhall.middleware.error_handler``.
"""

from __future__ import annotations


class StudyHallError(Exception):
    """Base class for all domain errors."""


class ValidationError(StudyHallError, ValueError):
    """Caller supplied an out-of-contract value. Never retried."""


class InvalidTransitionError(ValidationError):
    """A state machine was asked for a transition its current phase does not allow."""


class NotFoundError(StudyHallError, LookupError):
    """A referenced learner, topic or subject has no backing record."""


class TransientStoreError(StudyHallError):
    """The datastore failed for an infrastructure reason.

    Reads may be retried with backoff. Writes may only be retried when they are
    idempotent (badge upserts, XP awards carrying an idempotency key).
    """


class AdvisoryCollaboratorError(StudyHallError):
    """The external AI collaborator failed or returned unusable content.

    Always recovered locally with a fallback; never surfaced to the learner.
    """
