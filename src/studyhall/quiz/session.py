"""Quiz session state machine.

State progression: intro -> active -> results
A session never leaves ``results``; a new attempt needs a new session.

The machine is a plain value plus one transition function, ``apply``. It does
no I/O and reads no clock: every event is applied at an explicit ``now``.
Time left is always ``deadline - now`` so a suspended client can never gain
extra time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from studyhall.errors import InvalidTransitionError, ValidationError
from studyhall.rounding import percent_of, round_ratio

DEFAULT_TIME_BUDGET_SECONDS = 600
DEFAULT_WARNING_TTL_SECONDS = 3


class QuizPhase(str, Enum):
    INTRO = "intro"
    ACTIVE = "active"
    RESULTS = "results"


VALID_TRANSITIONS: dict[QuizPhase, list[QuizPhase]] = {
    QuizPhase.INTRO: [QuizPhase.ACTIVE],
    QuizPhase.ACTIVE: [QuizPhase.ACTIVE, QuizPhase.RESULTS],
    QuizPhase.RESULTS: [],
}

INTEGRITY_SIGNALS = ("tab_blur", "clipboard")

INTEGRITY_MESSAGES: dict[str, str] = {
    "tab_blur": "Switching tabs during a quiz is recorded.",
    "clipboard": "Copy and paste are disabled during the quiz.",
}


def validate_transition(current: QuizPhase, target: QuizPhase) -> None:
    """Validate a phase transition. Raises InvalidTransitionError if invalid."""
    valid = VALID_TRANSITIONS.get(current, [])
    if target not in valid:
        raise InvalidTransitionError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Valid transitions: {[p.value for p in valid]}"
        )


@dataclass(frozen=True)
class QuizQuestion:
    question_text: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_text": self.question_text,
            "options": list(self.options),
            "correct_option_index": self.correct_option_index,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizQuestion:
        return cls(
            question_text=data["question_text"],
            options=tuple(data["options"]),
            correct_option_index=data["correct_option_index"],
            explanation=data.get("explanation", ""),
        )


@dataclass(frozen=True)
class IntegrityWarning:
    """Transient advisory notice; it never pauses the timer or blocks answers."""

    kind: str
    message: str
    expires_at: datetime


# --- Events ---


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class SelectAnswer:
    option_index: int


@dataclass(frozen=True)
class ConfirmAndAdvance:
    pass


@dataclass(frozen=True)
class TimerExpired:
    pass


@dataclass(frozen=True)
class IntegritySignal:
    kind: str


QuizEvent = Start | SelectAnswer | ConfirmAndAdvance | TimerExpired | IntegritySignal


@dataclass(frozen=True)
class QuizSession:
    session_id: str
    learner_id: str
    topic_id: str
    questions: tuple[QuizQuestion, ...]
    phase: QuizPhase = QuizPhase.INTRO
    current_index: int = 0
    answers: tuple[int | None, ...] = ()
    current_selection: int | None = None
    time_budget_seconds: int = DEFAULT_TIME_BUDGET_SECONDS
    warning_ttl_seconds: int = DEFAULT_WARNING_TTL_SECONDS
    started_at: datetime | None = None
    deadline: datetime | None = None
    finished_at: datetime | None = None
    timed_out: bool = False
    score: int | None = None
    correct_count: int | None = None
    warnings: tuple[IntegrityWarning, ...] = ()
    integrity_events: dict[str, int] = field(default_factory=dict)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> QuizQuestion | None:
        if self.phase is not QuizPhase.ACTIVE:
            return None
        return self.questions[self.current_index]

    def remaining_seconds(self, now: datetime) -> int:
        """Whole seconds left on the wall clock; the full budget before start, 0 after results."""
        if self.phase is QuizPhase.INTRO or self.deadline is None:
            return self.time_budget_seconds
        if self.phase is QuizPhase.RESULTS:
            return 0
        left = (self.deadline - now).total_seconds()
        return max(0, int(left))

    def is_expired(self, now: datetime) -> bool:
        return self.phase is QuizPhase.ACTIVE and self.deadline is not None and now >= self.deadline

    def active_warnings(self, now: datetime) -> list[IntegrityWarning]:
        return [w for w in self.warnings if w.expires_at > now]

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "learner_id": self.learner_id,
            "topic_id": self.topic_id,
            "questions": [q.to_dict() for q in self.questions],
            "phase": self.phase.value,
            "current_index": self.current_index,
            "answers": list(self.answers),
            "current_selection": self.current_selection,
            "time_budget_seconds": self.time_budget_seconds,
            "warning_ttl_seconds": self.warning_ttl_seconds,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "timed_out": self.timed_out,
            "score": self.score,
            "correct_count": self.correct_count,
            "warnings": [
                {"kind": w.kind, "message": w.message, "expires_at": w.expires_at.isoformat()}
                for w in self.warnings
            ],
            "integrity_events": dict(self.integrity_events),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizSession:
        def _dt(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            session_id=data["session_id"],
            learner_id=data["learner_id"],
            topic_id=data["topic_id"],
            questions=tuple(QuizQuestion.from_dict(q) for q in data["questions"]),
            phase=QuizPhase(data["phase"]),
            current_index=data["current_index"],
            answers=tuple(data["answers"]),
            current_selection=data.get("current_selection"),
            time_budget_seconds=data["time_budget_seconds"],
            warning_ttl_seconds=data["warning_ttl_seconds"],
            started_at=_dt(data.get("started_at")),
            deadline=_dt(data.get("deadline")),
            finished_at=_dt(data.get("finished_at")),
            timed_out=data.get("timed_out", False),
            score=data.get("score"),
            correct_count=data.get("correct_count"),
            warnings=tuple(
                IntegrityWarning(w["kind"], w["message"], datetime.fromisoformat(w["expires_at"]))
                for w in data.get("warnings", [])
            ),
            integrity_events=dict(data.get("integrity_events", {})),
        )


# --- Scoring ---


def count_correct(questions: tuple[QuizQuestion, ...], answers: tuple[int | None, ...]) -> int:
    """Answers matching the correct option; a missing answer never matches."""
    return sum(
        1
        for i, question in enumerate(questions)
        if i < len(answers) and answers[i] is not None and answers[i] == question.correct_option_index
    )


def score_for(correct: int, total: int) -> int:
    """``round(100 * correct / total)``, half-up."""
    return percent_of(correct, total)


def xp_for_score(score: int) -> int:
    """``round(score / 5)``, half-up: 0..20 XP."""
    return round_ratio(score, 5)


# --- Transitions ---


def _finish(session: QuizSession, answers: tuple[int | None, ...], now: datetime, timed_out: bool) -> QuizSession:
    validate_transition(session.phase, QuizPhase.RESULTS)
    padded = answers + (None,) * (session.total_questions - len(answers))
    correct = count_correct(session.questions, padded)
    return replace(
        session,
        phase=QuizPhase.RESULTS,
        answers=padded,
        current_selection=None,
        finished_at=now,
        timed_out=timed_out,
        correct_count=correct,
        score=score_for(correct, session.total_questions),
        warnings=(),
    )


def _expire(session: QuizSession, now: datetime) -> QuizSession:
    """Force-submit: confirmed answers plus the in-progress selection, if any."""
    answers = session.answers
    if session.current_selection is not None:
        answers = answers + (session.current_selection,)
    return _finish(session, answers, now, timed_out=True)


def new_session(
    session_id: str,
    learner_id: str,
    topic_id: str,
    questions: list[QuizQuestion] | tuple[QuizQuestion, ...],
    time_budget_seconds: int = DEFAULT_TIME_BUDGET_SECONDS,
    warning_ttl_seconds: int = DEFAULT_WARNING_TTL_SECONDS,
) -> QuizSession:
    """A session in ``intro``; nothing is timed until Start."""
    return QuizSession(
        session_id=session_id,
        learner_id=learner_id,
        topic_id=topic_id,
        questions=tuple(questions),
        time_budget_seconds=time_budget_seconds,
        warning_ttl_seconds=warning_ttl_seconds,
    )


def apply(session: QuizSession, event: QuizEvent, now: datetime) -> QuizSession:
    """Apply one event and return the next session value.

    Any event reaching an active session at or after its deadline expires the
    session first, so a confirm racing the timer has exactly one outcome.
    Every event on a finished session raises InvalidTransitionError.
    """
    if session.phase is QuizPhase.RESULTS:
        raise InvalidTransitionError(
            f"Quiz session {session.session_id} is finished; start a new session"
        )

    if isinstance(event, Start):
        if session.phase is not QuizPhase.INTRO:
            raise InvalidTransitionError(f"Quiz session {session.session_id} already started")
        if not session.questions:
            raise ValidationError("Cannot start a quiz without questions")
        return replace(
            session,
            phase=QuizPhase.ACTIVE,
            current_index=0,
            answers=(),
            current_selection=None,
            started_at=now,
            deadline=now + timedelta(seconds=session.time_budget_seconds),
        )

    if session.phase is not QuizPhase.ACTIVE:
        raise InvalidTransitionError(
            f"Invalid event {type(event).__name__} in phase {session.phase.value}"
        )

    if session.is_expired(now):
        return _expire(session, now)

    live_warnings = tuple(session.active_warnings(now))

    if isinstance(event, SelectAnswer):
        options = session.questions[session.current_index].options
        if isinstance(event.option_index, bool) or not 0 <= event.option_index < len(options):
            raise ValidationError(
                f"Option {event.option_index} out of range for {len(options)} options"
            )
        return replace(session, current_selection=event.option_index, warnings=live_warnings)

    if isinstance(event, ConfirmAndAdvance):
        if session.current_selection is None:
            raise ValidationError("Select an answer before confirming")
        answers = session.answers + (session.current_selection,)
        if session.current_index >= session.total_questions - 1:
            return _finish(session, answers, now, timed_out=False)
        return replace(
            session,
            answers=answers,
            current_index=session.current_index + 1,
            current_selection=None,
            warnings=live_warnings,
        )

    if isinstance(event, TimerExpired):
        # Clock skew: an early expiry report changes nothing.
        return replace(session, warnings=live_warnings)

    if isinstance(event, IntegritySignal):
        if event.kind not in INTEGRITY_SIGNALS:
            raise ValidationError(f"Unknown integrity signal {event.kind!r}")
        warning = IntegrityWarning(
            kind=event.kind,
            message=INTEGRITY_MESSAGES[event.kind],
            expires_at=now + timedelta(seconds=session.warning_ttl_seconds),
        )
        events = dict(session.integrity_events)
        events[event.kind] = events.get(event.kind, 0) + 1
        return replace(session, warnings=live_warnings + (warning,), integrity_events=events)

    raise ValidationError(f"Unknown quiz event {event!r}")
