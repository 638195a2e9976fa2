"""Quiz session state machine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from studyhall.errors import InvalidTransitionError, ValidationError
from studyhall.quiz.session import (
    VALID_TRANSITIONS,
    ConfirmAndAdvance,
    IntegritySignal,
    QuizPhase,
    QuizQuestion,
    QuizSession,
    SelectAnswer,
    Start,
    TimerExpired,
    apply,
    new_session,
    score_for,
    validate_transition,
    xp_for_score,
)

T0 = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _questions(n: int) -> list[QuizQuestion]:
    return [QuizQuestion(f"Q{i}", ("a", "b", "c", "d"), i % 4, f"E{i}") for i in range(n)]


def _started(n: int = 3, budget: int = 600) -> QuizSession:
    session = new_session("s1", "learner", "topic", _questions(n), time_budget_seconds=budget)
    return apply(session, Start(), T0)


def _answer(session: QuizSession, index: int, at: datetime) -> QuizSession:
    session = apply(session, SelectAnswer(index), at)
    return apply(session, ConfirmAndAdvance(), at)


class TestTransitions:
    def test_valid_transitions_structure(self):
        assert set(VALID_TRANSITIONS) == set(QuizPhase)
        assert VALID_TRANSITIONS[QuizPhase.RESULTS] == []

    def test_invalid_transition_rejected(self):
        with pytest.raises(InvalidTransitionError, match="Invalid transition"):
            validate_transition(QuizPhase.INTRO, QuizPhase.RESULTS)

    def test_invalid_transition_is_validation_error(self):
        assert issubclass(InvalidTransitionError, ValidationError)


class TestStart:
    def test_start_sets_deadline(self):
        session = _started()
        assert session.phase is QuizPhase.ACTIVE
        assert session.started_at == T0
        assert session.deadline == T0 + timedelta(seconds=600)
        assert session.remaining_seconds(T0) == 600

    def test_start_without_questions(self):
        session = new_session("s1", "learner", "topic", [])
        with pytest.raises(ValidationError):
            apply(session, Start(), T0)

    def test_start_twice_rejected(self):
        with pytest.raises(InvalidTransitionError):
            apply(_started(), Start(), T0)

    def test_select_before_start_rejected(self):
        session = new_session("s1", "learner", "topic", _questions(2))
        with pytest.raises(InvalidTransitionError):
            apply(session, SelectAnswer(0), T0)

    def test_intro_shows_full_budget(self):
        session = new_session("s1", "learner", "topic", _questions(2))
        assert session.remaining_seconds(T0) == 600
        assert session.current_question is None


class TestAnswering:
    def test_select_then_change_selection(self):
        session = apply(_started(), SelectAnswer(1), T0)
        session = apply(session, SelectAnswer(2), T0)
        assert session.current_selection == 2
        assert session.answers == ()

    def test_select_out_of_range(self):
        with pytest.raises(ValidationError):
            apply(_started(), SelectAnswer(4), T0)
        with pytest.raises(ValidationError):
            apply(_started(), SelectAnswer(-1), T0)

    def test_confirm_without_selection(self):
        with pytest.raises(ValidationError):
            apply(_started(), ConfirmAndAdvance(), T0)

    def test_confirm_advances_and_clears_selection(self):
        session = _answer(_started(), 0, T0)
        assert session.current_index == 1
        assert session.answers == (0,)
        assert session.current_selection is None
        assert session.phase is QuizPhase.ACTIVE

    def test_last_confirm_scores(self):
        # correct options are 0, 1, 2
        session = _started()
        session = _answer(session, 0, T0 + timedelta(seconds=10))
        session = _answer(session, 1, T0 + timedelta(seconds=20))
        session = _answer(session, 3, T0 + timedelta(seconds=30))
        assert session.phase is QuizPhase.RESULTS
        assert session.answers == (0, 1, 3)
        assert session.correct_count == 2
        assert session.score == 67
        assert session.timed_out is False
        assert session.remaining_seconds(T0) == 0

    def test_scores_are_monotonic_in_correct_answers(self):
        total = 7
        scores = [score_for(correct, total) for correct in range(total + 1)]
        assert scores == sorted(scores)
        assert scores[0] == 0
        assert scores[-1] == 100


class TestTimer:
    def test_remaining_time_uses_wall_clock(self):
        session = _started()
        assert session.remaining_seconds(T0 + timedelta(seconds=125)) == 475

    def test_expiry_counts_confirmed_and_current_selection(self):
        session = _answer(_started(), 0, T0)
        session = apply(session, SelectAnswer(1), T0 + timedelta(seconds=5))
        session = apply(session, TimerExpired(), T0 + timedelta(seconds=600))
        assert session.phase is QuizPhase.RESULTS
        assert session.timed_out is True
        assert session.answers == (0, 1, None)
        assert session.correct_count == 2
        assert session.score == 67

    def test_expiry_with_no_answers(self):
        session = apply(_started(), TimerExpired(), T0 + timedelta(seconds=600))
        assert session.answers == (None, None, None)
        assert session.score == 0

    def test_early_timer_report_is_ignored(self):
        session = _started()
        after = apply(session, TimerExpired(), T0 + timedelta(seconds=30))
        assert after.phase is QuizPhase.ACTIVE
        assert after.deadline == session.deadline

    def test_late_confirm_loses_to_timer(self):
        """A confirm observed after the deadline finishes the quiz as a timeout."""
        session = apply(_started(n=2), SelectAnswer(0), T0)
        late = T0 + timedelta(seconds=601)
        session = apply(session, ConfirmAndAdvance(), late)
        assert session.phase is QuizPhase.RESULTS
        assert session.timed_out is True
        assert session.answers == (0, None)
        assert session.current_index == 0

    def test_suspended_client_gains_no_time(self):
        session = apply(_started(), SelectAnswer(0), T0 + timedelta(seconds=1))
        assert session.remaining_seconds(T0 + timedelta(seconds=900)) == 0
        assert session.is_expired(T0 + timedelta(seconds=900))


class TestResults:
    def _finished(self) -> QuizSession:
        return apply(_started(), TimerExpired(), T0 + timedelta(seconds=600))

    @pytest.mark.parametrize(
        "event", [Start(), SelectAnswer(0), ConfirmAndAdvance(), TimerExpired(), IntegritySignal("tab_blur")]
    )
    def test_every_event_rejected_after_results(self, event):
        with pytest.raises(InvalidTransitionError):
            apply(self._finished(), event, T0 + timedelta(seconds=601))

    def test_confirm_after_timer_has_one_outcome(self):
        finished = self._finished()
        with pytest.raises(InvalidTransitionError):
            apply(finished, ConfirmAndAdvance(), T0 + timedelta(seconds=600))
        assert finished.score == 0


class TestIntegrity:
    def test_warning_expires_after_ttl(self):
        session = apply(_started(), IntegritySignal("tab_blur"), T0 + timedelta(seconds=10))
        assert len(session.active_warnings(T0 + timedelta(seconds=12))) == 1
        assert session.active_warnings(T0 + timedelta(seconds=13)) == []
        assert session.integrity_events == {"tab_blur": 1}

    def test_warning_does_not_touch_timer_or_phase(self):
        session = _started()
        after = apply(session, IntegritySignal("clipboard"), T0 + timedelta(seconds=10))
        assert after.phase is QuizPhase.ACTIVE
        assert after.deadline == session.deadline
        assert after.current_index == session.current_index

    def test_warnings_accumulate(self):
        session = _started()
        session = apply(session, IntegritySignal("tab_blur"), T0)
        session = apply(session, IntegritySignal("tab_blur"), T0 + timedelta(seconds=1))
        session = apply(session, IntegritySignal("clipboard"), T0 + timedelta(seconds=2))
        assert session.integrity_events == {"tab_blur": 2, "clipboard": 1}
        assert len(session.active_warnings(T0 + timedelta(seconds=2))) == 3

    def test_unknown_signal(self):
        with pytest.raises(ValidationError):
            apply(_started(), IntegritySignal("screenshot"), T0)


class TestScoring:
    @pytest.mark.parametrize(
        ("score", "xp"), [(0, 0), (2, 0), (3, 1), (50, 10), (67, 13), (98, 20), (100, 20)]
    )
    def test_xp_for_score(self, score, xp):
        assert xp_for_score(score) == xp

    def test_score_rounding(self):
        assert score_for(1, 3) == 33
        assert score_for(2, 3) == 67
        assert score_for(1, 8) == 13

    def test_four_of_five_correct(self):
        session = _started(n=5)
        for i, option in enumerate([0, 1, 2, 3, 1]):
            session = _answer(session, option, T0 + timedelta(seconds=10 * (i + 1)))
        assert session.phase is QuizPhase.RESULTS
        assert session.correct_count == 4
        assert session.score == 80
        assert xp_for_score(session.score) == 16

    def test_timer_with_two_of_five_confirmed(self):
        session = _answer(_started(n=5), 0, T0 + timedelta(seconds=10))
        session = _answer(session, 1, T0 + timedelta(seconds=20))
        assert session.current_selection is None
        session = apply(session, TimerExpired(), T0 + timedelta(seconds=600))
        assert session.timed_out is True
        assert session.answers == (0, 1, None, None, None)
        assert session.correct_count == 2
        assert session.score == round(100 * 2 / 5)


class TestSerialization:
    def test_dict_round_trip_preserves_in_flight_state(self):
        session = apply(_started(), SelectAnswer(2), T0)
        session = apply(session, IntegritySignal("clipboard"), T0)
        restored = QuizSession.from_dict(session.to_dict())
        assert restored == session
