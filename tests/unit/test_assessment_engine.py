"""
Tests for assessments: authoring, scoring, the attempt lifecycle and the
countdown.
"""

import threading

import pytest

from coursework.assessment.attempt import AttemptCountdown, AttemptState
from coursework.assessment.engine import score_answers
from coursework.core.errors import (
    AlreadyCompleted,
    AlreadySubmitted,
    InvalidState,
    NotEnrolled,
    NotFound,
    Unauthorized,
    ValidationError,
)
from coursework.db.store import ASSESSMENT_RESULTS


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ManualTimer:
    """threading.Timer stand-in that fires only when told to."""

    instances = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        ManualTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


@pytest.fixture
def clock(engine):
    fake = FakeClock()
    engine.assessments.clock = fake
    return fake


class TestAuthoring:
    def test_create_derives_total_points(self, assessment):
        assert assessment.total_points == 5
        assert assessment.time_limit_seconds == 600

    def test_default_time_limit(self, engine, teacher, assessment_draft, settings):
        draft = {k: v for k, v in assessment_draft.items() if k != "timeLimitMinutes"}

        created = engine.assessments.create_assessment(teacher, draft)

        assert created.time_limit_minutes == settings.default_time_limit_minutes

    def test_student_cannot_author(self, engine, student, assessment_draft):
        with pytest.raises(Unauthorized):
            engine.assessments.create_assessment(student, assessment_draft)

    def test_unknown_course(self, engine, teacher, assessment_draft):
        with pytest.raises(NotFound):
            engine.assessments.create_assessment(teacher, {**assessment_draft, "courseId": "missing"})

    @pytest.mark.parametrize(
        "question_override",
        [
            {"options": ["a", "b", "c"]},
            {"options": ["a", "b", "c", ""]},
            {"correctOptionIndex": 4},
            {"points": 0},
            {"questionText": ""},
        ],
    )
    def test_invalid_questions(self, engine, teacher, assessment_draft, question_override):
        question = {**assessment_draft["questions"][0], **question_override}

        with pytest.raises(ValidationError):
            engine.assessments.create_assessment(teacher, {**assessment_draft, "questions": [question]})

    def test_needs_a_question(self, engine, teacher, assessment_draft):
        with pytest.raises(ValidationError):
            engine.assessments.create_assessment(teacher, {**assessment_draft, "questions": []})

    def test_student_view_hides_answers(self, assessment):
        student_view = assessment.to_dict(include_answers=False)

        assert all("correctOptionIndex" not in q for q in student_view["questions"])
        assert student_view["totalPoints"] == 5


class TestScoring:
    def test_all_correct(self, assessment):
        assert score_answers(assessment, {0: 1, 1: 0}) == (5, 5)

    def test_all_wrong(self, assessment):
        assert score_answers(assessment, {0: 0, 1: 1}) == (0, 5)

    def test_unanswered_scores_zero(self, assessment):
        assert score_answers(assessment, {1: 0}) == (3, 5)


class TestAttemptLifecycle:
    def test_submit_scores_and_persists(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, 0, 3)
        engine.assessments.record_answer(attempt, 0, 1)  # overwrite
        engine.assessments.record_answer(attempt, 1, 0)
        clock.advance(125)

        result = engine.assessments.submit_attempt(attempt)

        assert (result.score, result.total_points, result.percentage) == (5, 5, 100.0)
        assert result.time_spent_seconds == 125
        assert result.answers == {0: 1, 1: 0}
        assert not result.auto_submitted
        assert attempt.state is AttemptState.SUBMITTED

    def test_wrong_answers_score_zero(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)

        result = engine.assessments.submit_attempt(attempt, {0: 0, 1: 1})

        assert result.score == 0
        assert result.percentage == 0.0

    def test_not_enrolled(self, engine, student, assessment):
        with pytest.raises(NotEnrolled):
            engine.assessments.start_attempt(student, assessment.id)

    def test_pending_enrollment_is_not_enough(self, engine, student, course, profile, assessment):
        engine.enrollments.request_enrollment(student, course.id, profile)

        with pytest.raises(NotEnrolled):
            engine.assessments.start_attempt(student, assessment.id)

    def test_already_completed(self, engine, student, approved_enrollment, assessment):
        first = engine.assessments.start_attempt(student, assessment.id)
        result = engine.assessments.submit_attempt(first, {0: 1})

        with pytest.raises(AlreadyCompleted) as exc_info:
            engine.assessments.start_attempt(student, assessment.id)

        assert exc_info.value.existing.id == result.id

    def test_second_submit_fails(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        result = engine.assessments.submit_attempt(attempt)

        with pytest.raises(AlreadySubmitted) as exc_info:
            engine.assessments.submit_attempt(attempt)

        assert exc_info.value.existing.id == result.id
        assert len(engine.store.list(ASSESSMENT_RESULTS)) == 1

    def test_record_after_submit_is_invalid(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.submit_attempt(attempt)

        with pytest.raises(InvalidState):
            engine.assessments.record_answer(attempt, 0, 1)

    @pytest.mark.parametrize("question, option", [(2, 0), (-1, 0), (0, 4), (0, -1)])
    def test_out_of_range_answers(self, engine, student, approved_enrollment, assessment, question, option):
        attempt = engine.assessments.start_attempt(student, assessment.id)

        with pytest.raises(ValidationError):
            engine.assessments.record_answer(attempt, question, option)

    def test_time_spent_is_clamped(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        clock.advance(10_000)

        result = engine.assessments.submit_attempt(attempt)

        assert result.time_spent_seconds == assessment.time_limit_seconds

    def test_non_integer_answer_key(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)

        with pytest.raises(ValidationError):
            engine.assessments.submit_attempt(attempt, {"first": 1})

        assert attempt.state is AttemptState.IN_PROGRESS

    def test_string_answer_keys_are_normalised(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, "1", "0")

        result = engine.assessments.submit_attempt(attempt, {"0": "1", "1": 0})

        assert attempt.answers == {1: 0}
        assert result.answers == {0: 1, 1: 0}
        assert result.score == 5

    def test_record_after_deadline_is_invalid(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, 0, 1)
        clock.advance(assessment.time_limit_seconds)

        with pytest.raises(InvalidState):
            engine.assessments.record_answer(attempt, 1, 0)

        assert attempt.answers == {0: 1}

    def test_late_submit_keeps_recorded_answers(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, 0, 1)
        clock.advance(assessment.time_limit_seconds + 30)

        result = engine.assessments.submit_attempt(attempt, {0: 1, 1: 0})

        assert result.score == 2
        assert result.answers == {0: 1}
        assert result.auto_submitted
        assert result.time_spent_seconds == assessment.time_limit_seconds

    def test_concurrent_attempts_store_one_result(self, engine, student, approved_enrollment, assessment):
        attempts = [engine.assessments.start_attempt(student, assessment.id) for _ in range(6)]
        barrier = threading.Barrier(len(attempts))
        outcomes = []

        def submit(attempt):
            barrier.wait()
            try:
                engine.assessments.submit_attempt(attempt, {0: 1, 1: 0})
                outcomes.append("stored")
            except AlreadySubmitted:
                outcomes.append("rejected")

        threads = [threading.Thread(target=submit, args=(a,)) for a in attempts]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("stored") == 1
        assert len(engine.store.list(ASSESSMENT_RESULTS)) == 1

    def test_concurrent_submits_of_one_attempt(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        barrier = threading.Barrier(4)
        outcomes = []

        def submit():
            barrier.wait()
            try:
                engine.assessments.submit_attempt(attempt)
                outcomes.append("stored")
            except AlreadySubmitted:
                outcomes.append("rejected")

        threads = [threading.Thread(target=submit) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["rejected", "rejected", "rejected", "stored"]


class TestTimeout:
    def test_expire_submits_recorded_answers(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, 1, 0)
        clock.advance(assessment.time_limit_seconds)

        result = engine.assessments.expire_attempt(attempt)

        assert result.score == 3
        assert result.auto_submitted
        assert result.time_spent_seconds == assessment.time_limit_seconds

    def test_countdown_fires_expire(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, 0, 1)

        countdown = engine.assessments.start_countdown(attempt, timer_factory=ManualTimer)
        timer = ManualTimer.instances[-1]
        assert timer.started
        assert timer.interval == assessment.time_limit_seconds

        clock.advance(assessment.time_limit_seconds)
        timer.fire()

        assert countdown.fired
        assert attempt.state is AttemptState.SUBMITTED
        assert attempt.result.auto_submitted
        assert attempt.result.score == 2

    def test_on_expired_runs_after_timeout_submit(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        seen = []

        engine.assessments.start_countdown(
            attempt,
            timer_factory=ManualTimer,
            on_expired=lambda a: seen.append((a.attempt_id, a.state)),
        )
        clock.advance(assessment.time_limit_seconds)
        ManualTimer.instances[-1].fire()

        assert seen == [(attempt.attempt_id, AttemptState.SUBMITTED)]

    def test_timer_after_manual_submit_is_noop(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.start_countdown(attempt, timer_factory=ManualTimer)
        timer = ManualTimer.instances[-1]

        manual = engine.assessments.submit_attempt(attempt, {0: 1, 1: 0})
        timer.fire()

        assert timer.cancelled
        assert attempt.result.id == manual.id
        assert not attempt.result.auto_submitted
        assert len(engine.store.list(ASSESSMENT_RESULTS)) == 1
        assert engine.assessments.expire_attempt(attempt) is None

    def test_cancel_stops_countdown_without_submitting(self, engine, student, approved_enrollment, assessment):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        countdown = engine.assessments.start_countdown(attempt, timer_factory=ManualTimer)
        timer = ManualTimer.instances[-1]

        engine.assessments.cancel_attempt(attempt)
        timer.fire()

        assert not countdown.active
        assert not countdown.fired
        assert engine.store.list(ASSESSMENT_RESULTS) == []

    def test_real_timer_auto_submits(self, engine, student, approved_enrollment, assessment, clock):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        clock.advance(assessment.time_limit_seconds - 0.05)
        done = threading.Event()

        def fast_timer(interval, function):
            def run():
                function()
                done.set()

            return threading.Timer(0.01, run)

        engine.assessments.start_countdown(attempt, timer_factory=fast_timer)

        assert done.wait(timeout=5)
        assert attempt.state is AttemptState.SUBMITTED
        assert attempt.result.auto_submitted


class TestCountdown:
    def test_failure_on_timer_thread_is_logged_not_raised(self):
        def explode():
            raise InvalidState("boom")

        countdown = AttemptCountdown(1, explode, timer_factory=ManualTimer)
        ManualTimer.instances[-1].fire()

        assert countdown.fired


class TestReads:
    def test_available_and_results(self, engine, teacher, student, approved_enrollment, assessment, assessment_draft):
        second = engine.assessments.create_assessment(teacher, {**assessment_draft, "title": "Second"})

        assert {a.id for a in engine.assessments.list_available_assessments(student.user_id)} == {
            assessment.id,
            second.id,
        }

        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.submit_attempt(attempt, {0: 1})

        assert [a.id for a in engine.assessments.list_available_assessments(student.user_id)] == [second.id]
        results = engine.assessments.list_results(student.user_id)
        assert results[0].assessment_title == "Layers quiz"
        assert results[0].to_dict()["percentage"] == 40.0

    def test_results_survive_removed_course(self, engine, admin, student, approved_enrollment, assessment, course):
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.submit_attempt(attempt)
        engine.catalog.remove_course(admin, course.id)

        results = engine.assessments.list_results(student.user_id)

        assert results[0].course_title == "Unknown Course"
        assert results[0].assessment_title == "Layers quiz"
