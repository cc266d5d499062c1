import asyncio

import pytest

from vx_academy.exceptions import InvalidTransitionError
from vx_academy.services.assessment_flow import (
    AssessmentCountdown,
    AssessmentFlow,
    FlowState,
    SubmissionResult,
)


def _grader(calls):
    def submit(answers, time_expired):
        calls.append((answers, time_expired))
        return SubmissionResult(score=50, passed=False, attempts_remaining=1)
    return submit


class TestAssessmentCountdown:
    def test_fires_exactly_once(self):
        fired = []
        countdown = AssessmentCountdown(3, lambda: fired.append(True))
        countdown.start()
        for _ in range(10):
            countdown.tick()
        assert fired == [True]
        assert countdown.remaining == 0
        assert countdown.is_active is False

    def test_cancelled_countdown_never_fires(self):
        fired = []
        countdown = AssessmentCountdown(2, lambda: fired.append(True))
        countdown.start()
        countdown.tick()
        countdown.cancel()
        countdown.tick()
        countdown.tick()
        assert fired == []
        assert countdown.remaining == 1

    def test_zero_seconds_fires_on_start(self):
        fired = []
        AssessmentCountdown(0, lambda: fired.append(True)).start()
        assert fired == [True]

    def test_warning_levels_and_format(self):
        countdown = AssessmentCountdown(900, lambda: None)
        assert countdown.warning_level == "normal"
        assert countdown.format_remaining() == "15:00"
        countdown.remaining = 600
        assert countdown.warning_level == "caution"
        countdown.remaining = 65
        assert countdown.warning_level == "critical"
        assert countdown.format_remaining() == "1:05"

    def test_run_on_event_loop(self):
        fired = []
        countdown = AssessmentCountdown(2, lambda: fired.append(True), interval=0.001)
        asyncio.run(countdown.run())
        assert fired == [True]


class TestAssessmentFlow:
    def test_full_attempt(self):
        calls = []
        flow = AssessmentFlow(["1", "2"], max_retakes=2, submit=_grader(calls))
        assert flow.state == FlowState.NOT_STARTED

        flow.start()
        flow.answer("1", "a")
        assert flow.can_submit is False
        with pytest.raises(InvalidTransitionError):
            flow.submit()

        flow.next_question()
        flow.answer("2", "b")
        result = flow.submit()

        assert result.score == 50
        assert calls == [({"1": "a", "2": "b"}, False)]
        assert flow.state == FlowState.COMPLETED
        assert flow.attempts_remaining == 1

    def test_navigation_stays_in_bounds(self):
        flow = AssessmentFlow(["1", "2"], max_retakes=1)
        flow.start()
        assert flow.previous_question() == 0
        assert flow.next_question() == 1
        assert flow.next_question() == 1
        assert flow.current_question_id == "2"

    def test_unknown_question_rejected(self):
        flow = AssessmentFlow(["1"], max_retakes=1)
        flow.start()
        with pytest.raises(ValueError):
            flow.answer("42", "a")

    def test_no_attempts_left_is_unavailable(self):
        flow = AssessmentFlow(["1"], max_retakes=2, attempts_used=2)
        assert flow.state == FlowState.UNAVAILABLE
        with pytest.raises(InvalidTransitionError):
            flow.start()

    def test_retake_until_exhausted(self):
        flow = AssessmentFlow(["1"], max_retakes=2, submit=_grader([]))
        for _ in range(2):
            flow.start()
            flow.answer("1", "x")
            flow.submit()
            flow.retake()
        assert flow.state == FlowState.UNAVAILABLE
        assert flow.attempts_remaining == 0

    def test_retake_resets_answers(self):
        flow = AssessmentFlow(["1"], max_retakes=3, submit=_grader([]))
        flow.start()
        flow.answer("1", "x")
        flow.submit()
        flow.retake()
        assert flow.state == FlowState.NOT_STARTED
        assert flow.answers == {}
        assert flow.current_index == 0

    def test_time_expiry_forces_single_submission(self):
        calls = []
        flow = AssessmentFlow(["1", "2"], max_retakes=1, time_limit_seconds=2, submit=_grader(calls))
        flow.start()
        flow.answer("1", "a")

        flow.countdown.tick()
        flow.countdown.tick()
        flow.countdown.tick()

        assert calls == [({"1": "a"}, True)]
        assert flow.time_expired is True
        assert flow.state == FlowState.COMPLETED
        assert flow.expire() is None

    def test_failed_submission_keeps_answers(self):
        def broken(answers, time_expired):
            raise ConnectionError("server unavailable")

        flow = AssessmentFlow(["1"], max_retakes=1, submit=broken)
        flow.start()
        flow.answer("1", "a")
        with pytest.raises(ConnectionError):
            flow.submit()

        assert flow.state == FlowState.IN_PROGRESS
        assert flow.answers == {"1": "a"}
        assert flow.attempts_remaining == 1

    def test_acknowledge_after_external_submit(self):
        flow = AssessmentFlow(["1"], max_retakes=1)
        flow.start()
        flow.answer("1", "a")
        assert flow.submit() is None
        assert flow.state == FlowState.SUBMITTING

        flow.acknowledge(SubmissionResult(score=100, passed=True, attempts_remaining=0))
        assert flow.state == FlowState.COMPLETED
        flow.retake()
        assert flow.state == FlowState.UNAVAILABLE
