"""
Assessment taking flow.

``AssessmentFlow`` walks a learner through one attempt of an assessment:

    not-started -> in-progress -> submitting -> completed

with ``unavailable`` as the terminal state once every attempt is used. A
timed assessment owns an ``AssessmentCountdown`` that forces submission with
whatever answers exist when it reaches zero.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from vx_academy.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

CAUTION_SECONDS = 600
CRITICAL_SECONDS = 300


class FlowState(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class AttemptAllowance:
    max_retakes: int
    attempts_used: int

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_retakes - self.attempts_used)

    @property
    def can_start(self) -> bool:
        return self.attempts_remaining > 0


@dataclass(frozen=True)
class SubmissionResult:
    score: int
    passed: bool
    certificate_generated: bool = False
    attempts_remaining: Optional[int] = None


class AssessmentCountdown:
    """
    Cancellable one-second countdown.

    ``tick()`` advances the clock by one second and is what ``run()`` calls on
    the event loop; tests and synchronous callers drive it directly.
    ``on_expire`` fires exactly once, when the remaining time reaches zero.
    """

    def __init__(self, seconds: int, on_expire: Callable[[], Any], interval: float = 1.0):
        self.total_seconds = max(0, int(seconds))
        self.remaining = self.total_seconds
        self.on_expire = on_expire
        self.interval = interval
        self.is_active = False
        self.expired = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self.expired:
            return
        self.is_active = True
        if self.remaining <= 0:
            self._fire()

    def tick(self) -> int:
        if not self.is_active or self.expired:
            return self.remaining
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self._fire()
        return self.remaining

    def _fire(self) -> None:
        if self.expired:
            return
        self.expired = True
        self.is_active = False
        # The run() loop ends on its own from here
        self._task = None
        logger.debug("Assessment countdown reached zero")
        self.on_expire()

    async def run(self) -> None:
        """Tick every ``interval`` seconds until expiry or cancellation"""
        self.start()
        while self.is_active:
            await asyncio.sleep(self.interval)
            if not self.is_active:
                break
            self.tick()

    def schedule(self) -> asyncio.Task:
        """Run the countdown as a task on the current event loop"""
        self._task = asyncio.ensure_future(self.run())
        return self._task

    def cancel(self) -> None:
        self.is_active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def format_remaining(self) -> str:
        minutes, seconds = divmod(self.remaining, 60)
        return f"{minutes}:{seconds:02d}"

    @property
    def warning_level(self) -> str:
        if self.remaining <= CRITICAL_SECONDS:
            return "critical"
        if self.remaining <= CAUTION_SECONDS:
            return "caution"
        return "normal"


SubmitHandler = Callable[[Dict[Any, Any], bool], Optional[SubmissionResult]]


class AssessmentFlow:
    """State machine for a single learner attempt"""

    def __init__(
        self,
        question_ids: Iterable[Any],
        max_retakes: int,
        attempts_used: int = 0,
        time_limit_seconds: Optional[int] = None,
        submit: Optional[SubmitHandler] = None,
    ):
        self.question_ids: List[Any] = list(question_ids)
        self.allowance = AttemptAllowance(max_retakes, attempts_used)
        self.answers: Dict[Any, Any] = {}
        self.current_index = 0
        self.time_expired = False
        self.result: Optional[SubmissionResult] = None
        self._submit = submit
        self._submission_started = False
        self.time_limit_seconds = time_limit_seconds
        self.countdown = self._new_countdown()
        self.state = FlowState.NOT_STARTED if self.allowance.can_start else FlowState.UNAVAILABLE

    def _new_countdown(self) -> Optional[AssessmentCountdown]:
        if not self.time_limit_seconds:
            return None
        return AssessmentCountdown(self.time_limit_seconds, self.expire)

    def _require(self, *states: FlowState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(f"Action not allowed in state '{self.state.value}' (expected {allowed})")

    @property
    def attempts_remaining(self) -> int:
        return self.allowance.attempts_remaining

    @property
    def can_start(self) -> bool:
        return self.state == FlowState.NOT_STARTED and self.allowance.can_start

    def start(self) -> None:
        if self.state == FlowState.UNAVAILABLE:
            raise InvalidTransitionError("No attempts remaining")
        self._require(FlowState.NOT_STARTED)
        self.state = FlowState.IN_PROGRESS
        if self.countdown:
            self.countdown.start()

    # Navigation and answers

    @property
    def current_question_id(self):
        if not self.question_ids:
            return None
        return self.question_ids[self.current_index]

    def next_question(self) -> int:
        self._require(FlowState.IN_PROGRESS)
        if self.current_index < len(self.question_ids) - 1:
            self.current_index += 1
        return self.current_index

    def previous_question(self) -> int:
        self._require(FlowState.IN_PROGRESS)
        if self.current_index > 0:
            self.current_index -= 1
        return self.current_index

    def answer(self, question_id, value) -> None:
        self._require(FlowState.IN_PROGRESS)
        if question_id not in self.question_ids:
            raise ValueError(f"Unknown question {question_id}")
        self.answers[question_id] = value

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.question_ids if self.answers.get(q) not in (None, ""))

    @property
    def all_answered(self) -> bool:
        return self.answered_count == len(self.question_ids)

    @property
    def can_submit(self) -> bool:
        return self.state == FlowState.IN_PROGRESS and (self.all_answered or self.time_expired)

    # Submission

    def submit(self) -> Optional[SubmissionResult]:
        self._require(FlowState.IN_PROGRESS)
        if not self.can_submit:
            raise InvalidTransitionError("All questions must be answered before submitting")
        return self._begin_submission()

    def expire(self) -> Optional[SubmissionResult]:
        """Force submission when time runs out, whatever has been answered"""
        if self.state != FlowState.IN_PROGRESS:
            return None
        self.time_expired = True
        logger.info(f"Time expired with {self.answered_count}/{len(self.question_ids)} answered, forcing submission")
        return self._begin_submission()

    def _begin_submission(self) -> Optional[SubmissionResult]:
        if self._submission_started:
            return None
        self._submission_started = True
        self.state = FlowState.SUBMITTING
        if self.countdown:
            self.countdown.cancel()
        if self._submit is None:
            return None
        try:
            result = self._submit(dict(self.answers), self.time_expired)
        except Exception:
            self.fail()
            raise
        if result is not None:
            self.acknowledge(result)
        return result

    def acknowledge(self, result: SubmissionResult) -> None:
        """Server accepted the attempt"""
        self._require(FlowState.SUBMITTING)
        self.result = result
        self.allowance = AttemptAllowance(self.allowance.max_retakes, self.allowance.attempts_used + 1)
        self.state = FlowState.COMPLETED

    def fail(self) -> None:
        """Submission failed; answers are kept and the learner may submit again"""
        self._require(FlowState.SUBMITTING)
        self._submission_started = False
        self.state = FlowState.IN_PROGRESS
        if self.countdown and not self.countdown.expired:
            self.countdown.start()

    def retake(self) -> None:
        """Reset for a new attempt, or become unavailable when none remain"""
        self._require(FlowState.COMPLETED)
        self.answers = {}
        self.current_index = 0
        self.time_expired = False
        self.result = None
        self._submission_started = False
        self.countdown = self._new_countdown()
        self.state = FlowState.NOT_STARTED if self.allowance.can_start else FlowState.UNAVAILABLE
