import time
from typing import Callable, Optional

from .errors import DeadlineExceededError, JobCanceledError


class JobContext:
    """
    Deadline and cancellation token threaded through one job attempt.

    Suspension points ask timeout(cap) for how long they may block;
    check(stage) runs between stages and raises once the budget is spent
    or the job has been canceled.
    """

    def __init__(
        self,
        job_id,
        timeout: Optional[float] = None,
        is_canceled: Optional[Callable[[], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.job_id = job_id
        self._clock = clock
        self._deadline = clock() + timeout if timeout else None
        self._is_canceled = is_canceled

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def timeout(self, cap: Optional[float] = None) -> Optional[float]:
        """Seconds the next blocking call may take, or None for unbounded."""
        remaining = self.remaining()
        if remaining is None:
            return cap
        if cap is None:
            return remaining
        return min(cap, remaining)

    def check(self, stage: str) -> None:
        if self._deadline is not None and self._clock() >= self._deadline:
            raise DeadlineExceededError(stage)
        if self._is_canceled is not None and self._is_canceled():
            raise JobCanceledError(self.job_id)
