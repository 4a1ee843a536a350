"""Retry with exponential backoff for retryable service errors."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Event
from typing import Callable, Optional, TypeVar

from services.errors import OperationCancelled, ServiceError

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)

    def call(
        self,
        func: Callable[..., R],
        *args,
        cancel_event: Optional[Event] = None,
        **kwargs,
    ) -> R:
        """Call ``func`` until it succeeds, fails permanently or is cancelled.

        With a ``cancel_event`` the backoff wait ends as soon as the event is
        set, and no further attempt starts once it is set.
        """
        attempt = 1
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled(f"Cancelled before attempt {attempt}")
            try:
                return func(*args, **kwargs)
            except ServiceError as exc:
                if not exc.retryable or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "Retrying after %s: %s",
                    type(exc).__name__,
                    exc,
                    extra={"attempt": attempt, "reason": f"backoff {delay:.2f}s"},
                )
                if cancel_event is None:
                    self.sleep(delay)
                else:
                    cancel_event.wait(delay)
                attempt += 1


NO_RETRY = RetryPolicy(max_attempts=1)
