"""
OneWallet Client - Retry Backoff

Fibonacci backoff seeded by (0, d): the waits are d, d, 2d, 3d, 5d, 8d, ...

The state is an immutable value owned by a single `execute` call and
threaded through each retry, so a policy instance can be shared freely.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

from .exceptions import RetryBudgetExhaustedError

Sleep = Callable[[float], Awaitable[object]]


@dataclass(frozen=True)
class BackoffState:
    """Retry accounting for one logical call."""

    attempt: int = 0
    previous_delay: float = 0.0
    current_delay: float = 0.0

    @classmethod
    def initial(cls, initial_delay: float) -> BackoffState:
        return cls(attempt=0, previous_delay=0.0, current_delay=initial_delay)

    def advance(self) -> BackoffState:
        """State after one more retry."""
        return BackoffState(
            attempt=self.attempt + 1,
            previous_delay=self.current_delay,
            current_delay=self.previous_delay + self.current_delay,
        )


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Decides whether a failed attempt may be retried and how long to wait.

    Only consulted after a transport failure. Application errors never reach
    the policy.
    """

    max_retries: int

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries cannot be negative: {self.max_retries}")

    def next_delay(
        self,
        state: BackoffState,
        cause: BaseException | None = None,
    ) -> tuple[float, BackoffState]:
        """
        Compute the wait before the next retry.

        Args:
            state: Current backoff state.
            cause: The transport failure that triggered the retry.

        Returns:
            The delay to wait (the pre-update current delay) and the new state.

        Raises:
            RetryBudgetExhaustedError: If `state.attempt` has reached the budget.
        """
        if state.attempt >= self.max_retries:
            raise RetryBudgetExhaustedError(
                attempts=state.attempt + 1,
                max_retries=self.max_retries,
                cause=cause,
            )
        return state.current_delay, state.advance()

    async def wait(
        self,
        state: BackoffState,
        cause: BaseException | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> BackoffState:
        """Sleep for the next delay and return the advanced state."""
        delay, new_state = self.next_delay(state, cause)
        await sleep(delay)
        return new_state

    def delays(self, initial_delay: float) -> Iterator[float]:
        """Every wait the budget allows, in order."""
        state = BackoffState.initial(initial_delay)
        while state.attempt < self.max_retries:
            yield state.current_delay
            state = state.advance()
