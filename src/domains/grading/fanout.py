# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bounded concurrent fan-out with per-branch failure isolation.

Each branch runs under a semaphore local to the fan-out call, so nested
fan-outs never wait on each other's permits. A branch that raises (or
times out) is logged and replaced by its fallback value; sibling branches
keep running. Cancellation of the caller propagates to every branch.

Example:
    result = await fan_out(
        course_ids,
        build_course,
        fallback=lambda course_id: None,
        max_concurrency=8,
        label="course report",
    )
    if not result.complete:
        ...
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


@dataclass
class FanOutResult(Generic[T]):
    """Branch results in input order.

    Attributes:
        values: One value per input, fallback values for failed branches.
        failures: Number of failed branches.
    """

    values: list[T] = field(default_factory=list)
    failures: int = 0

    @property
    def complete(self) -> bool:
        return self.failures == 0


async def fan_out(
    items: Iterable[K],
    branch: Callable[[K], Awaitable[T]],
    *,
    fallback: Callable[[K], T],
    max_concurrency: int = 8,
    timeout: float | None = None,
    label: str = "branch",
) -> FanOutResult[T]:
    """Run ``branch`` for every item with bounded concurrency.

    Args:
        items: Branch inputs.
        branch: Coroutine function producing one result per input.
        fallback: Produces the substitute value for a failed branch.
        max_concurrency: Maximum branches running at once.
        timeout: Per-branch timeout in seconds, None for no limit.
        label: Name used in log messages.

    Returns:
        FanOutResult with values in input order.
    """
    inputs = list(items)
    if not inputs:
        return FanOutResult()

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def run(item: K) -> tuple[T, bool]:
        async with semaphore:
            try:
                if timeout is None:
                    return await branch(item), True
                return await asyncio.wait_for(branch(item), timeout), True
            except Exception as e:
                logger.error("%s failed for %r: %s", label, item, e, exc_info=True)
                return fallback(item), False

    outcomes = await asyncio.gather(*(run(item) for item in inputs))
    failures = sum(1 for _, ok in outcomes if not ok)
    if failures:
        logger.warning("%s: %d of %d branches failed", label, failures, len(inputs))
    return FanOutResult(values=[value for value, _ in outcomes], failures=failures)
