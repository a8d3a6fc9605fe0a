# pricena/services/bounded.py

"""Run one awaitable under a deadline and report how it settled."""

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("pricena.orchestrator")


@dataclass
class BoundedOutcome:
    """Result of :func:`run_bounded`.

    ``status`` is ``"ok"``, ``"timeout"`` or ``"error"``; ``value`` is
    only meaningful when it is ``"ok"``.
    """

    label: str
    status: str
    value: Any = None
    elapsed_ms: float = 0.0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


async def run_bounded(
    awaitable: Awaitable[Any],
    timeout: float,
    label: str,
) -> BoundedOutcome:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    On timeout the underlying task is cancelled.  Exceptions from the
    awaitable are captured in the outcome; cancellation of the caller
    propagates.
    """
    start = time.perf_counter()

    def elapsed() -> float:
        return (time.perf_counter() - start) * 1000

    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs", label, timeout)
        return BoundedOutcome(
            label=label,
            status="timeout",
            elapsed_ms=elapsed(),
            error=f"timed out after {timeout:g}s",
        )
    except Exception as exc:
        logger.error("%s failed: %s", label, exc, exc_info=exc)
        return BoundedOutcome(
            label=label,
            status="error",
            elapsed_ms=elapsed(),
            error=str(exc) or type(exc).__name__,
        )
    return BoundedOutcome(
        label=label, status="ok", value=value, elapsed_ms=elapsed()
    )
