"""Deadline and failure containment for one sampling cycle."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from sensor_relay.errors import RelayError

logger = logging.getLogger(__name__)


class CycleOutcome(Enum):
    """How a supervised cycle ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


async def supervise(
    work: Callable[[], Awaitable[None]],
    deadline_s: float,
    name: str = "cycle",
) -> CycleOutcome:
    """Run one cycle of ``work`` under a deadline and never raise for it.

    When the deadline elapses the in-flight work is cancelled and anything it
    would still have produced is discarded. Outcomes are logged, not
    counted; the next cycle starts from a clean slate.

    Args:
        work: Zero-argument coroutine function performing the cycle
        deadline_s: Seconds before the cycle is abandoned
        name: Label used in log messages

    Returns:
        CycleOutcome describing how the cycle ended
    """
    try:
        await asyncio.wait_for(work(), timeout=deadline_s)
    except asyncio.TimeoutError:
        logger.warning(f"{name}: timed out after {deadline_s}s")
        return CycleOutcome.TIMED_OUT
    except RelayError as e:
        logger.warning(f"{name}: {type(e).__name__}: {e}")
        return CycleOutcome.FAILED
    except Exception as e:
        logger.error(f"{name}: unexpected error: {e}", exc_info=True)
        return CycleOutcome.FAILED

    return CycleOutcome.COMPLETED
