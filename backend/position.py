"""Safety Spotter Backend — Current position with fallback to the city center."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from config import DEFAULT_CENTER, POSITION_TIMEOUT_SECONDS
from models import Coordinate

logger = logging.getLogger("safety.position")

PositionSource = Callable[[], Awaitable[Optional[Coordinate]]]

DEFAULT_POSITION = Coordinate(lat=DEFAULT_CENTER["lat"], lng=DEFAULT_CENTER["lng"])


async def current_position(
    source: PositionSource,
    timeout: float = POSITION_TIMEOUT_SECONDS,
) -> tuple[Coordinate, bool]:
    """Ask ``source`` once for a position.

    Returns (coordinate, is_fallback). Denial (None), any error, or a timeout
    yields DEFAULT_POSITION with is_fallback=True.
    """
    try:
        position = await asyncio.wait_for(source(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Position lookup timed out after {timeout:.1f}s — using default center")
        return DEFAULT_POSITION, True
    except Exception as e:
        logger.warning(f"Position lookup failed — using default center: {e}")
        return DEFAULT_POSITION, True

    if position is None:
        return DEFAULT_POSITION, True
    return position, False


def reported_position(lat: Optional[float], lng: Optional[float]) -> PositionSource:
    """Source backed by a position the client reported (may be absent or invalid)."""

    async def _source() -> Optional[Coordinate]:
        if lat is None or lng is None:
            return None
        return Coordinate(lat=lat, lng=lng)

    return _source
