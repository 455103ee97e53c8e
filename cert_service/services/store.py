from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from cert_service.core.config import SETTINGS
from cert_service.core.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_store(awaitable: Awaitable[T], *, timeout: float | None = None) -> T:
    """Await a record-store call with a deadline.

    Timeouts and connection-level failures become TransientError so
    callers can tell "try again" apart from "not found".  Repositories
    already translate driver errors; this catches what escapes them.
    """
    deadline = SETTINGS.store_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=deadline)
    except TimeoutError:
        logger.warning("Record store call timed out after %.1fs", deadline)
        raise TransientError("record store timed out") from None
    except (ConnectionError, OSError):
        logger.warning("Record store connection failed", exc_info=True)
        raise TransientError("record store unavailable") from None
