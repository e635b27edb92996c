import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

log = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED_RETRYABLE = "closed-retryable"
    CLOSED_PERMANENT = "closed-permanent"


async def supervise(
    name: str,
    run_once: Callable[[Callable[[], None]], Awaitable[None]],
    *,
    is_permanent: Callable[[BaseException], bool],
    stop_event: Optional[asyncio.Event] = None,
    retry_delay: float = 5.0,
    on_state: Optional[Callable[[ConnectionState], None]] = None,
) -> ConnectionState:
    """Keep a transport running, re-initializing it after retryable failures.

    ``run_once`` builds a fresh client, calls the callback it is given once the
    session is open, and runs until it disconnects. A clean return counts as a
    retryable disconnect unless ``stop_event`` is set.
    """

    def _set(state: ConnectionState) -> ConnectionState:
        log.info("%s connection %s", name, state.value)
        if on_state is not None:
            on_state(state)
        return state

    while True:
        _set(ConnectionState.CONNECTING)
        try:
            await run_once(lambda: _set(ConnectionState.OPEN))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if is_permanent(exc):
                log.error(
                    "%s connection closed permanently (%s); re-authenticate and restart.",
                    name,
                    exc,
                )
                return _set(ConnectionState.CLOSED_PERMANENT)
            log.warning("%s connection lost (%s), reconnecting...", name, exc)
        if stop_event is not None and stop_event.is_set():
            return _set(ConnectionState.CLOSED_RETRYABLE)
        _set(ConnectionState.CLOSED_RETRYABLE)
        await asyncio.sleep(retry_delay)
