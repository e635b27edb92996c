import asyncio

from transports.lifecycle import ConnectionState, supervise


class CredentialsRevoked(Exception):
    pass


def test_retryable_failure_reinitializes_then_permanent_halts():
    attempts = []
    states = []

    async def run_once(mark_open):
        attempts.append(len(attempts))
        mark_open()
        if len(attempts) == 1:
            raise ConnectionError("socket closed")
        raise CredentialsRevoked("logged out")

    final = asyncio.run(
        supervise(
            "test",
            run_once,
            is_permanent=lambda exc: isinstance(exc, CredentialsRevoked),
            retry_delay=0,
            on_state=states.append,
        )
    )
    assert final is ConnectionState.CLOSED_PERMANENT
    assert len(attempts) == 2
    assert states == [
        ConnectionState.CONNECTING,
        ConnectionState.OPEN,
        ConnectionState.CLOSED_RETRYABLE,
        ConnectionState.CONNECTING,
        ConnectionState.OPEN,
        ConnectionState.CLOSED_PERMANENT,
    ]


def test_clean_stop_returns():
    async def scenario():
        stop_event = asyncio.Event()

        async def run_once(mark_open):
            mark_open()
            stop_event.set()

        return await supervise(
            "test", run_once, is_permanent=lambda exc: False, stop_event=stop_event, retry_delay=0
        )

    assert asyncio.run(scenario()) is ConnectionState.CLOSED_RETRYABLE
