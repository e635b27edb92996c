import asyncio
import logging
import signal

from core.assistant import Assistant
from core.config import Config
from transports.discord_bot import run_discord_bot
from transports.telegram_bot import TelegramTransport


async def main():
    config = Config.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s :: %(message)s",
    )

    assistant = Assistant.from_config(config)

    stop_event = asyncio.Event()

    def _signal_handler(*_):
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            signal.signal(sig, lambda *_: stop_event.set())

    tasks = []
    telegram_transport = None
    if config.telegram_token:
        telegram_transport = TelegramTransport(assistant, config.telegram_token)
        tasks.append(asyncio.create_task(telegram_transport.start()))
    if config.discord_token:
        tasks.append(asyncio.create_task(run_discord_bot(assistant, config.discord_token, stop_event)))

    transports_done = asyncio.gather(*tasks, return_exceptions=True)
    stopper = asyncio.create_task(stop_event.wait())
    await asyncio.wait({transports_done, stopper}, return_when=asyncio.FIRST_COMPLETED)
    stop_event.set()

    if telegram_transport is not None:
        await telegram_transport.stop()

    for result in await transports_done:
        if isinstance(result, BaseException):
            logging.getLogger(__name__).error("transport crashed: %s", result)
    stopper.cancel()
    await assistant.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
