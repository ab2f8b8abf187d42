"""Run the customization worker until SIGINT or SIGTERM."""

import asyncio
import logging
import signal

from tailor.config import get_settings
from tailor.core.logging import initialize_logging
from tailor.jobs.worker import build_worker

logger = logging.getLogger("run_worker")


async def _serve() -> None:
  settings = get_settings()
  log_path = initialize_logging(settings)
  logger.info("Logging to %s (environment=%s, broker=%s)", log_path, settings.environment, settings.queue_broker)

  runtime = build_worker(settings)
  stop_requested = asyncio.Event()
  loop = asyncio.get_running_loop()
  for signum in (signal.SIGINT, signal.SIGTERM):
    loop.add_signal_handler(signum, stop_requested.set)

  await runtime.worker.start()
  try:
    await stop_requested.wait()
    logger.info("Shutdown requested; waiting for in-flight jobs")
  finally:
    await runtime.aclose()


def main() -> None:
  asyncio.run(_serve())


if __name__ == "__main__":
  main()
