# src/taskflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, optionally signs in TASKFLOW_USER_ID,
then runs the console REPL on the asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown, sign_in
from ..config import Settings, get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def run(settings: Settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        if settings.user_id:
            sign_in(state, settings.user_id)
        await run_console_loop(state)
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(settings)
    logger.info("Starting %s (backend=%s, log=%s)...", settings.app_name, settings.backend, log_file)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
