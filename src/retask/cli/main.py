# src/retask/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, re-registers reminders for stored
tasks, then runs the window refresh loop alongside the console (or alone,
until SIGINT/SIGTERM, when the console is disabled).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state, create_matrix_renderer
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import level_from_name, setup_logging
from ..tasks.task_api import reschedule_all_active
from ..tasks.upcoming_window import run_window_refresh_loop

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState, refresher: asyncio.Task | None) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if refresher is not None:
        refresher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await refresher

    try:
        await state.scheduler.cancel_all()
    except Exception:
        logger.exception("Failed to cancel reminders.")

    shutdown = getattr(state.alarms, "shutdown", None)
    if shutdown is not None:
        try:
            await shutdown()
        except Exception:
            logger.exception("Alarm facility shutdown failed.")

    if state.matrix_client is not None:
        try:
            await state.matrix_client.close()
        except Exception:
            logger.debug("Matrix client close failed.", exc_info=True)

    state.task_store.close()


async def run(settings) -> None:
    matrix_client = renderer = None
    if settings.matrix_enabled:
        matrix_client, renderer = await create_matrix_renderer(settings)
        if renderer is None:
            logger.warning("Matrix delivery unavailable; falling back to console notifications.")

    state = create_initial_state(settings=settings, renderer=renderer, matrix_client=matrix_client)

    # Stored tasks need their alarms again after a restart.
    await reschedule_all_active(state)

    refresher = asyncio.create_task(
        run_window_refresh_loop(state.aggregator, interval_seconds=settings.refresh_minutes * 60.0),
        name="window-refresh",
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not supported on every platform (e.g. Windows).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state), name="console")
            stopper = asyncio.create_task(stop.wait(), name="stop-wait")
            done, _ = await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()
            if console not in done:
                console.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await console
        else:
            logger.info("Console disabled. Running reminders only. Press Ctrl+C to stop.")
            await stop.wait()
    finally:
        await _shutdown(state, refresher)


def main() -> None:
    settings = get_settings()

    console_level = level_from_name(settings.log_level)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
