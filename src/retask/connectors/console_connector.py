# src/retask/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> None:
    """
    Read stdin in a daemon thread and hand lines to the loop.

    A blocking input() cannot be cancelled, so it must not live in the loop's
    executor (shutdown would wait for it). None marks EOF / Ctrl+C.
    """

    def reader() -> None:
        while True:
            try:
                line = input()
            except (EOFError, KeyboardInterrupt):
                loop.call_soon_threadsafe(lines.put_nowait, None)
                return
            loop.call_soon_threadsafe(lines.put_nowait, line)

    threading.Thread(target=reader, name="console-stdin", daemon=True).start()


async def run_console_loop(state: AppState) -> None:
    """
    Interactive console. Reminders keep firing while the prompt waits.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type /help for commands, /exit to quit.\n")

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)

    while True:
        raw = await lines.get()
        if raw is None:
            logger.info("Console input closed, exiting.")
            break

        line = raw.strip()
        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not line.startswith("/"):
            # Bare text is shorthand for a task due in 30 minutes.
            line = f"/add 30 {line}"

        try:
            reply = await command_registry.handle(state, line, emit=_print_ts)
        except ValueError as e:
            reply = f"Invalid input: {e}"
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
