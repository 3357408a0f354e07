# src/taskpilot/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_outcome
from ..core.state import AppState
from ..tasks.task_api import handle_command

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    If stdout is not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def handle_line(state: AppState, line: str) -> str:
    """
    One request: slash command -> typed API, anything else -> interpreter.

    This is the request boundary: unexpected faults (e.g. storage unavailable)
    are logged with details and reported with a generic message.
    """

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        with state.lock:
            reply = command_registry.handle(state, line, emit=emit)
            if reply is None:
                reply = render_outcome(handle_command(state, line))
    except Exception:
        logger.exception("Command handler crashed.")
        return "[500] Internal error while handling a command."
    return reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a command. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        _print_ts(handle_line(state, user_input))
        print()

    logger.info("Console connector finished.")
