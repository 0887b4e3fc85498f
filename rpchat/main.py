"""
rpchat - Main Entry Point
=========================

Console front end for the assistant. It:
1. Loads configuration
2. Builds and starts the AssistantApp (tool catalog warm-up included)
3. Reads requests from stdin and prints the answers
4. Shuts everything down on EOF, Ctrl+C or SIGTERM

Commands:
    /status  - show tool catalog status
    /sync    - force a tool catalog refresh
    /health  - check the MCP server
    /quit    - exit

Run with:
    python -m rpchat.main

Or after installing:
    rpchat
"""

import asyncio
import json
import signal
import sys
import threading
from typing import TextIO

from rpchat.app import AssistantApp, new_session_id
from rpchat.errors import ModelCallError
from rpchat.utils.config import get_config
from rpchat.utils.logger import Logger, configure_logging

main_logger = Logger("Main")


class ConsoleInput:
    """
    Line reader for the console that never blocks shutdown.

    A daemon thread reads the stream and hands lines to the event loop
    through a queue. Cancelling readline() leaves the thread parked on the
    stream, and interpreter exit does not wait for it.
    """

    def __init__(self, stream: TextIO):
        self._stream = stream
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    def _deliver(self, line: str | None) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, line)
        except RuntimeError:
            # Event loop already closed
            return False
        return True

    def _pump(self) -> None:
        for line in iter(self._stream.readline, ""):
            if not self._deliver(line):
                return
        self._deliver(None)

    async def readline(self, prompt: str = "") -> str | None:
        """
        Read one line.

        Returns:
            The line without its newline, or None at end of input
        """
        if self._thread is None:
            self._loop = asyncio.get_running_loop()
            self._thread = threading.Thread(target=self._pump, name="console-input", daemon=True)
            self._thread.start()

        if prompt:
            print(prompt, end="", flush=True)

        line = await self._queue.get()
        return None if line is None else line.rstrip("\n")


async def _handle_command(app: AssistantApp, command: str) -> bool:
    """
    Run a console command.

    Returns:
        False when the console should exit
    """
    if command == "/quit":
        return False
    if command == "/status":
        print(json.dumps(app.catalog_status().to_dict(), indent=2))
    elif command == "/sync":
        error = await app.force_catalog_sync()
        print("Catalog synced" if error is None else f"Using fallback tools: {error}")
    elif command == "/health":
        print(json.dumps(await app.health_check(), indent=2, default=str))
    else:
        print(f"Unknown command: {command}")
    return True


async def _console(app: AssistantApp, console_input: ConsoleInput) -> None:
    session_id = new_session_id()
    print("Restorepoint assistant ready. Type /quit to exit.")

    while True:
        line = await console_input.readline("> ")
        if line is None:
            return

        text = line.strip()
        if not text:
            continue
        if text.startswith("/"):
            if not await _handle_command(app, text):
                return
            continue

        try:
            result = await app.process_message(text, session_id)
        except ModelCallError as e:
            print(f"Sorry, I couldn't process that request: {e}")
            continue

        print(result.text)
        if result.tools_used:
            print(f"(tools used: {', '.join(result.tools_used)})")


async def main() -> None:
    """
    Main async entry point.

    Initializes all components and runs the console.
    """
    main_logger.info("Starting rpchat...")

    try:
        config = get_config()
    except ValueError as e:
        main_logger.error("Invalid configuration", e)
        sys.exit(1)

    configure_logging(config.log_level)
    app = AssistantApp.from_config(config)
    await app.start()

    console = asyncio.create_task(_console(app, ConsoleInput(sys.stdin)))

    loop = asyncio.get_running_loop()
    handled_signals = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, console.cancel)
            handled_signals.append(sig)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    try:
        await console
    except asyncio.CancelledError:
        main_logger.info("Received shutdown signal")
    finally:
        for sig in handled_signals:
            loop.remove_signal_handler(sig)
        await app.stop()


def run() -> None:
    """
    Synchronous entry point.

    This is called when running the `rpchat` command.
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
