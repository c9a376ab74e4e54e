"""
CLI entry point.

Commands:
- init: Initialize data directory
- chat: Interactive chat through the memory engine
- stats: Print engine configuration and statistics

Flags:
- --debug: Enable debug logging to file
"""

import asyncio
import json
import logging
import os
import sys

from luna.core.config import Settings, get_settings
from luna.core.logging import get_logger, setup_logging
from luna.llm.base import ContextEchoResponder, Responder
from luna.memory.signals import compute_channel_signals

CLI_CHANNEL = "cli"
CHANNEL_HISTORY = 25


def main() -> int:
    """Main entry point."""
    settings = get_settings()

    debug_mode = "--debug" in sys.argv
    if debug_mode:
        sys.argv.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.INFO
    log_file = settings.data_dir / "luna.log"
    setup_logging(level=log_level, log_file=log_file)
    logger = get_logger("cli")

    logger.info(f"Logging to {log_file}" + (" (debug mode)" if debug_mode else ""))

    if len(sys.argv) < 2:
        print("Usage: luna [--debug] <command>")
        print("Commands: init, chat, stats")
        print("Flags: --debug (enable debug logging to data/luna.log)")
        return 1

    command = sys.argv[1]

    if command == "init":
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized data directory: {settings.data_dir}")
        print(f"Created: {settings.data_dir}")
        return 0

    if command == "chat":
        logger.info("Starting CLI chat mode")
        return asyncio.run(_chat_loop(settings))

    if command == "stats":
        from luna.memory.service import MemoryService

        service = MemoryService(settings=settings)
        print(json.dumps(service.get_stats(), indent=2))
        return 0

    print(f"Unknown command: {command}")
    return 1


def _make_responder(settings: Settings) -> Responder:
    if settings.anthropic_api_key:
        from luna.llm.claude import ClaudeResponder

        return ClaudeResponder(settings=settings)
    return ContextEchoResponder()


async def _chat_loop(settings: Settings) -> int:
    """Interactive chat: every line goes through the full engine."""
    from luna.memory.archive import SQLiteThreadArchive
    from luna.memory.service import MemoryService

    logger = get_logger("cli.chat")
    participant = os.environ.get("USER", "viewer")
    service = MemoryService(settings=settings, archive=SQLiteThreadArchive(settings.db_path))
    responder = _make_responder(settings)
    channel_messages: list[dict] = []

    await service.start()
    print(f"Chatting in #{CLI_CHANNEL} as {participant}. Type 'exit' to quit.")

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue
            if line.lower() in ("exit", "quit"):
                break

            now = service.clock.now()
            channel_messages.append({"message": line, "username": participant, "timestamp": now})
            del channel_messages[:-CHANNEL_HISTORY]

            service.record_message(CLI_CHANNEL, participant, line)
            signals = compute_channel_signals(CLI_CHANNEL, channel_messages, now)
            snapshot = service.build(CLI_CHANNEL, participant, line, signals)

            try:
                reply = await responder.respond(snapshot, line)
            except Exception as e:
                logger.error(f"Responder failed: {e}", exc_info=True)
                print(f"Error: {e}")
                continue

            print(f"luna: {reply}")
            service.remember_exchange(CLI_CHANNEL, participant, line, reply)
    finally:
        await service.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
