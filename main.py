"""
Token Reducer - chat summarization, timeline and token accounting.
Main entry point: run one command against a chat file, or serve the HTTP API.

    python main.py --chat chat.json summarize 12
    python main.py --chat chat.json autofill 20
    python main.py --chat chat.json --serve --port 8000
"""

import argparse
import asyncio
import os
import sys

import uvicorn

from agents.session import ChatSession
from api.commands import CommandRouter
from api.server import create_app
from config.presets import PresetStore
from config.settings import settings
from core import configure_logging, get_logger, TokenReducerException
from memory.chat_log import JsonChatLog
from memory.named_store import JsonDirectoryStore

logger = get_logger(__name__)


def build_session(args: argparse.Namespace) -> ChatSession:
    chat_log = JsonChatLog(args.chat)
    store_dir = args.store_dir or settings.MEMORY_STORE_DIR
    return ChatSession(chat_log, settings=settings, named_store=JsonDirectoryStore(store_dir))


async def run_command(session: ChatSession, presets: PresetStore, line: str) -> str:
    await session.open()
    return await CommandRouter(session, presets).dispatch(line)


def main():
    parser = argparse.ArgumentParser(description="Summarize and track tokens for a chat log")
    parser.add_argument("--chat", required=True, help="Path to the chat JSON file")
    parser.add_argument("--store-dir", help="Directory for named memory stores")
    parser.add_argument("--presets", help="Presets JSON file (defaults to PRESETS_FILE)")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP API instead of running a command")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)))
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and its arguments (try 'help')")
    args = parser.parse_args()

    configure_logging()

    try:
        session = build_session(args)
        presets = PresetStore(args.presets or settings.PRESETS_FILE)
    except TokenReducerException as e:
        logger.error("Startup failed", error_code=e.error_code, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    if args.serve:
        uvicorn.run(create_app(session, presets), host="0.0.0.0", port=args.port)
        return

    output = asyncio.run(run_command(session, presets, " ".join(args.command)))
    print(output)
    if output.startswith("Error:"):
        sys.exit(1)


if __name__ == "__main__":
    main()
