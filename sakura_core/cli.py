"""命令行入口：启动 webhook 服务或注册 slash command。

    python -m sakura_core serve --port 8787
    python -m sakura_core register-commands
"""

import argparse
import asyncio
import logging
from typing import Optional

import uvicorn

from sakura_core.commands.definitions import COMMANDS
from sakura_core.config.settings import settings
from sakura_core.discord.client import DiscordClient
from sakura_core.infrastructure.logging.logger import logger


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Relay slash-command prompts to a streaming chat model.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the interactions webhook server.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8787)

    sub.add_parser("register-commands", help="Overwrite the application's global commands.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    if args.command == "serve":
        uvicorn.run("sakura_core.api.app:app", host=args.host, port=args.port, log_level="debug" if args.verbose else "info")
        return

    registered = asyncio.run(DiscordClient(settings).register_commands(COMMANDS.values()))
    logger.info(f"Registered {len(registered)} command(s)", extra={"extra": {"names": [c.get("name") for c in registered]}})


if __name__ == "__main__":
    main()
