"""Command line entry: ``alphabot run | bot | dashboard``."""

import argparse
import logging
import sys

import pydantic
from dotenv import load_dotenv

from alphabot import __version__
from alphabot.core.config import get_settings
from alphabot.core.logging import setup_logging

LOGGER = logging.getLogger("Alphabot")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alphabot", description="Messenger chat bot")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--env-file", default=".env", help="Environment file to load")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Supervise the bot process (default)")
    sub.add_parser("bot", help="Run the bot in this process")
    dashboard = sub.add_parser("dashboard", help="Run the appstate dashboard API")
    dashboard.add_argument("--host", default=None)
    dashboard.add_argument("--port", type=int, default=None)
    return parser


def run_dashboard(host: str | None = None, port: int | None = None) -> int:
    import uvicorn

    from alphabot.api.app import create_app

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.dashboard_host,
        port=port or settings.dashboard_port,
        log_config=None,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(dotenv_path=args.env_file, encoding="utf-8")

    try:
        settings = get_settings()
    except pydantic.ValidationError as e:
        setup_logging()
        LOGGER.error(f"Invalid configuration:\n{e}")
        return 2

    command = args.command or "run"
    if command == "bot":
        from alphabot.core.bot import run_bot

        return run_bot(settings)

    setup_logging(settings.log_level)
    if command == "dashboard":
        return run_dashboard(args.host, args.port)

    from alphabot.launcher import run_launcher

    return run_launcher(settings)


if __name__ == "__main__":
    sys.exit(main())
