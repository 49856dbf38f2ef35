"""
tooltalk entry point.

This file handles startup concerns (arg-parsing, logging) and launches the requested interface:
the main menu, the setup wizard, a chat session, or the workflow diagram.
"""

import argparse
import logging
import sys

from tooltalk.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # SDK request logs drown out the conversation
    for noisy in ("httpx", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Command-line options for :func:`main`."""
    parser = argparse.ArgumentParser(description="Chat with a tool-using AI assistant")
    parser.add_argument(
        "--mode",
        choices=["menu", "chat", "setup", "workflow"],
        type=str.lower,
        default="menu",
        help="Show the main menu, start a chat, run setup, or print the workflow (default: menu)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL.lower(),
        help="Logging level (default from env: %(default)s)",
    )
    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the tooltalk application.

    Returns the process exit code.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = build_parser().parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level
    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting tooltalk [%s mode]", args.mode)
    logger.debug(
        "Settings: %s",
        settings.model_dump(exclude={"OPENAI_API_KEY", "GOOGLE_API_KEY", "ANTHROPIC_API_KEY"}),
    )

    # Lazy imports keep SDK-free modes light
    from tooltalk.client import cli  # pylint: disable=import-outside-toplevel

    if args.mode == "workflow":
        cli.show_workflow()
        return 0
    if args.mode == "setup":
        from tooltalk.client.setup_wizard import (  # pylint: disable=import-outside-toplevel
            run_setup,
        )

        return 0 if run_setup(settings) else 1
    if args.mode == "chat":
        return 0 if cli.start_chat(settings) else 1

    cli.run_menu(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
