"""
Nexus Chat entry point.

This file handles startup concerns (arg-parsing, env setup, logging) and launches the appropriate
interface (interactive CLI or REST API).
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from nexuschat.config import settings
from nexuschat.tools import (
    CUSTOM,
    DISCOVER,
    NO_TOOLS,
    TOOL_PRESETS,
)

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
    # HTTP client chatter drowns out the chat
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Nexus Chat application.

    This function sets up the command-line interface, initializes logging, and starts the
    application in either CLI or API mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Chat with a Nexus LLM gateway")
    parser.add_argument(
        "--mode",
        choices=["cli", "api"],
        type=str.lower,
        default="cli",
        help="Launch the interactive CLI or the REST API (default: cli)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument("--endpoint", default=None, help="Nexus endpoint URL")
    parser.add_argument("--model", default=None, help="Model id to use")
    parser.add_argument(
        "--no-stream", action="store_true", help="Request whole responses instead of streams"
    )
    parser.add_argument(
        "--tools",
        choices=[NO_TOOLS, DISCOVER, CUSTOM, *sorted(TOOL_PRESETS)],
        default=None,
        help="Tool set offered to the model (default from env: TOOL_SET)",
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    if args.endpoint:
        settings.ENDPOINT = args.endpoint
    if args.model:
        settings.MODEL = args.model
    if args.no_stream:
        settings.STREAMING = False
    if args.tools:
        settings.TOOL_SET = args.tools

    _init_logging(settings.LOG_LEVEL)

    # Ensure the data directory exists and is writable (preferences live there)
    data_dir = Path(settings.DATA_DIR)
    data_dir.mkdir(parents=True, exist_ok=True)
    if not data_dir.is_dir() or not os.access(data_dir, os.W_OK):
        logger.error("Data directory is not writable: %s", data_dir)
        sys.exit(1)

    logger.info("Starting Nexus Chat [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump())

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from nexuschat.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
    else:
        # pylint: disable=import-outside-toplevel
        from nexuschat.client.cli import run_cli
        from nexuschat.preferences import (
            ENDPOINT_KEY,
            PreferenceStore,
        )

        # An endpoint given on the command line or in the environment wins over the saved one
        prefs = PreferenceStore()
        saved_endpoint = prefs.get(ENDPOINT_KEY)
        if saved_endpoint and "ENDPOINT" not in settings.model_fields_set:
            settings.ENDPOINT = saved_endpoint
        prefs.set(ENDPOINT_KEY, settings.ENDPOINT)
        run_cli(settings, prefs)


if __name__ == "__main__":
    main()
