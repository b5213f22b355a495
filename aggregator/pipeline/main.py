from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .. import config
from ..common.env import load_env
from ..common.exceptions import ConfigError
from ..helpers.formatting import Fore, Style
from ..helpers.logging import configure_logging, log_timing
from ..loader import load_config
from .runner import Runner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CRASH = 1
EXIT_CONFIG = 2


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Retrieve, prepare and publish short clips")
    parser.add_argument("config", type=Path, help="Path to the JSON run configuration")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Environment file loaded before the configuration (default: .env)",
    )
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging verbosity",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = create_parser().parse_args(argv)
    configure_logging(args.log_level)
    load_env(args.env_file)

    try:
        with log_timing(f"Loading configuration {args.config}"):
            context = load_config(args.config)
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG

    try:
        with log_timing(f"Run {context.name}: target {context.posts} posts"):
            report = Runner(context).run()
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG
    except Exception:
        logger.exception("run=%s crashed", context.name)
        return EXIT_CRASH

    print(
        f"{Fore.GREEN}Published {report.published}/{context.posts}{Style.RESET_ALL}"
        f" (skipped {report.skipped}, failed {report.failed})"
    )
    return EXIT_OK
