"""
Command-line interface for the Trimmer distribution engine.

This module provides the `trimmer-distro` entry point: listing the configured
distros and running one of them, with SIGINT/SIGTERM cancelling the run.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..distros import create_distro
from ..models import AppConfig, BuildPath, BuildTarget, DistroState
from ..orchestration import DistroBase, SignalHandler
from ..system import EnvironmentCredentialStore
from ..validation import (
    ConfigurationError,
    ValidationError,
    handle_cli_error,
    validate_distro_name,
)

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
# Conventional exit status of a process interrupted by SIGINT
EXIT_CANCELLED = 130


def parse_build_argument(value: str) -> BuildPath:
    """
    Parse a `TARGET=PATH` build argument.

    Raises:
        argparse.ArgumentTypeError: If the value is malformed or the target unknown
    """
    target, sep, path = value.partition("=")
    if not sep or not target.strip() or not path.strip():
        raise argparse.ArgumentTypeError(f"Expected TARGET=PATH, got '{value}'")
    try:
        return BuildPath(BuildTarget.parse(target), Path(path.strip()).expanduser())
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trimmer-distro",
        description="Distribute finished builds to archives, servers and stores.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to the configuration file (default: trimmer.toml).",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the log level from the configuration.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List the configured distros.")

    run_parser = subparsers.add_parser("run", help="Run a configured distro.")
    run_parser.add_argument("name", help="Name of the distro to run.")
    run_parser.add_argument(
        "-b",
        "--build",
        dest="builds",
        action="append",
        type=parse_build_argument,
        metavar="TARGET=PATH",
        help="Build to distribute, replaces the configured builds. Can be given multiple times.",
    )
    return parser


def list_distros(app_config: AppConfig) -> None:
    if not app_config.distros:
        print("No distros configured.")
        return
    for distro_config in app_config.distros.values():
        targets = ", ".join(build.target.value for build in distro_config.builds) or "no builds"
        print(f"{distro_config.name}\t{distro_config.kind}\t{targets}")


async def run_distro(distro: DistroBase, builds: Optional[List[BuildPath]] = None) -> DistroState:
    """
    Run a distro until it ends, cancelling it on SIGINT/SIGTERM.

    Returns:
        The final state of the run
    """
    loop = asyncio.get_running_loop()
    with SignalHandler() as signal_handler:
        signal_handler.register_distro(distro, loop)
        try:
            return await distro.distribute(builds)
        finally:
            signal_handler.unregister_distro(distro)


def exit_code_for(state: DistroState) -> int:
    if state is DistroState.SUCCEEDED:
        return EXIT_SUCCESS
    if state is DistroState.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_FAILURE


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface of the distribution engine.

    Raises:
        SystemExit: With status 0 when the run succeeded, 1 on configuration
            errors or a failed run and 130 when the run was cancelled.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config is not None:
        set_config_path(args.config)

    # Load application configuration
    try:
        app_config = get_config()
    except (FileNotFoundError, ConfigurationError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=EXIT_FAILURE, logger=logger)
    except Exception as e:
        handle_cli_error(error=e, context="configuration parsing", exit_code=EXIT_FAILURE, logger=logger)

    logging.getLogger().setLevel(args.log_level or app_config.runner.log_level)

    if args.command == "list":
        list_distros(app_config)
        sys.exit(EXIT_SUCCESS)

    try:
        name = validate_distro_name(args.name, field_name="distro name")
    except ValidationError as e:
        handle_cli_error(error=e, context="distro name validation", exit_code=EXIT_FAILURE, logger=logger)

    if name not in app_config.distros:
        logger.error(f"Distro '{name}' not found in configuration.")
        logger.info(f"Available distros: {', '.join(app_config.distros) or 'none'}")
        sys.exit(EXIT_FAILURE)

    try:
        distro = create_distro(
            name,
            app_config.distros,
            runner_config=app_config.runner,
            credentials=EnvironmentCredentialStore(prefix=app_config.credentials.env_prefix),
        )
    except ConfigurationError as e:
        handle_cli_error(error=e, context="distro creation", exit_code=EXIT_FAILURE, logger=logger)

    logger.info(f">>> Starting distro: {name}")
    state = asyncio.run(run_distro(distro, args.builds))
    logger.info(f"<<< Distro {name} {state.value}")
    sys.exit(exit_code_for(state))


if __name__ == "__main__":
    main_cli()
