"""StatusPulse - liveness and status polling for game servers and web services."""

import argparse
import asyncio
import json
import logging
import signal
import sys

__version__ = "0.1.0"

# Exit code for a missing or malformed configuration / target list.
EXIT_CONFIG_ERROR = 2

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _build_config(args: argparse.Namespace):
    """Load the settings file (if any) and apply command-line overrides."""
    from dataclasses import replace

    from .config import Config, load_config

    config = load_config(args.config) if args.config else Config()

    if args.targets:
        config = replace(config, targets_path=args.targets)
    if args.status:
        config = replace(config, status_path=args.status)
    if getattr(args, "interval", None) is not None:
        config = replace(config, poller=replace(config.poller, interval=args.interval))
    return config


def _handle_shutdown(signum: int, poller) -> None:
    """Signal handler for graceful shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating shutdown...", sig_name)
    poller.stop()


async def _watch(poller) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, _handle_shutdown, signum, poller)
    await poller.run_forever()


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - one tick, or repeated ticks with --watch."""
    _setup_logging(args.verbose)

    logger.info("StatusPulse %s starting...", __version__)

    # Import here to allow logging setup first
    from .config import ConfigError
    from .poller import Poller
    from .snapshot import SnapshotError

    try:
        config = _build_config(args)
        logger.info("Targets: %s, status snapshot: %s", config.targets_path, config.status_path)

        poller = Poller(config)
        if args.watch:
            asyncio.run(_watch(poller))
        else:
            asyncio.run(poller.run_once())
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(EXIT_CONFIG_ERROR)
    except SnapshotError as e:
        logger.error("Status snapshot error: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


def _cmd_check(args: argparse.Namespace) -> None:
    """Execute the check command - run the checks and print records without writing."""
    _setup_logging(args.verbose)

    from .config import ConfigError
    from .poller import run_tick
    from .snapshot import SnapshotError

    try:
        config = _build_config(args)
        summary = asyncio.run(run_tick(config, write=False))
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(EXIT_CONFIG_ERROR)
    except SnapshotError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(json.dumps(summary.snapshot, indent=2, ensure_ascii=False))
    print(f"\nResult: {summary.online}/{summary.written} targets online")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        help="Path to YAML settings file (default: built-in defaults)",
    )
    parser.add_argument(
        "--targets",
        help="Path to the target list JSON (overrides config)",
    )
    parser.add_argument(
        "--status",
        help="Path to the status snapshot JSON (overrides config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the statuspulse package."""
    parser = argparse.ArgumentParser(
        description="StatusPulse - liveness polling for game servers and web services"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"statuspulse {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Run subcommand (default behavior)
    run_parser = subparsers.add_parser(
        "run",
        help="Check all targets and write the status snapshot (default)",
    )
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "-w", "--watch",
        action="store_true",
        help="Keep running, one tick every interval",
    )
    run_parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between ticks in watch mode (overrides config)",
    )
    run_parser.set_defaults(func=_cmd_run)

    # Check subcommand
    check_parser = subparsers.add_parser(
        "check",
        help="Check all targets and print the records without writing the snapshot",
    )
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=_cmd_check)

    args = parser.parse_args(argv)

    # Default to a single 'run' tick if no command specified
    if args.command is None:
        args = run_parser.parse_args([])

    args.func(args)
