#!/usr/bin/env python3
"""
InboxProbe
Command line entry point for the email-capture signup prober.

Usage:
    inboxprobe --url https://example.com --email probe@example.com
    inboxprobe --csv targets.csv --email probe@example.com --strict
    inboxprobe --config config.json
"""

import argparse
import asyncio
import os
import signal
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from inboxprobe.config import ProbeConfig, RunRequest
from inboxprobe.database.operations import ResultStore
from inboxprobe.exceptions import ConfigurationError
from inboxprobe.runner import SignupRunner
from inboxprobe.utils.helpers import get_app_data_directory
from inboxprobe.utils.simple_logger import slog

# Global reference to runner for signal handling
_runner_instance: Optional[SignupRunner] = None


def setup_logging(debug: bool = False):
    """Configure logging with loguru."""
    try:
        log_dir = get_app_data_directory() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        # Fallback to temp directory if we can't create the log directory
        log_dir = Path(tempfile.gettempdir()) / "inboxprobe" / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        print(f"Warning: Could not create log directory, using {log_dir}: {e}")

    # Remove default handler
    logger.remove()

    log_level = "DEBUG" if debug else "INFO"

    def stdout_sink(message):
        try:
            sys.stdout.write(message)
            sys.stdout.flush()
        except UnicodeEncodeError:
            # Fallback: encode with replacement for unsupported characters
            encoding = sys.stdout.encoding or 'utf-8'
            sys.stdout.write(message.encode(encoding, errors='replace').decode(encoding, errors='replace'))
            sys.stdout.flush()

    logger.add(
        stdout_sink,
        format="{time:HH:mm:ss} | {level: <8} | {message}",
        level=log_level,
        colorize=False
    )

    # File handler
    logger.add(
        log_dir / "probe_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="1 day",
        retention="7 days",
        compression="gz"
    )

    version = os.environ.get("INBOXPROBE_VERSION", "dev")
    logger.info(f"🚀 InboxProbe v{version}")


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="InboxProbe - find and submit email-capture forms"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to JSON config file"
    )
    parser.add_argument(
        "--url",
        action="append",
        default=[],
        help="Target URL (repeatable)"
    )
    parser.add_argument(
        "--email",
        type=str,
        help="Email address to sign up with"
    )
    parser.add_argument(
        "--csv",
        type=str,
        help="CSV file with a url column (and optional email column)"
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Signup attempts per target (1-10)"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only count a signup as successful when a confirmation is seen"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run browser in headless mode"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Targets processed at the same time (1-8)"
    )
    parser.add_argument(
        "--no-db",
        action="store_true",
        help="Do not record results in the local database"
    )

    return parser.parse_args(argv)


def load_config(args) -> ProbeConfig:
    """
    Build the configuration from an optional config file plus command line overrides.

    Raises:
        ConfigurationError: If the file or the resulting configuration is invalid
    """
    config = ProbeConfig.from_file(args.config) if args.config else ProbeConfig()
    if args.config:
        slog.detail(f"Loaded config from: {args.config}")

    data = config.model_dump()
    settings = data["settings"]
    if args.email:
        data["email"] = args.email
    if args.csv:
        data["csv_path"] = args.csv
    if args.max_attempts is not None:
        settings["max_attempts"] = args.max_attempts
    if args.concurrency is not None:
        settings["concurrency"] = args.concurrency
    if args.strict:
        settings["verification"] = "strict"
    if args.headless:
        settings["headless"] = True
    if args.debug:
        settings["debug"] = True
    if args.no_db:
        settings["record_results"] = False
        settings["skip_processed"] = False

    email = data["email"]
    try:
        for url in args.url:
            if not email:
                raise ConfigurationError("--email is required with --url")
            data["targets"].append({"target_url": url, "test_email": email})
        return ProbeConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def handle_shutdown_signal(signum, frame):
    """Handle shutdown signals gracefully."""
    sig_name = signal.Signals(signum).name if hasattr(signal, 'Signals') else str(signum)
    slog.detail_warning(f"⏹ Received {sig_name}, initiating graceful shutdown...")

    if _runner_instance:
        _runner_instance.stop()


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    global _runner_instance

    args = parse_args(argv)
    setup_logging(debug=args.debug)

    # Note: On Windows, only SIGTERM and SIGINT are available
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            signal.signal(sig, handle_shutdown_signal)
        except (ValueError, OSError):
            pass

    slog.detail("⏳ Loading configuration...")
    try:
        config = load_config(args)
        requests: List[RunRequest] = config.requests()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if not requests:
        logger.error("No targets given. Use --url, --csv or a config file.")
        return 1

    settings = config.settings
    slog.set_detailed(settings.debug)
    slog.detail(f"🎯 Targets: {len(requests)}")
    slog.detail(f"🔁 Max attempts: {settings.max_attempts}")
    slog.detail(f"🔎 Verification: {settings.verification}")
    slog.detail(f"👁️ Headless mode: {settings.headless}")

    store = None
    if settings.record_results or settings.skip_processed:
        db_path = get_app_data_directory() / "inboxprobe.db"
        store = ResultStore(f"sqlite:///{db_path}")

    runner = SignupRunner(settings, store=store)
    _runner_instance = runner

    try:
        results = await runner.run_batch(requests, source="csv" if config.csv_path else "cli")
    except asyncio.CancelledError:
        slog.detail_warning("⏹ Run was cancelled")
        return 1

    # Targets skipped as already processed count as done; stopped ones do not
    completed = len(results) + runner.stats["skipped"]
    if completed == len(requests) and all(r.success for r in results):
        logger.success("✅ Done!")
        return 0
    return 1


def cli():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
