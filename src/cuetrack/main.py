"""
Main cuetrack application.
Loads configuration, builds the tracking server and runs it until interrupted.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
from pathlib import Path

from . import debug_log
from .config import (
    DEFAULT_CONFIG,
    Config,
    get_config_path,
    get_tracking_settings,
    load_config,
    profile_from_settings,
    save_config,
    update_config_tracking,
)
from .matching import PROFILES
from .providers import PROVIDER_REGISTRY
from .server import WebServer

logger = logging.getLogger(__name__)


def build_parser(config: Config) -> argparse.ArgumentParser:
    """Build the CLI parser, using the loaded config as defaults."""
    tracking = get_tracking_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="cuetrack - follow a speaker through a script in real time"
    )

    parser.add_argument(
        "--host",
        default=config.get("host", "127.0.0.1"),
        help="Web server host (default: from config or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=config.get("port", 8000),
        help="Web server port (default: from config or 8000)"
    )

    parser.add_argument(
        "--script", "-s",
        type=Path,
        default=None,
        help="Script file to load at startup"
    )

    parser.add_argument(
        "--provider",
        default=config.get("provider", "plain"),
        choices=sorted(PROVIDER_REGISTRY),
        help="Format of raw recognizer messages (default: from config or 'plain')"
    )

    parser.add_argument(
        "--profile",
        default=tracking.get("profile", "default"),
        choices=sorted(PROFILES),
        help="Matching profile (default: from config or 'default')"
    )

    parser.add_argument(
        "--look-ahead",
        type=int,
        default=tracking.get("look_ahead_words"),
        help="Words to search ahead of the cursor for long words"
    )

    parser.add_argument(
        "--no-backward",
        action="store_true",
        help="Disable detection of the speaker going back over the script"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--debug-log",
        action="store_true",
        default=bool(config.get("debug_log", False)),
        help="Enable debug logging to ./logs/"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: WARNING)"
    )

    return parser


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Fold CLI options into a config dict (returns a new dict)."""
    tracking_update: dict[str, object] = {
        "profile": args.profile,
        "look_ahead_words": args.look_ahead,
    }
    if args.no_backward:
        tracking_update["allow_backward_match"] = False

    new_config: Config = update_config_tracking(config, tracking_update)
    new_config["host"] = args.host
    new_config["port"] = args.port
    new_config["provider"] = args.provider
    new_config["debug_log"] = args.debug_log
    return new_config


async def run_server(server: WebServer, shutdown_event: asyncio.Event) -> None:
    """Run the server until shutdown is requested."""
    await server.start()
    try:
        await shutdown_event.wait()
    finally:
        await server.stop()


def main() -> None:
    """Main entry point."""
    # Load config first to use as defaults
    config: Config = load_config()

    parser = build_parser(config)
    args: argparse.Namespace = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    config = apply_args(config, args)

    try:
        profile_from_settings(get_tracking_settings(config))
    except ValueError as e:
        parser.error(str(e))

    if args.save_config:
        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    # Enable debug logging if requested
    if args.debug_log:
        debug_log.enable()
        debug_log.clear_logs()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    script_text: str = ""
    if args.script:
        try:
            script_text = args.script.read_text(encoding="utf-8")
        except OSError as e:
            parser.error(f"Could not read script {args.script}: {e}")

    server = WebServer(
        host=config.get("host", DEFAULT_CONFIG["host"]),
        port=config.get("port", DEFAULT_CONFIG["port"]),
        script_text=script_text,
        tracking_settings=get_tracking_settings(config),
        provider_name=config.get("provider", "plain")
    )
    logger.info("Loaded script with %d words", server.engine.total_words)

    # Handle shutdown gracefully
    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    shutdown_event: asyncio.Event = asyncio.Event()

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(run_server(server, shutdown_event))
    except KeyboardInterrupt:
        pass
    finally:
        # Cancel any remaining tasks
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(
                    *pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
