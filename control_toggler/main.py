#!/usr/bin/env python3
"""
Control Toggler - Command Line Entry Point

Usage:
    control-toggler --config toggler.yaml              # Print current value
    control-toggler --config toggler.yaml --set 1      # Request a new value
    control-toggler --config toggler.yaml --watch      # Poll until interrupted
    control-toggler --config toggler.yaml --dry-run    # Print config and exit

Credentials may be given with CONTROL_TOGGLER_TOKEN / CONTROL_TOGGLER_SECRET
instead of the config file.
"""

import argparse
import asyncio
import json
import os
import signal
import sys

from control_toggler.common.config import TogglerConfig, load_config_file
from control_toggler.common.exceptions import TogglerError
from control_toggler.common.logging_setup import (
    FORMAT_ENV,
    LEVEL_ENV,
    get_service_logger,
    setup_logging,
)
from control_toggler.toggler.toggler import ControlToggler

logger = get_service_logger("main")

# Components whose loggers follow the config file settings
LOGGED_COMPONENTS = ("main", "toggler", "api")


def parse_value(text: str):
    """Parse a CLI value: integers and floats as numbers, true/false as bool"""
    lowered = text.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(text)
        except ValueError:
            continue
    return text


def print_status(toggler: ControlToggler) -> None:
    print(json.dumps({
        "device_id": toggler.device_id,
        "control_id": toggler.control_id,
        "value": toggler.value(),
        "pending": toggler.has_pending_state_change,
    }, default=str))


async def run(config: TogglerConfig, set_value=None, watch: bool = False) -> int:
    """Run one set/update cycle, then optionally keep polling"""
    toggler = config.create_toggler()

    try:
        await toggler.update()

        if set_value is not None:
            command = await toggler.set_value(set_value)
            if command is not None:
                logger.info(
                    f"Command {command.id} is {command.state_name}",
                    extra={"command_id": command.id},
                )

        print_status(toggler)

        if not watch:
            return 0

        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, shutdown.set)
            except NotImplementedError:
                signal.signal(sig, lambda s, f: shutdown.set())

        def on_change(t: ControlToggler, error: Exception | None) -> None:
            if error is not None:
                logger.warning(f"Refresh failed: {error}")
                return
            print_status(t)

        toggler.callback = on_change
        toggler.start(toggler.current_refresh_ms())
        await shutdown.wait()
        return 0

    except TogglerError as e:
        logger.error(f"Control toggler failed: {e.message}")
        return 1
    finally:
        await toggler.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Track and change a remote control value")
    parser.add_argument(
        "--config", "-c",
        default=os.environ.get("CONTROL_TOGGLER_CONFIG", "toggler.yaml"),
        help="Path to configuration file",
    )
    parser.add_argument("--set", dest="set_value", help="Desired control value")
    parser.add_argument("--watch", action="store_true", help="Keep polling for changes")
    parser.add_argument("--dry-run", action="store_true", help="Print config and exit")
    args = parser.parse_args(argv)

    try:
        config = load_config_file(args.config)
    except TogglerError as e:
        print(e.message, file=sys.stderr)
        return 1

    # Config file settings apply unless the environment overrides them
    log_level = os.environ.get(LEVEL_ENV, config.log_level)
    log_format = os.environ.get(FORMAT_ENV, config.log_format)
    for component in LOGGED_COMPONENTS:
        setup_logging(component, log_level, log_format.lower() == "json")

    if args.dry_run:
        print(json.dumps(config.to_dict(), indent=2))
        return 0

    set_value = parse_value(args.set_value) if args.set_value is not None else None
    return asyncio.run(run(config, set_value, args.watch))


if __name__ == "__main__":
    sys.exit(main())
