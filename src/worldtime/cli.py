#!/usr/bin/env python3
"""
worldtime-sync

Estimate the local clock offset from a pool of public NTP servers, optionally
set the system clock, and print ``<utc time>,<offset_us>,<precision_us>``.
"""

import os
import sys
import argparse
import logging
from typing import List, Optional

from .config import WorldTimeConfig
from .errors import ConfigParseError
from .logging_setup import setup_logging
from .sync import WorldTimeSync, apply_to_system_clock, format_report_line
from .world_clock import get_world_clock

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worldtime-sync",
        description="Estimate the offset of the local clock from UTC using public NTP servers"
    )
    parser.add_argument("--config", help="YAML file with a 'world_time' section "
                                         "(defaults to YA_WORLD_TIME_* environment variables)")
    parser.add_argument("--log-level", default=os.environ.get("WORLDTIME_LOG", "INFO"),
                        help="Logging level (default: $WORLDTIME_LOG or INFO)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--set-clock", action="store_true",
                        help="Set the system clock to the estimated UTC time")
    parser.add_argument("--no-output", action="store_true",
                        help="Do not print the machine-readable result line")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, log_file=args.log_file)

    try:
        if args.config:
            config = WorldTimeConfig.from_yaml(args.config)
        else:
            config = WorldTimeConfig.from_env()
    except ConfigParseError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    world_clock = get_world_clock()
    WorldTimeSync(config).sync(world_clock)
    timer = world_clock.current()

    if args.set_clock:
        apply_to_system_clock(timer)

    line = format_report_line(timer)
    if line is not None and not args.no_output:
        print(line)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
