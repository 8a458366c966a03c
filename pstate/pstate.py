#!/usr/bin/env python3

import argparse
import json
import pathlib
import platform

from packaging.version import Version

from .config import config
from .intel_pstate import INTEL_PSTATE_DIR, PState, PStateError, PStateValues
from .utils import helpers as h
from .utils.pstatelog import init_logging


def main():
    # Let's ensure no one is running below the expected python release
    min_python_release = "3.9"
    if Version(platform.python_version()) < Version(min_python_release):
        h.fatal(
            f"Current python version {platform.python_version()} is below minimal supported release : {min_python_release}"
        )

    args = parse_options()

    if args.log_file:
        init_logging(pathlib.Path(args.log_file))

    try:
        pstate = PState(args.sysfs_dir)
        if is_setting_requested(args):
            if not h.is_root():
                h.fatal("pstate is not running as effective uid 0, cannot change values.")
            pstate.set_values(target_values(args, pstate.values()))
        values = pstate.values()
    except PStateError as e:
        h.fatal(str(e))

    write_output(values)


def is_setting_requested(args) -> bool:
    return any(
        value is not None
        for value in (
            args.profile,
            args.min_perf_pct,
            args.max_perf_pct,
            args.turbo,
            args.hwp_dynamic_boost,
        )
    )


def target_values(args, current: PStateValues) -> PStateValues:
    """Compute the values to apply: current ones, then the profile, then the command line."""
    values = current
    if args.profile:
        if not args.config:
            h.fatal("--profile requires a configuration file (--config).")
        values = config.Config(args.config).get_values(args.profile, values)
    if args.min_perf_pct is not None:
        values.min_perf_pct = args.min_perf_pct
    if args.max_perf_pct is not None:
        values.max_perf_pct = args.max_perf_pct
    if args.turbo is not None:
        values.no_turbo = not args.turbo
    if args.hwp_dynamic_boost is not None:
        values.hwp_dynamic_boost = args.hwp_dynamic_boost
    return values


def parse_options(argv=None):
    parser = argparse.ArgumentParser(
        prog="pstate",
        description="Get or set the intel_pstate kernel parameters",
        epilog="Without any setting option, the current values are printed. Changing values requires root.",
    )
    parser.add_argument(
        "-d",
        "--sysfs-dir",
        default=str(INTEL_PSTATE_DIR),
        help="Specify the intel_pstate sysfs directory",
    )
    parser.add_argument(
        "--min-perf-pct",
        type=int,
        help="Set the minimum performance percent",
    )
    parser.add_argument(
        "--max-perf-pct",
        type=int,
        help="Set the maximum performance percent",
    )
    parser.add_argument(
        "--turbo",
        action=argparse.BooleanOptionalAction,
        help="Enable or disable turbo boost",
    )
    parser.add_argument(
        "--hwp-dynamic-boost",
        action=argparse.BooleanOptionalAction,
        help="Enable or disable HWP dynamic boost, ignored if the CPU does not support it",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Specify the file containing the profiles",
    )
    parser.add_argument(
        "-p",
        "--profile",
        help="Apply a profile from the configuration file",
    )
    parser.add_argument(
        "-l",
        "--log-file",
        help="Log every sysfs write in this file, as json",
    )
    return parser.parse_args(argv)


def write_output(values: PStateValues):
    print(json.dumps(values.to_dict()))


if __name__ == "__main__":
    # don't add anything here setup.py points at main()
    main()
