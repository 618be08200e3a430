#!/usr/bin/env python
"""
The main module provides the executable entrypoint for the Minecraft operator
"""

# Standard
import argparse

# First Party
import alog

# Local
from . import config
from .cmd import RunOperatorCmd
from .config import library_config
from .reconcile import ReconcileManager

## Constants ###################################################################

log = alog.use_channel("MAIN")

# Library config entries that can be overridden on the command line. Flags
# that are not given leave the yaml/env value in place.
CONFIG_FLAGS = {
    "dry_run": dict(
        action="store_true",
        help="Run against an in-memory store instead of the cluster",
    ),
    "dry_run_max_passes": dict(
        type=int,
        help="(dry run) Most passes run for one resource before giving up",
    ),
    "watch_namespace": dict(
        help="Comma separated namespaces to watch. Empty or * watches all",
    ),
    "requeue_after_seconds": dict(
        type=float,
        help="Delay before revisiting a resource whose dependents settle later",
    ),
    "log_level": dict(help="Default log level"),
    "log_json": dict(action="store_true", help="Log as json"),
}

## Helpers #####################################################################


def add_config_args(parser: argparse.ArgumentParser):
    """Add a flag for each overridable library config entry"""
    config_args = parser.add_argument_group("Library Configuration")
    for name, kwargs in CONFIG_FLAGS.items():
        config_args.add_argument(f"--{name}", dest=name, default=None, **kwargs)


def update_library_config(args: argparse.Namespace):
    """Write the flags that were given onto the library config"""
    for name in CONFIG_FLAGS:
        value = getattr(args, name)
        if value is not None:
            log.debug2("Overriding %s from the command line: %s", name, value)
            library_config[name] = value


## Main ########################################################################


def main():
    """The main module provides the executable entrypoint for the operator"""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run"],
        default="run",
        help="The command to run (default: run)",
    )
    run_operator_cmd = RunOperatorCmd()
    run_operator_cmd.add_arguments(parser)
    add_config_args(parser)
    args = parser.parse_args()

    # Provide overrides to the library configs
    update_library_config(args)
    log.debug2("Running with config: %s", config.library_config)

    # Reconfigure logging
    ReconcileManager.configure_logging()

    run_operator_cmd.run(args)


if __name__ == "__main__":  # pragma: no cover
    main()
