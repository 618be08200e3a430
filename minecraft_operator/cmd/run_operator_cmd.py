"""
This is the main entrypoint command for running the operator
"""
# Standard
from typing import List, Optional
import argparse
import os
import signal

# Third Party
import yaml

# First Party
import alog

# Local
from .. import config, constants, watch_manager
from ..deploy_manager import DryRunDeployManager

log = alog.use_channel("MAIN")


class RunOperatorCmd:
    """Run the Minecraft operator against the cluster, or against an in-memory
    store when dry_run is set"""

    ## Interface ##

    def add_arguments(self, parser: argparse.ArgumentParser):
        """Add the runtime flags for the run command"""
        runtime_args = parser.add_argument_group("Runtime Configuration")
        runtime_args.add_argument(
            "--cr",
            "-c",
            default=None,
            help="(dry run) A CR manifest yaml to apply directly ",
        )
        runtime_args.add_argument(
            "--resource_dir",
            "-r",
            default=None,
            help="(dry run) Path to a directory of yaml files that should exist in the cluster",
        )

    def run(self, args: argparse.Namespace):
        """Start the watches and, in dry run, apply the given manifests"""
        # Validate args
        assert args.cr is None or (
            config.dry_run and os.path.isfile(args.cr)
        ), "Can only specify --cr with dry run and it must point to a valid file"
        assert args.resource_dir is None or (
            config.dry_run and os.path.isdir(args.resource_dir)
        ), "Can only specify --resource_dir with dry run and it must point to a valid directory"

        # Parse pre-populated resources if needed
        resources = self._parse_resource_dir(args.resource_dir)

        # Create the watch manager
        deploy_manager = self._setup_watch(resources)

        # Register the signal handler to stop the watches
        def do_stop(*_, **__):  # pragma: no cover
            watch_manager.stop_all()

        signal.signal(signal.SIGINT, do_stop)

        # Run the watch manager
        log.info("Starting Watches")
        watch_manager.start_all()

        # If given, apply the CR directly
        if args.cr:
            log.info("Applying CR [%s]", args.cr)
            with open(args.cr, encoding="utf-8") as handle:
                cr_manifest = yaml.safe_load(handle)
            cr_manifest.setdefault("metadata", {}).setdefault(
                "namespace", constants.DEFAULT_NAMESPACE
            )
            log.debug3(cr_manifest)
            success, _ = deploy_manager.create(cr_manifest)
            if not success:
                log.warning("Failed to apply CR [%s]", args.cr)

        # All done!
        log.info("SHUTTING DOWN")

    ## Impl ##

    @staticmethod
    def _parse_resource_dir(resource_dir: Optional[str]) -> List[dict]:
        """If given, this will parse all yaml files found in the given directory"""
        all_resources = []
        if resource_dir is not None:
            for fname in sorted(os.listdir(resource_dir)):
                if fname.endswith(".yaml") or fname.endswith(".yml"):
                    resource_path = os.path.join(resource_dir, fname)
                    log.debug3("Reading resource file [%s]", resource_path)
                    with open(resource_path, encoding="utf-8") as handle:
                        all_resources.extend(
                            resource
                            for resource in yaml.safe_load_all(handle)
                            if resource
                        )
        return all_resources

    @staticmethod
    def _setup_watch(resources: List[dict]) -> Optional[DryRunDeployManager]:
        """Set up the watch manager. If in dry run mode, the
        DryRunDeployManager will be returned.
        """
        if config.dry_run:
            log.info("Running DRY RUN")
            deploy_manager = DryRunDeployManager(resources=resources)
            watch_manager.DryRunWatchManager(deploy_manager=deploy_manager)
            return deploy_manager

        log.info("Running Python Operator")
        watch_manager.PythonWatchManager()
        return None
