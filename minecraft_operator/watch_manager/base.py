"""
This module holds the base class interface for the various implementations of
WatchManager
"""

# Standard
from typing import List, Optional, Tuple
import abc

# First Party
import alog

# Local
from .. import constants
from ..managed_object import ManagedObject, NamespacedName
from ..reconcile import ReconcileManager

log = alog.use_channel("WATCH")


class WatchManagerBase(abc.ABC):
    """A WatchManager is responsible for linking the Minecraft custom resource
    type and the kinds it owns with the ReconcileManager that will execute the
    reconciliation loop
    """

    # Class-global mapping of all watches managed by this operator
    _ALL_WATCHES = {}

    ## Interface ###############################################################

    def __init__(self, reconcile_manager: ReconcileManager):
        """Construct with the reconcile manager that will run the passes

        Args:
            reconcile_manager:  ReconcileManager
                The manager that reconciles the watched resources
        """
        self.reconcile_manager = reconcile_manager
        self.group = constants.PARENT_GROUP
        self.version = constants.PARENT_VERSION
        self.kind = constants.PARENT_KIND

        # Register this watch instance
        watch_key = str(self)
        assert (
            watch_key not in self._ALL_WATCHES
        ), "Only a single watch manager may watch a given group/version/kind"
        self._ALL_WATCHES[watch_key] = self

    @abc.abstractmethod
    def watch(self) -> bool:
        """The watch function is responsible for initializing the persistent
        watch and returning whether or not the watch was started successfully.

        Returns:
            success:  bool
                True if the watch was spawned correctly, False otherwise.
        """

    @abc.abstractmethod
    def wait(self):
        """The wait function is responsible for blocking until the managed watch
        has been terminated.
        """

    @abc.abstractmethod
    def stop(self):
        """Terminate this watch if it is currently running"""

    ## Request Mapping #########################################################

    @property
    def api_version(self) -> str:
        """The apiVersion of the parent kind"""
        return f"{self.group}/{self.version}"

    @property
    def watched_kinds(self) -> List[Tuple[str, str]]:
        """The (api_version, kind) pairs that can trigger a reconciliation: the
        parent kind and every kind it owns
        """
        return [(self.api_version, self.kind)] + [
            (dependent.api_version, dependent.kind)
            for dependent in self.reconcile_manager.dependents
        ]

    def request_key(self, resource: ManagedObject) -> Optional[NamespacedName]:
        """Map an observed object to the key of the parent to reconcile. The
        parent maps to itself and dependents map to their owner.
        """
        if resource.kind == self.kind and resource.api_version == self.api_version:
            return resource.key
        return resource.owner_key(self.kind, self.api_version)

    ## Utilities ###############################################################

    @classmethod
    def start_all(cls) -> bool:
        """This utility starts all registered watches

        Returns:
            success:  bool
                True if all watches started succssfully, False otherwise
        """
        started_watches = []
        success = True
        for _, watch in sorted(cls._ALL_WATCHES.items()):
            if watch.watch():
                log.debug("Successfully started %s", watch)
                started_watches.append(watch)
            else:
                log.warning("Failed to start %s", watch)
                success = False

                # Shut down all successfully started watches
                for started_watch in started_watches:
                    started_watch.stop()

                # Don't start any of the others
                break

        # Wait on all of them to terminate
        for watch in cls._ALL_WATCHES.values():
            watch.wait()

        return success

    @classmethod
    def stop_all(cls):
        """This utility stops all watches"""
        for watch in cls._ALL_WATCHES.values():
            try:
                watch.stop()
                log.debug2("Waiting for %s to terminate", watch)
                watch.wait()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log.error("Failed to stop watch manager %s", exc, exc_info=True)

    ## Implementation Details ##################################################

    def __str__(self):
        """String representation of this watch"""
        return f"Watch[{self.api_version}/{self.kind}]"
