"""
Dry run implementation of the WatchManager abstraction
"""

# Standard
from collections import Counter
from typing import Dict, Optional

# First Party
import alog

# Local
from .. import config
from ..deploy_manager import DryRunDeployManager
from ..managed_object import ManagedObject, NamespacedName
from ..reconcile import ReconcileManager, ReconciliationResult
from .base import WatchManagerBase

log = alog.use_channel("DRWAT")


class DryRunWatchManager(WatchManagerBase):
    """
    The DryRunWatchManager implements the WatchManagerBase interface with using
    a single shared DryRunDeployManager to manage an in-memory representation of
    the cluster.

    Every write to a watched kind enqueues the key of the parent it belongs to.
    The queue is drained synchronously: each key is reconciled again for as
    long as its passes ask to be requeued, bounded by a maximum number of passes
    per key. Requeue delays are not waited out.
    """

    def __init__(
        self,
        deploy_manager: Optional[DryRunDeployManager] = None,
        reconcile_manager: Optional[ReconcileManager] = None,
        max_passes: Optional[int] = None,
    ):
        """Construct with an optional deploy_manager instance. A deploy_manager
        will be constructed if none is given.

        Args:
            deploy_manager:  Optional[DryRunDeployManager]
                If given, this deploy_manager will be used. This allows for
                there to be pre-populated resources. Note that it _must_ be a
                DryRunDeployManager (or child class) that supports registering
                watches.
            reconcile_manager:  Optional[ReconcileManager]
                The manager that runs the passes. Defaults to one using the
                deploy_manager.
            max_passes:  Optional[int]
                The most passes to run per key in a single drain. Defaults to
                the dry_run_max_passes config value.
        """
        self._deploy_manager = deploy_manager or DryRunDeployManager()
        super().__init__(
            reconcile_manager
            or ReconcileManager(deploy_manager=self._deploy_manager)
        )
        self.max_passes = max_passes or config.dry_run_max_passes

        # Keys waiting to be reconciled, in arrival order
        self._pending: Dict[NamespacedName, None] = {}
        self._draining = False
        self._watching = False

        # The most recent result for each key
        self.results: Dict[NamespacedName, ReconciliationResult] = {}

    def watch(self) -> bool:
        """Register the watches with the deploy manager"""
        if self._watching:
            log.warning("Cannot watch multiple times!")
            return False

        for api_version, kind in self.watched_kinds:
            log.debug("Registering %s/%s with the DeployManager", api_version, kind)
            self._deploy_manager.register_watch(
                api_version=api_version,
                kind=kind,
                callback=self.enqueue,
            )
            self._deploy_manager.register_deletion_watch(
                api_version=api_version,
                kind=kind,
                callback=self.enqueue,
            )

        self._watching = True
        return True

    def wait(self):
        """There is nothing to do in wait"""

    def stop(self):
        """There is nothing to do in stop"""

    def enqueue(self, resource: dict):
        """Callback for watched events. The key of the owning parent is queued
        and the queue drained unless a drain is already underway.
        """
        key = self.request_key(ManagedObject(resource))
        if key is None:
            log.debug3("Ignoring unowned %s", resource.get("kind"))
            return
        log.debug2("Enqueuing %s", key)
        self._pending[key] = None
        self.drain()

    def drain(self):
        """Reconcile queued keys until none remain. Writes made by a pass only
        enqueue their key, which is picked up by the running drain.
        """
        if self._draining:
            return
        self._draining = True
        pass_counts = Counter()
        try:
            while self._pending:
                key = next(iter(self._pending))
                del self._pending[key]
                if pass_counts[key] >= self.max_passes:
                    log.warning(
                        "%s did not converge within %d passes", key, self.max_passes
                    )
                    continue
                pass_counts[key] += 1

                result = self.reconcile_manager.safe_reconcile(key)
                self.results[key] = result
                log.debug("Pass %d for %s: %s", pass_counts[key], key, result)
                if result.requeue:
                    self._pending[key] = None
        finally:
            self._draining = False
