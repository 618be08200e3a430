"""The WatchThread Class is responsible for monitoring the cluster for
resource events
"""
# Standard
from typing import Callable, Optional
import os
import threading

# Third Party
from kubernetes import watch

# First Party
import alog

# Local
from .... import config
from ....deploy_manager import DeployManagerBase, KubeWatchEvent
from ....managed_object import ManagedObject, NamespacedName
from ..utils import ReconcileRequest, parse_time_delta

log = alog.use_channel("WTCHTHRD")

# Forward declaration of ReconcileThread
RECONCILE_THREAD_TYPE = "ReconcileThread"


class WatchThread(threading.Thread):  # pylint: disable=too-many-instance-attributes
    """The WatchThread monitors the cluster for changes to a specific kind
    either cluster-wide or for a particular namespace. Every event is mapped to
    the key of the Minecraft resource it belongs to and submitted as a
    ReconcileRequest. Events for objects with no such owner are dropped.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        reconcile_thread: RECONCILE_THREAD_TYPE,
        kind: str,
        api_version: str,
        request_key: Callable[[ManagedObject], Optional[NamespacedName]],
        namespace: Optional[str] = None,
        deploy_manager: DeployManagerBase = None,
    ):
        """Initialize a WatchThread by assigning instance variables

        Args:
            reconcile_thread: ReconcileThread
                The reconcile thread to submit requests to
            kind: str
                The kind to watch
            api_version: str
                The api_version to watch
            request_key: Callable[[ManagedObject], Optional[NamespacedName]]
                Maps an observed object to the key to reconcile
            namespace: Optional[str] = None
                The namespace to watch. If none then cluster-wide
            deploy_manager: DeployManagerBase = None
                The deploy_manager to watch events
        """
        self.reconcile_thread = reconcile_thread
        self.kind = kind
        self.api_version = api_version
        self.request_key = request_key
        self.namespace = namespace
        self.deploy_manager = deploy_manager

        name = f"watch_thread_{self.api_version}_{self.kind}"
        if self.namespace:
            name = name + f"_{self.namespace}"
        super().__init__(name=name, daemon=True)
        self.shutdown = threading.Event()

        # Setup kubernetes watch resource
        self.kubernetes_watch = watch.Watch()

        # Variables for tracking retries
        self.attempts_left = config.python_watch_manager.watch_retry_count
        self.retry_delay = parse_time_delta(
            config.python_watch_manager.watch_retry_delay or ""
        )

    def run(self):
        """The WatchThread's control loop continuously watches the DeployManager
        for any new events and submits a ReconcileRequest for each one that
        maps to a key. Failed watches are restarted a configured number of
        times before the operator exits.
        """
        list_resource_version = 0
        while True:
            try:
                if self.shutdown.is_set():
                    log.debug("Watch stopped. Shutting down")
                    return

                for event in self.deploy_manager.watch_objects(
                    self.kind,
                    self.api_version,
                    namespace=self.namespace,
                    resource_version=list_resource_version,
                    watch_manager=self.kubernetes_watch,
                ):
                    if self.shutdown.is_set():
                        log.debug("Watch stopped. Shutting down")
                        return

                    # A successful event means the watch is healthy again
                    self.attempts_left = config.python_watch_manager.watch_retry_count
                    self._request_reconcile(event)

                # Update the resource version to only get new events
                list_resource_version = self.kubernetes_watch.resource_version
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log.info(
                    "Exception raised when attempting to watch %s",
                    repr(exc),
                    exc_info=exc,
                )
                if self.attempts_left <= 0:
                    log.error(
                        "Unable to start watch within %d attempts",
                        config.python_watch_manager.watch_retry_count,
                    )
                    os._exit(1)

                # Sleep out the retry delay unless the thread is stopped first
                if self.shutdown.wait(self.retry_delay.total_seconds()):
                    log.debug("Watch stopped during retry. Shutting down")
                    return
                self.attempts_left = self.attempts_left - 1
                log.info("Restarting watch with %d attempts left", self.attempts_left)

    ## Class Interface ###################################################

    def start_thread(self):
        """If the thread is not already alive start it"""
        if not self.is_alive():
            log.info("Starting %s: %s", self.__class__.__name__, self.name)
            self.start()

    def stop_thread(self):
        """Set the shutdown event and stop the kubernetes client's Watch"""
        log.info("Stopping %s: %s", self.__class__.__name__, self.name)
        self.shutdown.set()
        self.kubernetes_watch.stop()

    ## Implementation Details ###################################################

    def _request_reconcile(self, event: KubeWatchEvent):
        """Request a reconcile for a kube event

        Args:
            event: KubeWatchEvent
                The KubeWatchEvent that triggered the reconcile
        """
        key = self.request_key(event.resource)
        if key is None:
            log.debug2(
                "Skipping %s event for unowned %s %s",
                event.type.value,
                event.resource.kind,
                event.resource.name,
            )
            return

        log.debug(
            "Requesting reconcile of %s for %s event on %s %s",
            key,
            event.type.value,
            event.resource.kind,
            event.resource.name,
        )
        self.reconcile_thread.push_request(ReconcileRequest(key, event.type))
