"""
Python-based implementation of the WatchManager
"""

# Standard
from typing import List, Optional
import threading

# First Party
import alog

# Local
from ... import config
from ...deploy_manager import DeployManagerBase, OpenshiftDeployManager
from ...reconcile import ReconcileManager
from ..base import WatchManagerBase
from .threads import ReconcileThread, WatchThread

log = alog.use_channel("PYTHW")


class PythonWatchManager(WatchManagerBase):
    """The PythonWatchManager uses the kubernetes watch client to watch the
    Minecraft kind and the kinds it owns and execute reconciles. It does the
    following two things

    1. Start a watch thread for each watched kind in each namespace
    2. Start a reconcile thread to run the passes on a worker pool
    """

    def __init__(
        self,
        deploy_manager: Optional[DeployManagerBase] = None,
        reconcile_manager: Optional[ReconcileManager] = None,
        namespace_list: Optional[List[str]] = None,
    ):
        """Initialize the required threads

        Args:
            deploy_manager: Optional[DeployManagerBase] = None
                An optional DeployManager override
            reconcile_manager: Optional[ReconcileManager] = None
                An optional ReconcileManager override
            namespace_list: Optional[List[str]] = []
                A list of namespaces to watch
        """
        # Handle functional args
        if deploy_manager is None:
            log.debug("Using OpenshiftDeployManager")
            deploy_manager = OpenshiftDeployManager()
        self.deploy_manager = deploy_manager
        super().__init__(
            reconcile_manager or ReconcileManager(deploy_manager=self.deploy_manager)
        )

        # Setup watch namespace
        self.namespace_list = namespace_list or []
        if not namespace_list and config.watch_namespace != "":
            self.namespace_list = config.watch_namespace.split(",")

        # Setup Control variables
        self.shutdown = threading.Event()

        # Setup Threads
        self.reconcile_thread: ReconcileThread = ReconcileThread(
            self.reconcile_manager
        )

        # Create a thread for each resource watch
        self.resource_watches: List[WatchThread] = []
        if len(self.namespace_list) == 0 or "*" in self.namespace_list:
            namespaces = [None]
        else:
            namespaces = self.namespace_list
        for namespace in namespaces:
            for api_version, kind in self.watched_kinds:
                self.resource_watches.append(
                    self._add_resource_watch(kind, api_version, namespace)
                )

    ## Interface ###############################################################

    def watch(self) -> bool:
        """Start all threads

        Returns:
            success:  bool
                True if all threads are running correctly
        """
        log.info("Starting PythonWatchManager: %s", self)

        # If watch has been shutdown then exit before starting threads
        if self.shutdown.is_set():
            return False

        # Start reconcile thread and all watch threads
        self.reconcile_thread.start_thread()
        for watch_thread in self.resource_watches:
            log.debug("Starting watch_thread: %s", watch_thread)
            watch_thread.start_thread()
        return True

    def wait(self):
        """Wait shutdown to be signaled"""
        self.shutdown.wait()

    def stop(self):
        """Stop all threads. This waits for all running reconciles to finish"""
        log.info(
            "Stopping PythonWatchManager for %s/%s/%s",
            self.group,
            self.version,
            self.kind,
        )
        self.shutdown.set()

        for watch_thread in self.resource_watches:
            watch_thread.stop_thread()
        self.reconcile_thread.stop_thread()

    ## Helper Functions ###############################################################

    def _add_resource_watch(
        self, kind: str, api_version: str, namespace: Optional[str] = None
    ) -> WatchThread:
        """Create a watch thread for a kind. Optionally for a specific namespace"""
        log.debug3(
            "Adding %s/%s watch for %s", api_version, kind, namespace or "all namespaces"
        )
        return WatchThread(
            reconcile_thread=self.reconcile_thread,
            kind=kind,
            api_version=api_version,
            request_key=self.request_key,
            namespace=namespace,
            deploy_manager=self.deploy_manager,
        )
