"""
A Session holds the state of a single reconciliation pass. Passes for
different resources each get their own Session, so nothing mutable is shared
between them.
"""

# Standard
from typing import Callable, Optional

# First Party
import alog

# Local
from . import constants
from .deploy_manager import DeployManagerBase
from .exceptions import ConflictError, NotFoundError, assert_cluster
from .log_format import set_log_context_manifest
from .managed_object import NamespacedName

log = alog.use_channel("SESSN")


class Session:
    """Per-pass state: the reconciliation id, the key of the parent resource,
    the most recently observed parent manifest and the conflict budget
    """

    def __init__(
        self,
        reconciliation_id: str,
        key: NamespacedName,
        deploy_manager: DeployManagerBase,
    ):
        """
        Args:
            reconciliation_id:  str
                Unique id of this pass, used for logging
            key:  NamespacedName
                The namespaced name of the parent resource
            deploy_manager:  DeployManagerBase
                The store client used for all reads and writes in this pass
        """
        self.reconciliation_id = reconciliation_id
        self.key = key
        self.deploy_manager = deploy_manager
        self.cr_manifest = None
        self._conflict_retried = False

    ## Properties ##############################################################

    @property
    def name(self) -> str:
        """The name of the parent resource"""
        return self.key.name

    @property
    def namespace(self) -> str:
        """The namespace of the parent resource"""
        return self.key.namespace

    ## Parent Access ###########################################################

    def fetch(self) -> Optional[dict]:
        """Read the parent from the store

        Returns:
            cr_manifest:  Optional[dict]
                The current parent manifest or None if it does not exist
        """
        success, content = self.deploy_manager.get_object_current_state(
            kind=constants.PARENT_KIND,
            name=self.name,
            namespace=self.namespace,
            api_version=constants.PARENT_API_VERSION,
        )
        assert_cluster(success, f"Failed to fetch {constants.PARENT_KIND} {self.key}")
        self._set_manifest(content)
        return content

    def refetch(self) -> dict:
        """Read the parent from the store, ending the pass if it is gone

        Raises:
            NotFoundError: If the parent no longer exists
        """
        if self.fetch() is None:
            raise NotFoundError(f"{constants.PARENT_KIND} {self.key} no longer exists")
        return self.cr_manifest

    def write(self, operation: Callable[[dict], dict]) -> dict:
        """Run a write computed from the current parent manifest. If the write
        is rejected because the manifest is stale, the parent is re-fetched and
        the write is retried once. Only one such retry is allowed per pass.

        Args:
            operation:  Callable[[dict], dict]
                Function taking the current parent manifest, performing the
                write and returning the stored manifest

        Returns:
            cr_manifest:  dict
                The stored parent manifest after the write
        """
        try:
            result = operation(self.cr_manifest)
        except ConflictError as err:
            if self._conflict_retried:
                log.debug("Second conflict in pass %s", self.reconciliation_id)
                raise
            self._conflict_retried = True
            log.debug("Conflict writing %s: %s. Re-fetching", self.key, err)
            self.refetch()
            result = operation(self.cr_manifest)
        self._set_manifest(result)
        return result

    def update_parent(self, cr_manifest: dict) -> dict:
        """Write the metadata and spec of the parent"""
        success, content = self.deploy_manager.update(cr_manifest)
        assert_cluster(success, f"Failed to update {constants.PARENT_KIND} {self.key}")
        return content

    ## Dependent Access ########################################################

    def get_dependent(self, kind: str, api_version: str) -> Optional[dict]:
        """Look up the dependent of the given kind. Dependents share the
        parent's name and namespace.
        """
        success, content = self.deploy_manager.get_object_current_state(
            kind=kind,
            name=self.name,
            namespace=self.namespace,
            api_version=api_version,
        )
        assert_cluster(success, f"Failed to fetch {kind} {self.key}")
        return content

    def create_dependent(self, manifest: dict) -> dict:
        """Create a dependent in the store"""
        success, content = self.deploy_manager.create(manifest)
        assert_cluster(success, f"Failed to create {manifest.get('kind')} {self.key}")
        return content

    ## Implementation Details ##################################################

    def _set_manifest(self, cr_manifest: Optional[dict]):
        self.cr_manifest = cr_manifest
        set_log_context_manifest(cr_manifest)
