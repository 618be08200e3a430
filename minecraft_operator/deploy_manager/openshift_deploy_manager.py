"""
This DeployManager is responsible for delegating store operations to the
openshift library. It is the one that will be used when the operator is running
in the cluster or outside the cluster making live changes.
"""
# Standard
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

# Third Party
from kubernetes import client
from kubernetes.watch import Watch
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import ConflictError as DynamicConflictError
from openshift.dynamic.exceptions import (
    DynamicApiError,
    ForbiddenError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from .. import config
from ..exceptions import ConflictError, StoreUnavailableError, assert_cluster
from ..managed_object import ManagedObject
from .base import DeployManagerBase, KubeEventType, KubeWatchEvent


log = alog.use_channel("OSFTD")

## Deploy Manager ##############################################################


# See this document for value reasonings
# https://github.com/kubernetes-client/python/blob/master/examples/watch/timeout-settings.md
SERVER_WATCH_TIMEOUT = 3600
CLIENT_WATCH_TIMEOUT = 30


class OpenshiftDeployManager(DeployManagerBase):
    """This DeployManager uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self, request_timeout: Optional[float] = None):
        """
        Args:
            request_timeout:  Optional[float]
                Deadline in seconds for every call against the cluster. Defaults
                to the store_request_timeout_seconds config value.
        """
        self._request_timeout = (
            request_timeout
            if request_timeout is not None
            else config.store_request_timeout_seconds
        )

        # Set up the client
        log.debug("Initializing openshift client")
        self._client = None

    @property
    def client(self):
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    @alog.logged_function(log.debug)
    def create(self, resource_definition: dict) -> Tuple[bool, Optional[dict]]:
        """Create the object using the openshift client

        Args:
            resource_definition:  dict
                The manifest of the object to create

        Returns:
            success:  bool
                True if the create succeeded, False otherwise
            content:  Optional[dict]
                The stored object
        """
        resource_handle, namespace, name = self._get_handle_for(resource_definition)
        log.debug2("Creating [%s/%s] in %s", resource_handle.kind, name, namespace)
        with self._translate_errors("create", resource_handle.kind, name):
            result = resource_handle.create(
                body=resource_definition,
                namespace=namespace,
                _request_timeout=self._request_timeout,
            )
        return True, result.to_dict()

    @alog.logged_function(log.debug)
    def update(self, resource_definition: dict) -> Tuple[bool, Optional[dict]]:
        """Replace the object using the openshift client. A resourceVersion on
        the definition makes the write conditional.
        """
        resource_handle, namespace, name = self._get_handle_for(resource_definition)
        log.debug2("Replacing [%s/%s] in %s", resource_handle.kind, name, namespace)
        with self._translate_errors("update", resource_handle.kind, name):
            result = resource_handle.replace(
                body=resource_definition,
                namespace=namespace,
                _request_timeout=self._request_timeout,
            )
        return True, result.to_dict()

    @alog.logged_function(log.debug)
    def disable(self, resource_definitions: List[dict]) -> Tuple[bool, bool]:
        """Request deletion of each resource. Missing kinds and objects are a
        success without change.

        Args:
            resource_definitions:  list(dict)
                List of resource object dicts to delete

        Returns:
            success:  bool
                True if all deletes succeeded, False otherwise
            changed:  bool
                Whether or not the delete resulted in changes
        """
        changed = False
        for resource_definition in resource_definitions:
            kind = resource_definition.get("kind")
            api_version = resource_definition.get("apiVersion")
            metadata = resource_definition.get("metadata", {})
            name = metadata.get("name")
            namespace = metadata.get("namespace")
            try:
                resource_handle = self.client.resources.get(
                    api_version=api_version, kind=kind
                )
                if not namespace:
                    resource_handle.namespaced = False
                log.debug2(
                    "Attempting to delete [%s/%s/%s] from %s",
                    api_version,
                    kind,
                    name,
                    namespace,
                )
                resource_handle.delete(
                    name=name,
                    namespace=namespace,
                    _request_timeout=self._request_timeout,
                )
                changed = True

            # If the kind or instance is not found, that's a success without change
            except (ResourceNotFoundError, NotFoundError) as err:
                log.debug2(
                    "Valid error caught when disabling [%s/%s]: %s", kind, name, err
                )
            except (DynamicApiError, urllib3.exceptions.HTTPError) as err:
                log.warning(
                    "Failed to disable [%s/%s]: %s", kind, name, err, exc_info=True
                )
                return False, changed

        return True, changed

    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """The get_object_current_state function fetches the current state
        using calls directly to the api client

        Args:
            kind:  str
                The kind of the object ot fetch
            name:  str
                The full name of the object to fetch
            namespace:  Optional[str]
                The namespace to search for the object or None for no namespace
            api_version:  Optional[str]
                The api_version of the resource kind to fetch

        Returns:
            success:  bool
                Whether or not the state fetch operation succeeded
            current_state:  dict or None
                The dict representation of the current object's configuration,
                or None if not present
        """

        # Use the lazy discovery tool to first get all objects of the given type
        # in the given namespace, then look for the specific resource by name
        resources = self._get_resource_handle(kind, api_version)
        if not resources:
            return True, None

        if not namespace:
            resources.namespaced = False

        try:
            resource = resources.get(
                name=name,
                namespace=namespace,
                _request_timeout=self._request_timeout,
            )
        except ForbiddenError:
            log.debug(
                "Fetching objects of kind [%s] forbidden in namespace [%s]",
                kind,
                namespace,
            )
            return False, None
        except NotFoundError:
            log.debug(
                "No object named [%s/%s] found in namespace [%s]", kind, name, namespace
            )
            return True, None
        except (DynamicApiError, urllib3.exceptions.HTTPError) as err:
            log.warning("Failed to fetch [%s/%s]: %s", kind, name, err)
            return False, None

        # If the resource was found, return it's dict representation
        return True, resource.to_dict()

    def watch_objects(
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager: Optional[Watch] = None,
    ) -> Iterator[KubeWatchEvent]:
        watch_manager = watch_manager if watch_manager else Watch()
        resource_handle = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resource_handle,
            (
                "Failed to fetch resource handle for "
                + f"{namespace}/{api_version}/{kind}"
            ),
        )

        resource_version = resource_version if resource_version else 0

        while True:
            try:
                for event_obj in watch_manager.stream(
                    resource_handle.get,
                    resource_version=resource_version,
                    namespace=namespace or None,
                    serialize=False,
                    timeout_seconds=SERVER_WATCH_TIMEOUT,
                    _request_timeout=CLIENT_WATCH_TIMEOUT,
                ):
                    event_type = KubeEventType(event_obj["type"])
                    event_resource = ManagedObject(event_obj["object"])
                    yield KubeWatchEvent(event_type, event_resource)
            except client.exceptions.ApiException as exception:
                if exception.status == 410:
                    log.debug2(
                        "Resource age expired, restarting watch %s/%s",
                        kind,
                        api_version,
                    )
                    resource_version = None
                else:
                    log.info("Unknown ApiException received, re-raising")
                    raise exception
            except urllib3.exceptions.ReadTimeoutError:
                log.debug4(
                    "Watch Socket closed, restarting watch %s/%s", kind, api_version
                )
            except urllib3.exceptions.ProtocolError:
                log.debug2(
                    "Invalid Chunk from server, restarting watch %s/%s",
                    kind,
                    api_version,
                )

            # This is hidden attribute so probably not best to check
            if watch_manager._stop:  # pylint: disable=protected-access
                log.debug(
                    "Internal watch stopped. Stopping deploy manager watch for %s/%s",
                    kind,
                    api_version,
                )
                return

    def filter_objects_current_state(
        self,
        kind: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, List[dict]]:
        resources = self._get_resource_handle(kind, api_version)
        if not resources:
            return True, []

        if not namespace:
            resources.namespaced = False

        try:
            list_obj = resources.get(
                namespace=namespace or None,
                _request_timeout=self._request_timeout,
            )
        except ForbiddenError:
            log.debug(
                "Fetching objects of kind [%s] forbidden in namespace [%s]",
                kind,
                namespace,
            )
            return False, []
        except NotFoundError:
            log.debug(
                "No objects of kind [%s] found in namespace [%s]", kind, namespace
            )
            return True, []
        except (DynamicApiError, urllib3.exceptions.HTTPError) as err:
            log.warning("Failed to list [%s] in [%s]: %s", kind, namespace, err)
            return False, []

        # If the resource was found, get it's dict representation
        return True, list_obj.to_dict().get("items", [])

    def set_status(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        status: dict,
        api_version: Optional[str] = None,
        resource_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Set the status in the cluster manifest for an object managed by this
        operator

        Args:
            kind:  str
                The kind of the object ot fetch
            name:  str
                The full name of the object to fetch
            namespace:  Optional[str]
                The namespace to search for the object.
            status:  dict
                The status object to set onto the given object
            api_version:  Optional[str]
                The api_version of the resource to update
            resource_version:  Optional[str]
                If given, the write only succeeds against this version

        Returns:
            success:  bool
                Whether or not the status update operation succeeded
            content:  Optional[dict]
                The stored object after the update
        """
        metadata = {"name": name, "namespace": namespace}
        if resource_version:
            metadata["resourceVersion"] = resource_version
        body = {
            "kind": kind,
            "apiVersion": api_version,
            "metadata": metadata,
            "status": status,
        }
        resource_handle, namespace, name = self._get_handle_for(body)
        with self._translate_errors("set_status", kind, name):
            result = resource_handle.status.patch(
                body=body,
                namespace=namespace,
                content_type="application/merge-patch+json",
                _request_timeout=self._request_timeout,
            )
        log.debug2(
            "Successfully set the status for [%s/%s] in %s", kind, name, namespace
        )
        return True, result.to_dict()

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client():
        """Create a DynamicClient that will work based on where the operator is
        running
        """
        # Try in-cluster config
        try:
            log.debug2("Running with in-cluster config")

            # Create Empty Config and load in-cluster information
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)

            # Generate ApiClient and return Openshift DynamicClient
            api_client = kubernetes.client.ApiClient(kube_config)
            return DynamicClient(api_client)

        # Fall back to out-of-cluster config
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(self, kind: str, api_version: str) -> Optional[Resource]:
        """Get the openshift resource handle for a specified kind and api_version"""
        resources = None
        try:
            resources = self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError):
            log.debug(
                "No objects of kind [%s] found or multiple objects matching request found",
                kind,
            )
        return resources

    def _get_handle_for(self, resource_definition: dict) -> Tuple[Resource, str, str]:
        kind = resource_definition.get("kind")
        api_version = resource_definition.get("apiVersion")
        metadata = resource_definition.get("metadata", {})
        resource_handle = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resource_handle,
            f"Failed to fetch resource handle for {api_version}/{kind}",
        )
        return resource_handle, metadata.get("namespace"), metadata.get("name")

    @staticmethod
    @contextmanager
    def _translate_errors(operation: str, kind: str, name: str):
        """Map client failures onto the operator's error types"""
        description = f"{operation} [{kind}/{name}]"
        try:
            yield
        except DynamicConflictError as err:
            log.debug2("Conflict on %s: %s", description, err)
            raise ConflictError(f"Conflict on {description}") from err
        except (
            DynamicApiError,
            urllib3.exceptions.HTTPError,
            client.exceptions.ApiException,
        ) as err:
            log.warning("Failed to %s: %s", description, err)
            raise StoreUnavailableError(f"Failed to {description}") from err
