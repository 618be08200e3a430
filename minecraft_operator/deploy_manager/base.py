"""
This defines the base class for all DeployManager types.
"""

# Standard
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional, Tuple
import abc

# Local
from ..managed_object import ManagedObject
from .owner_references import set_owner_reference


class KubeEventType(Enum):
    """The kinds of change a watch reports"""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


class KubeWatchEvent(NamedTuple):
    """One change observed by a watch: what happened and the object as it
    looked afterwards (or just before removal for DELETED)
    """

    type: KubeEventType
    resource: ManagedObject


class DeployManagerBase(abc.ABC):
    """
    Base class for deploy managers which will be responsible for reading and
    writing resources in the store. Writes are guarded by resourceVersion and
    raise ConflictError when made against a stale version.
    """

    @abc.abstractmethod
    def create(self, resource_definition: dict) -> Tuple[bool, Optional[dict]]:
        """Create a new object in the store

        Args:
            resource_definition:  dict
                The manifest of the object to create

        Returns:
            success:  bool
                Whether or not the create succeeded
            content:  Optional[dict]
                The stored object, including its assigned uid and
                resourceVersion

        Raises:
            ConflictError: If an object with the same identity already exists
        """

    @abc.abstractmethod
    def update(self, resource_definition: dict) -> Tuple[bool, Optional[dict]]:
        """Replace the metadata and spec of an existing object. The status of
        the object is left unchanged.

        Args:
            resource_definition:  dict
                The full manifest to write. If it carries a resourceVersion,
                the write only succeeds against that version.

        Returns:
            success:  bool
                Whether or not the update succeeded
            content:  Optional[dict]
                The stored object after the update

        Raises:
            ConflictError: If the resourceVersion is stale
        """

    @abc.abstractmethod
    def disable(self, resource_definitions: List[dict]) -> Tuple[bool, bool]:
        """Request deletion of the given objects. Objects holding finalizers
        are only marked for deletion.

        Args:
            resource_definitions:  list(dict)
                List of resource object dicts to delete

        Returns:
            success:  bool
                Whether or not the delete succeeded
            changed:  bool
                Whether or not the delete resulted in changes
        """

    @abc.abstractmethod
    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """The get_object_current_state function fetches the current state of a
        given object by name

        Args:
            kind:  str
                The kind of the object to fetch
            name:  str
                The full name of the object to fetch
            namespace:  str
                The namespace to search for the object
            api_version:  str
                The api_version of the resource kind to fetch

        Returns:
            success:  bool
                Whether or not the state fetch operation succeeded
            current_state:  dict or None
                The dict representation of the current object's configuration,
                or None if not present
        """

    @abc.abstractmethod
    def watch_objects(
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
    ) -> Iterator[KubeWatchEvent]:
        """The watch_objects function listens for changes in the store and
        returns a stream of KubeWatchEvents

        Args:
            kind:  str
                The kind of the object to watch
            api_version:  str
                The api_version of the resource kind to watch
            namespace:  str
                The namespace to watch. None watches all namespaces
            resource_version:  str
                The resource_version the events must be newer than

        Returns:
            watch_stream: Generator[KubeWatchEvent]
                A stream of KubeWatchEvents generated while watching
        """

    @abc.abstractmethod
    def filter_objects_current_state(
        self,
        kind: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, List[dict]]:
        """List all objects of a kind

        Args:
            kind:  str
                The kind of the object to fetch
            namespace:  str
                The namespace to search for the objects
            api_version:  str
                The api_version of the resource kind to fetch

        Returns:
            success:  bool
                Whether or not the state fetch operation succeeded
            current_state:  List[dict]
                A list of  dict representations for the objects configuration,
                or an empty list if no objects match
        """

    @abc.abstractmethod
    def set_status(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        status: dict,
        api_version: Optional[str] = None,
        resource_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Set the status for an object managed by the operator

        Args:
            kind:  str
                The kind of the object to update
            name:  str
                The full name of the object to update
            namespace:  Optional[str]
                The namespace of the object
            status:  dict
                The status object to set onto the given object
            api_version:  str
                The api_version of the resource to update
            resource_version:  Optional[str]
                If given, the write only succeeds against this version

        Returns:
            success:  bool
                Whether or not the status update succeeded
            content:  Optional[dict]
                The stored object after the update

        Raises:
            ConflictError: If the resourceVersion is stale
        """

    @staticmethod
    def set_owner_reference(owner_cr: dict, child_obj: dict) -> dict:
        """Stamp a validated owner reference to the owner CR onto the child
        object. The owner and child must share a namespace.
        """
        return set_owner_reference(owner_cr, child_obj)
