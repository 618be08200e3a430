"""
The DryRunDeployManager implements the DeployManager interface but does not
actually interact with the cluster and instead holds the state of the cluster in
a local map.
"""

# Standard
from datetime import datetime, timedelta, timezone
from functools import partial
from queue import Empty, Queue
from threading import RLock
from typing import Callable, Iterator, List, Optional, Tuple
import copy
import itertools
import uuid

# First Party
import alog

# Local
from ..exceptions import ConflictError
from ..managed_object import ManagedObject
from .base import DeployManagerBase, KubeEventType, KubeWatchEvent


log = alog.use_channel("DRY-RUN")

# Lock to ensure reads and writes are thread safe
DRY_RUN_CLUSTER_LOCK = RLock()

# Metadata fields owned by the store that a client write can never change
_SERVER_MANAGED_FIELDS = [
    "uid",
    "creationTimestamp",
    "deletionTimestamp",
    "deletionGracePeriodSeconds",
]


class DryRunDeployManager(DeployManagerBase):
    """
    Deploy manager which doesn't actually deploy!

    The in-memory cluster follows the same rules as a live one: every write
    bumps a monotonically increasing resourceVersion, writes against a stale
    resourceVersion are rejected, objects holding finalizers are only marked
    for deletion, and removing an object garbage collects everything it owns.
    """

    def __init__(self, resources: Optional[List[dict]] = None):
        """Construct with an optional set of resources already in the cluster"""
        self._cluster_content = {}
        self._resource_version_counter = itertools.count(1)

        # Dicts of registered watches and deletion watchers
        self._watches = {}
        self._deletion_watches = {}

        # Seed provided resources without notifying anyone
        for resource in resources or []:
            self._put(copy.deepcopy(resource))

    ## Interface ###############################################################

    def create(self, resource_definition: dict) -> Tuple[bool, Optional[dict]]:
        api_version, kind, namespace, name = _identifiers(resource_definition)
        log.info("DRY RUN create [%s/%s/%s/%s]", namespace, kind, api_version, name)
        with DRY_RUN_CLUSTER_LOCK:
            if self._get(namespace, kind, api_version, name) is not None:
                raise ConflictError(
                    f"{api_version}.{kind}/{name} already exists in {namespace}"
                )
            stored = self._put(copy.deepcopy(resource_definition))

        self._call_watches(stored)
        return True, copy.deepcopy(stored)

    def update(self, resource_definition: dict) -> Tuple[bool, Optional[dict]]:
        api_version, kind, namespace, name = _identifiers(resource_definition)
        log.info("DRY RUN update [%s/%s/%s/%s]", namespace, kind, api_version, name)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._get(namespace, kind, api_version, name)
            if current is None:
                log.debug("Did not find [%s/%s] in %s", kind, name, namespace)
                return False, None
            self._check_resource_version(
                current,
                resource_definition.get("metadata", {}).get("resourceVersion"),
            )

            updated = copy.deepcopy(resource_definition)
            metadata = updated.setdefault("metadata", {})
            for key in _SERVER_MANAGED_FIELDS:
                metadata.pop(key, None)
                if key in current["metadata"]:
                    metadata[key] = current["metadata"][key]
            updated.pop("status", None)
            if "status" in current:
                updated["status"] = current["status"]

            stored, removed = self._replace(namespace, kind, api_version, name, updated)

        self._notify(stored, removed)
        return True, copy.deepcopy(stored)

    def set_status(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        status: dict,
        api_version: Optional[str] = None,
        resource_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        log.info(
            "DRY RUN set_status of [%s.%s/%s] in %s: %s",
            api_version,
            kind,
            name,
            namespace,
            status,
        )
        with DRY_RUN_CLUSTER_LOCK:
            current = self._get(namespace, kind, api_version, name)
            if current is None:
                log.debug("Did not find [%s/%s] in %s", kind, name, namespace)
                return False, None
            self._check_resource_version(current, resource_version)

            updated = copy.deepcopy(current)
            updated["status"] = copy.deepcopy(status)
            stored, removed = self._replace(namespace, kind, api_version, name, updated)

        self._notify(stored, removed)
        return True, copy.deepcopy(stored)

    def disable(self, resource_definitions: List[dict]) -> Tuple[bool, bool]:
        log.info("DRY RUN disable")
        changed = False
        for resource in resource_definitions:
            api_version, kind, namespace, name = _identifiers(resource)
            with DRY_RUN_CLUSTER_LOCK:
                current = self._get(namespace, kind, api_version, name)
                if current is None:
                    log.debug2("Nothing to disable for [%s/%s]", kind, name)
                    continue
                changed = True

                # Mark the object for deletion
                updated = copy.deepcopy(current)
                metadata = updated["metadata"]
                if not metadata.get("deletionTimestamp"):
                    metadata["deletionTimestamp"] = _timestamp()
                    metadata["deletionGracePeriodSeconds"] = 0
                stored, removed = self._replace(
                    namespace, kind, api_version, name, updated
                )

            self._notify(stored, removed)

        return True, changed

    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        log.info(
            "DRY RUN get_object_current_state of [%s/%s] in [%s]", kind, name, namespace
        )

        # Look in the cluster state
        matches = []
        with DRY_RUN_CLUSTER_LOCK:
            kind_entries = self._cluster_content.get(namespace, {}).get(kind, {})
            log.debug3("Kind entries: %s", kind_entries)
            for api_ver, entries in kind_entries.items():
                log.debug3("Checking api_version [%s // %s]", api_ver, api_version)
                if name in entries and (api_ver == api_version or api_version is None):
                    matches.append(copy.deepcopy(entries[name]))
        log.debug(
            "Found %d matches for [%s/%s] in %s", len(matches), kind, name, namespace
        )
        if len(matches) == 1:
            return True, matches[0]
        return True, None

    def filter_objects_current_state(
        self,
        kind: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, List[dict]]:
        log.info(
            "DRY RUN filter_objects_current_state of [%s] in [%s]", kind, namespace
        )
        matches = []
        with DRY_RUN_CLUSTER_LOCK:
            namespaces = (
                [namespace] if namespace else list(self._cluster_content.keys())
            )
            for search_namespace in namespaces:
                kind_entries = self._cluster_content.get(search_namespace, {}).get(
                    kind, {}
                )
                for api_ver, entries in kind_entries.items():
                    if api_ver != api_version and api_version is not None:
                        continue
                    matches.extend(copy.deepcopy(list(entries.values())))
        return True, matches

    def watch_objects(  # pylint: disable=too-many-arguments,unused-argument
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        timeout: Optional[int] = 15,
        watch_manager=None,
    ) -> Iterator[KubeWatchEvent]:
        """Watch the DryRunDeployManager for resource changes by registering
        callbacks"""

        event_queue = Queue()
        resource_map = {}

        def add_event(resource_map: dict, manifest: dict):
            """Callback triggered when resources are written"""
            resource = ManagedObject(manifest)
            event_type = KubeEventType.ADDED

            watch_key = self._watch_key(
                api_version=resource.api_version,
                kind=resource.kind,
                namespace=resource.namespace,
                name=resource.name,
            )
            if watch_key in resource_map:
                log.debug4("Watch key detected, setting Modified event type")
                event_type = KubeEventType.MODIFIED

            resource_map[watch_key] = resource
            event_queue.put(KubeWatchEvent(type=event_type, resource=resource))

        def delete_event(resource_map: dict, manifest: dict):
            """Callback triggered when resources are removed"""
            resource = ManagedObject(manifest)
            watch_key = self._watch_key(
                api_version=resource.api_version,
                kind=resource.kind,
                namespace=resource.namespace,
                name=resource.name,
            )
            resource_map.pop(watch_key, None)
            event_queue.put(
                KubeWatchEvent(type=KubeEventType.DELETED, resource=resource)
            )

        # Register callbacks
        self.register_watch(
            api_version=api_version,
            kind=kind,
            namespace=namespace,
            callback=partial(add_event, resource_map),
        )
        self.register_deletion_watch(
            api_version=api_version,
            kind=kind,
            namespace=namespace,
            callback=partial(delete_event, resource_map),
        )

        # Get initial resources
        _, manifests = self.filter_objects_current_state(
            kind=kind,
            api_version=api_version,
            namespace=namespace,
        )
        for manifest in manifests:
            resource = ManagedObject(manifest)
            watch_key = self._watch_key(
                kind=resource.kind,
                api_version=resource.api_version,
                name=resource.name,
                namespace=resource.namespace,
            )
            resource_map[watch_key] = resource

            event = KubeWatchEvent(type=KubeEventType.ADDED, resource=resource)
            log.debug2("Yielding initial event %s", event)
            yield event

        end_time = datetime.max
        if timeout:
            end_time = datetime.now() + timedelta(seconds=timeout)

        # Yield any events from the callback queue
        log.debug2("Waiting till %s", end_time)
        while True:
            sec_till_end = min((end_time - datetime.now()).total_seconds(), 1)
            try:
                event = event_queue.get(timeout=max(sec_till_end, 0.01))
                log.debug2("Yielding event %s", event)
                yield event
            except Empty:
                pass

            if datetime.now() > end_time:
                return

    ## Dry Run Methods #########################################################

    def register_watch(  # pylint: disable=too-many-arguments
        self,
        api_version: str,
        kind: str,
        callback: Callable[[dict], None],
        namespace="",
        name="",
    ):
        """Register a callback to watch for write events on a given
        api_version/kind
        """
        watch_key = self._watch_key(
            api_version=api_version, kind=kind, namespace=namespace, name=name
        )
        log.debug("Registering watch for %s", watch_key)
        self._watches.setdefault(watch_key, []).append(callback)

    def register_deletion_watch(  # pylint: disable=too-many-arguments
        self,
        api_version: str,
        kind: str,
        callback: Callable[[dict], None],
        namespace="",
        name="",
    ):
        """Register a callback to call when an object of the given
        api_version/kind is removed from the cluster
        """
        watch_key = self._watch_key(
            api_version=api_version, kind=kind, namespace=namespace, name=name
        )
        log.debug("Registering deletion watch for %s", watch_key)
        self._deletion_watches.setdefault(watch_key, []).append(callback)

    ## Implementation Details ##################################################

    @staticmethod
    def _watch_key(api_version="", kind="", namespace="", name=""):
        return ":".join([api_version or "", kind or "", namespace or "", name or ""])

    def _get_registered_watches(  # pylint: disable=too-many-arguments
        self,
        api_version: str = "",
        kind: str = "",
        namespace: str = "",
        name: str = "",
        deletion: bool = False,
    ) -> List[Tuple[str, Callable]]:
        # Get the scoped watch key
        resource_watch_key = self._watch_key(
            api_version=api_version, kind=kind, namespace=namespace, name=name
        )
        namespaced_watch_key = self._watch_key(
            api_version=api_version, kind=kind, namespace=namespace
        )
        global_watch_key = self._watch_key(api_version=api_version, kind=kind)

        # Get which watch list we're pulling from
        callback_map = self._deletion_watches if deletion else self._watches

        output_list = []
        log.debug3(
            "Looking for resourced key: %s namespace key %s global key %s",
            resource_watch_key,
            namespaced_watch_key,
            global_watch_key,
        )
        for key, callback_list in list(callback_map.items()):
            if key in [resource_watch_key, namespaced_watch_key, global_watch_key]:
                log.debug3("%d Callbacks found for key %s", len(callback_list), key)
                for callback in callback_list:
                    output_list.append((key, callback))

        return output_list

    def _next_resource_version(self) -> str:
        return str(next(self._resource_version_counter))

    def _get(self, namespace, kind, api_version, name) -> Optional[dict]:
        return (
            self._cluster_content.get(namespace, {})
            .get(kind, {})
            .get(api_version, {})
            .get(name)
        )

    def _put(self, resource: dict) -> dict:
        """Store a brand new object, assigning its server managed fields"""
        api_version, kind, namespace, name = _identifiers(resource)
        metadata = resource.setdefault("metadata", {})
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("creationTimestamp", _timestamp())
        metadata["resourceVersion"] = self._next_resource_version()
        with DRY_RUN_CLUSTER_LOCK:
            self._cluster_content.setdefault(namespace, {}).setdefault(
                kind, {}
            ).setdefault(api_version, {})[name] = resource
        return copy.deepcopy(resource)

    def _replace(self, namespace, kind, api_version, name, resource):
        """Store a new version of an existing object. If the object is marked
        for deletion and holds no finalizers, it is removed instead.

        Returns:
            stored:  dict
                A copy of the stored (or removed) object
            removed:  bool
                Whether or not the object was removed
        """
        resource["metadata"]["resourceVersion"] = self._next_resource_version()
        self._cluster_content[namespace][kind][api_version][name] = resource
        metadata = resource["metadata"]
        removed = bool(metadata.get("deletionTimestamp")) and not metadata.get(
            "finalizers"
        )
        if removed:
            log.debug("Removing [%s/%s] from %s", kind, name, namespace)
            self._delete_key(namespace, kind, api_version, name)
        return copy.deepcopy(resource), removed

    def _delete_key(self, namespace, kind, api_version, name):
        del self._cluster_content[namespace][kind][api_version][name]
        if not self._cluster_content[namespace][kind][api_version]:
            del self._cluster_content[namespace][kind][api_version]
        if not self._cluster_content[namespace][kind]:
            del self._cluster_content[namespace][kind]
        if not self._cluster_content[namespace]:
            del self._cluster_content[namespace]

    @staticmethod
    def _check_resource_version(current: dict, resource_version: Optional[str]):
        stored_version = current.get("metadata", {}).get("resourceVersion")
        if resource_version and resource_version != stored_version:
            log.warning(
                "Unable to write resource. resourceVersion %s is out of date (%s)",
                resource_version,
                stored_version,
            )
            raise ConflictError(
                f"resourceVersion {resource_version} is stale, "
                f"current is {stored_version}"
            )

    def _notify(self, stored: dict, removed: bool):
        if removed:
            self._on_removed(stored)
        else:
            self._call_watches(stored)

    def _call_watches(self, resource: dict):
        api_version, kind, namespace, name = _identifiers(resource)
        for key, callback in self._get_registered_watches(
            api_version, kind, namespace, name
        ):
            log.debug2("Calling registered watch [%s] for [%s]", callback, key)
            callback(copy.deepcopy(resource))

    def _on_removed(self, resource: dict):
        """Notify deletion watchers and garbage collect the dependents of a
        removed object
        """
        api_version, kind, namespace, name = _identifiers(resource)
        for key, callback in self._get_registered_watches(
            api_version, kind, namespace, name, deletion=True
        ):
            log.debug2("Calling registered deletion watch [%s] for [%s]", callback, key)
            callback(copy.deepcopy(resource))

        owner_uid = resource.get("metadata", {}).get("uid")
        with DRY_RUN_CLUSTER_LOCK:
            dependents = [
                copy.deepcopy(obj)
                for kind_entries in self._cluster_content.get(namespace, {}).values()
                for entries in kind_entries.values()
                for obj in entries.values()
                if owner_uid
                in [
                    ref.get("uid")
                    for ref in obj.get("metadata", {}).get("ownerReferences", [])
                ]
            ]
        if dependents:
            log.debug(
                "Garbage collecting %d dependents of [%s/%s]",
                len(dependents),
                kind,
                name,
            )
            self.disable(dependents)


def _identifiers(resource: dict) -> Tuple[str, str, str, str]:
    metadata = resource.get("metadata", {})
    return (
        resource.get("apiVersion"),
        resource.get("kind"),
        metadata.get("namespace"),
        metadata.get("name"),
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
