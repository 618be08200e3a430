"""
Helper objects to represent kubernetes objects seen by the operator and the
identity of the parent resource being reconciled
"""
# Standard
from dataclasses import dataclass
from typing import Optional, Union
import uuid

KUBE_LIST_IDENTIFIER = "List"


@dataclass(eq=True, frozen=True)
class NamespacedName:
    """The namespace-qualified name that identifies a parent resource. This is
    the key that every reconciliation pass is triggered with.
    """

    namespace: str
    name: str

    @classmethod
    def from_resource(cls, resource: Union["ManagedObject", dict]) -> "NamespacedName":
        """Build the key for a resource manifest"""
        metadata = resource.get("metadata", {})
        return cls(namespace=metadata.get("namespace"), name=metadata.get("name"))

    def __str__(self):
        return f"{self.namespace}/{self.name}"


class ManagedObject:  # pylint: disable=too-many-instance-attributes
    """Basic struct to represent a kubernetes object observed in the store"""

    def __init__(self, definition: dict):
        self.kind = definition.get("kind")
        self.metadata = definition.get("metadata", {})
        self.name = self.metadata.get("name")
        self.namespace = self.metadata.get("namespace")
        self.uid = self.metadata.get("uid", uuid.uuid4())
        self.resource_version = self.metadata.get("resourceVersion")
        self.api_version = definition.get("apiVersion")
        self.definition = definition

        # If resource is not list then check name
        if KUBE_LIST_IDENTIFIER not in (self.kind or ""):
            assert self.name is not None, "No name found"

        assert self.kind is not None, "No kind found"
        assert self.api_version is not None, "No apiVersion found"

    @property
    def owner_references(self) -> list:
        """The ownerReferences of this object, if any"""
        return self.metadata.get("ownerReferences", [])

    @property
    def key(self) -> NamespacedName:
        """The namespaced name of this object"""
        return NamespacedName(self.namespace, self.name)

    def get(self, *args, **kwargs):
        """Pass get calls to the objects definition"""
        return self.definition.get(*args, **kwargs)

    def owner_key(self, kind: str, api_version: str) -> Optional[NamespacedName]:
        """Find the key of the owner with the given kind, if this object has
        one. Owners always live in the same namespace as their dependents.
        """
        for ref in self.owner_references:
            if ref.get("kind") == kind and ref.get("apiVersion") == api_version:
                return NamespacedName(self.namespace, ref.get("name"))
        return None

    def __str__(self):
        return f"{self.api_version}/{self.kind}/{self.name}"

    def __repr__(self):
        return str(self)

    def __hash__(self):
        """Hash explicitly excludes the definition so that the object's
        identifier in a map can be based only on the unique identifier of the
        resource in the cluster
        """
        return hash(self.metadata.get("uid", str(self)))

    def __eq__(self, other):
        return hash(self) == hash(other)
