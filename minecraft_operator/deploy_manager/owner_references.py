"""
This module holds the value type used to link a dependent resource back to the
parent resource that owns it
"""

# Standard
from dataclasses import dataclass

# First Party
import alog

log = alog.use_channel("OWNRF")


@dataclass(frozen=True)
class OwnerReference:
    """A validated reference from a dependent to its owner. The store garbage
    collects the dependent once the owner is removed.
    """

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    # The owner will not be removed until this object completes its deletion
    block_owner_deletion: bool = True

    def __post_init__(self):
        for field_name in ["api_version", "kind", "name", "uid"]:
            if not getattr(self, field_name):
                raise ValueError(f"Owner reference is missing '{field_name}'")

    @classmethod
    def from_owner(cls, owner_cr: dict) -> "OwnerReference":
        """Make an owner reference for the given CR instance

        Args:
            owner_cr:  dict
                The full CR manifest for the owning resource

        Returns:
            owner_reference:  OwnerReference
                The validated reference to the owner
        """
        metadata = owner_cr.get("metadata", {})
        return cls(
            api_version=owner_cr.get("apiVersion"),
            kind=owner_cr.get("kind"),
            name=metadata.get("name"),
            uid=metadata.get("uid"),
        )

    def to_dict(self) -> dict:
        """The dict entry for the `metadata.ownerReferences` list"""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": self.controller,
            "blockOwnerDeletion": self.block_owner_deletion,
        }


def set_owner_reference(owner_cr: dict, child_obj: dict) -> dict:
    """Merge a reference to the owner CR into the child object. The child is
    updated in place and returned for convenience.

    Args:
        owner_cr:  dict
            The full CR manifest for the owning resource
        child_obj:  dict
            The manifest of the dependent resource

    Returns:
        child_obj:  dict
            The dependent holding the owner reference

    Raises:
        ValueError: If the owner is missing identity fields or the two live in
            different namespaces
    """
    owner_ref = OwnerReference.from_owner(owner_cr)
    owner_namespace = owner_cr.get("metadata", {}).get("namespace")
    child_metadata = child_obj.setdefault("metadata", {})
    if child_metadata.get("namespace") != owner_namespace:
        raise ValueError(
            "Cross-namespace owner references are not allowed: "
            f"{child_metadata.get('namespace')} != {owner_namespace}"
        )

    owner_refs = child_metadata.get("ownerReferences") or []
    if owner_ref.uid not in [ref.get("uid") for ref in owner_refs]:
        log.debug2(
            "Adding owner reference to %s for %s.%s/%s",
            owner_ref.name,
            child_obj.get("apiVersion"),
            child_obj.get("kind"),
            child_metadata.get("name"),
        )
        owner_refs.append(owner_ref.to_dict())
    child_metadata["ownerReferences"] = owner_refs
    log.debug4("Final owner refs: %s", owner_refs)
    return child_obj
