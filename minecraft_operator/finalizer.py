"""
Pure helpers to manage the finalizer obligation on a resource manifest. None
of these functions mutate their input.
"""

# Standard
import copy

# First Party
import alog

# Local
from .constants import FINALIZER_NAME

log = alog.use_channel("FINLZ")


def has_obligation(cr_manifest: dict, finalizer: str = FINALIZER_NAME) -> bool:
    """Check whether the finalizer token is present on the manifest"""
    return finalizer in (cr_manifest.get("metadata", {}).get("finalizers") or [])


def add_obligation(cr_manifest: dict, finalizer: str = FINALIZER_NAME) -> dict:
    """Return a copy of the manifest with the finalizer token appended. If the
    token is already present, the copy is otherwise unchanged.

    Args:
        cr_manifest:  dict
            The manifest of the resource
        finalizer:  str
            The finalizer token

    Returns:
        cr_manifest:  dict
            A new manifest holding the finalizer
    """
    updated = copy.deepcopy(cr_manifest)
    if has_obligation(updated, finalizer):
        return updated
    metadata = updated.setdefault("metadata", {})
    finalizers = metadata.get("finalizers") or []
    log.debug2("Adding finalizer %s", finalizer)
    metadata["finalizers"] = finalizers + [finalizer]
    return updated


def remove_obligation(cr_manifest: dict, finalizer: str = FINALIZER_NAME) -> dict:
    """Return a copy of the manifest with the finalizer token removed. If the
    token is absent, the copy is otherwise unchanged. Other tokens keep their
    order.
    """
    updated = copy.deepcopy(cr_manifest)
    if not has_obligation(updated, finalizer):
        return updated
    log.debug2("Removing finalizer %s", finalizer)
    metadata = updated["metadata"]
    metadata["finalizers"] = [
        token for token in metadata["finalizers"] if token != finalizer
    ]
    return updated


def is_marked_for_deletion(cr_manifest: dict) -> bool:
    """Check whether a deletion request has been recorded on the manifest"""
    return cr_manifest.get("metadata", {}).get("deletionTimestamp") is not None
