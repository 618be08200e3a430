"""
This module holds the common functionality used to track the status
conditions of the Minecraft resources managed by the operator

The operator maintains the following orthogonal status conditions:

* Available: True once the server is serving. Unknown while the first
    reconciliation is underway and False if a dependent could not be created
* Degraded: Set while the resource is being finalized. Unknown while cleanup
    runs and True once cleanup has completed

Each condition has the schema:
{
    "type": "Available" | "Degraded",
    "status": "True" | "False" | "Unknown",
    "reason": "Reconciling" | "Finalizing",
    "message": <plain text>,
    "lastTransitionTime": <RFC 3339 timestamp>,
}
"""

# Standard
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import copy

# Third Party
from deepdiff import DeepDiff

# First Party
import alog

# Local
from .exceptions import assert_cluster

log = alog.use_channel("STTUS")

## Public ######################################################################

# The "type" values in the condition
AVAILABLE_CONDITION = "Available"
DEGRADED_CONDITION = "Degraded"

# The key in the condition used for the timestamp
TIMESTAMP_KEY = "lastTransitionTime"

# Format used for condition timestamps
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class ConditionStatus(Enum):
    """Nested class to hold the allowed values for a condition's status"""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(Enum):
    """Nested class to hold reason constants for the conditions"""

    # The dependents of the resource are being brought into existence
    RECONCILING = "Reconciling"

    # The resource is marked for deletion and cleanup is running or done
    FINALIZING = "Finalizing"


def make_condition(
    type_name: str,
    status: ConditionStatus,
    reason: ConditionReason,
    message: str,
    last_transition_time: Optional[datetime] = None,
) -> dict:
    """Convert the condition to the dict representation to be added to the
    kubernetes object

    Args:
        type_name:  str
            The condition type (Available or Degraded)
        status:  ConditionStatus
            The tri-state status of the condition
        reason:  ConditionReason
            The machine readable reason for the status
        message:  str
            Plain-text message explaining the status
        last_transition_time:  Optional[datetime]
            The time of the transition. Defaults to now.

    Returns:
        condition:  dict
            The dict representation of the condition
    """
    if isinstance(status, str):
        status = ConditionStatus(status)
    if isinstance(reason, str):
        reason = ConditionReason(reason)
    last_transition_time = last_transition_time or _now()
    return {
        "type": type_name,
        "status": status.value,
        "reason": reason.value,
        "message": message,
        TIMESTAMP_KEY: _format_timestamp(last_transition_time),
    }


def set_condition(
    conditions: List[dict],
    new_condition: dict,
    now: Optional[datetime] = None,
) -> List[dict]:
    """Merge a condition into a list of conditions without mutating the input

    If a condition of the same type is present with the same status, its
    transition time is kept and only the reason and message are refreshed. If
    the status differs, the condition is replaced in place with a fresh
    transition time. Otherwise the new condition is appended. Conditions of
    other types are always preserved.

    Args:
        conditions:  List[dict]
            The current list of conditions
        new_condition:  dict
            The condition to merge in
        now:  Optional[datetime]
            The time to stamp onto a changed condition. Defaults to now.

    Returns:
        conditions:  List[dict]
            A new list holding the merged conditions
    """
    updated = copy.deepcopy(conditions or [])
    new_condition = copy.deepcopy(new_condition)
    type_name = new_condition["type"]
    timestamp = _format_timestamp(now or _now())

    for idx, existing in enumerate(updated):
        if existing.get("type") != type_name:
            continue
        if existing.get("status") == new_condition.get("status"):
            log.debug3("Refreshing unchanged %s condition", type_name)
            existing["reason"] = new_condition.get("reason")
            existing["message"] = new_condition.get("message")
            existing.setdefault(TIMESTAMP_KEY, timestamp)
        else:
            log.debug2(
                "%s condition transition %s -> %s",
                type_name,
                existing.get("status"),
                new_condition.get("status"),
            )
            new_condition[TIMESTAMP_KEY] = timestamp
            updated[idx] = new_condition
        return updated

    log.debug2("Adding new %s condition", type_name)
    new_condition[TIMESTAMP_KEY] = timestamp
    updated.append(new_condition)
    return updated


def get_condition(type_name: str, current_status: dict) -> dict:
    """Extract the given condition type from a status object

    Args:
        type_name:  str
            The condition type to fetch
        current_status:  dict
            The dict representation of the status for a given resource

    Returns:
        condition:  dict
            The condition object if found, empty dict otherwise
    """
    cond = [
        cond
        for cond in (current_status or {}).get("conditions", [])
        if cond.get("type") == type_name
    ]
    if cond:
        assert len(cond) == 1, f"Found multiple condition entries for {type_name}"
        return cond[0]
    return {}


def status_changed(current_status: dict, new_status: dict) -> bool:
    """Compare two status objects to determine if there is a meaningful change
    between the current status and the proposed new status. A meaningful change
    is defined as any change besides a timestamp.

    Args:
        current_status:  dict
            The raw status dict from the current CR
        new_status:  dict
            The proposed new status

    Returns:
        status_changed:  bool
            True if there is a meaningful change between the current status and
            the new status
    """
    # Status objects must be dicts
    if not isinstance(current_status, dict) or not isinstance(new_status, dict):
        return True

    # Perform a deep diff, excluding timestamps
    return bool(
        DeepDiff(
            current_status,
            new_status,
            exclude_obj_callback=lambda _, path: path.endswith(f"{TIMESTAMP_KEY}']"),
        )
    )


def update_resource_status(
    deploy_manager: "DeployManagerBase",  # noqa: F821
    cr_manifest: dict,
    condition: dict,
) -> dict:
    """Merge the given condition into the status of the resource and write it
    back to the store if anything meaningful changed

    Args:
        deploy_manager:  DeployManagerBase
            The deploy manager used to set status
        cr_manifest:  dict
            The most recently observed manifest of the resource. Its
            resourceVersion guards the write.
        condition:  dict
            The condition to merge into the status

    Returns:
        cr_manifest:  dict
            The stored manifest after the write, or the given manifest if no
            write was needed
    """
    metadata = cr_manifest.get("metadata", {})
    kind = cr_manifest.get("kind")
    name = metadata.get("name")
    namespace = metadata.get("namespace")
    log.debug3("Updating status for %s/%s/%s", namespace, kind, name)

    current_status = cr_manifest.get("status") or {}
    status_object = copy.deepcopy(current_status)
    status_object["conditions"] = set_condition(
        current_status.get("conditions", []), condition
    )
    log.debug3("Updated status: %s", status_object)

    # Only write the status if it has changed
    if not status_changed(current_status, status_object):
        log.debug2("No meaningful status change for %s/%s", namespace, name)
        return cr_manifest

    log.debug("Found meaningful change. Updating status")
    log.debug2("(current) %s != (updated) %s", current_status, status_object)
    success, content = deploy_manager.set_status(
        kind=kind,
        name=name,
        namespace=namespace,
        status=status_object,
        api_version=cr_manifest.get("apiVersion"),
        resource_version=metadata.get("resourceVersion"),
    )
    assert_cluster(success, f"Failed to update status for [{namespace}/{kind}/{name}]")
    return content


## Implementation Details ######################################################


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(timestamp: datetime) -> str:
    return timestamp.strftime(TIMESTAMP_FORMAT)
