"""
The EventRecorder publishes core/v1 Events about the resources the operator
manages. Recording is fire-and-forget: a failure to record an event never
interrupts a reconciliation.
"""

# Standard
from datetime import datetime, timezone
from enum import Enum
import uuid

# First Party
import alog

# Local
from . import constants
from .deploy_manager import DeployManagerBase

log = alog.use_channel("EVENT")


class EventSeverity(Enum):
    """The event types understood by the store"""

    NORMAL = "Normal"
    WARNING = "Warning"


class EventRecorder:
    """Records Events through a DeployManager"""

    def __init__(
        self,
        deploy_manager: DeployManagerBase,
        component: str = constants.EVENT_SOURCE_COMPONENT,
    ):
        self.deploy_manager = deploy_manager
        self.component = component

    def record(
        self,
        obj: dict,
        severity: EventSeverity,
        reason: str,
        message: str,
    ):
        """Record an event about the given object

        Args:
            obj:  dict
                The manifest of the object the event is about
            severity:  EventSeverity
                Normal or Warning
            reason:  str
                Short machine readable reason for the event
            message:  str
                Human readable description of the event
        """
        if isinstance(severity, str):
            severity = EventSeverity(severity)
        event = self._make_event(obj, severity, reason, message)
        log.debug2(
            "Recording %s event %s for %s",
            severity.value,
            reason,
            obj.get("metadata", {}).get("name"),
        )
        try:
            success, _ = self.deploy_manager.create(event)
            if not success:
                log.warning("Failed to record event %s", event["metadata"]["name"])
        except Exception as err:  # pylint: disable=broad-except
            log.warning(
                "Failed to record event %s: %s", event["metadata"]["name"], err
            )

    def _make_event(
        self,
        obj: dict,
        severity: EventSeverity,
        reason: str,
        message: str,
    ) -> dict:
        metadata = obj.get("metadata", {})
        name = metadata.get("name")
        namespace = metadata.get("namespace") or constants.DEFAULT_NAMESPACE
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {
                "name": f"{name}.{uuid.uuid4().hex}",
                "namespace": namespace,
            },
            "involvedObject": {
                "apiVersion": obj.get("apiVersion"),
                "kind": obj.get("kind"),
                "name": name,
                "namespace": namespace,
                "uid": metadata.get("uid"),
                "resourceVersion": metadata.get("resourceVersion"),
            },
            "reason": reason,
            "message": message,
            "type": severity.value,
            "source": {"component": self.component},
            "reportingComponent": self.component,
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }
