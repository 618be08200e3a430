"""
Custom logging formats that carry the identity of the resource being
reconciled
"""

# Standard
from contextlib import contextmanager
from typing import Optional
import threading

# First Party
from alog import AlogJsonFormatter

# Each reconciliation runs on a single thread, so the identity of the resource
# it is working on is tracked per thread
_LOG_CONTEXT = threading.local()


@contextmanager
def log_context(reconciliation_id: str, manifest: Optional[dict] = None):
    """Attach the reconciliation id and resource to all log records emitted on
    this thread for the duration of the context
    """
    previous = getattr(_LOG_CONTEXT, "values", None)
    _LOG_CONTEXT.values = (reconciliation_id, manifest)
    try:
        yield
    finally:
        _LOG_CONTEXT.values = previous


def set_log_context_manifest(manifest: Optional[dict]):
    """Update the resource attached to log records on this thread"""
    values = getattr(_LOG_CONTEXT, "values", None)
    if values is not None:
        _LOG_CONTEXT.values = (values[0], manifest)


class OperatorJsonFormatter(AlogJsonFormatter):
    """Custom Log Format that extends AlogJsonFormatter to add the identifiers
    of the resource being reconciled, the reconciliationId, and thread
    information
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "thread",
        "threadName",
        "kind",
        "apiVersion",
        "resourceVersion",
        "resourceName",
        "resourceNamespace",
        "reconciliationId",
    ]

    def format(self, record):
        reconciliation_id, resource = getattr(_LOG_CONTEXT, "values", None) or (
            None,
            None,
        )
        if reconciliation_id:
            record.reconciliationId = reconciliation_id

        if resource:
            record.kind = resource.get("kind")
            record.apiVersion = resource.get("apiVersion")

            metadata = resource.get("metadata", {})
            record.resourceVersion = metadata.get("resourceVersion")
            record.resourceName = metadata.get("name")
            record.resourceNamespace = metadata.get("namespace")

        return super().format(record)
