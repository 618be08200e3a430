"""
The ReconcileManager class manages an individual reconciliation pass of a
Minecraft resource. Each pass drives the parent and its dependents one step
closer to the desired state and returns a directive telling the scheduler
whether and when to run again.
"""

# Standard
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import base64
import datetime
import logging
import uuid

# First Party
import alog

# Local
from . import config, constants
from .deploy_manager import DeployManagerBase
from .event_recorder import EventRecorder, EventSeverity
from .exceptions import NotFoundError, SynthesisError
from .finalizer import (
    add_obligation,
    has_obligation,
    is_marked_for_deletion,
    remove_obligation,
)
from .log_format import OperatorJsonFormatter, log_context
from .managed_object import NamespacedName
from .resources import DependentResource, default_synthesizers
from .session import Session
from .status import (
    AVAILABLE_CONDITION,
    DEGRADED_CONDITION,
    ConditionReason,
    ConditionStatus,
    get_condition,
    make_condition,
    update_resource_status,
)

log = alog.use_channel("RECONCILE")


## Data models #################################################################


class Directive(Enum):
    """What the scheduler should do with a key after a pass"""

    # Nothing more to do until the next change is observed
    STOP = "Stop"
    # Run again as soon as possible
    REQUEUE = "RequeueImmediate"
    # Run again after requeue_params.requeue_after
    REQUEUE_AFTER = "RequeueAfter"


@dataclass
class RequeueParams:
    """RequeueParams holds parameters for requeue request"""

    requeue_after: datetime.timedelta = field(default_factory=datetime.timedelta)


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a reconciliation pass"""

    # Flag to control requeue of current reconcile request
    requeue: bool
    # Parameters for requeue request
    requeue_params: RequeueParams = field(default_factory=RequeueParams)
    # Flag to identify if the reconciliation raised an exception
    exception: Exception = None

    @property
    def directive(self) -> Directive:
        """The scheduling directive this result represents"""
        if not self.requeue:
            return Directive.STOP
        if self.requeue_params.requeue_after > datetime.timedelta():
            return Directive.REQUEUE_AFTER
        return Directive.REQUEUE

    @classmethod
    def stop(cls) -> "ReconciliationResult":
        """Don't requeue"""
        return cls(requeue=False)

    @classmethod
    def requeue_immediate(
        cls, exception: Optional[Exception] = None
    ) -> "ReconciliationResult":
        """Requeue right away"""
        return cls(requeue=True, exception=exception)

    @classmethod
    def requeue_after(cls, delay: datetime.timedelta) -> "ReconciliationResult":
        """Requeue once the given delay has elapsed"""
        return cls(requeue=True, requeue_params=RequeueParams(requeue_after=delay))


## ReconcileManager ############################################################


class ReconcileManager:
    """This class runs reconciliation passes for Minecraft resources against
    the store held by its DeployManager
    """

    ## Construction ############################################################

    def __init__(
        self,
        deploy_manager: DeployManagerBase,
        synthesizers: Optional[List[DependentResource]] = None,
        event_recorder: Optional[EventRecorder] = None,
        requeue_after: Optional[datetime.timedelta] = None,
    ):
        """
        Args:
            deploy_manager:  DeployManagerBase
                The store client to reconcile against
            synthesizers:  Optional[List[DependentResource]]
                The ordered dependent table. Defaults to the standard table
                resolved from the library config.
            event_recorder:  Optional[EventRecorder]
                Recorder for events about the parent. Defaults to one writing
                through the deploy_manager.
            requeue_after:  Optional[datetime.timedelta]
                Delay before revisiting a resource whose newest dependent
                settles asynchronously. Defaults to requeue_after_seconds.
        """
        self.deploy_manager = deploy_manager
        self.dependents = (
            synthesizers if synthesizers is not None else default_synthesizers()
        )
        self.event_recorder = event_recorder or EventRecorder(deploy_manager)
        self.requeue_delay = (
            requeue_after
            if requeue_after is not None
            else datetime.timedelta(seconds=float(config.requeue_after_seconds))
        )

    ## Public ##################################################################

    @alog.logged_function(log.info)
    @alog.timed_function(log.info, "Reconcile finished in: ")
    def reconcile(self, key: NamespacedName) -> ReconciliationResult:
        """This is the main entrypoint for reconciliations and contains the
        core implementation. The general reconcile path is as follows:

            1. Fetch the parent. If it is gone, stop
            2. If it has no conditions, mark it Available=Unknown
            3. If it is not being deleted, make sure it holds the finalizer
            4. If it is being deleted, finalize it and stop
            5. Create the first missing dependent and requeue
            6. If every dependent exists, stop

        Errors from the store and from synthesis propagate to the caller.

        Args:
            key:  NamespacedName
                The namespaced name of the parent resource

        Returns:
            reconcile_result:  ReconciliationResult
                The result of the reconcile
        """
        session = self.setup_session(key)
        with log_context(session.reconciliation_id):
            log.info("Reconciling %s %s", constants.PARENT_KIND, key)
            try:
                return self.run_pass(session)
            except NotFoundError as err:
                log.info("%s. Ending reconciliation", err)
                return ReconciliationResult.stop()

    def safe_reconcile(self, key: NamespacedName) -> ReconciliationResult:
        """This function calls out to reconcile but catches any errors thrown.
        Every error becomes an immediate requeue carrying the exception so
        that the scheduler can back off.

        Args:
            key:  NamespacedName
                The namespaced name of the parent resource

        Returns:
            reconcile_result:  ReconciliationResult
                The result of the reconcile
        """
        try:
            return self.reconcile(key)

        # Capture all generic exceptions
        except Exception as exc:  # pylint: disable=broad-except
            log.warning("Handling caught error in reconcile: %s", exc, exc_info=True)
            log.info("Requeuing %s due to error during reconcile", key)
            return ReconciliationResult.requeue_immediate(exception=exc)

    ## Reconciliation Stages ###################################################

    def setup_session(self, key: NamespacedName) -> Session:
        """Create the per-pass state for a key"""
        return Session(
            reconciliation_id=self.generate_id(),
            key=key,
            deploy_manager=self.deploy_manager,
        )

    def run_pass(self, session: Session) -> ReconciliationResult:
        """Run the steps of a single pass against the given session"""
        cr_manifest = session.fetch()
        if cr_manifest is None:
            log.info(
                "%s %s not found. Ignoring since object must be deleted",
                constants.PARENT_KIND,
                session.key,
            )
            return ReconciliationResult.stop()

        # Let's just set the status as Unknown when no status is available
        current_status = cr_manifest.get("status")
        if not any(
            get_condition(condition_type, current_status)
            for condition_type in (AVAILABLE_CONDITION, DEGRADED_CONDITION)
        ):
            log.debug("Initializing status of %s", session.key)
            self._set_condition(
                session,
                AVAILABLE_CONDITION,
                ConditionStatus.UNKNOWN,
                ConditionReason.RECONCILING,
                "Starting reconciliation",
            )
            session.refetch()

        # Add the finalizer so that cleanup runs before the parent is removed
        if not has_obligation(session.cr_manifest) and not is_marked_for_deletion(
            session.cr_manifest
        ):
            log.info("Adding finalizer to %s", session.key)
            session.write(lambda cr: session.update_parent(add_obligation(cr)))

        if is_marked_for_deletion(session.cr_manifest):
            if has_obligation(session.cr_manifest):
                self.finalize(session)
            return ReconciliationResult.stop()

        for dependent in self.dependents:
            if session.get_dependent(dependent.kind, dependent.api_version) is None:
                return self.create_dependent(session, dependent)
            log.debug3("%s for %s already exists", dependent.kind, session.key)

        # Existing dependents are never updated
        log.debug("All dependents of %s exist", session.key)
        return ReconciliationResult.stop()

    def finalize(self, session: Session):
        """Run the cleanup for a parent that is marked for deletion and
        release its finalizer
        """
        log.info("Performing finalizer operations for %s", session.key)
        self._set_condition(
            session,
            DEGRADED_CONDITION,
            ConditionStatus.UNKNOWN,
            ConditionReason.FINALIZING,
            f"Performing finalizer operations for the custom resource: {session.name} ",
        )

        self.do_finalizer_operations(session.cr_manifest)

        # Re-fetch so the remaining writes are made against the latest version
        session.refetch()
        self._set_condition(
            session,
            DEGRADED_CONDITION,
            ConditionStatus.TRUE,
            ConditionReason.FINALIZING,
            f"Finalizer operations for custom resource {session.name} name "
            "were successfully accomplished",
        )

        log.info("Removing finalizer from %s after cleanup", session.key)
        session.write(lambda cr: session.update_parent(remove_obligation(cr)))

    def do_finalizer_operations(self, cr_manifest: dict):
        """The cleanup that runs before the parent is removed. Dependents are
        garbage collected by the store through their owner references, so
        only an event is emitted here.
        """
        metadata = cr_manifest.get("metadata", {})
        self.event_recorder.record(
            cr_manifest,
            EventSeverity.WARNING,
            "Deleting",
            f"Custom Resource {metadata.get('name')} is being deleted from the "
            f"namespace {metadata.get('namespace')}",
        )

    def create_dependent(
        self,
        session: Session,
        dependent: DependentResource,
    ) -> ReconciliationResult:
        """Synthesize and create a missing dependent, then return the
        directive for its kind
        """
        try:
            manifest = dependent.synthesizer.synthesize(session.cr_manifest)
        except SynthesisError as err:
            log.warning(
                "Failed to define new %s resource for %s: %s",
                dependent.kind,
                session.key,
                err,
            )
            try:
                self._set_condition(
                    session,
                    AVAILABLE_CONDITION,
                    ConditionStatus.FALSE,
                    ConditionReason.RECONCILING,
                    f"Failed to create {dependent.kind} for the custom resource "
                    f"({session.name}): ({err})",
                )
            except Exception as status_err:  # pylint: disable=broad-except
                log.warning("Failed to update %s status", session.key)
                raise err from status_err
            raise

        log.info("Creating a new %s for %s", dependent.kind, session.key)
        session.create_dependent(manifest)

        if dependent.settles_async:
            return ReconciliationResult.requeue_after(self.requeue_delay)
        return ReconciliationResult.requeue_immediate()

    ## Helpers #################################################################

    @classmethod
    def configure_logging(cls):
        """Configure logging from the library config"""
        handler_generator = None
        if logging.root.handlers:
            old_handler = logging.root.handlers[0]

            def handler_generator():
                return old_handler

        alog.configure(
            default_level=config.log_level,
            filters=config.log_filters,
            formatter=OperatorJsonFormatter() if config.log_json else "pretty",
            thread_id=config.log_thread_id,
            handler_generator=handler_generator,
        )

    @classmethod
    def generate_id(cls) -> str:
        """Generates a unique human readable id for this reconciliation

        Returns:
            id: str
                A unique base32 encoded id
        """
        uuid4 = uuid.uuid4()
        base32_str = base64.b32encode(uuid4.bytes).decode("utf-8")
        reconcile_id = base32_str[:22]
        log.debug("Generated reconcile id: %s", reconcile_id)
        return reconcile_id

    def _set_condition(
        self,
        session: Session,
        type_name: str,
        status: ConditionStatus,
        reason: ConditionReason,
        message: str,
    ) -> dict:
        condition = make_condition(type_name, status, reason, message)
        return session.write(
            lambda cr: update_resource_status(self.deploy_manager, cr, condition)
        )
