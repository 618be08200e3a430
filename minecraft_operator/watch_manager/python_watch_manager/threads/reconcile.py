"""
The ReconcileThread is the heart of the PythonWatchManager. It serializes the
passes for each Minecraft resource, runs them on a worker pool and schedules
any requeues they ask for
"""
# Standard
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional, Union
import heapq
import os
import queue
import threading

# First Party
import alog

# Local
from .... import config
from ....managed_object import NamespacedName
from ....reconcile import ReconcileManager, ReconciliationResult
from ..utils import (
    JOIN_THREAD_TIMEOUT,
    ReconcileRequest,
    ReconcileRequestType,
    ScheduledRequeue,
    backoff_delay,
)

log = alog.use_channel("RCLTHRD")


@dataclass
class ReconcileCompletion:
    """Message pushed by a worker when a pass for a request has finished"""

    request: ReconcileRequest
    result: ReconciliationResult


class ReconcileThread(threading.Thread):  # pylint: disable=too-many-instance-attributes
    """This class is the core reconciliation class. It guarantees that at most
    one pass runs for a given key at a time, keeps the newest request for a
    busy key pending, and turns the result of every pass into either nothing,
    a requeue after a delay, or a backoff retry.

    All of the bookkeeping is done on this thread. Workers only report back by
    pushing a ReconcileCompletion to the request queue. Requeues wait on a
    heap ordered by due time, with at most one live entry per key.
    """

    def __init__(
        self,
        reconcile_manager: ReconcileManager,
        max_concurrent_reconciles: Optional[int] = None,
    ):
        """Initialize the required queues and reconcile tracking

        Args:
            reconcile_manager: ReconcileManager
                The manager that runs the passes
            max_concurrent_reconciles: Optional[int] = None
                The number of passes that may run at once. Defaults to the
                config value, then to the number of cpus
        """
        super().__init__(name="reconcile_thread", daemon=True)
        self.reconcile_manager = reconcile_manager
        self.shutdown = threading.Event()

        # Setup required queues
        self.request_queue = queue.Queue()

        # Setup reconcile, request, and requeue mappings
        self.running_reconciles: Dict[NamespacedName, ReconcileRequest] = {}
        self.pending_reconciles: Dict[NamespacedName, ReconcileRequest] = {}
        self.scheduled_requeues: Dict[NamespacedName, ScheduledRequeue] = {}
        self.requeue_heap: List[ScheduledRequeue] = []
        self.failure_counts: Counter = Counter()

        # Setup control variables
        self.process_overload = threading.Event()

        # Configure the max number of concurrent reconciles via either the
        # argument, config or number of cpus
        self.max_concurrent_reconciles = (
            max_concurrent_reconciles
            or config.python_watch_manager.max_concurrent_reconciles
            or os.cpu_count()
            or 1
        )
        self.backoff_base_seconds = config.python_watch_manager.backoff_base_seconds
        self.backoff_max_seconds = config.python_watch_manager.backoff_max_seconds

        self.executor = ThreadPoolExecutor(
            max_workers=self.max_concurrent_reconciles,
            thread_name_prefix="reconcile_worker",
        )

    def run(self):
        """The reconcile thread waits for a new reconcile request, for a pass
        to end, or for the next requeue to come due. If its a reconcile
        request the thread checks if a pass is already running for the key
        and if not starts a new one. If a pass is already running or one
        couldn't be started the request gets added to the pending reconciles.
        There can only be one pending reconcile per key.
        """
        while not self.should_stop():
            messages = self._wait_for_messages(self._next_requeue_timeout())

            # Check for shutdown both before and after waiting
            if self.should_stop():
                return

            for message in messages + self._pop_due_requeues():
                log.debug3("Processing message %s", message)
                if isinstance(message, ReconcileCompletion):
                    self._handle_reconcile_end(message)
                elif message.type == ReconcileRequestType.STOPPED:
                    break
                else:
                    self._handle_request(message)

    ## Class Interface ###################################################

    def start_thread(self):
        """If the thread is not already alive start it"""
        if not self.is_alive():
            log.info("Starting %s: %s", self.__class__.__name__, self.name)
            self.start()

    def stop_thread(self):
        """Stop the thread and wait for running passes to finish"""
        log.info("Stopping %s: %s", self.__class__.__name__, self.name)
        self.shutdown.set()

        # Reawaken reconcile thread to stop
        log.debug("Pushing stop reconcile request")
        self.push_request(ReconcileRequest(None, ReconcileRequestType.STOPPED))

        if self.is_alive():
            log.debug("Waiting for reconcile thread to finish")
            self.join(JOIN_THREAD_TIMEOUT)

        log.info("Waiting for Running Reconciles to end")
        self.executor.shutdown(wait=True)

    def should_stop(self) -> bool:
        return self.shutdown.is_set()

    ## Public Interface ###################################################

    def push_request(self, request: ReconcileRequest):
        """Push request to reconcile queue

        Args:
            request: ReconcileRequest
                the ReconcileRequest to add to the queue
        """
        log.debug("Pushing request '%s' to reconcile queue", request)
        self.request_queue.put(request)

    ## Event Handlers ###################################################

    def _handle_request(self, request: ReconcileRequest):
        """Start a pass for the request, or park it as pending if one is
        already running for its key or none could be started
        """
        if request.key not in self.running_reconciles:
            if not self._start_reconcile_for_request(request):
                self._push_to_pending_reconcile(request)
        else:
            self._push_to_pending_reconcile(request)

    def _handle_reconcile_end(self, completion: ReconcileCompletion):
        """Handle the end of a pass. The key is released, any scheduled
        requeue is dropped and a new one scheduled if the result asks for it.
        Pending requests are started afterwards.

        Args:
            completion: ReconcileCompletion
                The finished request and the result of its pass
        """
        request = completion.request
        result = completion.result
        key = request.key

        self.running_reconciles.pop(key, None)
        log.info("Reconcile of %s completed with result %s", key, result)

        dropped = self.scheduled_requeues.pop(key, None)
        if dropped:
            log.debug2("Dropping scheduled requeue: %s", dropped)
        self._schedule_requeue_for_result(request, result)

        # If process overload is set than we need to check all keys for
        # pending reconciles otherwise just check the completed key
        if self.process_overload.is_set():
            for pending_key in list(self.pending_reconciles.keys()):
                if not self._handle_pending_reconcile(pending_key):
                    break
        else:
            self._handle_pending_reconcile(key)

    ## Requeue Scheduling ###################################################

    def _schedule_requeue_for_result(
        self, request: ReconcileRequest, result: ReconciliationResult
    ) -> Optional[ScheduledRequeue]:
        """Schedule a requeue for a given result. Passes that raised are
        retried with exponential backoff, other requeues use the delay the
        pass asked for.

        Args:
            request: ReconcileRequest
                The original reconcile request that triggered this pass
            result: ReconciliationResult
                The result of the pass

        Returns:
            requeue: Optional[ScheduledRequeue]
                The scheduled requeue if one was created
        """
        key = request.key
        if not result.requeue:
            self.failure_counts.pop(key, None)
            return None

        # A pending request will run the key again regardless
        if key in self.pending_reconciles:
            return None

        if result.exception is not None:
            self.failure_counts[key] += 1
            delay = backoff_delay(
                self.failure_counts[key],
                self.backoff_base_seconds,
                self.backoff_max_seconds,
            )
            request_type = ReconcileRequestType.BACKOFF
        else:
            self.failure_counts.pop(key, None)
            delay = result.requeue_params.requeue_after
            request_type = ReconcileRequestType.REQUEUED

        requeue = ScheduledRequeue(datetime.now() + delay, key, request_type)
        log.debug3("Scheduling requeue in %s: %s", delay, requeue)
        self.scheduled_requeues[key] = requeue
        heapq.heappush(self.requeue_heap, requeue)
        return requeue

    def _is_live(self, requeue: ScheduledRequeue) -> bool:
        return self.scheduled_requeues.get(requeue.key) is requeue

    def _next_requeue_timeout(self) -> Optional[float]:
        """Seconds until the earliest live requeue is due, or None if nothing
        is scheduled. Replaced entries at the top of the heap are discarded.
        """
        while self.requeue_heap and not self._is_live(self.requeue_heap[0]):
            heapq.heappop(self.requeue_heap)
        if not self.requeue_heap:
            return None
        remaining = self.requeue_heap[0].time - datetime.now()
        return max(remaining.total_seconds(), 0)

    def _pop_due_requeues(self) -> List[ReconcileRequest]:
        """Take every live requeue whose time has come off the heap"""
        now = datetime.now()
        due = []
        while self.requeue_heap and self.requeue_heap[0].time <= now:
            requeue = heapq.heappop(self.requeue_heap)
            if not self._is_live(requeue):
                log.debug4("Skipping replaced requeue %s", requeue)
                continue
            self.scheduled_requeues.pop(requeue.key)
            due.append(requeue.to_request())
        return due

    ## Pending Event Helpers ###################################################

    def _handle_pending_reconcile(self, key: NamespacedName) -> bool:
        """Start reconcile for pending request if there is one

        Args:
             key: NamespacedName
                The key of the resource being reconciled

        Returns:
            successful_start:bool
                If there was a pending reconcile that got started"""
        if key in self.running_reconciles or key not in self.pending_reconciles:
            return False

        request = self.pending_reconciles[key]
        log.debug4("Got request %s from pending reconciles", request)
        if self._start_reconcile_for_request(request):
            self.pending_reconciles.pop(key)
            return True
        return False

    def _push_to_pending_reconcile(self, request: ReconcileRequest):
        """Push a request to the pending queue if it's newer than the current event

        Args:
            request:  ReconcileRequest
                The request to possibly add to the pending_reconciles
        """
        key = request.key
        if key in self.pending_reconciles:
            if request.timestamp > self.pending_reconciles[key].timestamp:
                log.debug3("Updating reconcile queue with event %s", request)
                self.pending_reconciles[key] = request
            else:
                log.debug4("Event in queue is newer than event %s", request)
        else:
            log.debug3("Adding event %s to reconcile queue", request)
            self.pending_reconciles[key] = request

    ## Worker functions ##################################################

    def _start_reconcile_for_request(self, request: ReconcileRequest) -> bool:
        """Submit a pass for a given request to the worker pool

        Args:
            request: ReconcileRequest
                The request to attempt to start

        Returns:
            successfully_started: bool
                If a pass could be started
        """
        # If thread is supposed to shutdown then don't start a pass
        if self.should_stop():
            return False

        # Check if there are too many reconciles running
        if len(self.running_reconciles) >= self.max_concurrent_reconciles:
            log.warning("Unable to start reconcile, max concurrent jobs reached")
            self.process_overload.set()
            return False

        self.process_overload.clear()
        log.info("Starting reconcile for request %s", request)

        self.running_reconciles[request.key] = request
        future = self.executor.submit(self.reconcile_manager.safe_reconcile, request.key)
        future.add_done_callback(partial(self._reconcile_done, request))
        return True

    def _reconcile_done(self, request: ReconcileRequest, future: Future):
        """Done callback run on the worker. Reports the result back to the
        reconcile thread."""
        try:
            result = future.result()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log.warning("Reconcile for %s raised: %s", request.key, exc, exc_info=True)
            result = ReconciliationResult.requeue_immediate(exc)
        self.request_queue.put(ReconcileCompletion(request, result))

    ## Queue Functions ##################################################

    def _get_all_requests(
        self,
    ) -> List[Union[ReconcileRequest, ReconcileCompletion]]:
        """Get all of the messages waiting in the reconcile queue without
        blocking

        Returns:
            requests: List[Union[ReconcileRequest, ReconcileCompletion]]
                The list of messages gathered from the queue
        """
        request_list = []
        while True:
            try:
                request_list.append(self.request_queue.get(block=False))
            except queue.Empty:
                break
        return request_list

    def _wait_for_messages(
        self, timeout: Optional[float]
    ) -> List[Union[ReconcileRequest, ReconcileCompletion]]:
        """Block until a message arrives or the timeout passes, then take
        everything queued

        Args:
            timeout: Optional[float]
                Seconds to wait. None waits until a message arrives

        Returns:
            requests: List[Union[ReconcileRequest, ReconcileCompletion]]
                The messages gathered, empty if the wait timed out
        """
        try:
            first = self.request_queue.get(timeout=timeout)
        except queue.Empty:
            return []
        return [first] + self._get_all_requests()
