"""
Shared types and utilities for the PythonWatchManager
"""
# Standard
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union
import re

# Local
from ...deploy_manager import KubeEventType
from ...managed_object import NamespacedName

## Constants

# Time to wait for the reconcile thread to shut down
JOIN_THREAD_TIMEOUT = 5

## Time Functions

# Shamelessly stolen from
# https://stackoverflow.com/questions/4628122/how-to-construct-a-timedelta-object-from-a-simple-string
regex = re.compile(
    r"^((?P<hours>\d+?)hr)?((?P<minutes>\d+?)m)?((?P<seconds>\d*\.?\d+?)s)?$"
)


def parse_time_delta(
    time_str: str,
) -> Optional[timedelta]:  # pylint: disable=inconsistent-return-statements
    """Parse a string into a timedelta. Excepts values in the
    following formats: 1hr, 5m, 10s, etc

    Args:
        time_str: str
            The string representation of a timedelta

    Returns:
        result: Optional[timedelta]
            The parsed timedelta if one could be found
    """
    parts = regex.match(time_str)
    if not parts or all(part is None for part in parts.groupdict().values()):
        return None
    parts = parts.groupdict()
    time_params = {}
    for name, param in parts.items():
        if param:
            time_params[name] = float(param)
    return timedelta(**time_params)


def backoff_delay(failures: int, base_seconds: float, max_seconds: float) -> timedelta:
    """Exponential backoff: base_seconds doubled for every consecutive failure
    after the first, capped at max_seconds
    """
    exponent = max(failures - 1, 0)
    # Cap the exponent so the float math can't overflow on long outages
    delay = base_seconds * (2 ** min(exponent, 64))
    return timedelta(seconds=min(delay, max_seconds))


##  Reconcile Enums


class ReconcileRequestType(Enum):
    """Enum to expand the possible KubeEventTypes to include PythonWatchManager
    specific events"""

    # Used for events that are a requeue of an object
    REQUEUED = "REQUEUED"

    # Used for retries of a pass that raised an error
    BACKOFF = "BACKOFF"

    # Used as a sentinel to alert threads to stop
    STOPPED = "STOPPED"


### Reconcile Classes


@dataclass
class ReconcileRequest:
    """Class to represent one request to the ReconcileThread: the key of the
    parent resource to reconcile and what triggered it
    """

    key: Optional[NamespacedName]
    type: Union[ReconcileRequestType, KubeEventType]
    timestamp: datetime = field(default_factory=datetime.now)


### Requeue Scheduling


@dataclass(order=True)
class ScheduledRequeue:
    """Entry in the ReconcileThread's requeue heap. Entries order by due
    time only. An entry is live while it is the one recorded for its key, so
    rescheduling a key leaves the older entry to be skipped when it is popped.
    """

    time: datetime
    key: NamespacedName = field(compare=False)
    type: ReconcileRequestType = field(compare=False)

    def to_request(self) -> ReconcileRequest:
        return ReconcileRequest(self.key, self.type)
