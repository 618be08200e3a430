"""
Test the construction and management of status conditions
"""

# Standard
from datetime import datetime, timezone
import copy

# Third Party
import pytest

# First Party
import alog

# Local
from minecraft_operator import status
from minecraft_operator.exceptions import StoreUnavailableError
from minecraft_operator.status import (
    AVAILABLE_CONDITION,
    DEGRADED_CONDITION,
    TIMESTAMP_KEY,
    ConditionReason,
    ConditionStatus,
)
from minecraft_operator.test_helpers.helpers import (
    TEST_KEY,
    MockDeployManager,
    get_parent,
    setup_cr,
)

log = alog.use_channel("TEST")

EARLY = datetime(2024, 1, 1, tzinfo=timezone.utc)
LATE = datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)

## make_condition ##############################################################


def test_make_condition_all_fields():
    cond = status.make_condition(
        AVAILABLE_CONDITION,
        ConditionStatus.TRUE,
        ConditionReason.RECONCILING,
        "All up",
        last_transition_time=EARLY,
    )
    assert cond == {
        "type": AVAILABLE_CONDITION,
        "status": "True",
        "reason": "Reconciling",
        "message": "All up",
        TIMESTAMP_KEY: "2024-01-01T00:00:00Z",
    }


def test_make_condition_from_strings():
    cond = status.make_condition(DEGRADED_CONDITION, "Unknown", "Finalizing", "")
    assert cond["status"] == "Unknown"
    assert cond["reason"] == "Finalizing"
    assert TIMESTAMP_KEY in cond


def test_make_condition_invalid_status():
    with pytest.raises(ValueError):
        status.make_condition(AVAILABLE_CONDITION, "Maybe", "Reconciling", "")


## set_condition ###############################################################


def test_set_condition_appends_new_type():
    cond = status.make_condition(
        AVAILABLE_CONDITION, ConditionStatus.UNKNOWN, ConditionReason.RECONCILING, ""
    )
    res = status.set_condition([], cond, now=LATE)
    assert len(res) == 1
    assert res[0][TIMESTAMP_KEY] == "2024-06-01T12:30:00Z"


def test_set_condition_stable_timestamp():
    """Setting the same status twice leaves the transition time unchanged"""
    cond = status.make_condition(
        AVAILABLE_CONDITION, ConditionStatus.TRUE, ConditionReason.RECONCILING, "a"
    )
    first = status.set_condition([], cond, now=EARLY)
    second = status.set_condition(first, cond, now=LATE)
    assert second == first
    assert second[0][TIMESTAMP_KEY] == "2024-01-01T00:00:00Z"


def test_set_condition_same_status_refreshes_message():
    initial = status.set_condition(
        [],
        status.make_condition(
            AVAILABLE_CONDITION, "False", ConditionReason.RECONCILING, "old"
        ),
        now=EARLY,
    )
    res = status.set_condition(
        initial,
        status.make_condition(
            AVAILABLE_CONDITION, "False", ConditionReason.RECONCILING, "new"
        ),
        now=LATE,
    )
    assert res[0]["message"] == "new"
    assert res[0][TIMESTAMP_KEY] == "2024-01-01T00:00:00Z"


def test_set_condition_status_change_updates_timestamp():
    initial = status.set_condition(
        [],
        status.make_condition(AVAILABLE_CONDITION, "Unknown", "Reconciling", ""),
        now=EARLY,
    )
    res = status.set_condition(
        initial,
        status.make_condition(AVAILABLE_CONDITION, "False", "Reconciling", "bad"),
        now=LATE,
    )
    assert len(res) == 1
    assert res[0]["status"] == "False"
    assert res[0][TIMESTAMP_KEY] == "2024-06-01T12:30:00Z"


def test_set_condition_preserves_other_types_and_order():
    available = status.make_condition(AVAILABLE_CONDITION, "True", "Reconciling", "")
    degraded = status.make_condition(DEGRADED_CONDITION, "Unknown", "Finalizing", "")
    conditions = status.set_condition([], available, now=EARLY)
    conditions = status.set_condition(conditions, degraded, now=EARLY)
    res = status.set_condition(
        conditions,
        status.make_condition(DEGRADED_CONDITION, "True", "Finalizing", "done"),
        now=LATE,
    )
    assert [cond["type"] for cond in res] == [AVAILABLE_CONDITION, DEGRADED_CONDITION]
    assert res[0] == conditions[0]
    assert res[1]["status"] == "True"


def test_set_condition_does_not_mutate_input():
    conditions = status.set_condition(
        [],
        status.make_condition(AVAILABLE_CONDITION, "Unknown", "Reconciling", ""),
        now=EARLY,
    )
    before = copy.deepcopy(conditions)
    status.set_condition(
        conditions,
        status.make_condition(AVAILABLE_CONDITION, "True", "Reconciling", ""),
        now=LATE,
    )
    assert conditions == before


## get_condition ###############################################################


def test_get_condition_found_and_missing():
    cond = status.make_condition(AVAILABLE_CONDITION, "True", "Reconciling", "")
    current = {"conditions": [cond]}
    assert status.get_condition(AVAILABLE_CONDITION, current) == cond
    assert status.get_condition(DEGRADED_CONDITION, current) == {}
    assert status.get_condition(AVAILABLE_CONDITION, None) == {}


## status_changed ##############################################################


def test_status_changed_ignores_timestamps():
    old = {
        "conditions": [
            status.make_condition(
                AVAILABLE_CONDITION, "True", "Reconciling", "", EARLY
            )
        ]
    }
    new = {
        "conditions": [
            status.make_condition(AVAILABLE_CONDITION, "True", "Reconciling", "", LATE)
        ]
    }
    assert not status.status_changed(old, new)


def test_status_changed_detects_status():
    old = {"conditions": [status.make_condition(AVAILABLE_CONDITION, "True", "Reconciling", "")]}
    new = {"conditions": [status.make_condition(AVAILABLE_CONDITION, "False", "Reconciling", "")]}
    assert status.status_changed(old, new)


def test_status_changed_non_dict():
    assert status.status_changed(None, {})


## update_resource_status ######################################################


def test_update_resource_status_writes_change():
    dm = MockDeployManager(resources=[setup_cr()])
    cr = get_parent(dm)
    cond = status.make_condition(AVAILABLE_CONDITION, "Unknown", "Reconciling", "")
    res = status.update_resource_status(dm, cr, cond)
    dm.set_status.assert_called_once()
    assert dm.set_status.call_args.kwargs["resource_version"] == (
        cr["metadata"]["resourceVersion"]
    )
    assert res == get_parent(dm)
    assert status.get_condition(AVAILABLE_CONDITION, res["status"])["status"] == "Unknown"


def test_update_resource_status_no_change_no_write():
    dm = MockDeployManager(resources=[setup_cr()])
    cond = status.make_condition(AVAILABLE_CONDITION, "Unknown", "Reconciling", "")
    cr = status.update_resource_status(dm, get_parent(dm), cond)
    dm.set_status.reset_mock()

    res = status.update_resource_status(dm, cr, cond)
    dm.set_status.assert_not_called()
    assert res == cr


def test_update_resource_status_failure_raises():
    dm = MockDeployManager(resources=[setup_cr()], set_status_fail=True)
    cond = status.make_condition(AVAILABLE_CONDITION, "Unknown", "Reconciling", "")
    with pytest.raises(StoreUnavailableError):
        status.update_resource_status(dm, get_parent(dm), cond)


def test_update_resource_status_keeps_other_status_fields():
    dm = MockDeployManager(resources=[setup_cr(status={"observed": 3})])
    cond = status.make_condition(AVAILABLE_CONDITION, "True", "Reconciling", "")
    res = status.update_resource_status(dm, get_parent(dm, TEST_KEY), cond)
    assert res["status"]["observed"] == 3
