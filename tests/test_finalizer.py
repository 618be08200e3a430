"""
Tests for the finalizer helpers
"""

# Local
from minecraft_operator import constants
from minecraft_operator.finalizer import (
    add_obligation,
    has_obligation,
    is_marked_for_deletion,
    remove_obligation,
)
from minecraft_operator.test_helpers.helpers import setup_cr


def test_add_obligation_appends_once():
    cr = setup_cr()
    updated = add_obligation(cr)
    assert updated["metadata"]["finalizers"] == [constants.FINALIZER_NAME]
    assert "finalizers" not in cr["metadata"]
    assert add_obligation(updated) == updated


def test_add_obligation_keeps_existing_tokens():
    cr = setup_cr()
    cr["metadata"]["finalizers"] = ["a/b"]
    assert add_obligation(cr)["metadata"]["finalizers"] == [
        "a/b",
        constants.FINALIZER_NAME,
    ]


def test_remove_obligation_keeps_others_in_order():
    cr = setup_cr()
    cr["metadata"]["finalizers"] = ["a/b", constants.FINALIZER_NAME, "c/d"]
    updated = remove_obligation(cr)
    assert updated["metadata"]["finalizers"] == ["a/b", "c/d"]
    assert constants.FINALIZER_NAME in cr["metadata"]["finalizers"]


def test_remove_obligation_absent_is_noop():
    cr = setup_cr()
    assert remove_obligation(cr) == cr


def test_has_obligation():
    cr = setup_cr()
    assert not has_obligation(cr)
    assert has_obligation(add_obligation(cr))
    assert has_obligation(add_obligation(cr, "x/y"), "x/y")


def test_is_marked_for_deletion():
    cr = setup_cr()
    assert not is_marked_for_deletion(cr)
    cr["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    assert is_marked_for_deletion(cr)
