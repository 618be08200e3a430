"""
Tests for the reconciliation-aware log formatter
"""

# Standard
import json
import logging
import threading

# Local
from minecraft_operator.log_format import (
    OperatorJsonFormatter,
    log_context,
    set_log_context_manifest,
)
from minecraft_operator.test_helpers.helpers import (
    TEST_INSTANCE_NAME,
    TEST_NAMESPACE,
    setup_cr,
)

## Helpers #####################################################################


def make_record(message="hello"):
    return logging.LogRecord(
        name="TEST",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


def format_record():
    return json.loads(OperatorJsonFormatter().format(make_record()))


## Tests #######################################################################


def test_no_context():
    formatted = format_record()
    assert formatted["message"] == "hello"
    assert "reconciliationId" not in formatted
    assert "resourceName" not in formatted


def test_reconciliation_id_and_manifest():
    with log_context("abc123", setup_cr()):
        formatted = format_record()
    assert formatted["reconciliationId"] == "abc123"
    assert formatted["kind"] == "Minecraft"
    assert formatted["resourceName"] == TEST_INSTANCE_NAME
    assert formatted["resourceNamespace"] == TEST_NAMESPACE


def test_context_restored_after_exit():
    with log_context("outer"):
        with log_context("inner"):
            assert format_record()["reconciliationId"] == "inner"
        assert format_record()["reconciliationId"] == "outer"
    assert "reconciliationId" not in format_record()


def test_set_manifest_inside_context():
    with log_context("abc123"):
        assert "resourceName" not in format_record()
        set_log_context_manifest(setup_cr())
        assert format_record()["resourceName"] == TEST_INSTANCE_NAME


def test_set_manifest_outside_context_ignored():
    set_log_context_manifest(setup_cr())
    assert "resourceName" not in format_record()


def test_context_is_per_thread():
    seen = []

    def other_thread():
        seen.append(format_record().get("reconciliationId"))

    with log_context("abc123"):
        thread = threading.Thread(target=other_thread)
        thread.start()
        thread.join()
    assert seen == [None]
