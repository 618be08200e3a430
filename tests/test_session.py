"""
Tests for the Session
"""

# Third Party
import pytest

# Local
from minecraft_operator import constants
from minecraft_operator.exceptions import (
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
)
from minecraft_operator.test_helpers.helpers import (
    TEST_KEY,
    MockDeployManager,
    get_parent,
    setup_cr,
    setup_session,
)


def test_session_properties():
    session = setup_session()
    assert session.name == TEST_KEY.name
    assert session.namespace == TEST_KEY.namespace
    assert session.cr_manifest is None


def test_fetch_present_and_absent():
    session = setup_session()
    cr = session.fetch()
    assert cr["metadata"]["name"] == TEST_KEY.name
    assert session.cr_manifest == cr

    session = setup_session(deploy_initial_cr=False)
    assert session.fetch() is None


def test_fetch_failure_raises():
    session = setup_session(deploy_manager=MockDeployManager(get_state_fail=True))
    with pytest.raises(StoreUnavailableError):
        session.fetch()


def test_refetch_absent_raises_not_found():
    session = setup_session(deploy_initial_cr=False)
    with pytest.raises(NotFoundError):
        session.refetch()


def test_write_retries_once_on_conflict():
    session = setup_session()
    session.fetch()
    calls = []

    def operation(cr):
        calls.append(cr["metadata"]["resourceVersion"])
        if len(calls) == 1:
            raise ConflictError("stale")
        return cr

    session.write(operation)
    assert len(calls) == 2


def test_write_second_conflict_propagates():
    """Only a single conflict is recovered per session"""
    session = setup_session()
    session.fetch()

    def conflict(_):
        raise ConflictError("stale")

    with pytest.raises(ConflictError):
        session.write(conflict)

    # The budget is spent, so even a write that would succeed on retry fails
    raised = []

    def conflict_once(cr):
        if not raised:
            raised.append(True)
            raise ConflictError("stale")
        return cr

    with pytest.raises(ConflictError):
        session.write(conflict_once)


def test_write_uses_latest_manifest_after_conflict():
    dm = MockDeployManager(resources=[setup_cr()])
    session = setup_session(deploy_manager=dm)
    session.fetch()

    # Someone else writes the parent
    other = get_parent(dm)
    other["metadata"]["labels"] = {"other": "writer"}
    dm.update(other)

    def add_label(cr):
        cr["metadata"].setdefault("labels", {})["mine"] = "yes"
        return session.update_parent(cr)

    res = session.write(add_label)
    assert res["metadata"]["labels"] == {"other": "writer", "mine": "yes"}
    assert session.cr_manifest == get_parent(dm)


def test_get_and_create_dependent():
    dm = MockDeployManager(resources=[setup_cr()])
    session = setup_session(deploy_manager=dm)
    assert session.get_dependent("ConfigMap", "v1") is None
    session.create_dependent(
        {
            "kind": "ConfigMap",
            "apiVersion": "v1",
            "metadata": {"name": TEST_KEY.name, "namespace": TEST_KEY.namespace},
        }
    )
    assert session.get_dependent("ConfigMap", "v1") is not None


def test_create_dependent_failure_raises():
    dm = MockDeployManager(resources=[setup_cr()], create_fail=True)
    session = setup_session(deploy_manager=dm)
    with pytest.raises(StoreUnavailableError):
        session.create_dependent(
            {
                "kind": "ConfigMap",
                "apiVersion": "v1",
                "metadata": {"name": TEST_KEY.name, "namespace": TEST_KEY.namespace},
            }
        )


def test_update_parent_missing_raises():
    dm = MockDeployManager()
    session = setup_session(deploy_manager=dm)
    with pytest.raises(StoreUnavailableError):
        session.update_parent(setup_cr())


def test_fetch_uses_parent_identity():
    dm = MockDeployManager(resources=[setup_cr()])
    session = setup_session(deploy_manager=dm)
    session.fetch()
    kwargs = dm.get_object_current_state.call_args.kwargs
    assert kwargs["kind"] == constants.PARENT_KIND
    assert kwargs["api_version"] == constants.PARENT_API_VERSION
