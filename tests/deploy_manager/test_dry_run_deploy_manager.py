"""
Tests for the DryRunDeployManager in-memory store
"""

# Standard
import copy

# Third Party
import pytest

# Local
from minecraft_operator import constants
from minecraft_operator.deploy_manager import DryRunDeployManager, KubeEventType
from minecraft_operator.deploy_manager.owner_references import set_owner_reference
from minecraft_operator.exceptions import ConflictError
from minecraft_operator.test_helpers.helpers import (
    TEST_INSTANCE_NAME,
    TEST_NAMESPACE,
    setup_cr,
)

## Helpers #####################################################################


def make_config_map(name="cm", namespace=TEST_NAMESPACE, owner=None, **data):
    obj = {
        "kind": "ConfigMap",
        "apiVersion": "v1",
        "metadata": {"name": name, "namespace": namespace},
        "data": data,
    }
    if owner:
        set_owner_reference(owner, obj)
    return obj


def get_state(dm, obj):
    success, content = dm.get_object_current_state(
        kind=obj["kind"],
        name=obj["metadata"]["name"],
        namespace=obj["metadata"].get("namespace"),
        api_version=obj["apiVersion"],
    )
    assert success
    return content


## Create ######################################################################


def test_create_assigns_server_fields():
    dm = DryRunDeployManager()
    success, stored = dm.create(make_config_map())
    assert success
    metadata = stored["metadata"]
    assert metadata["uid"]
    assert metadata["creationTimestamp"]
    assert metadata["resourceVersion"]
    assert get_state(dm, stored) == stored


def test_create_existing_conflicts():
    dm = DryRunDeployManager()
    dm.create(make_config_map())
    with pytest.raises(ConflictError):
        dm.create(make_config_map(foo="bar"))


def test_create_does_not_alias_input():
    dm = DryRunDeployManager()
    obj = make_config_map(foo="bar")
    dm.create(obj)
    obj["data"]["foo"] = "changed"
    assert get_state(dm, obj)["data"] == {"foo": "bar"}


## Update ######################################################################


def test_update_bumps_resource_version():
    dm = DryRunDeployManager()
    _, stored = dm.create(make_config_map())
    stored["data"] = {"foo": "bar"}
    _, updated = dm.update(stored)
    assert int(updated["metadata"]["resourceVersion"]) > int(
        stored["metadata"]["resourceVersion"]
    )
    assert updated["data"] == {"foo": "bar"}


def test_update_stale_resource_version_conflicts():
    dm = DryRunDeployManager()
    _, stored = dm.create(make_config_map())
    stale = copy.deepcopy(stored)
    dm.update(stored)
    with pytest.raises(ConflictError):
        dm.update(stale)


def test_update_without_resource_version_is_unconditional():
    dm = DryRunDeployManager()
    _, stored = dm.create(make_config_map())
    dm.update(stored)
    del stored["metadata"]["resourceVersion"]
    success, _ = dm.update(stored)
    assert success


def test_update_missing_fails():
    dm = DryRunDeployManager()
    assert dm.update(make_config_map()) == (False, None)


def test_update_preserves_status_and_server_fields():
    dm = DryRunDeployManager(resources=[setup_cr()])
    cr = get_state(dm, setup_cr())
    _, cr = dm.set_status(
        kind=cr["kind"],
        name=TEST_INSTANCE_NAME,
        namespace=TEST_NAMESPACE,
        status={"conditions": [{"type": "Available"}]},
        api_version=cr["apiVersion"],
    )
    uid = cr["metadata"]["uid"]

    cr["status"] = {"conditions": []}
    cr["metadata"]["uid"] = "tampered"
    _, updated = dm.update(cr)
    assert updated["status"] == {"conditions": [{"type": "Available"}]}
    assert updated["metadata"]["uid"] == uid


## Set Status ##################################################################


def test_set_status():
    dm = DryRunDeployManager(resources=[setup_cr()])
    success, content = dm.set_status(
        kind=constants.PARENT_KIND,
        name=TEST_INSTANCE_NAME,
        namespace=TEST_NAMESPACE,
        status={"foo": "bar"},
        api_version=constants.PARENT_API_VERSION,
    )
    assert success
    assert content["status"] == {"foo": "bar"}
    assert get_state(dm, setup_cr())["status"] == {"foo": "bar"}


def test_set_status_stale_resource_version_conflicts():
    dm = DryRunDeployManager(resources=[setup_cr()])
    cr = get_state(dm, setup_cr())
    dm.update(cr)
    with pytest.raises(ConflictError):
        dm.set_status(
            kind=constants.PARENT_KIND,
            name=TEST_INSTANCE_NAME,
            namespace=TEST_NAMESPACE,
            status={},
            api_version=constants.PARENT_API_VERSION,
            resource_version=cr["metadata"]["resourceVersion"],
        )


def test_set_status_missing_fails():
    dm = DryRunDeployManager()
    assert dm.set_status(
        kind=constants.PARENT_KIND,
        name=TEST_INSTANCE_NAME,
        namespace=TEST_NAMESPACE,
        status={},
        api_version=constants.PARENT_API_VERSION,
    ) == (False, None)


## Disable #####################################################################


def test_disable_removes_object_without_finalizers():
    dm = DryRunDeployManager()
    obj = make_config_map()
    dm.create(obj)
    assert dm.disable([obj]) == (True, True)
    assert get_state(dm, obj) is None


def test_disable_missing_is_unchanged():
    dm = DryRunDeployManager()
    assert dm.disable([make_config_map()]) == (True, False)


def test_disable_with_finalizer_marks_for_deletion():
    dm = DryRunDeployManager()
    obj = make_config_map()
    obj["metadata"]["finalizers"] = ["some.finalizer"]
    dm.create(obj)
    dm.disable([obj])
    current = get_state(dm, obj)
    assert current["metadata"]["deletionTimestamp"]

    # Removing the finalizer completes the deletion
    current["metadata"]["finalizers"] = []
    dm.update(current)
    assert get_state(dm, obj) is None


def test_disable_twice_keeps_deletion_timestamp():
    dm = DryRunDeployManager()
    obj = make_config_map()
    obj["metadata"]["finalizers"] = ["some.finalizer"]
    dm.create(obj)
    dm.disable([obj])
    first = get_state(dm, obj)["metadata"]["deletionTimestamp"]
    dm.disable([obj])
    assert get_state(dm, obj)["metadata"]["deletionTimestamp"] == first


def test_removal_garbage_collects_owned_objects():
    dm = DryRunDeployManager(resources=[setup_cr()])
    owner = get_state(dm, setup_cr())
    owned = make_config_map(owner=owner)
    unowned = make_config_map(name="other")
    dm.create(owned)
    dm.create(unowned)

    dm.disable([owner])
    assert get_state(dm, owner) is None
    assert get_state(dm, owned) is None
    assert get_state(dm, unowned) is not None


## Reads #######################################################################


def test_get_object_current_state_api_version_filter():
    dm = DryRunDeployManager()
    obj = make_config_map()
    dm.create(obj)
    assert dm.get_object_current_state("ConfigMap", "cm", TEST_NAMESPACE)[1]
    assert dm.get_object_current_state(
        "ConfigMap", "cm", TEST_NAMESPACE, api_version="v2"
    ) == (True, None)


def test_filter_objects_current_state():
    dm = DryRunDeployManager()
    dm.create(make_config_map(name="a"))
    dm.create(make_config_map(name="b"))
    dm.create(make_config_map(name="c", namespace="other"))

    _, in_namespace = dm.filter_objects_current_state("ConfigMap", TEST_NAMESPACE)
    assert sorted(obj["metadata"]["name"] for obj in in_namespace) == ["a", "b"]
    _, everywhere = dm.filter_objects_current_state("ConfigMap")
    assert len(everywhere) == 3
    _, wrong_version = dm.filter_objects_current_state(
        "ConfigMap", TEST_NAMESPACE, api_version="v2"
    )
    assert wrong_version == []


## Watches #####################################################################


def test_register_watch_and_deletion_watch():
    dm = DryRunDeployManager()
    written = []
    removed = []
    dm.register_watch("v1", "ConfigMap", written.append, namespace=TEST_NAMESPACE)
    dm.register_deletion_watch("v1", "ConfigMap", removed.append)

    obj = make_config_map()
    dm.create(obj)
    dm.create(make_config_map(name="elsewhere", namespace="other"))
    assert [o["metadata"]["name"] for o in written] == ["cm"]

    dm.disable([obj])
    assert [o["metadata"]["name"] for o in removed] == ["cm"]


def test_named_watch_only_sees_named_object():
    dm = DryRunDeployManager()
    written = []
    dm.register_watch(
        "v1", "ConfigMap", written.append, namespace=TEST_NAMESPACE, name="b"
    )
    dm.create(make_config_map(name="a"))
    dm.create(make_config_map(name="b"))
    assert [o["metadata"]["name"] for o in written] == ["b"]


@pytest.mark.timeout(10)
def test_watch_objects():
    dm = DryRunDeployManager(resources=[make_config_map(name="existing")])
    events = dm.watch_objects("ConfigMap", "v1", namespace=TEST_NAMESPACE, timeout=1)

    first = next(events)
    assert first.type == KubeEventType.ADDED
    assert first.resource.name == "existing"

    _, stored = dm.create(make_config_map(name="new"))
    dm.update(stored)
    dm.disable([stored])

    remaining = list(events)
    assert [(e.type, e.resource.name) for e in remaining] == [
        (KubeEventType.ADDED, "new"),
        (KubeEventType.MODIFIED, "new"),
        (KubeEventType.DELETED, "new"),
    ]
