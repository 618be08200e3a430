"""
Tests for the PythonWatchManager
"""
# Standard
import time

# Third Party
import pytest

# Local
from minecraft_operator.deploy_manager import DryRunDeployManager
from minecraft_operator.test_helpers.helpers import (
    get_dependent,
    get_parent,
    library_config,
    setup_cr,
    setup_reconcile_manager,
)
from minecraft_operator.watch_manager import PythonWatchManager

## Helpers #####################################################################

DEPENDENT_KINDS = [
    ("PersistentVolumeClaim", "v1"),
    ("ConfigMap", "v1"),
    ("StatefulSet", "apps/v1"),
    ("Service", "v1"),
]


def make_watch_manager(dm=None, **kwargs):
    dm = dm or DryRunDeployManager()
    return dm, PythonWatchManager(
        deploy_manager=dm,
        reconcile_manager=setup_reconcile_manager(deploy_manager=dm),
        **kwargs,
    )


def wait_for(condition, timeout=5):
    end = time.time() + timeout
    while time.time() < end:
        if condition():
            return True
        time.sleep(0.1)
    return False


## Tests #######################################################################


def test_one_watch_per_kind_cluster_wide():
    _, watch_manager = make_watch_manager()
    assert [
        (thread.api_version, thread.kind, thread.namespace)
        for thread in watch_manager.resource_watches
    ] == [
        ("cache.example.com/v1alpha1", "Minecraft", None),
        ("v1", "PersistentVolumeClaim", None),
        ("v1", "ConfigMap", None),
        ("apps/v1", "StatefulSet", None),
        ("v1", "Service", None),
    ]


def test_one_watch_per_kind_per_namespace():
    _, watch_manager = make_watch_manager(namespace_list=["a", "b"])
    assert len(watch_manager.resource_watches) == 10
    assert {thread.namespace for thread in watch_manager.resource_watches} == {
        "a",
        "b",
    }


def test_namespaces_from_config():
    with library_config(watch_namespace="a,b,c"):
        _, watch_manager = make_watch_manager()
    assert watch_manager.namespace_list == ["a", "b", "c"]
    assert len(watch_manager.resource_watches) == 15


def test_star_namespace_watches_cluster_wide():
    _, watch_manager = make_watch_manager(namespace_list=["*"])
    assert {thread.namespace for thread in watch_manager.resource_watches} == {None}


@pytest.mark.timeout(15)
def test_python_watch_manager_converges():
    dm, watch_manager = make_watch_manager()
    assert watch_manager.watch()
    try:
        dm.create(setup_cr())
        assert wait_for(
            lambda: all(
                get_dependent(dm, kind, api_version) is not None
                for kind, api_version in DEPENDENT_KINDS
            )
        )
        assert wait_for(
            lambda: (get_parent(dm) or {}).get("metadata", {}).get("finalizers")
        )
    finally:
        watch_manager.stop()
    watch_manager.wait()
    assert not watch_manager.reconcile_thread.is_alive()


def test_watch_after_stop_fails():
    _, watch_manager = make_watch_manager()
    watch_manager.stop()
    assert not watch_manager.watch()
