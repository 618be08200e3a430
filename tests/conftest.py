"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from minecraft_operator.test_helpers.helpers import configure_logging
from minecraft_operator.watch_manager import WatchManagerBase

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture(autouse=True)
def clear_registered_watches():
    """Each watch manager registers itself globally, so the registry is reset
    around every test
    """
    WatchManagerBase._ALL_WATCHES.clear()
    yield
    WatchManagerBase._ALL_WATCHES.clear()
