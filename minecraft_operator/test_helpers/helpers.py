"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from unittest import mock
import copy
import inspect
import os
import uuid

# First Party
import aconfig
import alog

# Local
from minecraft_operator import constants
from minecraft_operator.config import library_config as config_detail_dict
from minecraft_operator.deploy_manager.dry_run_deploy_manager import (
    DryRunDeployManager,
)
from minecraft_operator.event_recorder import EventRecorder
from minecraft_operator.managed_object import NamespacedName
from minecraft_operator.reconcile import ReconcileManager
from minecraft_operator.resources import SynthesizerConfig, default_synthesizers
from minecraft_operator.session import Session

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_INSTANCE_NAME = "test-instance"
TEST_INSTANCE_UID = "12345678-1234-1234-1234-123456789012"
TEST_NAMESPACE = "test"
SOME_OTHER_NAMESPACE = "somewhere"
TEST_KEY = NamespacedName(TEST_NAMESPACE, TEST_INSTANCE_NAME)

TEST_IMAGE = "itzg/minecraft-server:2024.1.0"
TEST_STORAGE_SIZE = "2Gi"
TEST_SERVER_PORT = 25565
TEST_EXTERNAL_DOMAIN = "andylile.com"


def setup_cr(
    name=TEST_INSTANCE_NAME,
    namespace=TEST_NAMESPACE,
    uid=TEST_INSTANCE_UID,
    size=1,
    **kwargs,
):
    """Build a Minecraft manifest. Any extra kwargs are set at the top level
    of the manifest.
    """
    cr_dict = copy.deepcopy(kwargs)
    cr_dict.setdefault("kind", constants.PARENT_KIND)
    cr_dict.setdefault("apiVersion", constants.PARENT_API_VERSION)
    metadata = cr_dict.setdefault("metadata", {})
    metadata.setdefault("name", name)
    metadata.setdefault("namespace", namespace)
    if uid:
        metadata.setdefault("uid", uid)
    cr_dict.setdefault("spec", {}).setdefault("size", size)
    return cr_dict


def make_synthesizer_config(**overrides) -> SynthesizerConfig:
    """Build a SynthesizerConfig with test values"""
    kwargs = {
        "image": TEST_IMAGE,
        "storage_size": TEST_STORAGE_SIZE,
        "server_port": TEST_SERVER_PORT,
        "external_domain": TEST_EXTERNAL_DOMAIN,
    }
    kwargs.update(overrides)
    return SynthesizerConfig(**kwargs)


def setup_reconcile_manager(deploy_manager=None, synthesizer_config=None, **kwargs):
    """Build a ReconcileManager wired to a MockDeployManager and the test
    synthesizer config
    """
    deploy_manager = deploy_manager or MockDeployManager()
    kwargs.setdefault(
        "synthesizers",
        default_synthesizers(synthesizer_config or make_synthesizer_config()),
    )
    kwargs.setdefault("event_recorder", EventRecorder(deploy_manager))
    return ReconcileManager(deploy_manager=deploy_manager, **kwargs)


def setup_session(
    full_cr=None,
    deploy_manager=None,
    deploy_initial_cr=True,
    key=TEST_KEY,
):
    full_cr = full_cr or setup_cr(name=key.name, namespace=key.namespace)
    if not deploy_manager:
        deploy_manager = (
            MockDeployManager(resources=[full_cr])
            if deploy_initial_cr
            else MockDeployManager()
        )

    return Session(
        reconciliation_id=str(uuid.uuid4()),
        key=key,
        deploy_manager=deploy_manager,
    )


def get_parent(deploy_manager, key=TEST_KEY):
    """Read the current parent manifest from the deploy manager"""
    _, content = DryRunDeployManager.get_object_current_state(
        deploy_manager,
        kind=constants.PARENT_KIND,
        name=key.name,
        namespace=key.namespace,
        api_version=constants.PARENT_API_VERSION,
    )
    return content


def get_dependent(deploy_manager, kind, api_version, key=TEST_KEY):
    """Read a dependent of the parent from the deploy manager"""
    _, content = DryRunDeployManager.get_object_current_state(
        deploy_manager,
        kind=kind,
        name=key.name,
        namespace=key.namespace,
        api_version=api_version,
    )
    return content


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        if isinstance(val, dict):
            val = aconfig.Config(val, override_env_vars=False)
        config_detail_dict[key] = val

    # Yield to the context
    try:
        yield
    finally:
        # Revert to the old values
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


def get_failable_method(fail_flag, method, failure_return=False):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        log.debug4(
            "Running failable mock of [%s] with fail flag: %s", str(method), fail_flag
        )
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        if callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag()
            if res is not None:
                return res
        elif fail_flag == "assert":
            log.debug4("Asserting in failable mock")
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            log.debug4("Returning %s", failure_return)
            return failure_return
        log.debug4("Passing through (%s, **%s)", args, kwargs)
        res = method(*args, **kwargs)
        log.debug4("Passthrough res: %s", res)
        return res

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return None


class MockDeployManager(DryRunDeployManager):
    """The MockDeployManager wraps a standard DryRunDeployManager and adds
    configuration options to simulate failures in each of its operations.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        create_fail=False,
        create_raise=False,
        update_fail=False,
        update_raise=False,
        disable_fail=False,
        disable_raise=False,
        get_state_fail=False,
        get_state_raise=False,
        watch_fail=False,
        watch_raise=False,
        set_status_fail=False,
        set_status_raise=False,
        auto_enable=True,
        resources=None,
    ):
        """This DeployManager can be configured to have various failure cases
        and will mock the state of the cluster so that get_object_current_state
        will pull its information from the local dict.
        """
        super().__init__(resources)

        self.create_fail = "assert" if create_raise else create_fail
        self.update_fail = "assert" if update_raise else update_fail
        self.disable_fail = "assert" if disable_raise else disable_fail
        self.get_state_fail = "assert" if get_state_raise else get_state_fail
        self.watch_fail = "assert" if watch_raise else watch_fail
        self.set_status_fail = "assert" if set_status_raise else set_status_fail

        # If auto-enabling, turn the mocks on now
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        self.create = mock.Mock(
            side_effect=get_failable_method(
                self.create_fail, super().create, (False, None)
            )
        )
        self.update = mock.Mock(
            side_effect=get_failable_method(
                self.update_fail, super().update, (False, None)
            )
        )
        self.disable = mock.Mock(
            side_effect=get_failable_method(
                self.disable_fail, super().disable, (False, False)
            )
        )
        self.get_object_current_state = mock.Mock(
            side_effect=get_failable_method(
                self.get_state_fail, super().get_object_current_state, (False, None)
            )
        )
        self.set_status = mock.Mock(
            side_effect=get_failable_method(
                self.set_status_fail, super().set_status, (False, None)
            )
        )
        self.watch_objects = mock.Mock(
            side_effect=get_failable_method(self.watch_fail, super().watch_objects, [])
        )

    def created_kinds(self):
        """The kinds passed to create, in call order"""
        return [call.args[0]["kind"] for call in self.create.call_args_list]
