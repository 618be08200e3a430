"""
Tests for the library config module

NOTE: Python makes it hard to change env vars in a way that will effect import
    time, so we're relying on the fact that aconfig is well tested and not
    actually validating the env-var override behavior!
"""

# Third Party
import pytest

# First Party
import aconfig

# Local
from minecraft_operator import config
from minecraft_operator.config import validation
from minecraft_operator.exceptions import ConfigError


def test_config_keys():
    """Make sure that the expected keys are present"""
    assert isinstance(config.dry_run, bool)
    assert isinstance(config.requeue_after_seconds, (int, float))
    assert config.image.env_var == "MINECRAFT_IMAGE"
    assert config.resources.server_port == 25565


def test_config_missing_key():
    with pytest.raises(AttributeError):
        config.not_a_real_key  # pylint: disable=pointless-statement


def test_loaded_config_is_valid():
    assert not validation.get_invalid_params(
        config.library_config, config.config.validation_config
    )


def test_validate_config_names_invalid_values():
    with pytest.raises(ConfigError) as exc_info:
        config.config.validate_config(
            aconfig.Config({"port": 0, "name": "ok"}),
            aconfig.Config(
                {
                    "port": {"type": "int", "min": 1, "max": 65535},
                    "name": {"type": "str", "min_len": 1},
                }
            ),
        )
    assert "port" in str(exc_info.value)
    assert "name" not in str(exc_info.value)


def test_read_config_without_env_overrides(monkeypatch):
    monkeypatch.setenv("REQUEUE_AFTER_SECONDS", "5")
    raw = config.config.read_config("config.yaml", override_env_vars=False)
    assert raw.requeue_after_seconds == 60


########################
## get_invalid_params ##
########################


def test_get_invalid_params_all_valid_params():
    assert not validation.get_invalid_params(
        config=aconfig.Config({"key": 1}),
        validation_config=aconfig.Config({"key": {"type": "int", "min": 0, "max": 1}}),
    )


def test_get_invalid_params_all_invalid_params():
    assert validation.get_invalid_params(
        config=aconfig.Config({"key": 3}),
        validation_config=aconfig.Config(
            {"key": {"type": "int", "min": 0, "max": 1}},
        ),
    ) == ["key"]


def test_get_invalid_params_nested():
    assert validation.get_invalid_params(
        config=aconfig.Config({"outer": {"port": 70000, "name": "ok"}}),
        validation_config=aconfig.Config(
            {
                "outer": {
                    "port": {"type": "int", "min": 1, "max": 65535},
                    "name": {"type": "str", "min_len": 1},
                }
            }
        ),
    ) == ["outer.port"]


@pytest.mark.parametrize(
    ["value", "validator", "valid"],
    [
        (1.5, {"type": "number", "min": 0}, True),
        (-1, {"type": "number", "min": 0}, False),
        (True, {"type": "int"}, False),
        (1.0, {"type": "int"}, False),
        ("", {"type": "str", "min_len": 1}, False),
        ("abc", {"type": "str", "max_len": 2}, False),
        (False, {"type": "bool"}, True),
        ("yes", {"type": "bool"}, False),
        ("info", {"type": "enum", "values": ["info", "debug"]}, True),
        ("trace", {"type": "enum", "values": ["info", "debug"]}, False),
        (None, {"type": "int", "optional": True}, True),
        (None, {"type": "int"}, False),
    ],
)
def test_parameter_validation(value, validator, valid):
    invalid = validation.get_invalid_params(
        config=aconfig.Config({"key": value}),
        validation_config=aconfig.Config({"key": validator}),
    )
    assert (not invalid) == valid
