"""
Loading of the library config. The yaml files beside this module are read and
validated at import time, and logging gets its initial configuration from
the result.
"""

# Standard
import os

# First Party
import aconfig
import alog

# Local
from ..exceptions import assert_config
from .validation import get_invalid_params

CONFIG_DIR = os.path.dirname(__file__)


def read_config(file_name: str, override_env_vars: bool) -> aconfig.Config:
    """Read one of the yaml files that ship with the package

    Args:
        file_name:  str
            The name of the file within the config directory
        override_env_vars:  bool
            Whether environment variables may override the file's values

    Returns:
        config:  aconfig.Config
            The parsed config
    """
    return aconfig.Config.from_yaml(
        os.path.join(CONFIG_DIR, file_name),
        override_env_vars=override_env_vars,
    )


def validate_config(config: aconfig.Config, validation_config: aconfig.Config):
    """Raise a ConfigError naming every value that fails its validator"""
    invalid_params = get_invalid_params(config, validation_config)
    assert_config(
        not invalid_params,
        f"Library configuration found invalid values: {invalid_params}",
    )


library_config = read_config("config.yaml", override_env_vars=True)
validation_config = read_config("config_validation.yaml", override_env_vars=False)
validate_config(library_config, validation_config)

# Initial log setup. The entrypoint reconfigures after applying its flags.
alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter="json" if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)
