"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class OperatorError(Exception):
    """Base class for all operator exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should stop the
        operator process rather than requeue the reconciliation
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class OperatorFatalError(OperatorError):
    """An OperatorFatalError is one that can only occur while the operator is
    starting up and means it cannot run at all.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(OperatorFatalError):
    """Exception caused by invalid library configuration"""


## Expected Errors #############################################################


class OperatorExpectedError(OperatorError):
    """An OperatorExpectedError is one that terminates the current
    reconciliation pass, but is expected to resolve in a subsequent pass.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class ConflictError(OperatorExpectedError):
    """Exception raised by the store when a write is made against a stale
    resourceVersion or a create collides with an existing object
    """


class SynthesisError(OperatorExpectedError):
    """Exception raised when a dependent resource manifest cannot be built
    because required external configuration could not be resolved
    """


class StoreUnavailableError(OperatorExpectedError):
    """Exception raised when an operation against the store fails for
    transport, permission or timeout reasons
    """


class NotFoundError(OperatorExpectedError):
    """Signal that an object disappeared from the store in the middle of a
    reconciliation pass. This ends the pass quietly and is never reported as
    a failure.
    """


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when validating the library config at startup.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a StoreUnavailableError. This
    should be used when an operation against the store must succeed for the
    reconciliation to continue.
    """
    if not condition:
        raise StoreUnavailableError(message)


def assert_synthesized(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a SynthesisError. This should
    be used when building a dependent resource manifest.
    """
    if not condition:
        raise SynthesisError(message)
