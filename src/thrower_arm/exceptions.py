"""Errors raised by the motor bridge transport.

Only connection setup lets these escape; the hardware adapter turns failures
inside the control loop into reply statuses.
"""

class ThrowerArmError(Exception):
    pass

class DeviceNotFoundError(ThrowerArmError):
    """The motor bridge port could not be opened."""

class IncompatibleFirmwareError(ThrowerArmError):
    """The motor bridge runs firmware older than the protocol requires."""

class CommandTimeoutError(ThrowerArmError):
    """The motor bridge did not terminate a reply in time."""

class CommandError(ThrowerArmError):
    """The motor bridge answered 'error', or the port is closed."""
