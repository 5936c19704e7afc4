import re
import time
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple
from .config import BridgeConfig, MotorConfiguration, GainSlot
from .exceptions import CommandError, CommandTimeoutError, IncompatibleFirmwareError
from .serial_interface import SerialInterface
from .mock_serial_interface import MockSerialInterface

logger = logging.getLogger(__name__)

class HardwareAdapter(ABC):
    """
    Sensor and actuator access used by the arm controller.

    Implementations must not raise from any of these methods; failures are
    reported through the returned status.
    """

    @abstractmethod
    def read_absolute_position(self) -> float:
        """Raw absolute encoder reading as a fraction of a turn."""

    @abstractmethod
    def read_relative_position(self) -> float:
        """Motor rotor position in rotations."""

    @abstractmethod
    def read_rate(self) -> float:
        """Motor rotor velocity in rotations/s."""

    @abstractmethod
    def read_tracking_error(self) -> float:
        """Closed-loop error of the active position command in rotor rotations."""

    @abstractmethod
    def apply_configuration(self, configuration: MotorConfiguration) -> SerialInterface.ReplyStatus:
        pass

    @abstractmethod
    def command_open_loop(self, power: float) -> SerialInterface.ReplyStatus:
        pass

    @abstractmethod
    def command_motion_profiled(self, position: float, slot: int) -> SerialInterface.ReplyStatus:
        pass

    @abstractmethod
    def command_disable(self) -> SerialInterface.ReplyStatus:
        """Coast on neutral and zero the output."""


class JointHardwareInterface(HardwareAdapter):
    """
    Motor bridge adapter for the arm joint.

    Requests from the control loop wait at most ``bridge_config.reply_timeout``.
    Once a request times out the bridge is treated as silent for
    ``bridge_config.silence_backoff`` seconds: reads return the last good value
    and commands report TIMEOUT without touching the port, so a dead link costs
    one timeout per backoff window instead of one per request.
    """
    MIN_FIRMWARE_VERSION = (1, 0, 0)

    def __init__(self, show_communication: bool = True, show_log_messages: bool = True, mock: bool = False,
                 bridge_config: Optional[BridgeConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.serial = None
        self.show_communication = show_communication
        self.show_log_messages = show_log_messages
        self.mock = mock
        self.bridge_config = bridge_config or BridgeConfig()
        self.clock = clock
        self._handshaking = False
        self._silent_until: Optional[float] = None
        self._last_readings = {"A": 0.0, "P": 0.0, "V": 0.0, "E": 0.0}

    @staticmethod
    def _version_str(v: Tuple[int, int, int]) -> str:
        return f"v{v[0]}.{v[1]}.{v[2]}"

    def connect(self, port: str) -> Tuple[int, int, int]:
        """
        Opens the bridge and checks its firmware.
        :param port: Serial port name, ignored by the mock bridge.
        :return: firmware version reported by the bridge
        :raises DeviceNotFoundError: the port could not be opened
        :raises IncompatibleFirmwareError: firmware missing or too old
        """
        self.disconnect()

        transport = MockSerialInterface if self.mock else SerialInterface
        self.serial = transport(port, self.bridge_config.baud_rate,
                                log_msg_callback=self._relay_bridge_log,
                                command_msg_callback=self._trace_command,
                                unsolicited_msg_callback=self._relay_unsolicited,
                                reconnect_timeout=self.bridge_config.reconnect_timeout)

        self._handshaking = True
        try:
            fw_version = self.read_firmware_version()
        finally:
            self._handshaking = False

        if fw_version < self.MIN_FIRMWARE_VERSION:
            self.disconnect()
            raise IncompatibleFirmwareError(
                f"Motor bridge on '{port}' reports firmware {self._version_str(fw_version)}, "
                f"at least {self._version_str(self.MIN_FIRMWARE_VERSION)} required")
        logger.info(f"Motor bridge firmware version: {self._version_str(fw_version)}")
        return fw_version

    def disconnect(self):
        if self.serial is not None:
            self.serial.close()
            self.serial = None
        self._silent_until = None

    def _relay_bridge_log(self, log_level: SerialInterface.LogLevel, msg: str) -> None:
        if self.show_log_messages and not self._handshaking:
            logger.log(log_level.value, f"[bridge] {msg}")

    def _trace_command(self, msg: str, reply_status: Optional[SerialInterface.ReplyStatus], error_msg: str) -> None:
        if not self.show_communication or self._handshaking:
            return
        if reply_status is None:
            logger.debug(f"< {msg.strip()}")
            return
        for line in msg.splitlines():
            logger.debug(f"> {line}")
        logger.debug(f"{reply_status.name}: {error_msg}" if error_msg else reply_status.name)

    def _relay_unsolicited(self, msg: str) -> None:
        # late replies to timed out requests end up here too
        logger.debug(f"Unsolicited from motor bridge: {msg}")

    def read_firmware_version(self) -> Tuple[int, int, int]:
        status, response = self._send("M58", timeout=self.bridge_config.connect_timeout,
                                      skip_when_silent=False)
        match = re.match(r'v(\d+)\.(\d+)\.(\d+)', response.strip())
        if status != SerialInterface.ReplyStatus.OK or not match:
            return 0, 0, 0
        major, minor, patch = map(int, match.groups())
        return major, minor, patch

    def is_silent(self) -> bool:
        """True while backing off after a request timed out."""
        return self._silent_until is not None and self.clock() < self._silent_until

    def _send(self, cmd: str, timeout: Optional[float] = None,
              skip_when_silent: bool = True) -> Tuple[SerialInterface.ReplyStatus, str]:
        """
        Sends a command, converting transport failures into a reply status.
        :param timeout: reply timeout in seconds, the control loop budget if None
        :param skip_when_silent: answer TIMEOUT without sending while backing off
        """
        if self.serial is None:
            logger.warning(f"Dropping '{cmd}', motor bridge not connected")
            return SerialInterface.ReplyStatus.ERROR, ""
        if skip_when_silent and self.is_silent():
            return SerialInterface.ReplyStatus.TIMEOUT, ""
        if timeout is None:
            timeout = self.bridge_config.reply_timeout
        try:
            reply = self.serial.send_command(cmd, timeout)
        except CommandTimeoutError as e:
            if not self.is_silent():
                logger.warning(f"{e}, backing off for {self.bridge_config.silence_backoff:.2f} s")
            self._silent_until = self.clock() + self.bridge_config.silence_backoff
            return SerialInterface.ReplyStatus.TIMEOUT, ""
        except CommandError as e:
            logger.warning(f"Motor bridge rejected '{cmd}': {e}")
            return SerialInterface.ReplyStatus.ERROR, ""
        self._silent_until = None
        return reply

    def _read_value(self, cmd: str, letter: str) -> float:
        """
        Reads a single tagged value, falling back to the last good reading.
        """
        status, response = self._send(cmd)
        if status == SerialInterface.ReplyStatus.TIMEOUT:
            logger.debug(f"No reply to '{cmd}', reusing last reading")
            return self._last_readings[letter]
        match = re.search(letter + r"([-+]?\d*\.?\d+(?:[eE][-+]?\d+)?)", response)
        if status != SerialInterface.ReplyStatus.OK or not match:
            logger.warning(f"Invalid reply to '{cmd}' ({status.name}), reusing last reading")
            return self._last_readings[letter]
        value = float(match.group(1))
        self._last_readings[letter] = value
        return value

    def read_absolute_position(self) -> float:
        return self._read_value("M70", "A")

    def read_relative_position(self) -> float:
        return self._read_value("M71", "P")

    def read_rate(self) -> float:
        return self._read_value("M72", "V")

    def read_tracking_error(self) -> float:
        return self._read_value("M73", "E")

    @staticmethod
    def _gain_command(slot: int, gains: GainSlot) -> str:
        return f"M81 S{slot} P{gains.kp:.6f} I{gains.ki:.6f} D{gains.kd:.6f} V{gains.kv:.6f}"

    def apply_configuration(self, configuration: MotorConfiguration) -> SerialInterface.ReplyStatus:
        """
        Pushes the complete motor configuration. Stops at the first command
        that is not acknowledged and returns its status.
        :param configuration: parameters to apply
        :return: OK if every parameter group was accepted
        """
        c = configuration
        commands = [
            f"M80 N{int(c.brake_on_neutral)} I{int(c.inverted)} "
            f"L{c.supply_current_limit:.6f} T{c.supply_time_threshold:.6f}",
            self._gain_command(0, c.slot0),
            self._gain_command(1, c.slot1),
            f"M82 A{c.profile_acceleration:.6f} V{c.profile_cruise_velocity:.6f} J{c.profile_jerk:.6f}",
        ]
        for cmd in commands:
            status, _ = self._send(cmd, timeout=c.apply_timeout, skip_when_silent=False)
            if status != SerialInterface.ReplyStatus.OK:
                return status
        return SerialInterface.ReplyStatus.OK

    def command_open_loop(self, power: float) -> SerialInterface.ReplyStatus:
        power = max(-1.0, min(1.0, power))
        status, _ = self._send(f"M90 D{power:.6f}")
        return status

    def command_motion_profiled(self, position: float, slot: int) -> SerialInterface.ReplyStatus:
        status, _ = self._send(f"M91 P{position:.6f} S{slot}")
        return status

    def command_disable(self) -> SerialInterface.ReplyStatus:
        status, _ = self._send("M92")
        return status
