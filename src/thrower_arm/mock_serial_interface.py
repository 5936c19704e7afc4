import re
import time
from typing import Optional, Callable, Tuple, List
from .serial_interface import SerialInterface
from .exceptions import CommandError, CommandTimeoutError

def _arg(cmd: str, letter: str) -> Optional[float]:
    match = re.search(letter + r"([-+]?\d*\.?\d+(?:[eE][-+]?\d+)?)", cmd)
    return float(match.group(1)) if match else None

class MockSerialInterface:
    """
    Digital twin of the arm motor bridge.

    Sensor values are plain attributes so that tests and simulations can
    drive them directly. Every command received is appended to `commands`.
    """
    FIRMWARE_VERSION = "v1.0.0"

    def __init__(self, port: str = "mock", baud_rate: int = 115200,
                 command_msg_callback: Optional[Callable] = None,
                 log_msg_callback: Optional[Callable] = None,
                 unsolicited_msg_callback: Optional[Callable] = None,
                 reconnect_timeout: float = 5.0):
        self.port = port
        self.baud_rate = baud_rate
        self.command_msg_callback = command_msg_callback
        self.log_message_callback = log_msg_callback
        self.unsolicited_msg_callback = unsolicited_msg_callback
        self.is_open = False

        self.firmware_version = self.FIRMWARE_VERSION
        self.unresponsive = False       # swallow commands without replying
        self.absolute_position = 0.0    # encoder fraction of a turn
        self.rotor_position = 0.0       # rotor rotations
        self.rotor_velocity = 0.0       # rotor rotations/s
        self.closed_loop_error = 0.0    # rotor rotations
        self.config_failures = 0        # number of upcoming M80 commands to reject
        self.configured = False
        self.coast = False
        self.duty_cycle = 0.0
        self.profile_target: Optional[float] = None
        self.profile_slot: Optional[int] = None
        self.commands: List[str] = []

        self.connect(reconnect_timeout)

    def connect(self, timeout: float) -> bool:
        self.is_open = True
        return True

    def close(self):
        self.is_open = False

    def settle(self):
        """Moves the rotor onto the active profile target and stops it."""
        if self.profile_target is not None:
            self.rotor_position = self.profile_target
        self.closed_loop_error = 0.0
        self.rotor_velocity = 0.0

    def send_command(self, cmd: str, timeout: float = 0.5) -> Tuple[SerialInterface.ReplyStatus, str]:
        if not self.is_open:
            raise CommandError("Serial not open")

        cmd = cmd.strip()
        self.commands.append(cmd)
        if self.command_msg_callback:
            self.command_msg_callback(cmd + "\n", None, '')

        if self.unresponsive:
            time.sleep(timeout)
            raise CommandTimeoutError(f"No reply to '{cmd}' within {timeout * 1000:.0f} ms")

        response_status = SerialInterface.ReplyStatus.OK
        response_content = ""
        error_msg = ""

        if cmd.startswith("M58"):
            response_content = self.firmware_version
        elif cmd.startswith("M70"):
            response_content = f"A{self.absolute_position:.6f}"
        elif cmd.startswith("M71"):
            response_content = f"P{self.rotor_position:.6f}"
        elif cmd.startswith("M72"):
            response_content = f"V{self.rotor_velocity:.6f}"
        elif cmd.startswith("M73"):
            response_content = f"E{self.closed_loop_error:.6f}"
        elif cmd.startswith("M80"):
            if self.config_failures > 0:
                self.config_failures -= 1
                self.configured = False
                response_status = SerialInterface.ReplyStatus.ERROR
                error_msg = "configuration rejected"
            else:
                self.configured = True
                self.coast = _arg(cmd, "N") == 0
        elif cmd.startswith("M81") or cmd.startswith("M82"):
            pass
        elif cmd.startswith("M90"):
            self.duty_cycle = _arg(cmd, "D") or 0.0
            self.profile_target = None
        elif cmd.startswith("M91"):
            self.profile_target = _arg(cmd, "P")
            self.profile_slot = int(_arg(cmd, "S") or 0)
            self.closed_loop_error = self.profile_target - self.rotor_position
            self.duty_cycle = 0.0
        elif cmd.startswith("M92"):
            self.coast = True
            self.duty_cycle = 0.0
            self.profile_target = None
        else:
            response_status = SerialInterface.ReplyStatus.ERROR
            error_msg = f"unknown command '{cmd}'"

        if self.command_msg_callback:
            self.command_msg_callback(response_content, response_status, error_msg)

        if response_status == SerialInterface.ReplyStatus.ERROR:
            raise CommandError(error_msg)

        return response_status, response_content
