import re
import threading
import time
import logging
from enum import Enum
from typing import Optional, Callable, Tuple
import serial
from .exceptions import DeviceNotFoundError, CommandTimeoutError, CommandError

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r'[\r\n]')

class SerialInterface:
    """
    Line based request/reply transport to the arm motor bridge.

    Every command is answered by zero or more payload lines followed by a
    terminator line ('ok', 'busy' or 'error: <msg>'). Log lines ('D)', 'I)',
    'W)', 'E)' prefix) may arrive at any time and go to the log callback;
    anything else arriving while no command is pending goes to the
    unsolicited callback, including replies that arrive after their command
    timed out.
    """

    class ReplyStatus(Enum):
        OK = 'ok'
        ERROR = 'error'
        TIMEOUT = 'timeout'
        BUSY = 'busy'

    class LogLevel(Enum):
        DEBUG = logging.DEBUG
        INFO = logging.INFO
        WARNING = logging.WARNING
        ERROR = logging.ERROR

    log_level_prefix_map = {
        "D)": LogLevel.DEBUG,
        "I)": LogLevel.INFO,
        "W)": LogLevel.WARNING,
        "E)": LogLevel.ERROR,
    }

    def __init__(self, port: str, baud_rate: int = 115200,
                 command_msg_callback: Optional[Callable] = None,
                 log_msg_callback: Optional[Callable] = None,
                 unsolicited_msg_callback: Optional[Callable] = None,
                 reconnect_timeout: float = 5.0,
                 port_factory: Callable = serial.Serial):
        """
        Opens the port and starts the background reader.
        :param port: Serial port name (e.g., 'COM3' or '/dev/ttyACM0').
        :param baud_rate: Serial baud rate.
        :param command_msg_callback: called with every command sent and every reply received
        :param log_msg_callback: called with (LogLevel, message) for bridge log lines
        :param unsolicited_msg_callback: called with lines nobody is waiting for
        :param reconnect_timeout: how long to keep trying to (re)open the port, in seconds
        :param port_factory: opens the port, serial.Serial unless testing
        """
        self.port = port
        self.baud_rate = baud_rate
        self.reconnect_timeout = reconnect_timeout
        self.port_factory = port_factory
        self.serial = None

        self.command_msg_callback = command_msg_callback
        self.log_message_callback = log_msg_callback
        self.unsolicited_msg_callback = unsolicited_msg_callback

        self._lock = threading.Lock()
        self._reply_ready = threading.Condition(self._lock)
        self._pending = False
        self._payload = []
        self._status = None
        self._error_msg = ""
        self._stop = threading.Event()

        self.connect(self.reconnect_timeout)

        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True,
                                               name=f"bridge-reader-{port}")
        self._reader_thread.start()

    def connect(self, timeout: float) -> bool:
        """
        Opens the port, retrying until the timeout expires.
        """
        deadline = time.monotonic() + timeout
        logger.info(f"Opening motor bridge port '{self.port}'")
        while not self._stop.is_set():
            try:
                # non-blocking reads, the reader polls in_waiting
                self.serial = self.port_factory(self.port, self.baud_rate, timeout=0)
                logger.info(f"Motor bridge port '{self.port}' open")
                return True
            except (serial.SerialException, OSError) as e:
                if time.monotonic() >= deadline:
                    self.serial = None
                    raise DeviceNotFoundError(f"Could not open port {self.port}: {e}")
                time.sleep(0.2)
        return False

    def _reader_loop(self):
        buffer = ""
        while not self._stop.is_set():
            try:
                port = self.serial
                waiting = port.in_waiting if port is not None else 0
                if not waiting:
                    time.sleep(0.0005)
                    continue
                buffer += port.read(waiting).decode('ascii', errors='ignore')
                *lines, buffer = _LINE_SPLIT.split(buffer)
                for line in lines:
                    if line:
                        self._handle_line(line)
            except (serial.SerialException, OSError) as e:
                if self._stop.is_set():
                    break
                logger.error(f"Lost motor bridge on '{self.port}': {e}")
                buffer = ""
                self._reopen()

    def _reopen(self):
        self._close_port()
        while not self._stop.is_set():
            try:
                self.connect(self.reconnect_timeout)
                return
            except DeviceNotFoundError as e:
                logger.warning(f"{e}, still retrying")

    def _handle_line(self, line: str):
        with self._lock:
            log_level = self.log_level_prefix_map.get(line[:2])
            if log_level is not None:
                if self.log_message_callback: self.log_message_callback(log_level, line[2:])
                return
            if not self._pending:
                if self.unsolicited_msg_callback: self.unsolicited_msg_callback(line)
                return
            status, error_msg = self.parse_terminator(line)
            if status is None:
                self._payload.append(line)
                return
            self._status = status
            self._error_msg = error_msg
            self._reply_ready.notify()

    @staticmethod
    def parse_terminator(line: str) -> Tuple[Optional['SerialInterface.ReplyStatus'], str]:
        """
        Returns the reply status if the line terminates a reply, else None.
        """
        word, _, rest = line.partition(":")
        word = word.strip().lower()
        if word.startswith("ok"):
            return SerialInterface.ReplyStatus.OK, ""
        if word.startswith("busy"):
            return SerialInterface.ReplyStatus.BUSY, ""
        if word.startswith("error"):
            return SerialInterface.ReplyStatus.ERROR, rest.strip()
        return None, ""

    def _notify_command(self, msg: str, status, error_msg: str):
        if self.command_msg_callback:
            self.command_msg_callback(msg, status, error_msg)

    def send_command(self, cmd: str, timeout: float = 0.5) -> Tuple[ReplyStatus, str]:
        """
        Sends a command and waits for its reply terminator.
        :param cmd: The command to send.
        :param timeout: Maximum time to wait for the terminator, in seconds.
        :return: Tuple of the reply status and the payload lines.
        """
        cmd = cmd.strip()
        with self._lock:
            if not self.serial or not self.serial.is_open:
                raise CommandError('Serial not open')

            self._pending = True
            self._payload = []
            self._status = None
            self._error_msg = ""
            self._notify_command(cmd + "\n", None, '')

            try:
                self.serial.write((cmd + "\n").encode('ascii'))
                self.serial.flush()
                replied = self._reply_ready.wait_for(lambda: self._status is not None, timeout)
            except (serial.SerialException, OSError) as e:
                raise CommandError(f"Write of '{cmd}' failed: {e}")
            finally:
                self._pending = False

            if not replied:
                raise CommandTimeoutError(f"No reply to '{cmd}' within {timeout * 1000:.0f} ms")

            payload = "".join(line + "\n" for line in self._payload)
            self._notify_command(payload, self._status, self._error_msg)
            if self._status == SerialInterface.ReplyStatus.ERROR:
                raise CommandError(self._error_msg)
            return self._status, payload

    def _close_port(self):
        port, self.serial = self.serial, None
        try:
            if port is not None and port.is_open:
                port.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Closing '{self.port}' failed: {e}")

    def close(self):
        """Stops the reader and closes the port."""
        self._stop.set()
        if self._reader_thread is not threading.current_thread():
            self._reader_thread.join(timeout=0.5)
        self._close_port()
