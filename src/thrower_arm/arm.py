"""Fault-tolerant position control of the thrower arm joint.

The motor's rotor position gives fast, fine feedback but drifts against the
arm through chain slip and backlash. The absolute encoder on the arm shaft is
authoritative but too coarse to close the loop on. The controller therefore
runs the motor's motion-profiled position loop in rotor units and maps arm
angles into rotor units through a reference pair, an (rotor position, arm
angle) snapshot that is re-captured every ``calibration_interval`` seconds.

A motor that cannot be configured is disabled (coast, zero output) and the
joint is latched into manual mode until an explicit ``reboot()``.
"""

import time
import logging
from dataclasses import replace
from typing import Callable, Optional, Tuple
from .config import JointConfig, MotorConfiguration
from .hardware import HardwareAdapter
from .serial_interface import SerialInterface
from .telemetry import TelemetrySink, publish_all
from .types import Command, Disable, JointMode, JointState, OpenLoop, Profiled

logger = logging.getLogger(__name__)


def configure_with_retries(adapter: HardwareAdapter, configuration: MotorConfiguration,
                           max_retries: int) -> Tuple[bool, int]:
    """
    Applies the motor configuration, retrying up to max_retries times.
    :return: (success, number of attempts made)
    """
    attempts = 0
    while attempts <= max_retries:
        attempts += 1
        status = adapter.apply_configuration(configuration)
        if status == SerialInterface.ReplyStatus.OK:
            return True, attempts
        logger.warning(f"Motor configuration attempt {attempts} failed ({status.name})")
    return False, attempts


def apply_configuration_result(state: JointState, ok: bool) -> JointState:
    if ok:
        return replace(state, faulted=False)
    return replace(state, faulted=True, manual_mode=True)


def apply_anchor(state: JointState, actuator_pos: float, sensor_angle: float, now: float) -> JointState:
    return replace(state, reference_actuator_pos=actuator_pos,
                   reference_sensor_angle=sensor_angle,
                   last_calibration_time=now)


def calibration_due(state: JointState, config: JointConfig, now: float) -> bool:
    return (config.periodic_recalibration and not state.faulted
            and now - state.last_calibration_time >= config.calibration_interval)


def actuator_target(state: JointState, config: JointConfig) -> float:
    """Rotor position corresponding to the commanded arm angle."""
    return (state.reference_actuator_pos
            + (state.commanded_angle - state.reference_sensor_angle) * config.gear_ratio / 360.0)


def select_command(state: JointState, config: JointConfig) -> Tuple[JointState, Optional[Command]]:
    """
    Chooses the single command for this tick.
    """
    if state.faulted:
        return state, None
    if state.manual_mode:
        return state, OpenLoop(state.manual_power)
    state = replace(state, manual_power=0.0)
    return state, Profiled(actuator_target(state, config), config.profile_slot)


class ArmController:
    def __init__(self, adapter: HardwareAdapter,
                 config: Optional[JointConfig] = None,
                 motor_configuration: Optional[MotorConfiguration] = None,
                 telemetry: Optional[TelemetrySink] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.adapter = adapter
        self.config = config or JointConfig()
        self.motor_configuration = motor_configuration or MotorConfiguration()
        self.telemetry = telemetry
        self.clock = clock
        self.state = JointState(commanded_angle=self.config.initial_angle)
        self.last_command: Optional[Command] = None
        self.reboot()

    @property
    def commanded_angle(self) -> float:
        return self.state.commanded_angle

    @property
    def faulted(self) -> bool:
        return self.state.faulted

    @property
    def manual_mode(self) -> bool:
        return self.state.manual_mode

    @property
    def manual_power(self) -> float:
        return self.state.manual_power

    @property
    def mode(self) -> JointMode:
        if self.state.faulted:
            return JointMode.FAULTED
        if self.state.manual_mode:
            return JointMode.MANUAL
        if calibration_due(self.state, self.config, self.clock()):
            return JointMode.CALIBRATING
        return JointMode.OPERATIONAL

    def reboot(self) -> bool:
        """
        Reconfigures the motor. Safe to call at any time, e.g. to recover
        from a motor fault during a match.
        :return: True if the motor accepted its configuration
        """
        ok, attempts = configure_with_retries(self.adapter, self.motor_configuration,
                                              self.config.max_retries)
        if ok:
            if self.state.faulted:
                logger.info(f"Arm motor recovered after {attempts} configuration attempt(s)")
        else:
            logger.error(f"Arm motor failed to configure after {attempts} attempts, disabling it")
            self._issue(Disable())
        self.state = apply_configuration_result(self.state, ok)
        self.init()
        return ok

    def init(self) -> None:
        """
        Prepares the joint for a new match mode: re-anchors the reference
        pair and leaves manual mode unless the motor is faulted.
        """
        self._calibrate()
        self.state = replace(self.state, last_calibration_time=self.clock(),
                             manual_mode=self.state.faulted)

    def _calibrate(self) -> None:
        if self.state.faulted:
            return
        self.state = apply_anchor(self.state, self.adapter.read_relative_position(),
                                  self.get_absolute_angle(), self.clock())
        logger.debug(f"Re-anchored arm at {self.state.reference_sensor_angle:.2f} deg, "
                     f"rotor {self.state.reference_actuator_pos:.3f} rot")

    def tick(self) -> Optional[Command]:
        """
        Runs one control period. Must be called once per period.
        :return: the command issued to the motor, None when faulted
        """
        self.publish_telemetry()
        if calibration_due(self.state, self.config, self.clock()):
            self._calibrate()
        self.state, command = select_command(self.state, self.config)
        if command is not None:
            self._issue(command)
        return command

    def _issue(self, command: Command) -> None:
        if isinstance(command, OpenLoop):
            status = self.adapter.command_open_loop(command.power)
        elif isinstance(command, Profiled):
            status = self.adapter.command_motion_profiled(command.position, command.slot)
        else:
            status = self.adapter.command_disable()
        if status != SerialInterface.ReplyStatus.OK:
            logger.warning(f"Arm command {command} not acknowledged ({status.name})")
        self.last_command = command

    def at_setpoint(self) -> bool:
        """
        True if the arm has settled at the commanded angle: the closed-loop
        error is inside the tolerance and the rotor has stopped.
        """
        if self.state.faulted:
            return False
        tolerance = self.config.tolerance_deg * self.config.gear_ratio / 360.0
        return (abs(self.adapter.read_tracking_error()) < tolerance
                and abs(self.adapter.read_rate()) < self.config.settle_rate)

    def set_target_angle(self, angle: float) -> None:
        angle = max(self.config.min_angle, min(self.config.max_angle, angle))
        self.state = replace(self.state, commanded_angle=angle)

    def set_manual_power(self, power: float) -> None:
        self.state = replace(self.state, manual_power=max(-1.0, min(1.0, power)))

    def toggle_manual_mode(self) -> None:
        manual = not self.state.manual_mode or self.state.faulted
        self.state = replace(self.state, manual_mode=manual)

    def get_absolute_angle(self) -> float:
        """Arm angle in degrees from the absolute encoder."""
        return self._encoder_to_angle(self.adapter.read_absolute_position())

    def _encoder_to_angle(self, raw: float) -> float:
        raw = raw % 1.0
        if self.config.encoder_inverted:
            return (self.config.encoder_zero - raw) * 360.0
        return (raw - self.config.encoder_zero) * 360.0

    def publish_telemetry(self) -> None:
        if self.telemetry is None:
            return
        raw = self.adapter.read_absolute_position()
        publish_all(self.telemetry, {
            "manual_arm_control": self.state.manual_mode,
            "arm_failure": self.state.faulted,
            "at_arm_setpoint": self.at_setpoint(),
            "arm_setpoint": self.state.commanded_angle,
            "arm_angle": self._encoder_to_angle(raw),
            "arm_encoder_raw": raw,
        })
