from dataclasses import dataclass
from enum import Enum
from typing import Union

class JointMode(Enum):
    OPERATIONAL = 'operational'
    CALIBRATING = 'calibrating'
    MANUAL = 'manual'
    FAULTED = 'faulted'

@dataclass
class JointState:
    commanded_angle: float
    reference_actuator_pos: float = 0.0
    reference_sensor_angle: float = 0.0
    faulted: bool = False
    manual_mode: bool = False
    manual_power: float = 0.0
    last_calibration_time: float = 0.0

@dataclass(frozen=True)
class OpenLoop:
    """Duty-cycle output in [-1, 1]."""
    power: float

@dataclass(frozen=True)
class Profiled:
    """Motion-profiled position target in rotor rotations, using a gain slot."""
    position: float
    slot: int

@dataclass(frozen=True)
class Disable:
    """Coast on neutral with zero output."""
    pass

Command = Union[OpenLoop, Profiled, Disable]

@dataclass
class AimSolution:
    heading_deg: float = 0.0
    arm_angle_deg: float = -1.0
    feasible: bool = False
