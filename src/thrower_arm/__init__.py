from .aim import BallisticAimSolver
from .angles import get_angle_distance
from .arm import ArmController
from .config import AimConfig, BridgeConfig, JointConfig, MotorConfiguration
from .hardware import HardwareAdapter, JointHardwareInterface
from .types import AimSolution, JointMode
