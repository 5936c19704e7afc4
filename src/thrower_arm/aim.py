"""Ballistic aiming of the thrower at the alliance target.

The launch point sits at the tip of the arm, so it moves with the launch
angle being solved for. The solver breaks that circular dependency with a
fixed-point warm start: the launch point used for the heading is computed
from the previous solution. With the solver called every control period and
the robot moving slowly relative to the period, the warm start converges
over successive calls; ``AimConfig.relaxation_steps`` adds extra
relaxation passes within a single call.

Projectile flight is drag free. The horizontal approach is assumed to be
purely radial toward the target.
"""

import math
import logging
from dataclasses import replace
from typing import Optional, Tuple
import numpy as np
from .config import AimConfig
from .telemetry import TelemetrySink, publish_all
from .types import AimSolution

logger = logging.getLogger(__name__)

NO_SOLUTION = -1.0


class BallisticAimSolver:
    def __init__(self, config: Optional[AimConfig] = None, telemetry: Optional[TelemetrySink] = None):
        self.config = config or AimConfig()
        self.telemetry = telemetry
        self._solution = AimSolution()

    @property
    def solution(self) -> AimSolution:
        return replace(self._solution)

    def reset(self) -> None:
        """Drops the warm start."""
        self._solution = AimSolution()

    def launch_point(self, robot_x, robot_y, arm_angle_deg, heading_deg):
        """
        Field position of the arm tip. Accepts scalars or numpy arrays of
        arm angles.
        """
        c = self.config
        reach = c.arm_length * np.cos(np.radians(arm_angle_deg))
        heading = math.radians(heading_deg)
        return (robot_x - c.pivot_offset + reach * math.cos(heading),
                robot_y + reach * math.sin(heading))

    @staticmethod
    def heading_to(launch_x: float, launch_y: float, target_y: float) -> float:
        if launch_y == target_y:
            return 180.0
        heading = math.degrees(math.atan(launch_x / (target_y - launch_y)))
        if launch_y < target_y:
            return heading + 90.0
        return heading - 90.0

    def height_error(self, arm_angle_deg, heading_deg: float, robot_x: float, robot_y: float,
                     alliance_is_blue: bool):
        """
        Height of the projectile above the target when it reaches the target,
        for launches at the given arm angle(s) and heading. Negative means the
        shot falls short below the target.
        """
        c = self.config
        target_y = c.target_y(alliance_is_blue)
        launch_x, launch_y = self.launch_point(robot_x, robot_y, arm_angle_deg, heading_deg)
        angle = np.radians(arm_angle_deg)
        distance = np.hypot(launch_x, target_y - launch_y)
        flight_time = distance / (c.launch_speed * np.cos(angle))
        launch_height = c.pivot_height + c.arm_length * np.sin(angle)
        final_height = (launch_height + c.launch_speed * np.sin(angle) * flight_time
                        - 0.5 * c.gravity * flight_time ** 2)
        return final_height - c.target_height

    def candidate_angles(self) -> np.ndarray:
        return np.linspace(self.config.min_angle, self.config.max_angle, self.config.sample_count)

    @staticmethod
    def find_rising_crossing(angles: np.ndarray, errors: np.ndarray) -> Tuple[bool, float]:
        """
        Interpolates the first crossing from a short shot to a long one.
        Crossings in the other direction belong to the descending high-arc
        branch and are ignored.
        """
        rising = np.nonzero((errors[:-1] < 0.0) & (errors[1:] >= 0.0))[0]
        if len(rising) == 0:
            return False, NO_SOLUTION
        i = rising[0]
        below, above = abs(errors[i]), abs(errors[i + 1])
        angle = angles[i] + (angles[i + 1] - angles[i]) * below / (below + above)
        return True, float(angle)

    def _relax(self, robot_x: float, robot_y: float, alliance_is_blue: bool) -> AimSolution:
        target_y = self.config.target_y(alliance_is_blue)
        previous = self._solution
        if previous.feasible:
            launch_x, launch_y = self.launch_point(robot_x, robot_y,
                                                   previous.arm_angle_deg, previous.heading_deg)
        else:
            launch_x, launch_y = robot_x, robot_y

        heading = self.heading_to(float(launch_x), float(launch_y), target_y)
        angles = self.candidate_angles()
        errors = self.height_error(angles, heading, robot_x, robot_y, alliance_is_blue)
        feasible, arm_angle = self.find_rising_crossing(angles, errors)
        return AimSolution(heading_deg=heading, arm_angle_deg=arm_angle, feasible=feasible)

    def compute_aim(self, robot_x: float, robot_y: float, alliance_is_blue: bool) -> AimSolution:
        """
        Computes the heading and arm angle that put the projectile through the
        target from the given robot position.
        :param robot_x: robot x in field coordinates (m), distance from the alliance wall
        :param robot_y: robot y in field coordinates (m)
        :param alliance_is_blue: selects the target
        :return: the new solution; arm_angle_deg is -1 when infeasible
        """
        was_feasible = self._solution.feasible
        for _ in range(self.config.relaxation_steps):
            self._solution = self._relax(robot_x, robot_y, alliance_is_blue)

        if self._solution.feasible != was_feasible:
            logger.info(f"Aim solution {'found' if self._solution.feasible else 'lost'} "
                        f"at ({robot_x:.2f}, {robot_y:.2f})")

        publish_all(self.telemetry, {
            "aim_heading": self._solution.heading_deg,
            "aim_feasible": self._solution.feasible,
            "aim_angle": self._solution.arm_angle_deg,
        })
        return self.solution
