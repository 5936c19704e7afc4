import unittest
import numpy as np
from thrower_arm.aim import BallisticAimSolver
from thrower_arm.config import AimConfig
from thrower_arm.telemetry import DictTelemetrySink

class TestBallisticAimSolver(unittest.TestCase):
    def setUp(self):
        self.config = AimConfig()
        self.solver = BallisticAimSolver(self.config)

    def test_initial_solution_is_infeasible(self):
        solution = self.solver.solution
        self.assertFalse(solution.feasible)
        self.assertEqual(solution.arm_angle_deg, -1.0)

    def test_heading_straight_at_target(self):
        solution = self.solver.compute_aim(2.0, self.config.blue_target_y, True)
        self.assertEqual(solution.heading_deg, 180.0)

    def test_red_alliance_target_is_mirrored(self):
        red_y = self.config.target_y(False)
        self.assertAlmostEqual(red_y, self.config.field_width - self.config.blue_target_y)
        solution = self.solver.compute_aim(2.0, red_y, False)
        self.assertEqual(solution.heading_deg, 180.0)

    def test_heading_branches(self):
        below = self.solver.compute_aim(2.0, self.config.blue_target_y - 2.0, True)
        self.assertAlmostEqual(below.heading_deg, 135.0)
        self.solver.reset()
        above = self.solver.compute_aim(2.0, self.config.blue_target_y + 2.0, True)
        self.assertAlmostEqual(above.heading_deg, -135.0)

    def test_too_slow_to_reach_target(self):
        solver = BallisticAimSolver(AimConfig(launch_speed=1.0))
        solution = solver.compute_aim(2.0, 5.0, True)
        self.assertFalse(solution.feasible)
        self.assertEqual(solution.arm_angle_deg, -1.0)

    def test_interpolated_angle_hits_target(self):
        robot_x, robot_y = 2.0, self.config.blue_target_y
        solution = self.solver.compute_aim(robot_x, robot_y, True)
        self.assertTrue(solution.feasible)
        self.assertGreater(solution.arm_angle_deg, 40.0)
        self.assertLess(solution.arm_angle_deg, 45.0)
        error = self.solver.height_error(solution.arm_angle_deg, solution.heading_deg,
                                         robot_x, robot_y, True)
        self.assertLess(abs(error), 0.01)

    def test_low_arc_root_is_chosen(self):
        angles = self.solver.candidate_angles()
        errors = self.solver.height_error(angles, 180.0, 2.0, self.config.blue_target_y, True)
        solution = self.solver.compute_aim(2.0, self.config.blue_target_y, True)
        # the shot falls short below the solution and goes long just above it
        below = angles[angles < solution.arm_angle_deg]
        self.assertTrue(np.all(errors[:len(below)] < 0.0))
        self.assertGreaterEqual(errors[len(below)], 0.0)

    def test_rising_crossing_only(self):
        angles = np.array([10.0, 20.0, 30.0])
        self.assertEqual(BallisticAimSolver.find_rising_crossing(angles, np.array([1.0, -1.0, -2.0])),
                         (False, -1.0))
        feasible, angle = BallisticAimSolver.find_rising_crossing(angles, np.array([-1.0, 1.0, -1.0]))
        self.assertTrue(feasible)
        self.assertAlmostEqual(angle, 15.0)
        feasible, angle = BallisticAimSolver.find_rising_crossing(angles, np.array([1.0, -1.0, 3.0]))
        self.assertTrue(feasible)
        self.assertAlmostEqual(angle, 22.5)

    def test_warm_start_uses_previous_solution(self):
        robot_x, robot_y = 2.0, self.config.blue_target_y - 2.0
        first = self.solver.compute_aim(robot_x, robot_y, True)
        self.assertTrue(first.feasible)
        launch_x, launch_y = self.solver.launch_point(robot_x, robot_y,
                                                      first.arm_angle_deg, first.heading_deg)
        expected = BallisticAimSolver.heading_to(launch_x, launch_y, self.config.blue_target_y)
        second = self.solver.compute_aim(robot_x, robot_y, True)
        self.assertNotAlmostEqual(second.heading_deg, first.heading_deg)
        self.assertAlmostEqual(second.heading_deg, expected)

    def test_relaxation_steps_match_repeated_calls(self):
        robot_x, robot_y = 3.0, 3.0
        for _ in range(3):
            stepped = self.solver.compute_aim(robot_x, robot_y, True)
        relaxed = BallisticAimSolver(AimConfig(relaxation_steps=3)).compute_aim(robot_x, robot_y, True)
        self.assertAlmostEqual(relaxed.heading_deg, stepped.heading_deg)
        self.assertAlmostEqual(relaxed.arm_angle_deg, stepped.arm_angle_deg)

    def test_reset_drops_warm_start(self):
        self.solver.compute_aim(2.0, 3.0, True)
        self.solver.reset()
        self.assertFalse(self.solver.solution.feasible)

    def test_solution_is_a_copy(self):
        solution = self.solver.compute_aim(2.0, 3.0, True)
        solution.feasible = False
        self.assertTrue(self.solver.solution.feasible)

    def test_telemetry(self):
        sink = DictTelemetrySink()
        solver = BallisticAimSolver(self.config, telemetry=sink)
        solution = solver.compute_aim(2.0, 3.0, True)
        self.assertEqual(sink.values["aim_heading"], solution.heading_deg)
        self.assertEqual(sink.values["aim_feasible"], solution.feasible)
        self.assertEqual(sink.values["aim_angle"], solution.arm_angle_deg)

    def test_invalid_angle_bounds(self):
        with self.assertRaises(ValueError):
            AimConfig(max_angle=90.0)
        with self.assertRaises(ValueError):
            AimConfig(min_angle=50.0, max_angle=40.0)

if __name__ == '__main__':
    unittest.main()
