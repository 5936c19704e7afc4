import itertools
import unittest
from thrower_arm.angles import get_angle_distance

class TestAngleDistance(unittest.TestCase):
    def test_direct_and_wraparound(self):
        self.assertAlmostEqual(get_angle_distance(10.0, 0.0), 10.0)
        self.assertAlmostEqual(get_angle_distance(0.0, 10.0), -10.0)
        self.assertAlmostEqual(get_angle_distance(350.0, 0.0), -10.0)
        self.assertAlmostEqual(get_angle_distance(0.0, 350.0), 10.0)
        self.assertAlmostEqual(get_angle_distance(-170.0, 170.0), 20.0)
        self.assertAlmostEqual(get_angle_distance(725.0, 0.0), 5.0)

    def test_half_turn(self):
        self.assertEqual(get_angle_distance(180.0, 0.0), 180.0)
        self.assertEqual(get_angle_distance(0.0, 180.0), -180.0)

    def test_inexact_values_stay_antisymmetric(self):
        for a, b in [(0.1, 0.2), (10.0, 0.1), (33.3, 12.7), (5.55e-17, 0.0), (359.9, 0.3)]:
            self.assertEqual(get_angle_distance(a, b), -get_angle_distance(b, a), f"a={a} b={b}")
        self.assertAlmostEqual(get_angle_distance(0.1, 0.2), -0.1)
        self.assertAlmostEqual(get_angle_distance(359.9, 0.3), -0.4)

    def test_range_and_antisymmetry(self):
        samples = [-540.0, -360.0, -190.5, -180.0, -90.0, -33.3, -0.5, -5.55e-17, 0.0,
                   0.1, 12.7, 45.0, 90.0, 179.5, 180.0, 180.1, 270.0, 359.5, 360.0, 720.25]
        for a, b in itertools.product(samples, repeat=2):
            d = get_angle_distance(a, b)
            self.assertGreaterEqual(d, -180.0)
            self.assertLessEqual(d, 180.0)
            self.assertEqual(d, -get_angle_distance(b, a), f"a={a} b={b}")

if __name__ == '__main__':
    unittest.main()
