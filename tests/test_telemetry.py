import unittest
from thrower_arm.telemetry import DictTelemetrySink, TelemetrySink, publish_all

class FlakySink(DictTelemetrySink):
    """Refuses a single key, e.g. a value type the dashboard cannot encode."""
    def __init__(self, refused: str):
        super().__init__()
        self.refused = refused

    def publish(self, key, value):
        if key == self.refused:
            raise TypeError(f"cannot encode '{key}'")
        super().publish(key, value)

class TestTelemetry(unittest.TestCase):
    def test_failing_key_does_not_drop_the_rest(self):
        sink = FlakySink("arm_failure")
        values = {"manual_arm_control": False, "arm_failure": object(), "arm_angle": 45.0}
        with self.assertLogs("thrower_arm.telemetry", level="WARNING"):
            publish_all(sink, values)
        self.assertEqual(sink.values, {"manual_arm_control": False, "arm_angle": 45.0})

    def test_no_sink(self):
        publish_all(None, {"arm_angle": 45.0})

    def test_sink_must_implement_publish(self):
        with self.assertRaises(TypeError):
            TelemetrySink()

if __name__ == '__main__':
    unittest.main()
