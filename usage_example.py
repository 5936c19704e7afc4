import time
import logging
from thrower_arm import ArmController, BallisticAimSolver, JointHardwareInterface
from thrower_arm.exceptions import DeviceNotFoundError, IncompatibleFirmwareError
from thrower_arm.telemetry import LoggingTelemetrySink

logging.basicConfig(level=logging.INFO)

# create interface and connect
# Use mock=True for simulation/digital twin
hw = JointHardwareInterface(show_communication=False, show_log_messages=True, mock=False)

try:
    hw.connect('/dev/ttyACM0')
except (DeviceNotFoundError, IncompatibleFirmwareError) as e:
    print(f"Could not connect to motor bridge: {e}")
    raise SystemExit(1)

telemetry = LoggingTelemetrySink()
arm = ArmController(hw, telemetry=telemetry)
solver = BallisticAimSolver(telemetry=telemetry)

# run the control loop at 50 Hz from a fixed robot position
for _ in range(500):
    aim = solver.compute_aim(2.0, 5.0, alliance_is_blue=True)
    if aim.feasible:
        arm.set_target_angle(aim.arm_angle_deg)
    arm.tick()
    time.sleep(0.02)

print(f"At setpoint: {arm.at_setpoint()}, arm angle {arm.get_absolute_angle():.1f} deg")
hw.disconnect()
