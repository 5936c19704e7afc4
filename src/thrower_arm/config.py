"""Configuration for the thrower arm joint and the aim solver.

Defaults describe the competition robot: a single arm joint driven through a
288:1 reduction, read back by a duty-cycle absolute encoder, and a launcher
that throws at a fixed aperture on the alliance wall.
"""

from dataclasses import dataclass

@dataclass(frozen=True)
class GainSlot:
    kp: float = 0.0
    ki: float = 0.0
    kd: float = 0.0
    kv: float = 0.0

@dataclass(frozen=True)
class MotorConfiguration:
    """Parameters pushed to the arm motor on every (re)configuration.

    Slot 0 holds velocity gains, slot 1 holds the motion-profiled position
    gains used by the arm.
    """
    brake_on_neutral: bool = True
    inverted: bool = False
    supply_current_limit: float = 40.0      # amps, should match the breaker
    supply_time_threshold: float = 0.5      # seconds
    slot0: GainSlot = GainSlot(kp=0.008, ki=0.06, kd=0.0002, kv=0.009)
    slot1: GainSlot = GainSlot(kp=0.8, ki=2.0, kd=0.006)
    profile_acceleration: float = 75.0      # rotor rotations/s^2
    profile_cruise_velocity: float = 50.0   # rotor rotations/s
    profile_jerk: float = 1000.0            # rotor rotations/s^3
    apply_timeout: float = 0.03             # seconds

    def __post_init__(self):
        if self.supply_current_limit <= 0:
            raise ValueError('Current limit must be positive')

@dataclass(frozen=True)
class BridgeConfig:
    """Serial link to the motor bridge.

    Every request made from the control loop waits at most ``reply_timeout``
    and a tick makes at most ``max_requests_per_period`` of them, so a silent
    bridge cannot hold a tick past ``control_period``. After a timeout the
    bridge is not asked again for ``silence_backoff`` seconds.
    """
    baud_rate: int = 115200
    reply_timeout: float = 0.003            # seconds, per request in the control loop
    connect_timeout: float = 1.0            # firmware handshake
    reconnect_timeout: float = 5.0
    silence_backoff: float = 0.1
    control_period: float = 0.02
    max_requests_per_period: int = 6        # telemetry, re-anchor and one command

    def __post_init__(self):
        if self.reply_timeout <= 0:
            raise ValueError('reply_timeout must be positive')
        if self.reply_timeout * self.max_requests_per_period > self.control_period:
            raise ValueError('Requests of one tick must fit in the control period')

@dataclass(frozen=True)
class JointConfig:
    """Geometry, tolerances and fault policy of the arm joint.

    Angles are in degrees, 0 is horizontal and 90 is vertical.
    """
    min_angle: float = -4.0
    max_angle: float = 180.0
    initial_angle: float = 50.0
    tolerance_deg: float = 0.5
    settle_rate: float = 1.0
    gear_ratio: float = 288.0               # 72:12 chain, 3:1, 4:1 and 4:1 planetaries
    encoder_zero: float = 0.6922            # encoder reading at 0 degrees, in rotations
    encoder_inverted: bool = True
    max_retries: int = 3
    calibration_interval: float = 2.0       # seconds, shorter intervals oscillate more
    periodic_recalibration: bool = True
    profile_slot: int = 1

    def __post_init__(self):
        if self.min_angle > self.max_angle:
            raise ValueError('min_angle must not exceed max_angle')
        if self.gear_ratio <= 0:
            raise ValueError('gear_ratio must be positive')
        if self.max_retries < 0:
            raise ValueError('max_retries must not be negative')

@dataclass(frozen=True)
class AimConfig:
    """Field and launcher geometry for the ballistic aim solver.

    Distances are in meters. The target aperture sits on the alliance wall
    (x = 0); its lateral coordinate is mirrored about the field midline for
    the red alliance.
    """
    blue_target_y: float = 5.55
    field_width: float = 8.21
    target_height: float = 2.05
    pivot_offset: float = 0.2
    pivot_height: float = 0.5
    arm_length: float = 0.6
    gravity: float = 9.81
    launch_speed: float = 12.0
    min_angle: float = 15.0
    max_angle: float = 75.0
    sample_count: int = 61
    relaxation_steps: int = 1

    def __post_init__(self):
        if not -90.0 < self.min_angle < self.max_angle < 90.0:
            raise ValueError('Aim angle bounds must satisfy -90 < min_angle < max_angle < 90')
        if self.sample_count < 2:
            raise ValueError('At least two candidate angles are required')
        if self.relaxation_steps < 1:
            raise ValueError('relaxation_steps must be at least 1')
        if self.launch_speed <= 0:
            raise ValueError('launch_speed must be positive')

    def target_y(self, alliance_is_blue: bool) -> float:
        if alliance_is_blue:
            return self.blue_target_y
        return self.field_width - self.blue_target_y
