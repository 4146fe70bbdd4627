"""Output policy: derive a Thing's actuator outputs from the fleet summary."""
import math
from typing import NamedTuple

from mothership.models.hive import ActuatorOutputs, FleetSummary

LDR_MAX = 1023
LED_MAX = 12
SERVO_MAX = 180


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class OutputPolicy(NamedTuple):
    """Tunable constants of the policy."""
    servo_speed_blink: int = 140
    servo_speed_idle: int = 40


def led_count_for(avg_light) -> int:
    if avg_light is None or isinstance(avg_light, bool) or not isinstance(avg_light, (int, float)):
        return 0
    if not math.isfinite(avg_light):
        return LED_MAX if avg_light > 0 else 0
    return clamp(round_half_up(avg_light / LDR_MAX * LED_MAX), 0, LED_MAX)


def compute_outputs(summary: FleetSummary, thing_id: str, policy: OutputPolicy = OutputPolicy()) -> ActuatorOutputs:
    is_queen = summary.queen_thing_id == thing_id
    is_blinking = summary.low_light is True
    if is_blinking:
        servo_speed = policy.servo_speed_blink
    else:
        servo_speed = policy.servo_speed_idle
    return ActuatorOutputs(
        is_blinking=is_blinking,
        led_count=led_count_for(summary.avg_light),
        ledcolor=is_queen,
        servo_speed=clamp(int(servo_speed), 0, SERVO_MAX),
        you_are_the_queen=is_queen,
    )
