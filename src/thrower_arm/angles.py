def get_angle_distance(current_angle: float, target_angle: float) -> float:
    """
    Shortest signed distance between two headings on a 360 degree circle.
    Clockwise (current greater than target) is positive, counterclockwise is
    negative. The result is in [-180, 180] and antisymmetric in its arguments.
    """
    current = current_angle % 360.0
    target = target_angle % 360.0
    direct = abs(current - target)
    wraparound = 360.0 - direct
    distance = min(direct, wraparound)
    if direct < wraparound:
        clockwise = current > target
    elif direct > wraparound:
        clockwise = current < target
    else:
        # half turn, sign follows the ordering of the normalised angles
        clockwise = current > target
    return distance if clockwise else -distance
