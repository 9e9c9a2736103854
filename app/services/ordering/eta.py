"""Ready-time estimate for immediate orders."""


def estimate_eta_minutes(
    active_orders: int,
    base_minutes: int,
    congestion_threshold: int,
    congestion_increment_minutes: int,
) -> int:
    """
    Estimate minutes until an immediate order is ready.

    A step function: the base estimate, extended by a fixed increment once
    the number of active orders exceeds the threshold.
    """
    if active_orders > congestion_threshold:
        return base_minutes + congestion_increment_minutes
    return base_minutes
