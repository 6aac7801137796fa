"""Urgency decay and pruning rules.

urgency = importance * exp(-decay_rate * age_days) + access_count * boost

The result is clamped to [0, 1]. A memory is pruned only when it is both
below the urgency threshold and older than the minimum age.
"""

import math

SECONDS_PER_DAY = 86400.0


def compute_urgency(
    importance: float,
    age_days: float,
    access_count: int = 0,
    decay_rate: float = 0.1,
    access_boost: float = 0.05,
) -> float:
    """
    Recompute the urgency of a memory from its fixed inputs.

    Args:
        importance: Importance assigned at extraction time
        age_days: Days since the memory was created (negative ages count as 0)
        access_count: How many times the memory has been retrieved
        decay_rate: Daily exponential decay rate
        access_boost: Urgency added per recorded access

    Returns:
        Urgency in [0, 1]
    """
    age_days = max(age_days, 0.0)
    urgency = importance * math.exp(-decay_rate * age_days) + access_count * access_boost
    return clamp_unit(urgency)


def should_prune(urgency: float, age_days: float, min_urgency: float, min_age_days: float) -> bool:
    """True when a memory is both low-urgency and old enough to evict.

    ``HypergraphStore.prune_low_urgency_memories`` applies this same rule in
    SQL; keep the two in step.
    """
    return urgency < min_urgency and age_days > min_age_days


def clamp_unit(value: float) -> float:
    return max(0.0, min(value, 1.0))
