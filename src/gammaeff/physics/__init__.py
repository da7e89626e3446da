"""Activity decay and line efficiency calculations."""

from gammaeff.physics.activity import (
    DAYS_PER_YEAR,
    decay_constant_per_day,
    decayed_activity,
    elapsed_days,
)
from gammaeff.physics.efficiency import (
    LineEfficiency,
    compute_line_efficiency,
    efficiency_from_counts,
)

__all__ = [
    "DAYS_PER_YEAR",
    "decay_constant_per_day",
    "decayed_activity",
    "elapsed_days",
    "LineEfficiency",
    "compute_line_efficiency",
    "efficiency_from_counts",
]
