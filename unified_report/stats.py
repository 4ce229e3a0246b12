import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Union

import numpy as np

Number = Union[int, float]


@dataclass(frozen=True)
class ResponseStats:
    min: Number = 0
    max: Number = 0
    avg: int = 0
    p90: Number = 0
    p95: Number = 0
    p99: Number = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "p90": self.p90,
            "p95": self.p95,
            "p99": self.p99,
        }


def percentile(sorted_values: Sequence[Number], p: float) -> Number:
    """Nearest-rank percentile p (0-100) of an ascending sequence."""
    if len(sorted_values) == 0:
        return 0
    index = math.ceil((p / 100) * len(sorted_values)) - 1
    return sorted_values[max(0, index)]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_statistics(values: Sequence[Number]) -> ResponseStats:
    """
    min/max/avg/p90/p95/p99 of elapsed times.

    Empty input gives all-zero stats. Only the average is rounded; the other
    figures are taken as-is from the sorted values.
    """
    if len(values) == 0:
        return ResponseStats()

    ordered = np.sort(np.asarray(values))
    # native ints/floats
    sorted_values = ordered.tolist()

    return ResponseStats(
        min=sorted_values[0],
        max=sorted_values[-1],
        avg=round_half_up(float(np.mean(ordered))),
        p90=percentile(sorted_values, 90),
        p95=percentile(sorted_values, 95),
        p99=percentile(sorted_values, 99),
    )
