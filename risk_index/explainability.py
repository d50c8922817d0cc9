"""
Explainability diff: why a score changed between two scans.

Works on persisted breakdown dicts so it can run over stored
history without re-scoring.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class DriverDelta:
    driver: str
    previous_points: float
    current_points: float
    delta_points: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "driver": self.driver,
            "previous_points": self.previous_points,
            "current_points": self.current_points,
            "delta_points": self.delta_points,
        }


def _points_by_driver(breakdown: Optional[Mapping[str, Any]]) -> Optional[Dict[str, float]]:
    contributions = (breakdown or {}).get("contributions")
    if not isinstance(contributions, list):
        return None
    out: Dict[str, float] = {}
    for item in contributions:
        if not isinstance(item, Mapping):
            continue
        driver = item.get("driver")
        points = item.get("points")
        if not isinstance(driver, str) or not isinstance(points, (int, float)) or math.isnan(points):
            continue
        out[driver] = out.get(driver, 0.0) + points
    return out


def compute_explainability_diff(
    latest: Optional[Mapping[str, Any]],
    previous: Optional[Mapping[str, Any]],
    delta_comparable: Optional[bool] = None,
) -> List[DriverDelta]:
    """
    Per-driver point deltas, largest absolute change first.

    Empty unless the scans are comparable (explicit argument, or
    the latest breakdown's delta_comparable) and both breakdowns
    carry contributions.
    """
    if delta_comparable is None:
        delta_comparable = (latest or {}).get("delta_comparable") is True
    if not delta_comparable:
        return []
    current = _points_by_driver(latest)
    prior = _points_by_driver(previous)
    if current is None or prior is None:
        return []

    drivers = list(dict.fromkeys(list(prior) + list(current)))
    deltas = [
        DriverDelta(
            driver=d,
            previous_points=prior.get(d, 0.0),
            current_points=current.get(d, 0.0),
            delta_points=round(current.get(d, 0.0) - prior.get(d, 0.0), 2),
        )
        for d in drivers
    ]
    return sorted(deltas, key=lambda d: abs(d.delta_points), reverse=True)
