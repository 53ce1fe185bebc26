# analytics.py
# assembles the immutable AnalyticsReport from post-processing metrics and
# the solved path. pure: no I/O, no failure modes of its own.
#
# cost model: length_km * cost_per_km scaled by the average accumulated
# cost per cell of travel relative to the baseline cost, so a route through
# avoided land cover is priced above one through open baseline terrain.

import math

from transmission_siting.models import AnalyticsReport


def average_cost_factor(path, baseline_cost):
    """mean traversed cell cost relative to baseline; 1.0 for a path with no steps."""
    if path.steps <= 0:
        return 1.0
    return (path.cost / path.steps) / baseline_cost


def elevation_stats(profile):
    values = [p.elevation_m for p in profile if math.isfinite(p.elevation_m)]
    if not values:
        return None, None, None
    return min(values), max(values), sum(values) / len(values)


def build_report(metrics, path, config):
    factor = average_cost_factor(path, config.baseline_cost)
    low, high, mean = elevation_stats(metrics.elevation_profile)
    return AnalyticsReport(
        length_m=metrics.length_m,
        total_cost=path.cost,
        estimated_cost=metrics.length_m / 1000.0 * config.cost_per_km * factor,
        average_cost_factor=factor,
        elevation_min=low,
        elevation_max=high,
        elevation_avg=mean,
        elevation_profile=metrics.elevation_profile,
        land_cover=metrics.land_cover,
        crossings=metrics.crossings,
    )
