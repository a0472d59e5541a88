"""Gap-clustering outlier detection for one-dimensional measurements."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from statistics import median


class OutlierType(IntEnum):
    NORMAL = 0
    SMALL = 1
    LARGE = 2


@dataclass
class Outlier:
    index: int
    value: float
    type: OutlierType
    score: float
    ip_addr: str = ""


def _div(a: float, b: float) -> float:
    if b != 0:
        return a / b
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a)


def _max(a: float, b: float) -> float:
    if math.isnan(a) or math.isnan(b):
        return math.nan
    return max(a, b)


def _min(a: float, b: float) -> float:
    if math.isnan(a) or math.isnan(b):
        return math.nan
    return min(a, b)


def _log10(x: float) -> float:
    if math.isnan(x) or x < 0:
        return math.nan
    if x == 0:
        return -math.inf
    return math.log10(x)


def _mean_std(values: list[float]) -> tuple[float, float]:
    mean = sum(values) / len(values)
    return mean, math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def detect_outliers_adaptive(
    data: list[float], k: int, sensitivity: float
) -> list[Outlier]:
    """Find unusually small or large values in data.

    Values are sorted and split into clusters at significantly large gaps;
    the best-scoring cluster is taken as normal, and values far from it are
    reported.  Small outliers come first, then each kind by descending score.
    Nothing is reported when there are no more than k values.
    """
    n = len(data)
    if n <= k:
        return []

    indexed = sorted(enumerate(data), key=lambda pair: pair[1])
    sorted_data = [value for _, value in indexed]
    mean, std_dev = _mean_std(sorted_data)

    gaps = [b - a for a, b in zip(sorted_data, sorted_data[1:])]
    gap_median = median(gaps)
    gap_mad = median(abs(gap - gap_median) for gap in gaps)
    if gap_mad < 0.0001:
        gap_mad = max(0.0001, std_dev * 0.6745)
    gap_threshold = gap_median + 2.5 * gap_mad / 0.6745

    clusters: list[list[int]] = []
    start = 0
    for position, gap in enumerate(gaps):
        if gap > gap_threshold:
            clusters.append(list(range(start, position + 1)))
            start = position + 1
    if start < n:
        clusters.append(list(range(start, n)))

    main_index = 0
    main_score = -1.0
    for i, cluster in enumerate(clusters):
        if not cluster:
            continue
        cluster_mean = sum(sorted_data[j] for j in cluster) / len(cluster)
        size_score = len(cluster) / n
        position_score = 1.0 - abs(_div(cluster_mean - mean, mean))
        position_score = _max(0.0, _min(1.0, position_score))

        cluster_range = sorted_data[cluster[-1]] - sorted_data[cluster[0]]
        density_score = 0.0
        if cluster_range > 0:
            overall_density = n / (sorted_data[-1] - sorted_data[0] + 0.0001)
            cluster_density = len(cluster) / (cluster_range + 0.0001)
            density_score = min(cluster_density / overall_density, 2.0)

        total = size_score * 0.6 + position_score * 0.25 + density_score * 0.15
        if total > main_score:
            main_score = total
            main_index = i

    if main_index >= len(clusters) or not clusters[main_index]:
        main_index = 0
        clusters = [list(range(n))]

    main_positions = set(clusters[main_index])
    main_values = sorted(sorted_data[j] for j in clusters[main_index])
    main_mean, main_std = _mean_std(main_values)

    count = len(main_values)
    q1 = main_values[min(int(count * 0.25), count - 1)]
    q3 = main_values[min(int(count * 0.75), count - 1)]
    iqr = q3 - q1

    small_threshold = _min(main_mean - 2.0 * main_std, q1 - 1.5 * iqr)
    large_threshold = _max(
        main_mean + 2.0 * main_std,
        _max(q3 + 1.5 * iqr, main_mean + 1.7 * main_std),
    )
    main_max = main_values[-1]
    main_range = main_max - main_values[0]

    outliers: list[Outlier] = []
    processed: set[int] = set()
    for i, (index, value) in enumerate(indexed):
        if index in processed:
            continue

        score = 0.0
        kind = OutlierType.NORMAL
        if value >= 100 and value > main_mean * 1.8:
            score = _log10(_div(value, main_mean)) * 3.0
            kind = OutlierType.LARGE
        elif value < small_threshold:
            deviation = _div(small_threshold - value, main_std)
            score = _max(1.0, math.pow(deviation, 1.2))
            kind = OutlierType.SMALL
        elif value > large_threshold:
            relative = _div(value, main_mean)
            deviation = _div(value - large_threshold, main_std)
            if not (relative < 1.5 and deviation < 0.8):
                score = _max(1.0, math.pow(deviation, 1.3))
                if value > main_max + main_range * 0.5:
                    score *= 1.8
                kind = OutlierType.LARGE

        if kind is OutlierType.NORMAL:
            continue

        if i > 0 and kind is OutlierType.LARGE:
            if sorted_data[i] - sorted_data[i - 1] > gap_threshold:
                score *= 1.3
        if i < n - 1 and kind is OutlierType.SMALL:
            if sorted_data[i + 1] - sorted_data[i] > gap_threshold:
                score *= 1.3
        if i not in main_positions:
            score *= 1.2
        if score < 1.0:
            score = 1.0

        outliers.append(Outlier(index=index, value=value, type=kind, score=score))
        processed.add(index)

    outliers.sort(key=lambda o: (o.type is not OutlierType.SMALL, -o.score))
    return outliers