"""Balanced proportional redistribution of request load across server nodes.

Requests are first split in proportion to each node's onset request count.
The node with the highest drift-plus-penalty value then gives away part of
its share to the others.  The move is kept only when the summed value drops.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from typing import NamedTuple

logger = logging.getLogger(__name__)


class _LinearModel(NamedTuple):
    slope: float
    intercept: float


CPU_0_TO_60_1C = _LinearModel(36.87, 0.0)
CPU_60_TO_70_1C = _LinearModel(35.08, 107.50)
CPU_70_TO_80_1C = _LinearModel(33.43, -57.55)

CPU_0_TO_60_2C = _LinearModel(43.61, 0.0)
CPU_60_TO_70_2C = _LinearModel(48.47, -291.55)
CPU_70_TO_80_2C = _LinearModel(43.37, -2.06)

CPU_LOW_THRESHOLD = 60.0
CPU_TARGET_THRESHOLD = 20.0
V = 0.001

MAX_ITERATIONS = 3
DEFAULT_ONSET_REQUESTS = 10


@dataclass
class BprNode:
    """A server's load state during one scheduling slot."""

    id: int
    ip: str = ""
    req_rate: int = 0
    onset_req: int = 0
    dpp_value: float = 0.0
    cpu_usage: float = 0.0
    queue_backlog: float = 0.0
    delay: float = 0.0
    is_active: bool = True
    coefficient: float = 0.0
    core_num: int = 0


def _go_round(value: float) -> int:
    """Round half away from zero and truncate to an integer."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _select_model(node: BprNode, onset_cpu: float) -> _LinearModel:
    if node.core_num == 1:
        if onset_cpu <= CPU_LOW_THRESHOLD:
            return CPU_0_TO_60_1C
        if CPU_LOW_THRESHOLD < onset_cpu <= CPU_TARGET_THRESHOLD:
            return CPU_60_TO_70_1C
        return CPU_70_TO_80_1C
    if onset_cpu < CPU_LOW_THRESHOLD:
        return CPU_0_TO_60_2C
    if CPU_LOW_THRESHOLD < onset_cpu <= CPU_TARGET_THRESHOLD:
        return CPU_60_TO_70_2C
    return CPU_70_TO_80_2C


def compute_dpp_and_cpu(nodes: Iterable[BprNode]) -> None:
    """Estimate each node's CPU from its request rate and set its DPP value."""
    for node in nodes:
        onset_cpu = node.cpu_usage
        delta_req = float(node.req_rate - node.onset_req)
        model = _select_model(node, onset_cpu)
        delta_cpu = (float(node.req_rate) - model.intercept) / model.slope - onset_cpu

        node.cpu_usage = onset_cpu + delta_cpu

        weight = 1.0 if node.core_num == 1 else 0.5
        stability = weight * node.queue_backlog * delta_cpu
        performance = V * node.delay * delta_req
        node.dpp_value = stability + performance


def find_max_dpp_node(
    nodes: Iterable[BprNode], deactivated: Collection[int]
) -> BprNode | None:
    """The first node with the largest DPP value among those not deactivated."""
    best: BprNode | None = None
    best_dpp = -math.inf
    for node in nodes:
        if node.id in deactivated:
            continue
        if node.dpp_value > best_dpp:
            best_dpp = node.dpp_value
            best = node
    return best


def redistribute_requests(
    nodes: Iterable[BprNode],
    exclude_id: int,
    deactivated: Collection[int],
    pool: int,
) -> None:
    """Share pool requests among eligible nodes by spare CPU times core count.

    Nothing is shared when no node is eligible or the total coefficient is
    not positive.
    """
    eligible = []
    total_coef = 0.0
    for node in nodes:
        if node.id == exclude_id or node.id in deactivated:
            continue
        node.coefficient = (100 - node.cpu_usage) * float(node.core_num)
        total_coef += node.coefficient
        eligible.append(node)

    if not eligible or total_coef <= 0:
        return

    remaining = pool
    last = len(eligible) - 1
    for position, node in enumerate(eligible):
        if position == last:
            share = remaining
        else:
            share = int(math.floor((node.coefficient / total_coef) * float(pool)))
        node.req_rate += share
        remaining -= share

    if remaining > 0:
        eligible[0].req_rate += remaining


def check_global_dpp_improvement(
    nodes: list[BprNode], original_rates: Mapping[int, int]
) -> bool:
    """True when the summed DPP at the current rates is below that at the original rates.

    The nodes end up evaluated at their current rates.
    """
    current_rates = {node.id: node.req_rate for node in nodes}

    for node in nodes:
        node.req_rate = original_rates.get(node.id, 0)
    compute_dpp_and_cpu(nodes)
    original_sum = sum((node.dpp_value for node in nodes), 0.0)

    for node in nodes:
        node.req_rate = current_rates[node.id]
    compute_dpp_and_cpu(nodes)
    new_sum = sum((node.dpp_value for node in nodes), 0.0)

    return new_sum < original_sum


def _allocate_proportionally(nodes: list[BprNode], total_increment: int) -> None:
    total_onset = sum(node.onset_req for node in nodes)
    remaining = total_increment
    last = len(nodes) - 1
    for position, node in enumerate(nodes):
        increment = 0
        if position == last:
            increment = remaining
        elif total_onset > 0:
            proportion = node.onset_req / total_onset
            increment = _go_round(proportion * float(total_increment))
            remaining -= increment
        node.req_rate = increment


def run_bpr_core(
    nodes: Iterable[BprNode], total_increment: int, proportion: float
) -> dict[str, int]:
    """Distribute total_increment requests over nodes; returns address -> count.

    The given nodes are not modified.
    """
    working = [dataclasses.replace(node) for node in nodes]
    logger.info(
        "bpr start, nodes: %d, requests: %d", len(working), total_increment
    )

    _allocate_proportionally(working, total_increment)
    compute_dpp_and_cpu(working)

    deactivated: set[int] = set()
    for node in working:
        node.is_active = True

    for _ in range(MAX_ITERATIONS):
        top = find_max_dpp_node(working, deactivated)
        if top is None:
            break

        pool = _go_round(float(top.req_rate) * proportion)
        original_rates = {node.id: node.req_rate for node in working}

        top.req_rate -= pool
        redistribute_requests(working, top.id, deactivated, pool)
        compute_dpp_and_cpu(working)

        if not check_global_dpp_improvement(working, original_rates):
            for node in working:
                node.req_rate = original_rates[node.id]
            deactivated.add(top.id)
            compute_dpp_and_cpu(working)

        if all(node.id in deactivated for node in working):
            break

    for node in working:
        next_backlog = max(
            node.queue_backlog + node.cpu_usage - CPU_TARGET_THRESHOLD, 0.0
        )
        logger.info(
            "node %d (%s): queue backlog %.4f -> %.4f",
            node.id,
            node.ip,
            node.queue_backlog,
            next_backlog,
        )
        node.queue_backlog = next_backlog

    distribution = {node.ip: node.req_rate for node in working}
    for node in working:
        logger.info(
            "%d\t%s\t%d\t%.4f\t%.4f",
            node.id,
            node.ip,
            node.req_rate,
            node.dpp_value,
            node.queue_backlog,
        )
    return distribution


def average(values: Collection[float]) -> float:
    """Arithmetic mean; 0 for no values."""
    if not values:
        return 0.0
    return sum(values, 0.0) / len(values)


def variance(values: Collection[float]) -> float:
    """Population variance; 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    mean = average(values)
    return sum(((v - mean) ** 2 for v in values), 0.0) / len(values)