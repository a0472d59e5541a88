"""Load-generating client that spreads requests over servers with the BPR scheduler."""

from __future__ import annotations

import csv
import json
import logging
import re
import sys
import threading
import time
import urllib.error
import urllib.request
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from overlayroute.bpr.core import BprNode, run_bpr_core, variance, average

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 5.0
TICK_INTERVAL = 1.0
DEFAULT_PROPORTION = 0.5
WORK_PATH = "/work?size=500000"
METRICS_PATH = "/metrics"

DEFAULT_SERVERS = [
    "64.23.249.66:8080",
    "144.202.97.206:8080",
    "149.248.11.11:8080",
    "147.182.230.15:8080",
    "104.238.153.192:8080",
]
DEFAULT_BACKLOGS = [10.0, 16.0, 15.0, 0.0, 20.0]

CSV_HEADER = [
    "timestamp",
    "cpu_threshold",
    "threshold_index",
    "total_requests",
    "ips",
    "cpu_usages",
    "variance",
    "avg_latency",
]


@dataclass
class ServerMetrics:
    """Metrics reported by a server's /metrics endpoint."""

    ip: str = ""
    num_of_cores: int = 0
    cpu_usage: float = 0.0
    requests_handled: int = 0
    latency: float = 0.0
    time: str = ""

    @classmethod
    def from_json(cls, data: Any) -> ServerMetrics:
        """Build metrics from a decoded JSON object; missing fields stay zero."""
        if not isinstance(data, Mapping):
            raise ValueError("metrics document is not an object")
        try:
            return cls(
                ip=str(data.get("ip", "")),
                num_of_cores=int(data.get("num_of_cores", 0)),
                cpu_usage=float(data.get("cpu_usage", 0.0)),
                requests_handled=int(data.get("requests_handled", 0)),
                latency=float(data.get("latency", 0.0)),
                time=str(data.get("time", "")),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid metrics field: {exc}") from exc


@dataclass
class StatsRecord:
    """Snapshot taken when some server reached a CPU threshold."""

    timestamp: str
    cpu_threshold: float
    total_requests: int
    ips: list[str] = field(default_factory=list)
    cpu_usages: list[float] = field(default_factory=list)
    variance: float = 0.0
    avg_latency: float = 0.0
    threshold_index: int = 0


def _get(url: str, timeout: float) -> bytes:
    with urllib.request.urlopen(url, timeout=timeout) as response:
        return response.read()


class BprClient:
    """Collects server metrics, schedules requests with BPR and records threshold hits."""

    def __init__(
        self,
        server_addrs: list[str],
        initial_requests: int,
        request_increment: int,
        max_requests: int,
        cpu_thresholds: list[float],
        redistrib_proportion: float,
        initial_queue_backlogs: list[float],
    ) -> None:
        self.server_addrs = list(server_addrs)
        self.server_metrics: dict[str, ServerMetrics] = {}
        self.nodes: list[BprNode] = []
        for i, addr in enumerate(self.server_addrs):
            backlog = (
                float(initial_queue_backlogs[i]) if i < len(initial_queue_backlogs) else 0.0
            )
            self.server_metrics[addr] = ServerMetrics(ip=addr)
            self.nodes.append(
                BprNode(id=i, ip=addr, is_active=True, coefficient=0.0, queue_backlog=backlog)
            )
            logger.info("node %d (%s): initial queue backlog %.4f", i, addr, backlog)

        self.initial_requests = initial_requests
        self.current_requests = initial_requests
        self.request_increment = request_increment
        self.max_requests = max_requests
        self.cpu_thresholds = sorted(cpu_thresholds)
        self.redistrib_proportion = redistrib_proportion
        self.timeout = HTTP_TIMEOUT
        self.stats_records: list[StatsRecord] = []
        self.threshold_counts: dict[int, int] = {}
        self._lock = threading.RLock()

    def _collect_one(self, index: int, addr: str) -> None:
        start = time.monotonic()
        try:
            body = _get(f"http://{addr}{METRICS_PATH}", self.timeout)
        except (OSError, urllib.error.URLError) as exc:
            logger.warning("metrics request to %s failed: %s", addr, exc)
            with self._lock:
                if index < len(self.nodes):
                    self.nodes[index].is_active = False
            return
        latency = float(int((time.monotonic() - start) * 1000))

        try:
            metrics = ServerMetrics.from_json(json.loads(body))
        except ValueError as exc:
            logger.warning("could not decode metrics from %s: %s", addr, exc)
            return
        metrics.latency = latency

        with self._lock:
            self.server_metrics[addr] = metrics
            if index < len(self.nodes):
                node = self.nodes[index]
                node.core_num = metrics.num_of_cores
                node.cpu_usage = metrics.cpu_usage
                node.req_rate = metrics.requests_handled
                node.onset_req = metrics.requests_handled
                node.delay = latency
                node.is_active = True
                node.ip = addr
        logger.info(
            "%s: cpu=%.2f%%, cores=%d, requests=%d, latency=%.2fms",
            addr,
            metrics.cpu_usage,
            metrics.num_of_cores,
            metrics.requests_handled,
            metrics.latency,
        )

    def collect_metrics(self) -> None:
        """Query every server concurrently and update the node states."""
        if not self.server_addrs:
            return
        with ThreadPoolExecutor(max_workers=len(self.server_addrs)) as pool:
            list(pool.map(self._collect_one, range(len(self.server_addrs)), self.server_addrs))

    def distribute(self) -> dict[str, int]:
        """Run BPR over the active nodes; returns address -> request count."""
        with self._lock:
            active = []
            for node in self.nodes:
                if node.is_active:
                    if node.onset_req == 0:
                        node.onset_req = 10
                    active.append(node)
            if not active:
                logger.warning("no active nodes, nothing to distribute")
                return {}

            total = max(self.current_requests, 0)
            logger.info(
                "current requests: %d, initial: %d, to distribute: %d",
                self.current_requests,
                self.initial_requests,
                total,
            )
            distribution = run_bpr_core(active, total, self.redistrib_proportion)
        for ip, count in distribution.items():
            logger.info("bpr: %s gets %d requests", ip, count)
        return distribution

    def _fire(self, addr: str) -> None:
        try:
            _get(f"http://{addr}{WORK_PATH}", self.timeout)
        except (OSError, urllib.error.URLError) as exc:
            logger.warning("work request to %s failed: %s", addr, exc)

    def _send_to(self, addr: str, count: int) -> None:
        logger.info("sending %d requests to %s", count, addr)
        interval = TICK_INTERVAL / count
        for _ in range(count):
            threading.Thread(target=self._fire, args=(addr,), daemon=True).start()
            time.sleep(interval)

    def send_requests(self, distribution: Mapping[str, int]) -> None:
        """Spread each server's requests evenly over one second.

        Returns once every request has been started.
        """
        senders = [
            threading.Thread(target=self._send_to, args=(addr, count))
            for addr, count in distribution.items()
            if count > 0
        ]
        for sender in senders:
            sender.start()
        for sender in senders:
            sender.join()

    def calculate_stats(self) -> bool:
        """Record a snapshot when any server reaches a CPU threshold.

        The highest threshold reached is used. Returns whether one was reached.
        """
        with self._lock:
            present = [self.server_metrics[a] for a in self.server_addrs if a in self.server_metrics]
            ips = [m.ip for m in present]
            cpu_usages = [m.cpu_usage for m in present]
            latencies = [m.latency for m in present]
            if not cpu_usages:
                return False

            spread = variance(cpu_usages)
            avg_latency = average(latencies)
            logger.info("cpu variance %.2f, average latency %.2f", spread, avg_latency)

            reached = next(
                (
                    i
                    for i in range(len(self.cpu_thresholds) - 1, -1, -1)
                    if any(u >= self.cpu_thresholds[i] for u in cpu_usages)
                ),
                None,
            )
            if reached is None:
                return False

            threshold = self.cpu_thresholds[reached]
            self.threshold_counts[reached] = self.threshold_counts.get(reached, 0) + 1
            self.stats_records.append(
                StatsRecord(
                    timestamp=datetime.now().astimezone().isoformat(timespec="seconds"),
                    cpu_threshold=threshold,
                    total_requests=self.current_requests,
                    ips=ips,
                    cpu_usages=cpu_usages,
                    variance=spread,
                    avg_latency=avg_latency,
                    threshold_index=reached,
                )
            )
            logger.info(
                "cpu threshold %.2f%% (index %d) reached: requests %d, variance %.4f, "
                "latency %.2fms",
                threshold,
                reached,
                self.current_requests,
                spread,
                avg_latency,
            )
            return True

    def increase_request_rate(self) -> None:
        """Raise the request rate by the increment, capped at the maximum."""
        with self._lock:
            if self.current_requests < self.max_requests:
                new_rate = min(self.current_requests + self.request_increment, self.max_requests)
                logger.info("request rate: %d -> %d per second", self.current_requests, new_rate)
                self.current_requests = new_rate

    def save_stats_csv(self, filename: str) -> bool:
        """Write the recorded snapshots as CSV; nothing is written without records."""
        if not self.stats_records:
            return False
        with open(filename, "w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            writer.writerow(CSV_HEADER)
            for record in self.stats_records:
                writer.writerow(
                    [
                        record.timestamp,
                        f"{record.cpu_threshold:.2f}",
                        str(record.threshold_index),
                        str(record.total_requests),
                        ";".join(record.ips),
                        ";".join(f"{u:.2f}" for u in record.cpu_usages),
                        f"{record.variance:.4f}",
                        f"{record.avg_latency:.2f}",
                    ]
                )
        logger.info("stats saved to %s", filename)
        return True

    def threshold_summary(self) -> list[tuple[float, int, int]]:
        """(threshold, index, times reached) for every configured threshold."""
        summary = [
            (threshold, i, self.threshold_counts.get(i, 0))
            for i, threshold in enumerate(self.cpu_thresholds)
        ]
        for threshold, i, count in summary:
            logger.info("threshold %.2f%% (index %d) reached %d times", threshold, i, count)
        return summary

    def run(self, duration: float, rate_increase_interval: float) -> str | None:
        """Run the load test for duration seconds.

        Returns the CSV file written at the end, or None when nothing was recorded.
        """
        if rate_increase_interval <= 0:
            raise ValueError("rate increase interval must be positive")
        logger.info(
            "bpr start: initial %d/s, increment %d/s, max %d/s, thresholds %s",
            self.initial_requests,
            self.request_increment,
            self.max_requests,
            self.cpu_thresholds,
        )

        start = time.monotonic()
        deadline = start + duration
        periods = {
            "metrics": TICK_INTERVAL,
            "requests": TICK_INTERVAL,
            "stats": TICK_INTERVAL,
            "rate": rate_increase_interval,
        }
        schedule = {name: start + period for name, period in periods.items()}
        actions = {
            "metrics": self.collect_metrics,
            "requests": lambda: self.send_requests(self.distribute()),
            "stats": self.calculate_stats,
            "rate": self.increase_request_rate,
        }

        self.collect_metrics()

        while True:
            name, due = min(schedule.items(), key=lambda item: item[1])
            if deadline <= due:
                time.sleep(max(0.0, deadline - time.monotonic()))
                break
            time.sleep(max(0.0, due - time.monotonic()))
            actions[name]()
            next_due = due + periods[name]
            schedule[name] = max(next_due, time.monotonic()) if next_due < time.monotonic() else next_due

        logger.info("test duration reached, finishing")
        self.threshold_summary()
        filename = f"bpr_stats_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        try:
            written = self.save_stats_csv(filename)
        except OSError as exc:
            logger.error("could not save stats: %s", exc)
            return None
        return filename if written else None


def parse_float_list(text: str) -> list[float]:
    """Parse comma-separated numbers."""
    values = []
    for part in text.split(","):
        try:
            values.append(float(part.strip()))
        except ValueError as exc:
            raise ValueError(f"cannot parse '{part}': {exc}") from exc
    return values


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as "30m", "1h30m" or "250ms" into seconds."""
    body = text
    sign = 1.0
    if body[:1] in "+-" and body:
        sign = -1.0 if body[0] == "-" else 1.0
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise ValueError(f"invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(body):
        match = _COMPONENT.match(body, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total


USAGE = (
    "usage: <initial requests> <increment> <max requests> <cpu thresholds> "
    "<duration> <rate interval> [bpr proportion] [queue backlogs]\n"
    'example: 10 5 100 "60,70,80" 30m 1m 0.2 "10,15,20,0,20"'
)


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 6:
        print(USAGE, file=sys.stderr)
        return 1

    try:
        initial_requests = int(args[0])
        request_increment = int(args[1])
        max_requests = int(args[2])
        cpu_thresholds = parse_float_list(args[3])
        duration = parse_duration(args[4])
        rate_interval = parse_duration(args[5])
        proportion = float(args[6]) if len(args) >= 7 else DEFAULT_PROPORTION
        backlogs = parse_float_list(args[7]) if len(args) >= 8 else []
    except ValueError as exc:
        print(f"invalid argument: {exc}", file=sys.stderr)
        return 1

    servers = list(DEFAULT_SERVERS)
    for i in range(len(backlogs), len(servers)):
        backlogs.append(DEFAULT_BACKLOGS[i % len(DEFAULT_BACKLOGS)])
    logger.info("initial queue backlogs: %s", backlogs)

    client = BprClient(
        servers,
        initial_requests,
        request_increment,
        max_requests,
        cpu_thresholds,
        proportion,
        backlogs,
    )
    try:
        client.run(duration, rate_interval)
    except ValueError as exc:
        print(f"bpr failed: {exc}", file=sys.stderr)
        return 1
    return 0