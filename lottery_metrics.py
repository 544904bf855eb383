"""
Prometheus textfile export of a finished lottery test.
"""

from pathlib import Path

from prometheus_client import CollectorRegistry, Gauge, write_to_textfile

from lottery_common import LOG_DIR, get_kernel, get_version, timestamp
from lottery_harness import TestResult


PREFIX = "lotterytest_"


def build_registry(result: TestResult) -> CollectorRegistry:
    registry = CollectorRegistry()
    report = result.report

    def gauge(name: str, help_text: str, labels: list[str] | None = None) -> Gauge:
        return Gauge(PREFIX + name, help_text, labels or [], registry=registry)

    gauge("info", "Build and run metadata",
          ["version", "kernel", "backend", "ratio"]).labels(
        get_version(), get_kernel(), result.backend, result.config.ratio).set(1)
    gauge("total_tickets", "Tickets in the pool").set(report.total_tickets)
    gauge("total_ticks", "Ticks credited to all workers").set(report.total_ticks)
    gauge("duration_seconds", "Configured test duration").set(result.settings.duration)
    gauge("elapsed_seconds", "Wall-clock run time").set(result.elapsed)
    gauge("samples_collected", "Successful statistics queries").set(len(result.samples))
    gauge("samples_missed", "Failed statistics queries").set(result.missed)
    gauge("degenerate", "1 when no ticks were recorded").set(int(report.degenerate))

    worker = ["worker"]
    tickets = gauge("worker_tickets", "Tickets held by the worker", worker)
    ticks = gauge("worker_ticks", "Ticks credited to the worker", worker)
    expected = gauge("worker_expected_percent", "Proportional share", worker)
    actual = gauge("worker_actual_percent", "Observed share", worker)
    deviation = gauge("worker_deviation_percent",
                      "Observed minus proportional share", worker)
    for s in report.slots:
        tickets.labels(s.label).set(s.tickets)
        ticks.labels(s.label).set(s.ticks)
        expected.labels(s.label).set(s.expected_pct)
        actual.labels(s.label).set(s.actual_pct)
        deviation.labels(s.label).set(s.deviation)

    if not report.degenerate:
        gauge("mean_absolute_deviation_percent",
              "Mean absolute share deviation").set(report.mean_absolute_deviation)
        gauge("accuracy_score", "100 minus the mean absolute deviation").set(
            report.accuracy_score)
    return registry


def default_prom_path() -> Path:
    return LOG_DIR / f"lotterytest-{timestamp()}.prom"


def write_prometheus(result: TestResult, path: Path | None = None) -> Path:
    """Write the run as Prometheus exposition format. Returns the path."""
    if path is None:
        path = default_prom_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(path), build_registry(result))
    return path
