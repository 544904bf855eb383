"""
Run orchestration: spawn, settle, sample, tear down, analyze.
"""

import time
from dataclasses import dataclass, field
from typing import Callable

from lottery_analysis import AccuracyReport, analyze
from lottery_common import log_info, log_warn
from lottery_config import RunSettings, TestConfiguration
from lottery_sampler import LiveSample, SampleCollector
from lottery_sched import SchedulerBackend
from lottery_workers import WorkerPool


ProgressFn = Callable[[int, int, LiveSample | None], None]


@dataclass
class TestResult:
    __test__ = False  # not a pytest test class

    config: TestConfiguration
    settings: RunSettings
    report: AccuracyReport
    backend: str
    samples: list[LiveSample] = field(default_factory=list)
    missed: int = 0
    final_query_ok: bool = True
    elapsed: float = 0.0

    @property
    def final_ticks(self) -> list[int]:
        return [s.ticks for s in self.report.slots]


def run_test(config: TestConfiguration, settings: RunSettings,
             backend: SchedulerBackend,
             pool: WorkerPool | None = None,
             on_progress: ProgressFn | None = None,
             sleep: Callable[[float], None] = time.sleep,
             clock: Callable[[], float] = time.monotonic) -> TestResult:
    """Run one full lottery test and analyze the final tick counts.

    Raises SpawnError if the workers cannot be started; in every other
    case all workers are terminated and reaped before returning.
    """
    if pool is None:
        pool = WorkerPool(backend)
    collector = SampleCollector(backend, clock=clock)
    start = clock()

    log_info("STARTING PROCESSES...")
    with pool:
        pool.spawn_all(config)
        sleep(settings.settle)

        log_info(f"RUNNING TEST FOR {settings.duration:g}s "
                 f"({settings.samples} samples, every {settings.interval:.2f}s)")
        for i in range(settings.samples):
            sleep(settings.interval)
            live = collector.sample(config)
            if on_progress is not None:
                on_progress(i + 1, settings.samples, live)

        log_info("TEST COMPLETE. COLLECTING RESULTS...")
        pool.terminate_all()
        # Terminated but unreaped workers still carry their tick counters.
        final = collector.sample(config)

    if final is None:
        log_warn("final statistics query failed, using last sampled ticks")

    report = analyze(config, config.observed_ticks)
    return TestResult(
        config=config,
        settings=settings,
        report=report,
        backend=backend.name,
        samples=list(collector.history),
        missed=collector.missed,
        final_query_ok=final is not None,
        elapsed=clock() - start,
    )
