"""
Live sampling of per-worker tick counts during a run.
"""

import time
from dataclasses import dataclass

from lottery_common import SchedulerError, log_debug, log_warn
from lottery_config import TestConfiguration
from lottery_sched import SchedulerBackend


@dataclass(frozen=True)
class LiveSample:
    ticks: tuple[int, ...]
    total: int
    percentages: tuple[int, ...] | None
    elapsed: float = 0.0

    def format_stats(self, labels: list[str]) -> str | None:
        """P1=ticks (pct%), ... or None before any tick was credited."""
        if self.percentages is None:
            return None
        return ", ".join(f"{label}={ticks} ({pct}%)" for label, ticks, pct
                         in zip(labels, self.ticks, self.percentages))


class SampleCollector:
    """Queries the scheduler once per call and refreshes the slots.

    The collector never sleeps; spacing samples out is the caller's job.
    """

    def __init__(self, backend: SchedulerBackend, clock=time.monotonic):
        self.backend = backend
        self.clock = clock
        self.started = clock()
        self.history: list[LiveSample] = []
        self.missed = 0

    def sample(self, config: TestConfiguration) -> LiveSample | None:
        try:
            table = self.backend.query_statistics()
        except SchedulerError as e:
            self.missed += 1
            log_warn(f"statistics query failed, skipping sample: {e}")
            return None

        for slot in config.slots:
            stat = table.get(slot.pid) if slot.pid is not None else None
            if stat is not None and stat.active:
                slot.observed_ticks = max(0, stat.ticks - slot.baseline_ticks)

        ticks = tuple(config.observed_ticks)
        total = sum(ticks)
        percentages = None
        if total > 0:
            percentages = tuple(t * 100 // total for t in ticks)
        live = LiveSample(ticks, total, percentages, self.clock() - self.started)
        self.history.append(live)
        log_debug(f"sample {len(self.history)}: ticks={list(ticks)} total={total}")
        return live
