"""
Scheduler primitives used by the harness.

The harness only needs two things from the scheduler under test: give a
process a ticket weight, and read back how many ticks every process has
been credited with. SchedulerBackend is that interface; LinuxNiceBackend
implements it on top of the Linux fair class, whose load weights give the
same proportional-share model as lottery tickets.
"""

import math
import os
import sys
from dataclasses import dataclass

import psutil

from lottery_common import SchedulerError, log_debug, log_error, log_info, log_warn


# Kernel sched_prio_to_weight[], nice -20 .. 19.
NICE_MIN = -20
NICE_MAX = 19
NICE_0_LOAD = 1024
PRIO_TO_WEIGHT = (
    88761, 71755, 56483, 46273, 36291,
    29154, 23254, 18705, 14949, 11916,
    9548, 7620, 6100, 4904, 3906,
    3121, 2501, 1991, 1586, 1277,
    1024, 820, 655, 526, 423,
    335, 272, 215, 172, 137,
    110, 87, 70, 56, 45,
    36, 29, 23, 18, 15,
)


def nice_to_weight(nice: int) -> int:
    return PRIO_TO_WEIGHT[nice - NICE_MIN]


@dataclass(frozen=True)
class ProcessStat:
    """One row of the scheduler statistics table."""

    pid: int
    active: bool
    ticks: int


@dataclass(frozen=True)
class WeightPlan:
    tickets: int
    nice: int
    weight: int
    share: float  # percent of the summed load weight
    clipped: bool = False


class SchedulerBackend:
    """Interface to the scheduler under test."""

    name = "abstract"

    def assign_weight(self, pid: int, tickets: int) -> None:
        """Give pid a ticket weight. Raises SchedulerError on failure."""
        raise NotImplementedError

    def query_statistics(self) -> dict[int, ProcessStat]:
        """Return cumulative ticks for every process the scheduler knows.

        Raises SchedulerError when the table cannot be read.
        """
        raise NotImplementedError


class LinuxNiceBackend(SchedulerBackend):
    """Ticket weights as nice levels, ticks from per-process CPU times.

    The largest ticket count of the configuration (reference_tickets) runs
    at the harness's own starting nice level; smaller counts get the nice
    level whose load weight is closest to the proportional target. With
    cpu set, every weighted process is pinned to that CPU so they all
    compete on one run queue.
    """

    name = "linux-nice"

    def __init__(self, reference_tickets: int, cpu: int | None = None,
                 base_nice: int | None = None,
                 clock_ticks: int | None = None):
        if reference_tickets <= 0:
            raise ValueError("reference_tickets must be positive")
        self.reference_tickets = reference_tickets
        self.cpu = cpu
        if base_nice is None:
            base_nice = psutil.Process().nice()
        self.base_nice = base_nice
        self.clock_ticks = clock_ticks or clock_ticks_per_sec()
        self.assigned: dict[int, int] = {}

    def target_weight(self, tickets: int) -> float:
        return nice_to_weight(self.base_nice) * tickets / self.reference_tickets

    def nice_for(self, tickets: int) -> int:
        log_target = math.log(self.target_weight(tickets))
        return min(range(NICE_MIN, NICE_MAX + 1),
                   key=lambda n: abs(math.log(nice_to_weight(n)) - log_target))

    def plan(self, tickets: list[int]) -> list[WeightPlan]:
        nices = [self.nice_for(t) for t in tickets]
        weights = [nice_to_weight(n) for n in nices]
        total = sum(weights)
        lowest = nice_to_weight(NICE_MAX)
        return [WeightPlan(t, n, w, w * 100 / total,
                           clipped=self.target_weight(t) < lowest)
                for t, n, w in zip(tickets, nices, weights)]

    def assign_weight(self, pid: int, tickets: int) -> None:
        nice = self.nice_for(tickets)
        try:
            proc = psutil.Process(pid)
            if self.cpu is not None:
                proc.cpu_affinity([self.cpu])
            current = proc.nice()
            if nice < current and os.geteuid() != 0:
                log_warn(f"pid {pid}: nice {nice} for {tickets} tickets is below "
                         f"current nice {current}, keeping {current}")
                nice = current
            proc.nice(nice)
        except (psutil.Error, OSError, ValueError) as e:
            raise SchedulerError(
                f"cannot assign {tickets} tickets to pid {pid}: {e}") from e
        self.assigned[pid] = nice
        log_debug(f"pid {pid}: {tickets} tickets -> nice {nice} "
                  f"(weight {nice_to_weight(nice)})")

    def _to_stat(self, info: dict) -> ProcessStat | None:
        times = info.get("cpu_times")
        if times is None:
            # access denied
            return None
        ticks = round((times.user + times.system) * self.clock_ticks)
        # Zombies keep their counters until reaped.
        return ProcessStat(info["pid"], info["status"] != psutil.STATUS_DEAD, ticks)

    def query_statistics(self) -> dict[int, ProcessStat]:
        table = {}
        try:
            for proc in psutil.process_iter(["pid", "status", "cpu_times"]):
                stat = self._to_stat(proc.info)
                if stat is not None:
                    table[stat.pid] = stat
        except psutil.Error as e:
            raise SchedulerError(f"cannot read process table: {e}") from e
        return table


def clock_ticks_per_sec() -> int:
    try:
        return os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError):
        return 100


def check_platform(cpu: int | None = None) -> bool:
    """Verify process statistics, nice and affinity support. Returns True if OK."""
    if not psutil.LINUX:
        log_error(f"Unsupported platform '{sys.platform}', Linux is required")
        return False
    try:
        me = psutil.Process()
        me.cpu_times()
        nice = me.nice()
    except psutil.Error as e:
        log_error(f"Cannot read process statistics: {e}")
        return False
    log_info(f"Process statistics OK ({clock_ticks_per_sec()} ticks/s, "
             f"psutil {psutil.__version__})")

    if nice > 0:
        log_warn(f"Harness already runs at nice {nice}, "
                 "the usable weight range is reduced")
    else:
        log_info(f"Harness nice {nice} OK")

    if cpu is None:
        log_info("CPU pinning disabled")
        return True
    if not hasattr(me, "cpu_affinity"):
        log_error("CPU affinity is unsupported here, use --no-pin")
        return False
    allowed = sorted(me.cpu_affinity())
    if cpu not in allowed:
        log_error(f"CPU {cpu} is not in the allowed set {allowed}")
        return False
    log_info(f"Pinning to CPU {cpu} OK ({len(allowed)} CPU(s) allowed)")
    return True
