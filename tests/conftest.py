import pytest

from lottery_common import SchedulerError, setup_logging
from lottery_config import TestConfiguration
from lottery_sched import ProcessStat, SchedulerBackend
from lottery_workers import WorkerPool


class FakeBackend(SchedulerBackend):
    """Scripted scheduler.

    responses is consumed one entry per query: a {pid: ticks} dict, or a
    SchedulerError instance to raise. Once exhausted the last entry repeats.
    """

    name = "fake"

    def __init__(self, responses=None, fail_assign_at=None, events=None):
        self.responses = list(responses or [{}])
        self.fail_assign_at = fail_assign_at
        self.assigned: list[tuple[int, int]] = []
        self.queries = 0
        self.events = events if events is not None else []
        self.inactive: set[int] = set()

    def assign_weight(self, pid, tickets):
        if self.fail_assign_at is not None and len(self.assigned) == self.fail_assign_at:
            raise SchedulerError(f"refusing pid {pid}")
        self.assigned.append((pid, tickets))

    def query_statistics(self):
        idx = min(self.queries, len(self.responses) - 1)
        self.queries += 1
        self.events.append("query")
        resp = self.responses[idx]
        if isinstance(resp, Exception):
            raise resp
        return {pid: ProcessStat(pid, pid not in self.inactive, ticks)
                for pid, ticks in resp.items()}


class FakePool(WorkerPool):
    """Hands out pids 1000, 1001, ... without spawning anything."""

    def __init__(self, backend, events=None, fail: Exception | None = None):
        super().__init__(backend)
        self.events = events if events is not None else []
        self.fail = fail

    def spawn_all(self, config):
        self.events.append("spawn")
        if self.fail is not None:
            raise self.fail
        for slot in config.slots:
            slot.pid = 1000 + slot.index
        return config.pids

    def terminate_all(self):
        self.events.append("terminate")

    def await_all(self, timeout=3.0):
        self.events.append("await")


@pytest.fixture(autouse=True)
def _logging():
    setup_logging(verbose=True)


@pytest.fixture
def default_config():
    return TestConfiguration.from_tickets([30, 20, 10])


@pytest.fixture
def events():
    return []
