"""
Test configuration: ticket weights per worker and run timing.
"""

from dataclasses import dataclass, field
from typing import Sequence

from lottery_common import (
    DEFAULT_CPU, DEFAULT_DURATION_SECS, DEFAULT_SAMPLES, DEFAULT_SETTLE_SECS,
    DEFAULT_TICKETS, MAX_WORKERS,
    ConfigError, InvalidTicketCount, TooManyWorkers,
)


@dataclass
class WorkerSlot:
    """One configured test subject."""

    index: int
    tickets: int
    pid: int | None = None
    observed_ticks: int = 0
    # ticks charged before the start gate opened (interpreter startup)
    baseline_ticks: int = 0

    @property
    def label(self) -> str:
        return f"P{self.index + 1}"


@dataclass
class TestConfiguration:
    """Ordered worker slots. Order is both presentation order and index."""

    __test__ = False  # not a pytest test class

    slots: list[WorkerSlot] = field(default_factory=list)

    @classmethod
    def from_tickets(cls, tickets: Sequence[int]) -> "TestConfiguration":
        if not tickets:
            raise ConfigError("At least one worker is required")
        if len(tickets) > MAX_WORKERS:
            raise TooManyWorkers(len(tickets))
        for t in tickets:
            if t <= 0:
                raise InvalidTicketCount(str(t))
        return cls([WorkerSlot(i, t) for i, t in enumerate(tickets)])

    @property
    def tickets(self) -> list[int]:
        return [s.tickets for s in self.slots]

    @property
    def total_tickets(self) -> int:
        return sum(s.tickets for s in self.slots)

    @property
    def ratio(self) -> str:
        """Ticket ratio as typed on the command line, e.g. 30:20:10."""
        return ":".join(str(t) for t in self.tickets)

    @property
    def pids(self) -> list[int | None]:
        return [s.pid for s in self.slots]

    @property
    def observed_ticks(self) -> list[int]:
        return [s.observed_ticks for s in self.slots]

    def __len__(self) -> int:
        return len(self.slots)


def _parse_tickets(arg: str) -> int:
    # Plain ASCII decimal only; int() would also take "+5", " 7" or "1_0".
    if not (arg.isascii() and arg.isdigit()):
        raise InvalidTicketCount(arg)
    value = int(arg)
    if value <= 0:
        raise InvalidTicketCount(arg)
    return value


def resolve(args: Sequence[str]) -> TestConfiguration:
    """Turn raw ticket arguments into a validated configuration.

    No arguments selects the default 30:20:10 configuration. Otherwise
    each argument is the ticket count of one worker, in order. Fails on
    the first argument that is not a positive integer.
    """
    if not args:
        return TestConfiguration.from_tickets(DEFAULT_TICKETS)
    if len(args) > MAX_WORKERS:
        raise TooManyWorkers(len(args))
    return TestConfiguration.from_tickets([_parse_tickets(a) for a in args])


@dataclass
class RunSettings:
    """Timing and CPU placement of one run."""

    duration: float = DEFAULT_DURATION_SECS
    samples: int = DEFAULT_SAMPLES
    settle: float = DEFAULT_SETTLE_SECS
    cpu: int | None = DEFAULT_CPU

    @property
    def interval(self) -> float:
        """Delay between two consecutive samples."""
        return self.duration / self.samples

    def validate(self) -> "RunSettings":
        if self.duration <= 0:
            raise ConfigError(f"Duration must be positive, got {self.duration}")
        if self.samples < 1:
            raise ConfigError(f"Sample count must be at least 1, got {self.samples}")
        if self.settle < 0:
            raise ConfigError(f"Settle delay cannot be negative, got {self.settle}")
        if self.cpu is not None and self.cpu < 0:
            raise ConfigError(f"Invalid CPU index: {self.cpu}")
        return self
