"""
Accuracy analysis: observed CPU shares against the proportional-share model.

All percentages use integer floor division so results are reproducible
tick for tick. The accuracy score is 100 minus the mean absolute deviation
of the per-worker shares, clamped to [0, 100].
"""

from dataclasses import dataclass
from typing import Sequence

from lottery_config import TestConfiguration


# (threshold, rating), highest first
RATINGS = (
    (90, "excellent"),
    (80, "good"),
    (70, "fair"),
    (0, "poor"),
)


def rate(score: int) -> str:
    for threshold, rating in RATINGS:
        if score >= threshold:
            return rating
    return "poor"


@dataclass(frozen=True)
class SlotAccuracy:
    label: str
    tickets: int
    ticks: int
    expected_pct: int
    actual_pct: int
    deviation: int


@dataclass(frozen=True)
class AccuracyReport:
    slots: tuple[SlotAccuracy, ...]
    total_tickets: int
    total_ticks: int
    mean_absolute_deviation: int
    accuracy_score: int
    rating: str | None
    expected_ratio: tuple[float, ...] | None
    actual_ratio: tuple[float, ...] | None
    degenerate: bool = False

    @property
    def expected_pct(self) -> list[int]:
        return [s.expected_pct for s in self.slots]

    @property
    def actual_pct(self) -> list[int]:
        return [s.actual_pct for s in self.slots]

    @property
    def deviations(self) -> list[int]:
        return [s.deviation for s in self.slots]


def normalized_ratio(values: Sequence[int]) -> tuple[float, ...] | None:
    """Each value over the smallest one, truncated to one decimal.

    None when the smallest value is 0.
    """
    lowest = min(values)
    if lowest <= 0:
        return None
    return tuple((v * 10 // lowest) / 10 for v in values)


def analyze(config: TestConfiguration, final_ticks: Sequence[int]) -> AccuracyReport:
    if len(final_ticks) != len(config.slots):
        raise ValueError(f"expected {len(config.slots)} tick counts, "
                         f"got {len(final_ticks)}")
    total_tickets = config.total_tickets
    total_ticks = sum(final_ticks)
    expected = [s.tickets * 100 // total_tickets for s in config.slots]

    if total_ticks == 0:
        rows = tuple(SlotAccuracy(s.label, s.tickets, 0, e, 0, 0)
                     for s, e in zip(config.slots, expected))
        return AccuracyReport(rows, total_tickets, 0, 0, 0, None,
                              None, None, degenerate=True)

    rows = []
    for slot, exp, ticks in zip(config.slots, expected, final_ticks):
        actual = ticks * 100 // total_ticks
        rows.append(SlotAccuracy(slot.label, slot.tickets, ticks,
                                 exp, actual, actual - exp))

    mad = sum(abs(r.deviation) for r in rows) // len(rows)
    score = min(100, max(0, 100 - mad))

    actual_ratio = normalized_ratio(final_ticks)
    expected_ratio = normalized_ratio(config.tickets) if actual_ratio else None

    return AccuracyReport(tuple(rows), total_tickets, total_ticks, mad, score,
                          rate(score), expected_ratio, actual_ratio)
