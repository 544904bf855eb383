"""
Plain-text rendering of a lottery test: banner, setup, progress, results.
"""

import sys

from lottery_analysis import AccuracyReport
from lottery_config import TestConfiguration
from lottery_harness import TestResult
from lottery_sampler import LiveSample
from lottery_sched import WeightPlan


RULE = "=" * 50
BAR_WIDTH = 40

RATING_MESSAGES = {
    "excellent": "EXCELLENT: lottery scheduler working perfectly",
    "good": "GOOD: lottery scheduler working well",
    "fair": "FAIR: lottery scheduler needs improvement",
    "poor": "POOR: lottery scheduler has issues",
}


def bar(part: int, whole: int, width: int = BAR_WIDTH) -> str:
    filled = part * width // whole if whole > 0 else 0
    return "#" * filled + "." * (width - filled)


def format_banner(config: TestConfiguration) -> str:
    lines = [
        RULE,
        "LOTTERY SCHEDULER TEST",
        f"CONFIGURATION: {config.ratio}",
        f"TOTAL TICKETS: {config.total_tickets}",
        RULE,
    ]
    return "\n".join(lines)


def format_setup(config: TestConfiguration,
                 plan: list[WeightPlan] | None = None) -> str:
    """Per-worker tickets and the expected proportional share."""
    total = config.total_tickets
    lines = ["EXPECTED ALLOCATION (proportional share)"]
    header = f"  {'PROC':<6} {'TICKETS':>8} {'EXPECTED':>9}"
    if plan:
        header += f" {'NICE':>6} {'WEIGHT':>7} {'WEIGHTED':>9}"
    lines.append(header)
    for i, slot in enumerate(config.slots):
        pct = slot.tickets * 100 // total
        tenth = slot.tickets * 1000 // total % 10
        row = f"  {slot.label:<6} {slot.tickets:>8} {f'{pct}.{tenth}%':>9}"
        if plan:
            p = plan[i]
            row += f" {p.nice:>6} {p.weight:>7} {p.share:>8.1f}%"
        lines.append(row)
    lines.append(f"  TOTAL POOL: {total} tickets, RATIO {config.ratio}")
    return "\n".join(lines)


def format_progress(current: int, total: int, live: LiveSample | None,
                    labels: list[str]) -> str:
    pct = current * 100 // total
    line = f"\rProgress [{bar(current, total)}] {pct}%"
    stats = live.format_stats(labels) if live is not None else None
    if stats:
        line += f" {stats}"
    return line + " " * 8


def print_progress(config: TestConfiguration):
    """Progress callback for run_test writing a self-overwriting line."""
    labels = [s.label for s in config.slots]

    def progress(current: int, total: int, live: LiveSample | None) -> None:
        sys.stdout.write(format_progress(current, total, live, labels))
        if current >= total:
            sys.stdout.write("\n")
        sys.stdout.flush()

    return progress


def format_scale(indent: int, width: int = BAR_WIDTH) -> list[str]:
    """Quarter marks under the distribution bars, labelled 0 to 100."""
    marks = [" "] * (width + 1)
    labels = [" "] * (width + 4)
    for pos in range(0, width + 1, width // 4):
        marks[pos] = "|"
        text = str(pos * 100 // width)
        labels[pos:pos + len(text)] = text
    return [f"{'Scale:':>{indent - 1}} " + "".join(marks).rstrip(),
            " " * indent + "".join(labels).rstrip()]


def format_distribution(report: AccuracyReport) -> str:
    lines = ["SCHEDULING STATISTICS",
             f"  {'PROC':<6} {'TICKETS':>8} {'TICKS':>8} {'PERCENT':>8}"]
    for s in report.slots:
        lines.append(f"  {s.label:<6} {s.tickets:>8} {s.ticks:>8} "
                     f"{f'{s.actual_pct}%':>8}")
    lines.append(f"  TOTAL TICKS: {report.total_ticks}")
    lines.append("")
    lines.append("CPU TIME DISTRIBUTION")
    prefixes = [f"  {s.label:<4} ({s.tickets:>3} tickets) " for s in report.slots]
    indent = max(len(p) for p in prefixes)
    for p, s in zip(prefixes, report.slots):
        lines.append(f"{p:<{indent}}{bar(s.ticks, report.total_ticks)} {s.actual_pct}%")
    lines.append("")
    lines.extend(format_scale(indent))
    return "\n".join(lines)


def format_accuracy(report: AccuracyReport) -> str:
    lines = ["ACCURACY ANALYSIS",
             f"  {'PROC':<6} {'EXPECTED':>9} {'ACTUAL':>8} {'DEVIATION':>10}"]
    for s in report.slots:
        lines.append(f"  {s.label:<6} {f'{s.expected_pct}%':>9} "
                     f"{f'{s.actual_pct}%':>8} {f'{s.deviation:+d}%':>10}")
    lines.append("")
    if report.degenerate:
        lines.append("NO TICKS RECORDED: accuracy cannot be computed")
        return "\n".join(lines)

    lines.append(f"MEAN ABSOLUTE DEVIATION: {report.mean_absolute_deviation}%")
    lines.append(f"LOTTERY SCHEDULER ACCURACY: {report.accuracy_score}%")
    lines.append(RATING_MESSAGES[report.rating])
    if report.actual_ratio is not None:
        lines.append("")
        lines.append("PROPORTIONAL RATIOS")
        lines.append("  Expected: " + " : ".join(f"{r:.1f}" for r in report.expected_ratio))
        lines.append("  Actual  : " + " : ".join(f"{r:.1f}" for r in report.actual_ratio))
    return "\n".join(lines)


def format_report(result: TestResult) -> str:
    """Full end-of-run report."""
    report = result.report
    collected = len(result.samples)
    lines = [
        RULE,
        "LOTTERY TEST RESULTS",
        RULE,
        "",
        format_distribution(report),
        "",
        format_accuracy(report),
        "",
        "CONFIGURATION SUMMARY",
        f"  TICKET RATIO:  {result.config.ratio}",
        f"  BACKEND:       {result.backend}",
        f"  DURATION:      {result.settings.duration:g}s "
        f"({result.elapsed:.1f}s wall)",
        f"  TOTAL TICKS:   {report.total_ticks}",
        f"  SAMPLES:       {collected} collected, {result.missed} missed",
    ]
    if not result.final_query_ok:
        lines.append("  FINAL QUERY:   failed, last sampled ticks used")
    lines.append(RULE)
    return "\n".join(lines)
