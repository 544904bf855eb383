"""
Worker process lifecycle: one CPU-bound process per configured slot.
"""

import os
import signal
import subprocess
import sys
import time

from lottery_common import (
    ORCHESTRATOR_TICKETS, SchedulerError, SpawnError,
    log_debug, log_info, log_warn,
)
from lottery_config import TestConfiguration
from lottery_sched import SchedulerBackend


# Each worker reports ready once the interpreter is up, then blocks on its
# start gate (stdin) until the harness has assigned its weight, then spins
# without ever yielding. EOF on the gate means the harness went away
# before releasing it.
WORKER_SCRIPT = (
    "import hashlib, sys\n"
    "sys.stdout.write('ready\\n')\n"
    "sys.stdout.flush()\n"
    "if sys.stdin.readline().strip() != 'go':\n"
    "    sys.exit(1)\n"
    "d = b'lottery' * 1000\n"
    "while True:\n"
    "    d = hashlib.sha256(d).digest()\n"
)


class WorkerPool:
    """Spawns, weights, terminates and reaps the test workers.

    Usable as a context manager; leaving the block always terminates and
    reaps whatever is still tracked. A custom script must print "ready"
    before reading its gate.
    """

    def __init__(self, backend: SchedulerBackend,
                 script: str = WORKER_SCRIPT,
                 orchestrator_tickets: int | None = ORCHESTRATOR_TICKETS):
        self.backend = backend
        self.script = script
        self.orchestrator_tickets = orchestrator_tickets
        self.procs: list[subprocess.Popen] = []

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc) -> None:
        self.terminate_all()
        self.await_all()

    def _start(self) -> subprocess.Popen:
        return subprocess.Popen(
            [sys.executable, "-c", self.script],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )

    @staticmethod
    def _await_ready(proc: subprocess.Popen) -> bool:
        return proc.stdout.readline().strip() == b"ready"

    @staticmethod
    def _release(proc: subprocess.Popen) -> None:
        proc.stdin.write(b"go\n")
        proc.stdin.close()

    def _abort(self, what: str, reason) -> SpawnError:
        log_warn(f"{what} failed, stopping {len(self.procs)} worker(s)")
        self.terminate_all()
        self.await_all()
        return SpawnError(f"{what}: {reason}")

    def spawn_all(self, config: TestConfiguration) -> list[int]:
        """Start one weighted worker per slot, in slot order.

        Every worker is weighted before its gate opens. The ticks each one
        spent starting up are recorded as its baseline, then all gates are
        released. Any failure unwinds the workers spawned so far before
        SpawnError is raised.
        """
        for slot in config.slots:
            what = f"{slot.label} ({slot.tickets} tickets)"
            try:
                proc = self._start()
                self.procs.append(proc)
                if not self._await_ready(proc):
                    raise self._abort(
                        what, f"pid {proc.pid} exited before it was ready")
                self.backend.assign_weight(proc.pid, slot.tickets)
            except (OSError, SchedulerError) as e:
                raise self._abort(what, e) from e
            slot.pid = proc.pid
            log_info(f"  {slot.label} (PID {proc.pid}) started with "
                     f"{slot.tickets} tickets")

        if self.orchestrator_tickets is not None:
            try:
                self.backend.assign_weight(os.getpid(), self.orchestrator_tickets)
            except SchedulerError as e:
                raise self._abort("harness weight", e) from e
            log_info(f"  Parent monitoring with {self.orchestrator_tickets} "
                     f"ticket{'s' if self.orchestrator_tickets != 1 else ''}")

        try:
            table = self.backend.query_statistics()
        except SchedulerError as e:
            raise self._abort("startup baseline", e) from e
        for slot in config.slots:
            stat = table.get(slot.pid)
            slot.baseline_ticks = stat.ticks if stat is not None else 0
            slot.observed_ticks = 0
            log_debug(f"{slot.label}: {slot.baseline_ticks} startup ticks excluded")

        try:
            for proc in self.procs:
                self._release(proc)
        except OSError as e:
            raise self._abort("start gate", e) from e
        return [p.pid for p in self.procs]

    def terminate_all(self) -> None:
        """SIGTERM every tracked worker still running."""
        for p in self.procs:
            if p.poll() is not None:
                continue
            try:
                p.send_signal(signal.SIGTERM)
            except ProcessLookupError:
                pass

    def await_all(self, timeout: float = 3.0) -> None:
        """Reap every tracked worker, SIGKILLing stragglers after timeout."""
        deadline = time.monotonic() + timeout
        for p in self.procs:
            if p.stdin is not None and not p.stdin.closed:
                try:
                    p.stdin.close()
                except OSError:
                    pass
            remaining = max(0.0, deadline - time.monotonic())
            try:
                p.wait(timeout=remaining)
            except subprocess.TimeoutExpired:
                log_warn(f"PID {p.pid} ignored SIGTERM, killing")
                p.kill()
                p.wait()
            if p.stdout is not None:
                p.stdout.close()
            log_debug(f"PID {p.pid} reaped (exit {p.returncode})")
        self.procs.clear()

    @property
    def alive(self) -> int:
        return sum(1 for p in self.procs if p.poll() is None)
