import pytest

import lotterytest
from lottery_analysis import analyze
from lottery_common import SpawnError
from lottery_harness import TestResult


@pytest.fixture
def fake_run(monkeypatch):
    """Replace the real run with one that reports the given final ticks."""
    calls = {}

    def install(ticks=None, error=None):
        def run_test(config, settings, backend, on_progress=None):
            calls["config"] = config
            calls["settings"] = settings
            calls["backend"] = backend
            if error is not None:
                raise error
            return TestResult(config=config, settings=settings,
                              report=analyze(config, ticks or config.tickets),
                              backend=backend.name)
        monkeypatch.setattr(lotterytest, "run_test", run_test)
        monkeypatch.setattr(lotterytest, "check_platform", lambda cpu: True)
        return calls

    return install


def test_no_command_prints_help(capsys):
    assert lotterytest.main([]) == 0
    assert "usage: lotterytest" in capsys.readouterr().out


def test_plan_default(capsys):
    assert lotterytest.main(["plan"]) == 0
    out = capsys.readouterr().out
    assert "default configuration" in out
    assert "TOTAL TICKETS: 60" in out
    assert "NICE" in out


def test_plan_custom(capsys):
    assert lotterytest.main(["plan", "10", "20", "15", "5"]) == 0
    assert "CONFIGURATION: 10:20:15:5" in capsys.readouterr().out


def test_invalid_ticket_is_usage_error(capsys, fake_run):
    calls = fake_run()
    assert lotterytest.main(["run", "10", "0", "5"]) == 2
    assert "Invalid ticket count: 0" in capsys.readouterr().out
    assert calls == {}


def test_negative_ticket_is_usage_error(capsys, fake_run):
    fake_run()
    assert lotterytest.main(["run", "10", "-5"]) == 2
    assert "Invalid ticket count: -5" in capsys.readouterr().out


def test_too_many_workers(capsys, fake_run):
    fake_run()
    assert lotterytest.main(["run"] + ["1"] * 33) == 2
    assert "max 32, got 33" in capsys.readouterr().out


def test_invalid_settings(fake_run):
    fake_run()
    assert lotterytest.main(["run", "--duration", "0"]) == 2
    assert lotterytest.main(["run", "--samples", "0"]) == 2


def test_run_passes_settings(fake_run, capsys):
    calls = fake_run()
    assert lotterytest.main(["run", "40", "20", "--duration", "30",
                             "--samples", "6", "--cpu", "1"]) == 0
    assert calls["config"].tickets == [40, 20]
    assert calls["settings"].duration == 30.0
    assert calls["settings"].samples == 6
    assert calls["settings"].cpu == 1
    assert calls["backend"].reference_tickets == 40
    assert "LOTTERY TEST RESULTS" in capsys.readouterr().out


def test_no_pin(fake_run):
    calls = fake_run()
    assert lotterytest.main(["run", "--no-pin"]) == 0
    assert calls["settings"].cpu is None
    assert calls["backend"].cpu is None


def test_poor_accuracy_fails(fake_run):
    fake_run(ticks=[0, 0, 900])
    assert lotterytest.main(["run"]) == 1


def test_degenerate_fails(fake_run, capsys):
    fake_run(ticks=[0, 0, 0])
    # analyze() of all-zero ticks is degenerate
    assert lotterytest.main(["run"]) == 1
    assert "No ticks were recorded" in capsys.readouterr().out


def test_spawn_error_fails(fake_run, capsys):
    fake_run(error=SpawnError("P1 (30 tickets): no fork"))
    assert lotterytest.main(["run"]) == 1
    assert "could not start workers" in capsys.readouterr().out


def test_platform_check_failure(fake_run, monkeypatch):
    calls = fake_run()
    monkeypatch.setattr(lotterytest, "check_platform", lambda cpu: False)
    assert lotterytest.main(["run"]) == 1
    assert calls == {}


def test_prom_export(fake_run, tmp_path):
    fake_run()
    out = tmp_path / "lottery.prom"
    assert lotterytest.main(["run", "--prom", str(out)]) == 0
    assert "lotterytest_accuracy_score 100.0" in out.read_text()


def test_check_without_pinning():
    assert lotterytest.main(["check", "--no-pin"]) in (0, 1)


def test_cli_handles_interrupt(monkeypatch, capsys):
    def interrupted(argv=None):
        raise KeyboardInterrupt
    monkeypatch.setattr(lotterytest, "main", interrupted)
    with pytest.raises(SystemExit) as exc:
        lotterytest.cli()
    assert exc.value.code == 130
    assert "Interrupted by user." in capsys.readouterr().out
