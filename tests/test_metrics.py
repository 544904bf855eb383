import lottery_metrics
from lottery_analysis import analyze
from lottery_config import RunSettings
from lottery_harness import TestResult
from lottery_metrics import write_prometheus
from lottery_sampler import LiveSample


def _result(config, ticks):
    return TestResult(
        config=config,
        settings=RunSettings(duration=15.0),
        report=analyze(config, ticks),
        backend="fake",
        samples=[LiveSample(tuple(ticks), sum(ticks), None)],
        missed=2,
        elapsed=16.0,
    )


def test_writes_run_and_worker_gauges(default_config, tmp_path):
    path = write_prometheus(_result(default_config, [600, 350, 50]),
                            tmp_path / "out" / "run.prom")
    assert path == tmp_path / "out" / "run.prom"
    text = path.read_text()
    assert "# TYPE lotterytest_accuracy_score gauge" in text
    assert "lotterytest_accuracy_score 93.0" in text
    assert "lotterytest_total_tickets 60.0" in text
    assert "lotterytest_samples_collected 1.0" in text
    assert "lotterytest_samples_missed 2.0" in text
    assert 'lotterytest_worker_ticks{worker="P1"} 600.0' in text
    assert 'lotterytest_worker_deviation_percent{worker="P3"} -11.0' in text
    assert 'backend="fake"' in text
    assert 'ratio="30:20:10"' in text


def test_degenerate_run_omits_score(default_config, tmp_path):
    text = write_prometheus(_result(default_config, [0, 0, 0]),
                            tmp_path / "run.prom").read_text()
    assert "lotterytest_degenerate 1.0" in text
    assert "lotterytest_accuracy_score" not in text


def test_default_path_under_log_dir(default_config, tmp_path, monkeypatch):
    monkeypatch.setattr(lottery_metrics, "LOG_DIR", tmp_path)
    path = write_prometheus(_result(default_config, [1, 1, 1]))
    assert path.parent == tmp_path
    assert path.suffix == ".prom"
    assert path.exists()
