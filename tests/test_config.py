import pytest

from lottery_common import MAX_WORKERS, ConfigError, InvalidTicketCount, TooManyWorkers
from lottery_config import RunSettings, TestConfiguration, resolve


class TestResolve:
    def test_no_arguments_selects_default(self):
        config = resolve([])
        assert config.tickets == [30, 20, 10]
        assert config.total_tickets == 60
        assert [s.index for s in config.slots] == [0, 1, 2]
        assert [s.label for s in config.slots] == ["P1", "P2", "P3"]

    def test_arguments_in_order(self):
        config = resolve(["10", "20", "15", "5"])
        assert config.tickets == [10, 20, 15, 5]
        assert config.total_tickets == 50
        assert config.ratio == "10:20:15:5"
        assert all(s.pid is None and s.observed_ticks == 0 for s in config.slots)

    def test_single_worker(self):
        assert resolve(["7"]).tickets == [7]

    def test_zero_fails_with_literal(self):
        with pytest.raises(InvalidTicketCount) as exc:
            resolve(["10", "0", "5"])
        assert exc.value.value == "0"
        assert "0" in str(exc.value)

    @pytest.mark.parametrize("bad", ["abc", "-5", "1.5", "", "12abc", "1_0", " 7",
                                     "7\n", "+5", "0x10", "٣", "７"])
    def test_non_positive_or_unparsable(self, bad):
        with pytest.raises(InvalidTicketCount) as exc:
            resolve(["10", bad])
        assert exc.value.value == bad

    def test_fails_on_first_offender(self):
        with pytest.raises(InvalidTicketCount) as exc:
            resolve(["x", "0"])
        assert exc.value.value == "x"

    def test_too_many_workers(self):
        with pytest.raises(TooManyWorkers) as exc:
            resolve(["1"] * (MAX_WORKERS + 1))
        assert exc.value.count == 33
        assert exc.value.limit == 32

    def test_max_workers_accepted(self):
        assert len(resolve(["1"] * MAX_WORKERS)) == MAX_WORKERS

    def test_too_many_checked_before_values(self):
        with pytest.raises(TooManyWorkers):
            resolve(["0"] * (MAX_WORKERS + 1))

    def test_errors_are_config_errors(self):
        assert issubclass(TooManyWorkers, ConfigError)
        assert issubclass(InvalidTicketCount, ConfigError)


class TestConfigurationModel:
    def test_empty_rejected(self):
        with pytest.raises(ConfigError):
            TestConfiguration.from_tickets([])

    def test_non_positive_rejected(self):
        with pytest.raises(InvalidTicketCount):
            TestConfiguration.from_tickets([3, -1])

    def test_observed_ticks_follow_slots(self, default_config):
        for slot, ticks in zip(default_config.slots, [5, 6, 7]):
            slot.observed_ticks = ticks
        assert default_config.observed_ticks == [5, 6, 7]


class TestRunSettings:
    def test_interval_spreads_samples_over_duration(self):
        assert RunSettings(duration=20.0, samples=10).interval == 2.0

    def test_defaults_are_valid(self):
        settings = RunSettings().validate()
        assert settings.samples == 10
        assert settings.cpu == 0

    @pytest.mark.parametrize("kwargs", [
        {"duration": 0},
        {"duration": -1.0},
        {"samples": 0},
        {"settle": -0.5},
        {"cpu": -2},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigError):
            RunSettings(**kwargs).validate()

    def test_pinning_can_be_disabled(self):
        assert RunSettings(cpu=None).validate().cpu is None
