"""Tests for settings and command line parsing."""

import pytest

from sysmeter.config import MonitorSettings, parse_args
from sysmeter.errors import ConfigurationError
from sysmeter.meters import MeterKind
from sysmeter.processes import MemoryCalculation


class TestMonitorSettings:
    """Tests for MonitorSettings validation."""

    def test_defaults(self):
        """Test the default settings watch every resource."""
        settings = MonitorSettings()

        assert settings.refresh_interval == 2.0
        assert settings.meters == tuple(MeterKind)
        assert settings.memory_calculation is MemoryCalculation.RAM_ONLY
        assert settings.root == "/"
        assert settings.log_file is None

    def test_memory_calculation_string_is_normalized(self):
        """Test a method name is converted to the enum."""
        settings = MonitorSettings(memory_calculation="all")

        assert settings.memory_calculation is MemoryCalculation.ALL

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"refresh_interval": 0.01},
            {"meters": ()},
            {"meters": (MeterKind.CPU, MeterKind.CPU)},
            {"memory_calculation": "invalid"},
            {"log_level": "LOUD"},
        ],
    )
    def test_invalid_settings(self, kwargs):
        """Test invalid values are rejected when the settings are built."""
        with pytest.raises(ConfigurationError):
            MonitorSettings(**kwargs)


class TestParseArgs:
    """Tests for parse_args."""

    def test_no_arguments(self):
        """Test parsing an empty command line gives the defaults."""
        assert parse_args([]) == MonitorSettings()

    def test_all_options(self, tmp_path):
        """Test every option reaches the settings."""
        log_file = str(tmp_path / "sysmeter.log")

        settings = parse_args(
            [
                "--interval",
                "0.5",
                "--meters",
                "cpu, network,swap",
                "--memory-calculation",
                "all",
                "--log-level",
                "DEBUG",
                "--log-file",
                log_file,
            ]
        )

        assert settings.refresh_interval == 0.5
        assert settings.meters == (MeterKind.CPU, MeterKind.NETWORK, MeterKind.SWAP)
        assert settings.memory_calculation is MemoryCalculation.ALL
        assert settings.log_level == "DEBUG"
        assert settings.log_file == log_file

    @pytest.mark.parametrize(
        "argv",
        [
            ["--meters", "cpu,gpu"],
            ["--memory-calculation", "invalid"],
            ["--interval", "0"],
        ],
    )
    def test_bad_arguments_exit(self, argv):
        """Test bad command lines are reported by argparse."""
        with pytest.raises(SystemExit):
            parse_args(argv)
