"""Tests for the CLI entry point."""

from unittest.mock import MagicMock, patch

import pytest

from hwguard import __version__
from hwguard.__main__ import (
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_SUCCESS,
    build_components,
    main,
    parse_args,
)
from hwguard.config import HwGuardSettings
from hwguard.exceptions import ClientError
from hwguard.models import GuardState, SensorSnapshot


@pytest.fixture
def settings():
    return HwGuardSettings(shutdown_dry_run=True, nvidia_smi_enabled=False)


@pytest.fixture
def cli(settings):
    """Patch config loading and logging setup for main()."""
    with patch("hwguard.config.loader.load_config", return_value=settings), \
            patch("hwguard.logging.configure_logging"):
        yield


class TestParseArgs:
    """Tests for argument parsing."""

    def test_no_flags(self):
        """Test the default is service mode."""
        args = parse_args([])

        assert not (args.test or args.run_once or args.status or args.cancel)

    def test_version(self, capsys):
        """Test --version prints the version and exits 0."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_modes_are_exclusive(self):
        """Test two modes at once are rejected."""
        with pytest.raises(SystemExit):
            parse_args(["--status", "--cancel"])


class TestMain:
    """Tests for main() dispatch."""

    def test_config_error_exit_code(self):
        """Test validation failure returns exit code 1."""
        with patch("hwguard.config.loader.load_config", side_effect=SystemExit(1)):
            assert main([]) == EXIT_CONFIG_ERROR

    @pytest.mark.usefixtures("cli")
    def test_status_prints_json(self, capsys):
        """Test --status prints the remote guard status."""
        with patch("hwguard.api.client.GuardClient") as mock_client_class:
            client = mock_client_class.return_value.__enter__.return_value
            client.status.return_value = {"state": "armed"}

            code = main(["--status"])

        assert code == EXIT_SUCCESS
        assert '"state": "armed"' in capsys.readouterr().out
        mock_client_class.assert_called_once_with("http://127.0.0.1:3005")

    @pytest.mark.usefixtures("cli")
    def test_cancel_connection_error(self, capsys):
        """Test --cancel against a stopped service exits with code 2."""
        with patch("hwguard.api.client.GuardClient") as mock_client_class:
            client = mock_client_class.return_value.__enter__.return_value
            client.cancel.side_effect = ClientError("Cannot connect to hwguard at http://127.0.0.1:3005")

            code = main(["--cancel"])

        assert code == EXIT_CONNECTION_ERROR
        assert "Connection error" in capsys.readouterr().err

    @pytest.mark.usefixtures("cli")
    def test_test_mode_prints_temperatures(self, capsys):
        """Test --test resolves once and prints each metric with its source."""
        chain = MagicMock()
        chain.resolve.return_value = SensorSnapshot(cpu_temp=52.0, sources={"cpu": "psutil"})

        with patch("hwguard.sensors.build_default_chain", return_value=chain):
            code = main(["--test"])

        out = capsys.readouterr().out
        assert code == EXIT_SUCCESS
        assert "52 C (psutil)" in out
        assert "unavailable" in out
        chain.close.assert_called_once()


class TestBuildComponents:
    """Tests for wiring components from settings."""

    def test_policy_seeded_from_settings(self):
        """Test the guard starts with the configured policy."""
        settings = HwGuardSettings(
            guard_enabled=True, cpu_threshold=70, nvidia_smi_enabled=False, shutdown_dry_run=True
        )

        components = build_components(settings)
        try:
            assert components.guard.state == GuardState.ARMED
            assert components.guard.policy.cpu_threshold == 70.0
            assert components.power.dry_run is True
            assert components.poller.interval == settings.poll_interval
            assert [r.name for r in components.chain.resolvers] == ["psutil"]
        finally:
            components.chain.close()
