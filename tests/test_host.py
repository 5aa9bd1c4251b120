"""Tests for HostCollector."""

from collections import namedtuple
from unittest.mock import patch

import psutil

from hwguard.models import BatteryInfo, CpuInfo, HostInfo
from hwguard.sensors import HostCollector
from hwguard.sensors import host as host_module

snetio = namedtuple(
    "snetio",
    ["bytes_sent", "bytes_recv", "packets_sent", "packets_recv", "errin", "errout", "dropin", "dropout"],
)
sbattery = namedtuple("sbattery", ["percent", "secsleft", "power_plugged"])


class TestCollect:
    """Tests for HostCollector.collect()."""

    def test_failing_block_uses_default(self):
        """Test a block raising a psutil error falls back to its default."""
        collector = HostCollector(nvidia_smi_enabled=False)

        with patch.object(HostCollector, "cpu", side_effect=psutil.AccessDenied()):
            info = collector.collect()

        assert isinstance(info, HostInfo)
        assert info.cpu == CpuInfo()

    def test_graphics_skipped_without_nvidia(self):
        """Test no GPU query runs when nvidia-smi is disabled."""
        with patch.object(host_module, "query_gpus") as mock_query:
            assert HostCollector(nvidia_smi_enabled=False).graphics() == []

        mock_query.assert_not_called()


class TestBattery:
    """Tests for the battery block."""

    @patch("hwguard.sensors.host.psutil.sensors_battery", create=True, return_value=None)
    def test_desktop(self, mock_battery):
        """Test no battery reports has_battery False."""
        assert HostCollector().battery() == BatteryInfo(has_battery=False)

    @patch(
        "hwguard.sensors.host.psutil.sensors_battery",
        create=True,
        return_value=sbattery(76.44, 3600, False),
    )
    def test_laptop(self, mock_battery):
        """Test percent and charging state are reported."""
        battery = HostCollector().battery()

        assert battery.has_battery is True
        assert battery.percent == 76.4
        assert battery.is_charging is False


class TestTraffic:
    """Tests for network rate calculation."""

    def test_rates_from_consecutive_calls(self):
        """Test per-second rates come from the previous counters."""
        collector = HostCollector()
        first = {"eth0": snetio(1000, 2000, 0, 0, 0, 0, 0, 0)}
        second = {"eth0": snetio(3000, 6000, 0, 0, 1, 0, 2, 0)}

        with patch.object(host_module.psutil, "net_io_counters", side_effect=[first, second]), \
                patch("hwguard.sensors.host.time") as mock_time:
            mock_time.monotonic.side_effect = [10.0, 12.0]
            initial = collector._traffic()
            later = collector._traffic()

        assert initial[0].rx_sec == 0.0
        assert later[0].rx_sec == 2000.0
        assert later[0].tx_sec == 1000.0
        assert later[0].rx_errors == 1
        assert later[0].rx_dropped == 2
