"""Tests for the host-wide scrapers (load, cpu, memory, paging, system, disk, filesystem, network, processes)."""

from collections import namedtuple
from unittest.mock import Mock, patch

import psutil
import pytest

from hostmetrics.scrapers.cpu import CPUScraper, CPUScraperConfig
from hostmetrics.scrapers.disk import DiskScraper, DiskScraperConfig
from hostmetrics.scrapers.filesystem import FilesystemScraper, FilesystemScraperConfig
from hostmetrics.scrapers.load import LoadScraper, LoadScraperConfig
from hostmetrics.scrapers.memory import MemoryScraper, MemoryScraperConfig
from hostmetrics.scrapers.network import NetworkScraper, NetworkScraperConfig
from hostmetrics.scrapers.paging import PagingScraper, PagingScraperConfig
from hostmetrics.scrapers.processes import ProcessesScraper, ProcessesScraperConfig
from hostmetrics.scrapers.system import SystemScraper, SystemScraperConfig
from hostmetrics.utils.errors import ScrapeError
from hostmetrics.utils.metrics import MetricType


cputimes = namedtuple("scputimes", ["user", "system", "idle"])
svmem = namedtuple("svmem", ["total", "available", "percent", "used", "free", "buffers", "cached"])
svmem_darwin = namedtuple(
    "svmem_darwin", ["total", "available", "percent", "used", "free", "buffers", "cached", "inactive"]
)
sswap = namedtuple("sswap", ["total", "used", "free", "percent", "sin", "sout"])
sdiskio = namedtuple("sdiskio", [
    "read_count", "write_count", "read_bytes", "write_bytes", "read_time", "write_time",
    "read_merged_count", "write_merged_count", "busy_time"
])
sdiskpart = namedtuple("sdiskpart", ["device", "mountpoint", "fstype", "opts"])
sdiskusage = namedtuple("sdiskusage", ["total", "used", "free", "percent"])
snetio = namedtuple("snetio", [
    "bytes_sent", "bytes_recv", "packets_sent", "packets_recv", "errin", "errout", "dropin", "dropout"
])


def points(result, name):
    """(attributes, value) pairs of one metric."""
    for metric in result.metrics:
        if metric.name == name:
            return [(p.attributes, p.value) for p in metric.data_points]
    return []


def value(result, name, **attributes):
    for attrs, v in points(result, name):
        if all(attrs.get(k) == want for k, want in attributes.items()):
            return v
    raise AssertionError(f"no {name} point with {attributes}")


class TestLoadScraper:

    def test_load_averages(self, logger):
        with patch('hostmetrics.scrapers.load.psutil') as mock_psutil:
            mock_psutil.getloadavg.return_value = (1.0, 2.0, 4.0)
            result = LoadScraper(LoadScraperConfig(), logger).scrape()

        assert value(result, "system.cpu.load_average.1m") == 1.0
        assert value(result, "system.cpu.load_average.5m") == 2.0
        assert value(result, "system.cpu.load_average.15m") == 4.0

    def test_cpu_average_divides_by_cpu_count(self, logger):
        with patch('hostmetrics.scrapers.load.psutil') as mock_psutil:
            mock_psutil.getloadavg.return_value = (1.0, 2.0, 4.0)
            mock_psutil.cpu_count.return_value = 4
            result = LoadScraper(LoadScraperConfig(cpu_average=True), logger).scrape()

        assert value(result, "system.cpu.load_average.1m") == 0.25
        assert value(result, "system.cpu.load_average.15m") == 1.0


class TestCPUScraper:

    def test_first_pass_reports_times_only(self, logger):
        with patch('hostmetrics.scrapers.cpu.psutil') as mock_psutil:
            mock_psutil.cpu_times.return_value = [cputimes(10.0, 5.0, 85.0), cputimes(20.0, 10.0, 70.0)]
            mock_psutil.cpu_count.return_value = 2
            result = CPUScraper(CPUScraperConfig(), logger).scrape()

        assert value(result, "system.cpu.time", cpu="cpu1", state="user") == 20.0
        assert points(result, "system.cpu.utilization") == []
        assert value(result, "system.cpu.logical.count") == 2

    def test_utilization_from_previous_pass(self, logger):
        scraper = CPUScraper(CPUScraperConfig(per_cpu=False), logger)

        with patch('hostmetrics.scrapers.cpu.psutil') as mock_psutil:
            mock_psutil.cpu_times.side_effect = [cputimes(10.0, 10.0, 80.0), cputimes(40.0, 20.0, 140.0)]
            mock_psutil.cpu_count.return_value = 1
            scraper.scrape()
            result = scraper.scrape()

        assert value(result, "system.cpu.utilization", state="user") == pytest.approx(0.3)
        assert value(result, "system.cpu.utilization", state="system") == pytest.approx(0.1)
        assert value(result, "system.cpu.utilization", state="idle") == pytest.approx(0.6)
        for attrs, _ in points(result, "system.cpu.time"):
            assert "cpu" not in attrs

    def test_cpu_time_is_monotonic_sum(self, logger):
        with patch('hostmetrics.scrapers.cpu.psutil') as mock_psutil:
            mock_psutil.cpu_times.return_value = [cputimes(1.0, 1.0, 1.0)]
            mock_psutil.cpu_count.return_value = 1
            result = CPUScraper(CPUScraperConfig(), logger).scrape()

        metric = next(m for m in result.metrics if m.name == "system.cpu.time")
        assert metric.type is MetricType.SUM
        assert metric.monotonic is True
        assert metric.data_points[0].start_timestamp is not None


class TestMemoryScraper:

    def test_usage_and_utilization(self, logger):
        with patch('hostmetrics.scrapers.memory.psutil') as mock_psutil:
            mock_psutil.LINUX = True
            mock_psutil.virtual_memory.return_value = svmem(1000, 600, 40.0, 300, 400, 100, 200)
            result = MemoryScraper(MemoryScraperConfig(), logger).scrape()

        assert value(result, "system.memory.usage", state="used") == 300
        assert value(result, "system.memory.usage", state="buffered") == 100
        assert value(result, "system.memory.utilization", state="free") == 0.4
        assert value(result, "system.memory.limit") == 1000

    def test_linux_states_do_not_overlap(self, logger):
        vmem = svmem_darwin(1000, 600, 40.0, 300, 400, 50, 100, 250)
        with patch('hostmetrics.scrapers.memory.psutil') as mock_psutil:
            mock_psutil.LINUX = True
            mock_psutil.virtual_memory.return_value = vmem
            result = MemoryScraper(MemoryScraperConfig(), logger).scrape()

        utilization = next(m for m in result.metrics if m.name == "system.memory.utilization")
        assert "inactive" not in {p.attributes["state"] for p in utilization.data_points}
        assert sum(p.value for p in utilization.data_points) <= 1.0

    def test_darwin_reports_inactive(self, logger):
        vmem = svmem_darwin(1000, 600, 40.0, 300, 400, 0, 0, 250)
        with patch('hostmetrics.scrapers.memory.psutil') as mock_psutil:
            mock_psutil.LINUX = False
            mock_psutil.MACOS = True
            mock_psutil.virtual_memory.return_value = vmem
            result = MemoryScraper(MemoryScraperConfig(), logger).scrape()

        assert value(result, "system.memory.usage", state="inactive") == 250
        assert value(result, "system.memory.usage", state="used") == 300

    def test_zero_total_is_fatal(self, logger):
        with patch('hostmetrics.scrapers.memory.psutil') as mock_psutil:
            mock_psutil.virtual_memory.return_value = svmem(0, 0, 0.0, 0, 0, 0, 0)
            with pytest.raises(ScrapeError):
                MemoryScraper(MemoryScraperConfig(), logger).scrape()


class TestPagingScraper:

    def test_swap_usage_and_io(self, logger):
        with patch('hostmetrics.scrapers.paging.psutil') as mock_psutil:
            mock_psutil.swap_memory.return_value = sswap(1000, 250, 750, 25.0, 4096, 8192)
            result = PagingScraper(PagingScraperConfig(), logger).scrape()

        assert value(result, "system.paging.usage", state="used") == 250
        assert value(result, "system.paging.utilization", state="used") == 0.25
        assert value(result, "system.paging.io", direction="page_in") == 4096
        assert value(result, "system.paging.io", direction="page_out") == 8192

    def test_no_swap_skips_utilization(self, logger):
        with patch('hostmetrics.scrapers.paging.psutil') as mock_psutil:
            mock_psutil.swap_memory.return_value = sswap(0, 0, 0, 0.0, 0, 0)
            result = PagingScraper(PagingScraperConfig(), logger).scrape()

        assert points(result, "system.paging.utilization") == []
        assert value(result, "system.paging.usage", state="free") == 0


class TestSystemScraper:

    def test_uptime(self, logger):
        with patch('hostmetrics.scrapers.system.boot_time', return_value=1000.0), \
                patch('hostmetrics.scrapers.system.time.time', return_value=1060.0):
            result = SystemScraper(SystemScraperConfig(), logger).scrape()

        assert value(result, "system.uptime") == 60.0


class TestDiskScraper:

    def test_device_counters_with_filter(self, logger):
        config = DiskScraperConfig.model_validate({
            "devices": {"exclude": {"names": ["^loop"], "match_type": "regexp"}}
        })
        counters = {
            "sda": sdiskio(10, 20, 1000, 2000, 1500, 500, 1, 2, 3000),
            "loop0": sdiskio(1, 1, 1, 1, 1, 1, 0, 0, 1),
        }

        with patch('hostmetrics.scrapers.disk.psutil') as mock_psutil:
            mock_psutil.disk_io_counters.return_value = counters
            result = DiskScraper(config, logger).scrape()

        devices = {attrs["device"] for attrs, _ in points(result, "system.disk.io")}
        assert devices == {"sda"}
        assert value(result, "system.disk.io", device="sda", direction="write") == 2000
        assert value(result, "system.disk.operation_time", device="sda", direction="read") == 1.5
        assert value(result, "system.disk.io_time", device="sda") == 3.0
        assert value(result, "system.disk.merged", device="sda", direction="write") == 2

    def test_no_disks(self, logger):
        with patch('hostmetrics.scrapers.disk.psutil') as mock_psutil:
            mock_psutil.disk_io_counters.return_value = None
            result = DiskScraper(DiskScraperConfig(), logger).scrape()

        assert result.metrics == []


class TestFilesystemScraper:

    @pytest.fixture
    def partitions(self):
        return [
            sdiskpart("/dev/sda1", "/", "ext4", "rw,relatime"),
            sdiskpart("/dev/sdb1", "/data", "xfs", "ro"),
            sdiskpart("tmpfs", "/run", "tmpfs", "rw"),
        ]

    def test_unreadable_mount_is_partial(self, logger, partitions):
        def usage(path):
            if path == "/data":
                raise PermissionError("denied")
            return sdiskusage(1000, 600, 300, 60.0)

        config = FilesystemScraperConfig.model_validate({"fs_types": {"exclude": {"names": ["tmpfs"]}}})

        with patch('hostmetrics.scrapers.filesystem.psutil') as mock_psutil, \
                patch('hostmetrics.scrapers.filesystem.os.statvfs', return_value=Mock(f_files=100, f_ffree=40)):
            mock_psutil.disk_partitions.return_value = partitions
            mock_psutil.disk_usage.side_effect = usage
            result = FilesystemScraper(config, logger).scrape()

        assert [e.item for e in result.errors] == ["/data"]
        mounts = {attrs["mountpoint"] for attrs, _ in points(result, "system.filesystem.usage")}
        assert mounts == {"/"}
        assert value(result, "system.filesystem.usage", state="reserved") == 100
        assert value(result, "system.filesystem.utilization", mountpoint="/") == 0.6
        assert value(result, "system.filesystem.inodes.usage", state="used") == 60

    def test_root_path_translates_usage_lookup(self, logger, partitions):
        with patch('hostmetrics.scrapers.filesystem.psutil') as mock_psutil, \
                patch('hostmetrics.scrapers.filesystem.os.statvfs', return_value=Mock(f_files=1, f_ffree=1)):
            mock_psutil.disk_partitions.return_value = partitions[1:2]
            mock_psutil.disk_usage.return_value = sdiskusage(100, 50, 50, 50.0)
            result = FilesystemScraper(FilesystemScraperConfig(), logger, root_path="/hostfs").scrape()

        mock_psutil.disk_usage.assert_called_once_with("/hostfs/data")
        assert value(result, "system.filesystem.usage", state="used", mode="ro") == 50
        assert points(result, "system.filesystem.usage")[0][0]["mountpoint"] == "/data"

    def test_mountinfo_override_disables_translation(self, logger):
        scraper = FilesystemScraper(
            FilesystemScraperConfig(), logger,
            root_path="/hostfs",
            host_paths={"HOST_PROC_MOUNTINFO": "/hostfs/proc/1"}
        )
        assert scraper._translate("/data") == "/data"


class TestNetworkScraper:

    def test_interface_counters_and_connections(self, logger):
        config = NetworkScraperConfig.model_validate({"interfaces": {"exclude": {"names": ["lo"]}}})

        with patch('hostmetrics.scrapers.network.psutil') as mock_psutil:
            mock_psutil.AccessDenied = psutil.AccessDenied
            mock_psutil.net_io_counters.return_value = {
                "eth0": snetio(100, 200, 1, 2, 3, 4, 5, 6),
                "lo": snetio(9, 9, 9, 9, 9, 9, 9, 9),
            }
            mock_psutil.net_connections.return_value = [
                Mock(status="ESTABLISHED"), Mock(status="ESTABLISHED"), Mock(status="LISTEN")
            ]
            result = NetworkScraper(config, logger).scrape()

        assert not result.partial
        assert value(result, "system.network.io", device="eth0", direction="transmit") == 100
        assert value(result, "system.network.errors", device="eth0", direction="receive") == 3
        assert value(result, "system.network.dropped", device="eth0", direction="transmit") == 6
        assert {attrs["device"] for attrs, _ in points(result, "system.network.packets")} == {"eth0"}
        assert value(result, "system.network.connections", state="ESTABLISHED") == 2
        assert value(result, "system.network.connections", state="LISTEN") == 1

    def test_connections_denied_is_partial(self, logger):
        with patch('hostmetrics.scrapers.network.psutil') as mock_psutil:
            mock_psutil.AccessDenied = psutil.AccessDenied
            mock_psutil.net_io_counters.return_value = {"eth0": snetio(1, 1, 1, 1, 0, 0, 0, 0)}
            mock_psutil.net_connections.side_effect = psutil.AccessDenied()
            result = NetworkScraper(NetworkScraperConfig(), logger).scrape()

        assert [e.item for e in result.errors] == ["connections"]
        assert points(result, "system.network.connections") == []
        assert value(result, "system.network.io", direction="receive") == 1


class TestProcessesScraper:

    def test_counts_by_status(self, logger):
        procs = [
            Mock(info={"status": psutil.STATUS_RUNNING}),
            Mock(info={"status": psutil.STATUS_SLEEPING}),
            Mock(info={"status": psutil.STATUS_SLEEPING}),
            Mock(info={"status": psutil.STATUS_ZOMBIE}),
            Mock(info={"status": None}),
        ]

        with patch.object(psutil, 'process_iter', return_value=procs):
            result = ProcessesScraper(ProcessesScraperConfig(), logger).scrape()

        assert value(result, "system.processes.count", status="running") == 1
        assert value(result, "system.processes.count", status="sleeping") == 2
        assert value(result, "system.processes.count", status="zombies") == 1
        assert len(points(result, "system.processes.count")) == 3
