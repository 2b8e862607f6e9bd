import sys

import pytest

from kwsan.core.inventory import LSBLK_COMMAND, list_block_devices
from kwsan.core.probe import Capability, probe_capabilities
from kwsan.core.selection import Method, select_method
from kwsan.utils.command import EXIT_CANNOT_EXECUTE, EXIT_NOT_FOUND, CommandRunner, SimulationMode
from kwsan.utils.types import BusClass


def simulator(**params):
    runner = CommandRunner(SimulationMode.SIMULATE, colored_output=False)
    runner.set_simulation_params(params)
    return runner

# ---------------------------------------------------------------------------
# Simulated queries
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("disk_type,path,bus", [
    ("nvme", "/dev/nvme0n1", BusClass.NVME),
    ("ssd", "/dev/sda", BusClass.SATA_SSD),
    ("hdd", "/dev/sda", BusClass.SATA_HDD),
])
def test_simulated_inventory(disk_type, path, bus):
    (device,) = list_block_devices(simulator(disk_type=disk_type))
    assert device.path == path
    assert device.bus is bus
    assert device.size_bytes == 500107862016
    assert device.serial.startswith("SIM")


def test_simulated_disk_size():
    (device,) = list_block_devices(simulator(disk_type="ssd", disk_size="1T"))
    assert device.size_bytes == 1024**4


def test_simulated_disk_size_in_bytes():
    (device,) = list_block_devices(simulator(disk_type="hdd", disk_size="512B"))
    assert device.size_bytes == 512


@pytest.mark.parametrize("disk_type,capability,expected", [
    ("nvme", "crypto", Method.NVME_CRYPTO_ERASE),
    ("nvme", "format", Method.NVME_USER_DATA_ERASE),
    ("nvme", "none", Method.NOT_SUPPORTED),
    ("ssd", "sanitize", Method.ATA_SANITIZE),
    ("hdd", "enhanced", Method.ATA_ENHANCED_SECURITY_ERASE),
    ("hdd", "security", Method.ATA_SECURITY_ERASE),
    ("ssd", "none", Method.NOT_SUPPORTED),
])
def test_simulated_capabilities_select_expected_method(disk_type, capability, expected):
    runner = simulator(disk_type=disk_type, capability=capability)
    (device,) = list_block_devices(runner)

    probe = probe_capabilities(device.path, device.bus, runner)

    assert select_method(device.path, device.bus, probe, "Kindworks").method is expected


def test_simulated_nvme_text_output_matches_json():
    runner = simulator(disk_type="nvme", capability="format")
    result = runner.query(["nvme", "id-ctrl", "-H", "/dev/nvme0n1"])
    assert "Format NVM Supported" in result.stdout
    assert "Crypto Erase Not Supported" in result.stdout


def test_simulated_hdparm_is_not_frozen():
    probe = probe_capabilities("/dev/sda", BusClass.SATA_SSD, simulator(disk_type="ssd"))
    assert probe.frozen is False
    assert Capability.SANITIZE in probe.capabilities

# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def test_simulated_execute_returns_configured_status():
    runner = simulator(exit_status=4)
    assert runner.execute(["nvme", "format", "/dev/nvme0n1", "-s", "2"]) == 4
    assert runner.commands_run[-1] == {"command": ["nvme", "format", "/dev/nvme0n1", "-s", "2"],
                                       "simulated": True}


def test_execute_returns_exit_status():
    runner = CommandRunner(SimulationMode.DISABLED, colored_output=False)
    assert runner.execute([sys.executable, "-c", "raise SystemExit(3)"]) == 3
    assert runner.execute([sys.executable, "-c", "pass"]) == 0


def test_execute_missing_binary():
    runner = CommandRunner(SimulationMode.DISABLED, colored_output=False)
    assert runner.execute(["/nonexistent/kwsan-erase-tool"]) == EXIT_NOT_FOUND


def test_execute_file_without_exec_permission(tmp_path):
    script = tmp_path / "erase-tool"
    script.write_text("#!/bin/sh\nexit 0\n")
    script.chmod(0o644)
    runner = CommandRunner(SimulationMode.DISABLED, colored_output=False)
    assert runner.execute([str(script)]) == EXIT_CANNOT_EXECUTE


def test_query_does_not_raise_on_failure():
    runner = CommandRunner(SimulationMode.DISABLED, colored_output=False)
    result = runner.query([sys.executable, "-c", "import sys; print('out'); sys.exit(2)"])
    assert result.returncode == 2
    assert result.stdout.strip() == "out"

# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

def test_simulation_report_lists_commands():
    runner = simulator(disk_type="nvme")
    runner.query(LSBLK_COMMAND)
    runner.execute(["nvme", "format", "/dev/nvme0n1", "-s", "2"])

    report = runner.get_simulation_report()

    assert f"SIMULATION REPORT [ID: {runner.simulation_id}]" in report
    assert "LSBLK COMMANDS:" in report
    assert "1. nvme format /dev/nvme0n1 -s 2" in report
    assert "Total commands recorded: 2" in report


def test_report_outside_simulation():
    runner = CommandRunner(SimulationMode.DISABLED)
    assert runner.get_simulation_report() == "Simulation mode is not active."
