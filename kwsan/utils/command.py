"""
Command execution utilities.

This module provides tools for executing external commands with simulation
support. Queries capture their output; erase commands inherit the terminal so
the operator sees the tool's own progress output.
"""
import logging
import os
import subprocess
import uuid
from enum import Enum
from typing import Any, Dict, List

import orjson

from kwsan.utils.format import TermColors, colorize, parse_size_spec
from kwsan.utils.types import SimulationParams

logger = logging.getLogger('kwsan')

# Default simulated disk: ~465.76 GiB
DEFAULT_SIM_SIZE = 500107862016

DEFAULT_SIM_CAPABILITY = {
    "nvme": "crypto",
    "ssd": "sanitize",
    "hdd": "enhanced",
}

# Exit statuses reported when a command cannot be started, as a shell would
EXIT_NOT_FOUND = 127
EXIT_CANNOT_EXECUTE = 126


class SimulationMode(Enum):
    """Enumeration for simulation modes"""
    DISABLED = 0  # Normal operation
    SIMULATE = 1  # Simulate operations


class CommandRunner:
    """
    Class responsible for command execution with simulation support.
    Acts as a wrapper around subprocess.run with additional functionality.
    """
    def __init__(self, simulation_mode: SimulationMode, colored_output: bool = True):
        """
        Initialize the command runner.

        Args:
            simulation_mode: Simulation mode to operate in
            colored_output: Whether to use colored output in terminal
        """
        self.simulation_mode = simulation_mode
        self.colored_output = colored_output
        self.commands_run: List[Dict[str, Any]] = []

        # Generate a unique simulation ID
        self.simulation_id = str(uuid.uuid4())[:8]

        # Simulation parameters
        self.simulation_params: SimulationParams = {}
        self.use_real_disk_info = False

    @property
    def simulating(self) -> bool:
        return self.simulation_mode == SimulationMode.SIMULATE

    def set_simulation_params(self, params: SimulationParams) -> None:
        """
        Set parameters for disk simulation.

        Args:
            params: Dictionary of simulation parameters
        """
        self.simulation_params = params

    def run(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        """
        Run a command or simulate running it.

        Args:
            cmd: Command to run as list of strings
            check: Whether to check for non-zero return code
            **kwargs: Additional arguments to pass to subprocess.run

        Returns:
            CompletedProcess instance from subprocess.run
        """
        cmd_str = ' '.join(cmd)
        logger.debug(f"Command requested: {cmd_str}")

        self.commands_run.append({"command": cmd.copy(), "simulated": self.simulating})

        if self.simulating:
            sim_prefix = colorize(f"[SIM:{self.simulation_id}]", TermColors.SIM, self.colored_output)
            logger.debug(f"{sim_prefix} Would execute: {cmd_str}")
            return self._simulate_command(cmd)

        return self._run_captured(cmd, check, **kwargs)

    def run_real(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        """
        Run a command for real, even in simulation mode.
        This is used for querying real disk information while simulating erases.

        Args:
            cmd: Command to run as list of strings
            check: Whether to check for non-zero return code
            **kwargs: Additional arguments to pass to subprocess.run

        Returns:
            CompletedProcess instance from subprocess.run
        """
        logger.debug(f"Running real command: {' '.join(cmd)}")
        self.commands_run.append({"command": cmd.copy(), "simulated": False})
        return self._run_captured(cmd, check, **kwargs)

    def query(self, cmd: List[str]) -> subprocess.CompletedProcess:
        """
        Run a read-only query without checking its return code.

        Queries are simulated in simulation mode unless real disk information
        was requested.
        """
        if self.simulating and self.use_real_disk_info:
            return self.run_real(cmd, check=False)
        return self.run(cmd, check=False)

    def execute(self, cmd: List[str]) -> int:
        """
        Execute a state-changing command and wait for it to finish.

        No timeout is applied: hardware erases can legitimately take hours.
        The command is always simulated in simulation mode.

        Args:
            cmd: Command to run as list of strings

        Returns:
            Exit status of the command
        """
        cmd_str = ' '.join(cmd)
        self.commands_run.append({"command": cmd.copy(), "simulated": self.simulating})

        if self.simulating:
            sim_prefix = colorize(f"[SIM:{self.simulation_id}]", TermColors.SIM, self.colored_output)
            logger.info(f"{sim_prefix} Would execute: {cmd_str}")
            return int(self.simulation_params.get("exit_status", 0))

        logger.debug(f"Executing: {cmd_str}")
        try:
            process = subprocess.Popen(cmd)
        except FileNotFoundError:
            logger.error(colorize(f"Command not found: {cmd[0]}", TermColors.ERROR, self.colored_output))
            return EXIT_NOT_FOUND
        except OSError as e:
            logger.error(colorize(f"Command could not be started: {cmd[0]}: {e}",
                                  TermColors.ERROR, self.colored_output))
            return EXIT_CANNOT_EXECUTE

        with process:
            while True:
                try:
                    return process.wait()
                except KeyboardInterrupt:
                    # The child gets the terminal's SIGINT itself; never kill it from here
                    logger.warning(colorize("Interrupt ignored: an erase in progress cannot be cancelled",
                                            TermColors.WARNING, self.colored_output))

    def _run_captured(self, cmd: List[str], check: bool, **kwargs) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd,
                check=check,
                text=True,
                capture_output=True,
                **kwargs
            )
        except subprocess.CalledProcessError as e:
            logger.error(colorize(f"Command failed: {' '.join(cmd)}", TermColors.ERROR, self.colored_output))
            logger.error(f"Return code: {e.returncode}")
            logger.error(f"Stdout: {e.stdout}")
            logger.error(f"Stderr: {e.stderr}")
            raise

    def _simulate_command(self, cmd: List[str]) -> subprocess.CompletedProcess:
        """
        Generate simulated output for a command.

        Args:
            cmd: Command to simulate

        Returns:
            CompletedProcess with simulated output
        """
        result = subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")

        cmd_name = os.path.basename(cmd[0]) if cmd else ""

        if cmd_name == "lsblk":
            return self._handle_lsblk_simulation(cmd, result)
        elif cmd_name == "nvme":
            return self._handle_nvme_simulation(cmd, result)
        elif cmd_name == "hdparm":
            return self._handle_hdparm_simulation(cmd, result)

        return result

    def _sim_disk_type(self) -> str:
        return str(self.simulation_params.get("disk_type", "nvme"))

    def _sim_capability(self) -> str:
        default = DEFAULT_SIM_CAPABILITY[self._sim_disk_type()]
        return str(self.simulation_params.get("capability", default))

    def _handle_lsblk_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate `lsblk -J` output with a single disk"""
        disk_type = self._sim_disk_type()

        size_bytes = DEFAULT_SIM_SIZE
        if "disk_size" in self.simulation_params:
            try:
                size_bytes = parse_size_spec(str(self.simulation_params["disk_size"]))
            except ValueError:
                logger.warning(f"Invalid simulated disk size, using {DEFAULT_SIM_SIZE} bytes")

        device = {
            "name": "nvme0n1" if disk_type == "nvme" else "sda",
            "model": f"SIMULATED {disk_type.upper()}",
            "size": size_bytes,
            "rota": disk_type == "hdd",
            "type": "disk",
            "serial": f"SIM{self.simulation_id.upper()}",
        }
        result.stdout = orjson.dumps({"blockdevices": [device]}).decode()
        return result

    def _handle_nvme_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate `nvme id-ctrl` output in JSON or human-readable form"""
        if "id-ctrl" not in cmd:
            return result

        capability = self._sim_capability()
        crypto = capability == "crypto"
        fmt = capability in ("crypto", "format")

        if "json" in cmd:
            result.stdout = orjson.dumps({
                "mn": "SIMULATED NVME",
                "sn": f"SIM{self.simulation_id.upper()}",
                "oacs": 0x2 if fmt else 0x0,
                "fna": 0x4 if crypto else 0x0,
            }).decode()
        else:
            result.stdout = (
                f"oacs      : {'0x2' if fmt else '0'}\n"
                f"  [1:1] : {'0x1' if fmt else '0'}\tFormat NVM {'Supported' if fmt else 'Not Supported'}\n"
                f"fna       : {'0x4' if crypto else '0'}\n"
                f"  [2:2] : {'0x1' if crypto else '0'}\tCrypto Erase "
                f"{'Supported' if crypto else 'Not Supported'} as part of Secure Erase\n"
            )
        return result

    def _handle_hdparm_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate `hdparm -I` identify output"""
        if "-I" not in cmd:
            return result

        capability = self._sim_capability()
        lines = ["ATA device, with non-removable media", f"\tModel Number:       SIMULATED {self._sim_disk_type().upper()}"]
        lines.append("Commands/features:")
        if capability == "sanitize":
            lines.append("\t   *\tSANITIZE feature set")
            lines.append("\t   *\tBLOCK_ERASE_EXT command")
        if capability != "none":
            lines.append("Security: ")
            lines.append("\tMaster password revision code = 65534")
            lines.append("\t\tsupported")
            lines.append("\tnot\tenabled")
            lines.append("\tnot\tlocked")
            lines.append("\tnot\tfrozen")
            if capability in ("sanitize", "enhanced"):
                lines.append("\t\tsupported: enhanced erase")
            else:
                lines.append("\tnot\tsupported: enhanced erase")
            lines.append("\t2min for SECURITY ERASE UNIT. 2min for ENHANCED SECURITY ERASE UNIT.")
        result.stdout = "\n".join(lines) + "\n"
        return result

    def get_simulation_report(self) -> str:
        """
        Generate a report of all simulated commands.

        Returns:
            Formatted string with report of simulated commands
        """
        if not self.simulating:
            return "Simulation mode is not active."

        report = []
        report.append("=" * 80)
        report.append(f"SIMULATION REPORT [ID: {self.simulation_id}]")
        report.append("=" * 80)
        report.append("")

        # Group commands by type
        command_groups: Dict[str, List[Dict[str, Any]]] = {}
        for cmd_record in self.commands_run:
            cmd = cmd_record["command"]
            cmd_type = os.path.basename(cmd[0]) if cmd else "unknown"
            command_groups.setdefault(cmd_type, []).append(cmd_record)

        for cmd_type, cmd_records in command_groups.items():
            report.append(f"{cmd_type.upper()} COMMANDS:")
            report.append("-" * 40)

            for i, cmd_record in enumerate(cmd_records, 1):
                marker = "" if cmd_record["simulated"] else " (real)"
                report.append(f"{i}. {' '.join(cmd_record['command'])}{marker}")

            report.append("")

        report.append("-" * 80)
        report.append(f"Total commands recorded: {len(self.commands_run)}")
        report.append("=" * 80)

        return "\n".join(report)
