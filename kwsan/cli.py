"""
Command-line interface for kwsan.

This module handles argument parsing and orchestrates the sanitization process:
scan the drives, let the operator pick one, confirm and run the erase, then
issue the certificate.
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from kwsan.config import ENV_ATA_PASSWORD, ENV_CERT_DIR, Settings, load_settings
from kwsan.core.certificate import issue_certificate
from kwsan.core.drive import Drive
from kwsan.core.exceptions import InventoryError, PreconditionError, ValidationError
from kwsan.core.inventory import list_block_devices
from kwsan.core.probe import ProbeStatus, probe_capabilities
from kwsan.core.selection import select_method
from kwsan.core.workflow import AbortReason, run_workflow
from kwsan.utils.command import CommandRunner, SimulationMode
from kwsan.utils.format import TermColors, colorize, format_size_gb
from kwsan.utils.logging import setup_logging
from kwsan.utils.validation import check_prerequisites, parse_menu_choice

logger = logging.getLogger('kwsan')

EPILOG = f"""\
exit status:
  0  normal completion, including quitting, finding no drives, and erases
     that failed but still produced a certificate (the certificate is the
     record of the failure)
  1  missing privilege or tools, invalid selection, unsupported drive,
     or confirmation mismatch

environment:
  {ENV_ATA_PASSWORD}  temporary password for ATA security erase commands
  {ENV_CERT_DIR}      directory receiving the certificates
"""


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Arguments to parse, sys.argv[1:] when not given

    Returns:
        Namespace containing parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="kwsan",
        description="Sanitize drives with hardware erase commands according to NIST 800-88 "
                    "and produce a certificate of sanitization",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-l", "--list",
        action="store_true",
        help="List drives and their sanitization method, then exit"
    )

    parser.add_argument(
        "--cert-dir",
        type=Path,
        help=f"Directory receiving certificates (default: ${ENV_CERT_DIR} or the current directory)"
    )

    parser.add_argument(
        "--ata-password",
        help=f"Temporary password for ATA security erase (default: ${ENV_ATA_PASSWORD} or a built-in value)"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write the log to this file"
    )

    # Simulation options
    parser.add_argument(
        "-s", "--simulate",
        action="store_true",
        help="Simulate operations without making any changes to the system"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    simulation_group = parser.add_argument_group('Disk simulation options (only with --simulate)')
    simulation_group.add_argument(
        "--sim-disk-type",
        choices=["hdd", "ssd", "nvme"],
        default="nvme",
        help="Simulated disk type (default: nvme)"
    )

    simulation_group.add_argument(
        "--sim-disk-size",
        help="Simulated disk size (e.g., '500G', '1T')"
    )

    simulation_group.add_argument(
        "--sim-capability",
        choices=["crypto", "format", "sanitize", "enhanced", "security", "none"],
        help="Strongest erase capability reported by the simulated disk"
    )

    simulation_group.add_argument(
        "--sim-exit-status",
        type=int,
        default=0,
        help="Exit status returned by simulated erase commands (default: 0)"
    )

    simulation_group.add_argument(
        "--sim-use-real",
        action="store_true",
        help="Query the real drives, simulating only the erase commands"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def create_command_runner(args: argparse.Namespace) -> CommandRunner:
    """
    Create the command runner with the simulation mode requested on the command line.

    Args:
        args: Command line arguments

    Returns:
        Configured CommandRunner
    """
    cmd_runner = CommandRunner(
        SimulationMode.SIMULATE if args.simulate else SimulationMode.DISABLED,
        not args.no_color
    )

    if not args.simulate:
        return cmd_runner

    logger.info("Running in simulation mode - NO CHANGES WILL BE MADE")

    sim_params = {"disk_type": args.sim_disk_type, "exit_status": args.sim_exit_status}
    if args.sim_disk_size:
        sim_params["disk_size"] = args.sim_disk_size
        logger.info(f"Simulating disk size: {args.sim_disk_size}")
    if args.sim_capability:
        sim_params["capability"] = args.sim_capability
        logger.info(f"Simulating capability: {args.sim_capability}")
    logger.info(f"Simulating disk type: {args.sim_disk_type}")

    cmd_runner.set_simulation_params(sim_params)
    cmd_runner.use_real_disk_info = args.sim_use_real
    if args.sim_use_real:
        logger.info("Using the real drives even in simulation mode")

    return cmd_runner


def scan_drives(cmd_runner: CommandRunner, settings: Settings) -> List[Drive]:
    """
    Enumerate the drives and select the sanitization method of each one.

    Args:
        cmd_runner: CommandRunner instance for executing commands
        settings: Settings for this run

    Returns:
        Scanned drives, in enumeration order
    """
    logger.info("Scanning for drives...")

    drives = []
    for device in list_block_devices(cmd_runner):
        probe = probe_capabilities(device.path, device.bus, cmd_runner)
        selection = select_method(device.path, device.bus, probe, settings.ata_password)
        frozen = probe is not ProbeStatus.FAILED and probe.frozen
        drives.append(Drive(device, selection, security_frozen=frozen))
    return drives


def display_menu(drives: List[Drive], colored: bool = True) -> None:
    """
    Print the numbered list of drives and their sanitization method.

    Args:
        drives: Scanned drives
        colored: Whether to use colored output
    """
    print(colorize("\n--- Available Drives for Sanitization ---", TermColors.HEADER, colored))
    for number, drive in enumerate(drives, 1):
        print(f"  {number}: {drive.path} ({drive.model}, {format_size_gb(drive.size_bytes)}, {drive.bus.value})")
        color = TermColors.INFO if drive.supported else TermColors.WARNING
        print(f"     => Method: {colorize(drive.description, color, colored)}")
        if drive.security_frozen:
            print(colorize("     => Security is frozen: suspend/resume or power-cycle the drive first",
                           TermColors.WARNING, colored))
    print("-------------------------------------------")


def prompt_drive_choice(drive_count: int) -> Optional[int]:
    """
    Ask the operator which drive to sanitize.

    Returns:
        Zero-based index of the chosen drive, or None if the operator quit

    Raises:
        ValidationError: If the answer is not a listed drive number
    """
    try:
        choice = input("Enter the number of the drive to wipe (or 'q' to quit): ")
    except EOFError:
        return None
    return parse_menu_choice(choice, drive_count)


def prompt_confirmation(drive: Drive, colored: bool = True) -> str:
    """Show the irreversible-action warning and read the operator's confirmation"""
    print(colorize("\n!!! --- WARNING: IRREVERSIBLE ACTION --- !!!", TermColors.ERROR + TermColors.BOLD, colored))
    print(f"You are about to permanently erase all data on the drive: {drive.path}.")
    print(f"Method: {drive.method.value}")
    print("This action cannot be undone, and it cannot be interrupted once started.")
    print("Make sure no other sanitization session is using this drive.")
    try:
        return input(f"To confirm, please type the full drive name ('{drive.path}'): ")
    except EOFError:
        return ""


def display_simulation_summary(cmd_runner: CommandRunner) -> None:
    """
    Display a summary of the simulation.

    Args:
        cmd_runner: CommandRunner instance for executing commands
    """
    if not cmd_runner.simulating:
        return

    report = cmd_runner.get_simulation_report()

    try:
        terminal_width = os.get_terminal_size().columns
    except (AttributeError, OSError):
        terminal_width = 80

    stars = "*" * terminal_width
    colored = cmd_runner.colored_output

    print(f"\n{colorize(stars, TermColors.SIM, colored)}")
    print(colorize("SIMULATION COMPLETE - NO CHANGES WERE MADE", TermColors.SIM + TermColors.BOLD, colored))
    print(f"{colorize(stars, TermColors.SIM, colored)}\n")
    print(colorize("The following commands were recorded:", TermColors.SUCCESS, colored))
    print(report)
    print(f"\n{colorize('To execute these operations for real, run without the --simulate flag.', TermColors.SIM, colored)}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function.

    Returns:
        Exit code (0 for normal completion, non-zero for errors)
    """
    args = None
    try:
        args = parse_arguments(argv)

        setup_logging(args.debug, args.log_file)

        cmd_runner = create_command_runner(args)

        # Privilege and tools are checked once, before touching any device
        check_prerequisites(cmd_runner, args.sim_use_real if args.simulate else False)

        settings = load_settings(args)

        drives = scan_drives(cmd_runner, settings)
        if not drives:
            print("No suitable drives found.")
            return 0

        display_menu(drives, cmd_runner.colored_output)
        if args.list:
            return 0

        index = prompt_drive_choice(len(drives))
        if index is None:
            print("Quitting.")
            return 0

        record = run_workflow(drives[index], cmd_runner,
                              lambda drive: prompt_confirmation(drive, cmd_runner.colored_output))
        if record.aborted:
            if record.abort_reason is AbortReason.NOT_SUPPORTED:
                print("This drive cannot be wiped with a hardware command by this tool.")
                print("Please use a software-based tool like ShredOS/nwipe.")
            return 1

        issue_certificate(record, settings.cert_dir, cmd_runner)
        print("\nSanitization process finished.")
        follow_up = record.drive.command.render_follow_up()
        if follow_up:
            print(colorize("The ATA user password is still set on the drive and will lock it "
                           "after the next power cycle. Once the sanitize has finished, run:",
                           TermColors.WARNING, cmd_runner.colored_output))
            print(f"  {follow_up}")
        if not cmd_runner.simulating:
            print("Please fill in any missing details on the certificate and keep it for your records.")

        display_simulation_summary(cmd_runner)
        return 0

    except (PreconditionError, InventoryError, ValidationError) as e:
        logger.error(str(e))
        return 1

    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args is not None and args.debug:
            import traceback
            traceback.print_exc()
        return 1


# For module import compatibility
if __name__ == "__main__":
    sys.exit(main())
