"""
Validation utilities.

This module provides functions for validating prerequisites and operator input.
"""
import os
import re
import shutil
import logging
from typing import List, Optional

from kwsan.config import REQUIRED_TOOLS
from kwsan.core.exceptions import PreconditionError, ValidationError
from kwsan.utils.command import CommandRunner

logger = logging.getLogger('kwsan')

QUIT_CHOICES = ("q", "Q")


def check_prerequisites(cmd_runner: CommandRunner, use_real_disk_info: bool = False) -> None:
    """
    Check for required tools and permissions.

    Args:
        cmd_runner: CommandRunner instance for executing commands
        use_real_disk_info: Whether real disk info will be accessed even in simulation mode

    Raises:
        PreconditionError: If prerequisites are not met
    """
    # Determine if we need to check real prerequisites (either not simulating or using real disk info)
    check_real_prerequisites = not cmd_runner.simulating or use_real_disk_info

    if check_real_prerequisites and os.geteuid() != 0:
        if cmd_runner.simulating:
            raise PreconditionError("Root privileges required with --sim-use-real to query drives")
        raise PreconditionError("This tool must be run as root. Please use sudo.")

    # In pure simulation mode, just log what would be checked
    if not check_real_prerequisites:
        logger.info("Checking for required tools (simulated)")
        for tool in REQUIRED_TOOLS:
            logger.debug(f"Tool '{tool}' would be checked")
        return

    missing_tools: List[str] = [tool for tool in REQUIRED_TOOLS if not shutil.which(tool)]
    if missing_tools:
        raise PreconditionError(
            f"Missing required tools: {', '.join(missing_tools)}\n"
            "Please install them to continue (e.g., 'sudo apt-get install util-linux hdparm nvme-cli')"
        )


def parse_menu_choice(choice: str, drive_count: int) -> Optional[int]:
    """
    Validate a drive number typed at the menu prompt.

    Args:
        choice: What the operator typed
        drive_count: Number of drives listed in the menu

    Returns:
        Zero-based index of the selected drive, or None if the operator quit

    Raises:
        ValidationError: If the choice is not a listed drive number
    """
    choice = choice.strip()
    if choice in QUIT_CHOICES:
        return None
    if not re.fullmatch(r"[0-9]+", choice) or not 1 <= int(choice) <= drive_count:
        raise ValidationError(f"Invalid selection: {choice!r}")
    return int(choice) - 1


def validate_confirmation(expected: str, answer: str) -> None:
    """
    Check that the operator typed the device path exactly.

    The comparison is case-sensitive and nothing is trimmed.

    Raises:
        ValidationError: If the answer differs from the device path in any way
    """
    if answer != expected:
        raise ValidationError(f"expected {expected!r}, got {answer!r}")
