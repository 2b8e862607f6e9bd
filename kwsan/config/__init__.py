"""
Runtime configuration for kwsan.

This module holds the defaults and resolves the settings of a run from the
command line and the environment.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from kwsan.utils.command import CommandRunner

logger = logging.getLogger('kwsan')

# Temporary password for ATA security erase commands. Any string works; it
# only lives on the drive until the erase clears it.
DEFAULT_ATA_PASSWORD = "Kindworks"

REQUIRED_TOOLS = ["lsblk", "hdparm", "nvme"]

CERTIFICATE_PREFIX = "Sanitization-Cert"

ENV_ATA_PASSWORD = "KWSAN_ATA_PASSWORD"
ENV_CERT_DIR = "KWSAN_CERT_DIR"


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one run"""
    ata_password: str
    cert_dir: Path


def load_settings(args: Any, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Resolve settings from command line arguments and the environment.

    Command line flags win over environment variables, which win over defaults.

    Args:
        args: Command line arguments
        environ: Environment mapping, os.environ when not given

    Returns:
        Settings for this run

    Raises:
        ValueError: If the ATA password is empty
    """
    environ = os.environ if environ is None else environ

    ata_password = (getattr(args, "ata_password", None)
                    or environ.get(ENV_ATA_PASSWORD)
                    or DEFAULT_ATA_PASSWORD)
    if not ata_password.strip():
        raise ValueError("The ATA password must not be empty")

    cert_dir = getattr(args, "cert_dir", None) or environ.get(ENV_CERT_DIR) or os.getcwd()

    return Settings(ata_password=ata_password, cert_dir=Path(cert_dir))


def create_directory(
    path: Path,
    cmd_runner: CommandRunner,
    description: Optional[str] = None
) -> None:
    """
    Create a directory if it doesn't exist or log that it would be created in simulation mode.

    Args:
        path: Directory path to create
        cmd_runner: CommandRunner instance for executing commands
        description: Optional description of the directory for logging
    """
    desc = f"{description} " if description else ""

    if cmd_runner.simulating:
        logger.info(f"Would create {desc}directory: {path}")
    else:
        path.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Created {desc}directory: {path}")
