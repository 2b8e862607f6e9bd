"""
Sanitization method selection.

This module decides which hardware erase command is the strongest one a
drive supports. The decision is a single first-match pass over a fixed
priority list per bus class, ordered by NIST 800-88 Purge strength.
"""
import logging
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple, Union

from kwsan.core.probe import Capability, ProbeResult, ProbeStatus
from kwsan.utils.types import BusClass

logger = logging.getLogger('kwsan')


class Method(Enum):
    """Sanitization methods, valued by the label printed on certificates"""
    NVME_CRYPTO_ERASE = "NIST 800-88 Purge: NVMe Cryptographic Erase"
    NVME_USER_DATA_ERASE = "NIST 800-88 Purge: NVMe User Data Erase"
    ATA_SANITIZE = "NIST 800-88 Purge: ATA SANITIZE"
    ATA_ENHANCED_SECURITY_ERASE = "NIST 800-88 Purge: ATA Enhanced Security Erase"
    ATA_SECURITY_ERASE = "NIST 800-88 Purge: ATA Security Erase"
    NOT_SUPPORTED = "Not supported"


@dataclass(frozen=True)
class Command:
    """
    Structured erase invocation tagged with the method it implements.

    Each step is an argv tuple executed directly, without a shell. Steps run
    in order and the command stops at the first step that fails.
    """
    method: Method
    steps: Tuple[Tuple[str, ...], ...] = ()
    # Run by the operator after the erase, never executed by kwsan
    follow_up: Tuple[str, ...] = ()

    def __post_init__(self):
        if (self.method is Method.NOT_SUPPORTED) != (not self.steps):
            raise ValueError(
                f"Command for {self.method.name} must "
                f"{'not ' if self.method is Method.NOT_SUPPORTED else ''}have steps"
            )
        if self.follow_up and not self.steps:
            raise ValueError(f"Command for {self.method.name} has a follow-up but no steps")

    def __bool__(self) -> bool:
        return bool(self.steps)

    def argv(self) -> List[List[str]]:
        """Return the steps as fresh argv lists"""
        return [list(step) for step in self.steps]

    def render(self) -> str:
        """Render the command as a shell-quoted line, for display only"""
        return " && ".join(shlex.join(step) for step in self.steps)

    def render_follow_up(self) -> str:
        return shlex.join(self.follow_up) if self.follow_up else ""

    @classmethod
    def not_supported(cls) -> "Command":
        return cls(Method.NOT_SUPPORTED)


@dataclass(frozen=True)
class Selection:
    """Outcome of method selection for a single device"""
    method: Method
    command: Command
    description: str

    def __post_init__(self):
        if self.command.method is not self.method:
            raise ValueError("Command does not belong to the selected method")


def nvme_format_command(method: Method, device: str, ses: int) -> Command:
    """Build an `nvme format` command with the given secure erase setting"""
    return Command(method, (("nvme", "format", device, "-s", str(ses)),))


def ata_erase_command(
    method: Method,
    device: str,
    password: str,
    erase: List[str],
    clears_password: bool = True,
) -> Command:
    """
    Build an ATA erase command.

    ATA erase commands only run once a user password is set, so the first
    step always sets the temporary password. A security erase clears that
    password again. For erases that do not, the command carries a
    `--security-disable` follow-up for the operator.
    """
    set_pass = ("hdparm", "--user-master", "u", "--security-set-pass", password, device)
    follow_up: Tuple[str, ...] = ()
    if not clears_password:
        follow_up = ("hdparm", "--user-master", "u", "--security-disable", password, device)
    return Command(method, (set_pass, ("hdparm", *erase, device)), follow_up)


CommandBuilder = Callable[[str, str], Command]

COMMAND_BUILDERS: Dict[Method, CommandBuilder] = {
    Method.NVME_CRYPTO_ERASE: lambda dev, pw: nvme_format_command(
        Method.NVME_CRYPTO_ERASE, dev, 2),
    Method.NVME_USER_DATA_ERASE: lambda dev, pw: nvme_format_command(
        Method.NVME_USER_DATA_ERASE, dev, 1),
    # hdparm's SANITIZE commands take no password argument and leave it set
    Method.ATA_SANITIZE: lambda dev, pw: ata_erase_command(
        Method.ATA_SANITIZE, dev, pw,
        ["--yes-i-know-what-i-am-doing", "--sanitize-block-erase"],
        clears_password=False),
    Method.ATA_ENHANCED_SECURITY_ERASE: lambda dev, pw: ata_erase_command(
        Method.ATA_ENHANCED_SECURITY_ERASE, dev, pw,
        ["--user-master", "u", "--security-erase-enhanced", pw]),
    Method.ATA_SECURITY_ERASE: lambda dev, pw: ata_erase_command(
        Method.ATA_SECURITY_ERASE, dev, pw,
        ["--user-master", "u", "--security-erase", pw]),
}

# Strongest first
NVME_PRIORITY: List[Tuple[Capability, Method]] = [
    (Capability.CRYPTO_ERASE, Method.NVME_CRYPTO_ERASE),
    (Capability.FORMAT_NVM, Method.NVME_USER_DATA_ERASE),
]

SATA_PRIORITY: List[Tuple[Capability, Method]] = [
    (Capability.SANITIZE, Method.ATA_SANITIZE),
    (Capability.ENHANCED_SECURITY_ERASE, Method.ATA_ENHANCED_SECURITY_ERASE),
    (Capability.SECURITY_ERASE, Method.ATA_SECURITY_ERASE),
]

QUERY_FAILED_DESCRIPTIONS = {
    True: "Failed to query NVMe drive.",
    False: "Failed to query SATA drive with hdparm.",
}

NO_SUPPORT_DESCRIPTIONS = {
    True: "No hardware format support found. Use software wipe.",
    False: "No hardware wipe support found. Use software wipe (nwipe).",
}


def select_method(
    device: str,
    bus: BusClass,
    probe: Union[ProbeResult, ProbeStatus],
    ata_password: str,
) -> Selection:
    """
    Select the strongest sanitization method supported by a device.

    Args:
        device: Path to the disk device
        bus: Bus class of the device
        probe: Probe result, or ProbeStatus.FAILED if the query failed
        ata_password: Temporary password used by ATA erase commands

    Returns:
        Selection with the method, its command and a description. Failed
        probes and missing capabilities both select Method.NOT_SUPPORTED.
    """
    if probe is ProbeStatus.FAILED:
        logger.debug(f"Capability query failed for {device}")
        return Selection(Method.NOT_SUPPORTED, Command.not_supported(),
                         QUERY_FAILED_DESCRIPTIONS[bus.is_nvme])

    priority = NVME_PRIORITY if bus.is_nvme else SATA_PRIORITY
    for capability, method in priority:
        if capability in probe.capabilities:
            logger.debug(f"{device}: {capability.value} present, selecting {method.name}")
            command = COMMAND_BUILDERS[method](device, ata_password)
            return Selection(method, command, method.value)

    logger.debug(f"{device}: no hardware erase capability found")
    return Selection(Method.NOT_SUPPORTED, Command.not_supported(),
                     NO_SUPPORT_DESCRIPTIONS[bus.is_nvme])
