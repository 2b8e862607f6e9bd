"""
Drive capability probing.

This module queries a drive's native interface for the security features
relevant to sanitization: NVMe controller identify for NVMe drives and ATA
identify device for SATA drives. Probing is read-only.
"""
import logging
import re
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Pattern, Tuple, Union

import orjson

from kwsan.core.exceptions import ProbeFailure
from kwsan.utils.command import CommandRunner
from kwsan.utils.format import TermColors, colorize
from kwsan.utils.types import BusClass, NvmeIdCtrl

logger = logging.getLogger('kwsan')

# Identify Controller bits (NVMe base specification)
OACS_FORMAT_NVM = 1 << 1
FNA_CRYPTO_ERASE = 1 << 2


class Capability(Enum):
    """Security features relevant to method selection"""
    CRYPTO_ERASE = "crypto erase"
    FORMAT_NVM = "format nvm"
    SANITIZE = "sanitize"
    ENHANCED_SECURITY_ERASE = "enhanced security erase"
    SECURITY_ERASE = "security erase"


class ProbeStatus(Enum):
    """Sentinel for a capability query that could not be read"""
    FAILED = "failed"


@dataclass(frozen=True)
class ProbeResult:
    """Capabilities detected on a device, with the raw query output"""
    bus: BusClass
    capabilities: FrozenSet[Capability]
    raw: str = field(repr=False, default="")
    source: str = "text"
    frozen: bool = False


# Text markers, scanned only when no structured output is available
NVME_TEXT_MARKERS: List[Tuple[Pattern[str], Capability]] = [
    (re.compile(r"Crypto Erase Supported"), Capability.CRYPTO_ERASE),
    (re.compile(r"Format NVM (Attributes|Supported)"), Capability.FORMAT_NVM),
]

SATA_TEXT_MARKERS: List[Tuple[Pattern[str], Capability]] = [
    (re.compile(r"SANITIZE feature set"), Capability.SANITIZE),
    # hdparm prints "not<TAB>supported: enhanced erase" when it is missing
    (re.compile(r"^\s*supported: enhanced erase", re.MULTILINE), Capability.ENHANCED_SECURITY_ERASE),
    (re.compile(r"security erase unit", re.IGNORECASE), Capability.SECURITY_ERASE),
]

FROZEN_PATTERN = re.compile(r"^\s*frozen\s*$", re.MULTILINE)


def capabilities_from_text(bus: BusClass, text: str) -> FrozenSet[Capability]:
    """
    Scan free-form identify output for capability markers.

    Args:
        bus: Bus class the output was produced for
        text: Output of `nvme id-ctrl -H` or `hdparm -I`

    Returns:
        Every capability whose marker appears in the text
    """
    markers = NVME_TEXT_MARKERS if bus.is_nvme else SATA_TEXT_MARKERS
    return frozenset(cap for pattern, cap in markers if pattern.search(text))


def _id_ctrl_field(id_ctrl: NvmeIdCtrl, name: str) -> int:
    value = id_ctrl.get(name, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"id-ctrl field {name!r} is not an integer: {value!r}")
    return value


def capabilities_from_id_ctrl(id_ctrl: NvmeIdCtrl) -> FrozenSet[Capability]:
    """
    Read capabilities from the decoded `nvme id-ctrl -o json` output.

    Missing fields count as zero.

    Raises:
        ValueError: If a present field is not an integer
    """
    caps = set()
    if _id_ctrl_field(id_ctrl, "fna") & FNA_CRYPTO_ERASE:
        caps.add(Capability.CRYPTO_ERASE)
    if _id_ctrl_field(id_ctrl, "oacs") & OACS_FORMAT_NVM:
        caps.add(Capability.FORMAT_NVM)
    return frozenset(caps)


def is_security_frozen(text: str) -> bool:
    """Check whether `hdparm -I` reports the security feature set as frozen"""
    return FROZEN_PATTERN.search(text) is not None


def _query(cmd: List[str], cmd_runner: CommandRunner) -> str:
    """
    Run a read-only identify query.

    Raises:
        ProbeFailure: If the command cannot run, fails, or prints nothing
    """
    try:
        result = cmd_runner.query(cmd)
    except (OSError, subprocess.SubprocessError) as e:
        raise ProbeFailure(f"{cmd[0]} could not be run: {e}")

    if result.returncode != 0:
        raise ProbeFailure(f"{' '.join(cmd)} exited with status {result.returncode}: "
                           f"{(result.stderr or '').strip()}")
    if not (result.stdout or "").strip():
        raise ProbeFailure(f"{' '.join(cmd)} returned no output")
    return result.stdout


def _probe_nvme(device: str, cmd_runner: CommandRunner) -> ProbeResult:
    # Structured output first, human-readable text as a fallback
    try:
        raw = _query(["nvme", "id-ctrl", device, "-o", "json"], cmd_runner)
        id_ctrl = orjson.loads(raw)
        if not isinstance(id_ctrl, dict):
            raise ValueError("unexpected JSON document")
        return ProbeResult(BusClass.NVME, capabilities_from_id_ctrl(id_ctrl), raw, "json")
    except (ProbeFailure, ValueError, TypeError) as e:
        logger.debug(f"Structured id-ctrl unavailable for {device}, falling back to text: {e}")

    raw = _query(["nvme", "id-ctrl", "-H", device], cmd_runner)
    return ProbeResult(BusClass.NVME, capabilities_from_text(BusClass.NVME, raw), raw, "text")


def _probe_sata(device: str, bus: BusClass, cmd_runner: CommandRunner) -> ProbeResult:
    raw = _query(["hdparm", "-I", device], cmd_runner)
    return ProbeResult(bus, capabilities_from_text(bus, raw), raw, "text",
                       frozen=is_security_frozen(raw))


def probe_capabilities(
    device: str,
    bus: BusClass,
    cmd_runner: CommandRunner,
) -> Union[ProbeResult, ProbeStatus]:
    """
    Query a device for its sanitization capabilities.

    Args:
        device: Path to the disk device
        bus: Bus class of the device, which decides the query interface
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        ProbeResult, or ProbeStatus.FAILED if the query could not be read
    """
    try:
        if bus.is_nvme:
            result = _probe_nvme(device, cmd_runner)
        else:
            result = _probe_sata(device, bus, cmd_runner)
    except ProbeFailure as e:
        logger.warning(colorize(f"Could not probe {device}: {e}",
                                TermColors.WARNING, cmd_runner.colored_output))
        return ProbeStatus.FAILED

    logger.debug(f"{device}: capabilities {sorted(c.value for c in result.capabilities)} "
                 f"(from {result.source})")
    return result
