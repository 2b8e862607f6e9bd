"""
Block device inventory.

This module enumerates the physical disks attached to the system from a
single `lsblk` snapshot.
"""
import logging
import subprocess
from typing import List, Union

import orjson

from kwsan.core.drive import BlockDevice
from kwsan.core.exceptions import InventoryError
from kwsan.utils.command import CommandRunner
from kwsan.utils.types import BusClass, LsblkRecord

logger = logging.getLogger('kwsan')

LSBLK_COMMAND = ["lsblk", "-d", "-b", "-J", "-o", "NAME,MODEL,SIZE,ROTA,TYPE,SERIAL"]

TRUE_STRINGS = {"1", "true", "yes"}


def _as_bool(value: Union[bool, str, int, None]) -> bool:
    # Older util-linux releases print ROTA as "0"/"1" strings in JSON mode
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def _as_size(value: Union[int, str, None]) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        return 0
    return max(size, 0)


def classify_bus(name: str, rotational: bool) -> BusClass:
    """
    Determine the bus class of a disk from its kernel name.

    Args:
        name: Kernel name of the disk (e.g., nvme0n1, sda)
        rotational: Whether the disk reports itself as rotational

    Returns:
        BusClass of the disk
    """
    if name.startswith("nvme"):
        return BusClass.NVME
    return BusClass.SATA_HDD if rotational else BusClass.SATA_SSD


def device_from_record(record: LsblkRecord) -> BlockDevice:
    """Build a BlockDevice from one lsblk JSON record"""
    name = record["name"]
    rotational = _as_bool(record.get("rota"))
    serial = (record.get("serial") or "").strip() or None
    return BlockDevice(
        path=f"/dev/{name}",
        model=(record.get("model") or "").strip() or "Unknown",
        size_bytes=_as_size(record.get("size")),
        rotational=rotational,
        bus=classify_bus(name, rotational),
        serial=serial,
    )


def parse_lsblk_output(output: str) -> List[BlockDevice]:
    """
    Parse `lsblk -J` output into block devices.

    Args:
        output: JSON text printed by lsblk

    Returns:
        Disks in the order lsblk reported them. Entries that are not whole
        disks (partitions, loop devices, ROM drives) are skipped.

    Raises:
        InventoryError: If the output is not the expected JSON document
    """
    try:
        document = orjson.loads(output)
        records = document["blockdevices"]
    except (orjson.JSONDecodeError, KeyError, TypeError) as e:
        raise InventoryError(f"Unexpected lsblk output: {e}")

    devices = []
    for record in records or []:
        if not isinstance(record, dict):
            continue
        if record.get("type") != "disk" or not record.get("name"):
            continue
        devices.append(device_from_record(record))
    return devices


def list_block_devices(cmd_runner: CommandRunner) -> List[BlockDevice]:
    """
    Enumerate the physical disks attached to the system.

    Args:
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        List of BlockDevice, possibly empty when no disks are attached

    Raises:
        InventoryError: If lsblk cannot be run or its output cannot be read
    """
    try:
        result = cmd_runner.query(LSBLK_COMMAND)
    except (OSError, subprocess.SubprocessError) as e:
        raise InventoryError(f"Could not run lsblk: {e}")

    if result.returncode != 0:
        raise InventoryError(f"lsblk failed with status {result.returncode}: {(result.stderr or '').strip()}")

    devices = parse_lsblk_output(result.stdout)
    logger.debug(f"Found {len(devices)} disk(s): {', '.join(d.path for d in devices)}")
    return devices
