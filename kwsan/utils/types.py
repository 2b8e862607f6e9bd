"""
Type definitions for kwsan.

This module provides TypedDict definitions, enums and other type aliases
for better type checking throughout the codebase.
"""
from enum import Enum
from typing import Dict, Optional, TypedDict, Union


class BusClass(Enum):
    """Bus class of a physical drive, valued by its display label"""
    NVME = "NVMe"
    SATA_HDD = "HDD"
    SATA_SSD = "SSD"

    @property
    def is_nvme(self) -> bool:
        return self is BusClass.NVME


class LsblkRecord(TypedDict, total=False):
    """One entry of the `blockdevices` array in `lsblk -J` output"""
    name: str
    model: Optional[str]
    size: Union[int, str, None]
    rota: Union[bool, str, None]
    type: str
    serial: Optional[str]


class NvmeIdCtrl(TypedDict, total=False):
    """Fields of `nvme id-ctrl -o json` used for capability detection"""
    oacs: int
    fna: int
    mn: str
    sn: str


# Simulation parameters passed from the command line to the CommandRunner
SimulationParams = Dict[str, Union[str, int, bool]]
