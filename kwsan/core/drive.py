"""
Drive records.

This module defines the structured records describing a block device as it
moves through the sanitization pipeline: the enumerated skeleton and the
scanned drive with its selected method.
"""
from dataclasses import dataclass
from typing import Optional

from kwsan.core.selection import Command, Method, Selection
from kwsan.utils.types import BusClass


@dataclass(frozen=True)
class BlockDevice:
    """A physical block device as reported by the enumeration snapshot"""
    path: str
    model: str
    size_bytes: int
    rotational: bool
    bus: BusClass
    serial: Optional[str] = None

    def __post_init__(self):
        if self.size_bytes < 0:
            raise ValueError(f"Negative size for {self.path}: {self.size_bytes}")


@dataclass(frozen=True)
class Drive:
    """
    A scanned drive with its sanitization method fixed.

    The method is assigned once, at scan time, and never changes afterwards.
    """
    device: BlockDevice
    selection: Selection
    security_frozen: bool = False

    @property
    def path(self) -> str:
        return self.device.path

    @property
    def model(self) -> str:
        return self.device.model

    @property
    def size_bytes(self) -> int:
        return self.device.size_bytes

    @property
    def bus(self) -> BusClass:
        return self.device.bus

    @property
    def method(self) -> Method:
        return self.selection.method

    @property
    def command(self) -> Command:
        return self.selection.command

    @property
    def supported(self) -> bool:
        return self.selection.method is not Method.NOT_SUPPORTED

    @property
    def description(self) -> str:
        return self.selection.description
