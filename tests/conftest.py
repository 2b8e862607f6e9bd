import subprocess

import pytest

from kwsan.core.drive import BlockDevice, Drive
from kwsan.core.probe import Capability, ProbeResult
from kwsan.core.selection import select_method
from kwsan.utils.command import CommandRunner, SimulationMode
from kwsan.utils.types import BusClass


class FakeRunner(CommandRunner):
    """CommandRunner answering queries from a table and recording executions"""

    def __init__(self, outputs=None, statuses=None):
        super().__init__(SimulationMode.DISABLED, colored_output=False)
        self.outputs = dict(outputs or {})
        self.statuses = list(statuses or [])
        self.queries = []
        self.executed = []

    def query(self, cmd):
        self.queries.append(list(cmd))
        returncode, stdout = self.outputs.get(tuple(cmd), (1, ""))
        return subprocess.CompletedProcess(cmd, returncode, stdout, "")

    def execute(self, cmd):
        self.executed.append(list(cmd))
        return self.statuses.pop(0) if self.statuses else 0


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def make_drive():
    def _make(path="/dev/nvme0n1", bus=BusClass.NVME, capabilities=(Capability.CRYPTO_ERASE,),
              serial="S4EWNX0N123456", model="Samsung SSD 970 EVO", size_bytes=500107862016):
        device = BlockDevice(path=path, model=model, size_bytes=size_bytes,
                             rotational=bus is BusClass.SATA_HDD, bus=bus, serial=serial)
        probe = ProbeResult(bus, frozenset(capabilities))
        return Drive(device, select_method(path, bus, probe, "Kindworks"))
    return _make


HDPARM_SANITIZE = """\
/dev/sda:

ATA device, with non-removable media
\tModel Number:       Samsung SSD 860 EVO 500GB
\tSerial Number:      S3Z2NB0K123456A
Commands/features:
\tEnabled\tSupported:
\t   *\tSMART feature set
\t   *\tSANITIZE feature set
\t   *\tCRYPTO_SCRAMBLE_EXT command
\t   *\tBLOCK_ERASE_EXT command
Security:
\tMaster password revision code = 65534
\t\tsupported
\tnot\tenabled
\tnot\tlocked
\tnot\tfrozen
\tnot\texpired: security count
\t\tsupported: enhanced erase
\t2min for SECURITY ERASE UNIT. 8min for ENHANCED SECURITY ERASE UNIT.
"""

HDPARM_SECURITY_ONLY = """\
/dev/sdb:

ATA device, with non-removable media
\tModel Number:       WDC WD10EZEX-08WN4A0
Commands/features:
\tEnabled\tSupported:
\t   *\tSMART feature set
Security:
\tMaster password revision code = 65534
\t\tsupported
\tnot\tenabled
\tnot\tlocked
\t\tfrozen
\tnot\texpired: security count
\tnot\tsupported: enhanced erase
\t112min for SECURITY ERASE UNIT.
"""


@pytest.fixture
def hdparm_sanitize():
    return HDPARM_SANITIZE


@pytest.fixture
def hdparm_security_only():
    return HDPARM_SECURITY_ONLY
