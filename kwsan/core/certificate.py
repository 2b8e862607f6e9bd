"""
Certificate of sanitization.

This module turns a completed workflow into an audit certificate and
persists it as a text file. A certificate is issued for successful and
failed erases alike, and never for an aborted workflow.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from kwsan.config import CERTIFICATE_PREFIX, create_directory
from kwsan.core.exceptions import CertificateError, WorkflowError
from kwsan.core.workflow import Outcome, WorkflowRecord
from kwsan.utils.command import CommandRunner
from kwsan.utils.format import TermColors, colorize, format_size_gb

logger = logging.getLogger('kwsan')

SERIAL_PLACEHOLDER = "(Please retrieve from drive label)"

# Attempts at a free filename before giving up
MAX_NAME_ATTEMPTS = 100

CERTIFICATE_TEMPLATE = """\
-------------------------------------------------
      Certificate of Sanitization
-------------------------------------------------
This document certifies that the media described below has been sanitized
in accordance with the specified NIST 800-88 guidelines.

**Media Information**
  - Manufacturer/Model: {model}
  - Serial Number:      {serial}
  - Media Type:         {media_type}
  - Size:               {size}

**Sanitization Details**
  - Device:             {device}
  - Sanitization Date:  {date}
  - Sanitization Time:  {time}
  - Started:            {started}
  - Finished:           {finished}
  - Sanitization Method: {method}
  - Command Executed:   {command}
  - Follow-up Required: {follow_up}

**Outcome**
  - Result:             {result}
  - Exit Status:        {exit_status}

**Personnel**
  - Performed By:       ____________________ (Your Name)
  - Signature:          ____________________

-------------------------------------------------
"""


@dataclass(frozen=True)
class Certificate:
    """Immutable snapshot of a completed sanitization workflow"""
    device: str
    model: str
    serial: Optional[str]
    media_type: str
    size_bytes: int
    method: str
    command: str
    follow_up: str
    started_at: datetime
    finished_at: datetime
    outcome: Outcome
    exit_status: int

    @classmethod
    def from_record(cls, record: WorkflowRecord) -> "Certificate":
        """
        Snapshot a completed workflow.

        Raises:
            WorkflowError: If the workflow did not reach the COMPLETED state
        """
        if not record.completed:
            raise WorkflowError(
                f"No certificate for {record.drive.path}: workflow is {record.state.value}"
            )
        drive = record.drive
        return cls(
            device=drive.path,
            model=drive.model,
            serial=drive.device.serial,
            media_type=drive.bus.value,
            size_bytes=drive.size_bytes,
            method=drive.method.value,
            command=drive.command.render(),
            follow_up=drive.command.render_follow_up(),
            started_at=record.started_at or record.finished_at,
            finished_at=record.finished_at,
            outcome=record.outcome,
            exit_status=record.exit_status,
        )

    @property
    def filename(self) -> str:
        basename = Path(self.device).name
        return f"{CERTIFICATE_PREFIX}-{basename}-{self.finished_at:%Y%m%d-%H%M%S}.txt"

    def render(self) -> str:
        return CERTIFICATE_TEMPLATE.format(
            model=self.model,
            serial=self.serial or SERIAL_PLACEHOLDER,
            media_type=self.media_type,
            size=format_size_gb(self.size_bytes),
            device=self.device,
            date=f"{self.finished_at:%Y-%m-%d}",
            time=f"{self.finished_at:%H:%M:%S}",
            started=self.started_at.isoformat(timespec="seconds"),
            finished=self.finished_at.isoformat(timespec="seconds"),
            method=self.method,
            command=self.command,
            follow_up=self.follow_up or "None",
            result=self.outcome.value,
            exit_status=self.exit_status,
        )


def write_certificate(certificate: Certificate, directory: Path) -> Path:
    """
    Write a certificate without overwriting an existing file.

    If the preferred name is taken, a numeric suffix is appended.

    Args:
        certificate: Certificate to write
        directory: Directory receiving the certificate

    Returns:
        Path of the written certificate

    Raises:
        CertificateError: If the certificate cannot be written
    """
    stem = Path(certificate.filename).stem
    content = certificate.render()

    for attempt in range(MAX_NAME_ATTEMPTS):
        name = f"{stem}.txt" if attempt == 0 else f"{stem}-{attempt}.txt"
        path = directory / name
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(content)
            return path
        except FileExistsError:
            continue
        except OSError as e:
            raise CertificateError(f"Could not write certificate {path}: {e}")

    raise CertificateError(f"No free certificate name for {stem} in {directory}")


def issue_certificate(
    record: WorkflowRecord,
    directory: Path,
    cmd_runner: CommandRunner,
) -> Optional[Path]:
    """
    Issue the certificate for a completed workflow.

    Write errors are reported but never change the recorded outcome.

    Args:
        record: Completed workflow record
        directory: Directory receiving the certificate
        cmd_runner: CommandRunner instance, used for its simulation mode

    Returns:
        Path of the certificate, or None if it was not persisted
    """
    certificate = Certificate.from_record(record)

    if cmd_runner.simulating:
        logger.info("Simulation: certificate not written. It would read:\n" + certificate.render())
        return None

    try:
        create_directory(directory, cmd_runner, "certificate")
        path = write_certificate(certificate, directory)
    except (CertificateError, OSError) as e:
        logger.error(colorize(f"Certificate could not be saved: {e}",
                              TermColors.ERROR, cmd_runner.colored_output))
        logger.error(f"Recorded outcome is still {certificate.outcome.value}:\n{certificate.render()}")
        return None

    logger.info(f"Certificate of sanitization saved to {path}")
    return path
