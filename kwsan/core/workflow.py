"""
Sanitization workflow.

This module guards, executes and records the erase of a single drive:

    SELECTED -> AWAITING_CONFIRMATION -> CONFIRMED -> EXECUTING -> COMPLETED
                        |
                        +-> ABORTED

A drive without a supported method goes straight from SELECTED to ABORTED
and the operator is never prompted. Once EXECUTING begins the command runs
to completion: there is no timeout, no cancellation and no retry.

Nothing here prevents a second kwsan process from targeting the same device
at the same time; operators must not run concurrent sessions on one host.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional, Set

from kwsan.core.drive import Drive
from kwsan.core.exceptions import ExecutionFailure, ValidationError, WorkflowError
from kwsan.utils.command import CommandRunner
from kwsan.utils.format import TermColors, colorize
from kwsan.utils.validation import validate_confirmation

logger = logging.getLogger('kwsan')


class WorkflowState(Enum):
    SELECTED = "selected"
    AWAITING_CONFIRMATION = "awaiting confirmation"
    CONFIRMED = "confirmed"
    ABORTED = "aborted"
    EXECUTING = "executing"
    COMPLETED = "completed"


class Outcome(Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"


class AbortReason(Enum):
    NOT_SUPPORTED = "no hardware sanitization method is available"
    CONFIRMATION_MISMATCH = "confirmation did not match the device path"


TRANSITIONS: Dict[WorkflowState, Set[WorkflowState]] = {
    WorkflowState.SELECTED: {WorkflowState.AWAITING_CONFIRMATION, WorkflowState.ABORTED},
    WorkflowState.AWAITING_CONFIRMATION: {WorkflowState.CONFIRMED, WorkflowState.ABORTED},
    WorkflowState.CONFIRMED: {WorkflowState.EXECUTING},
    WorkflowState.EXECUTING: {WorkflowState.COMPLETED},
    WorkflowState.ABORTED: set(),
    WorkflowState.COMPLETED: set(),
}

# Returns what the operator typed when asked to confirm the erase of a drive
ConfirmFunc = Callable[[Drive], str]

Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class WorkflowRecord:
    """State of the sanitization workflow for one drive"""
    drive: Drive
    state: WorkflowState = WorkflowState.SELECTED
    exit_status: Optional[int] = None
    outcome: Optional[Outcome] = None
    abort_reason: Optional[AbortReason] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def transition(self, new_state: WorkflowState) -> None:
        """
        Move the workflow to a new state.

        Raises:
            WorkflowError: If the transition is not allowed from the current state
        """
        if new_state not in TRANSITIONS[self.state]:
            raise WorkflowError(
                f"Illegal transition for {self.drive.path}: {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"{self.drive.path}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def abort(self, reason: AbortReason) -> None:
        self.transition(WorkflowState.ABORTED)
        self.outcome = Outcome.ABORTED
        self.abort_reason = reason

    def complete(self, exit_status: int, finished_at: datetime) -> None:
        self.transition(WorkflowState.COMPLETED)
        self.exit_status = exit_status
        self.finished_at = finished_at
        self.outcome = Outcome.SUCCESS if exit_status == 0 else Outcome.FAILURE

    @property
    def completed(self) -> bool:
        return self.state is WorkflowState.COMPLETED

    @property
    def aborted(self) -> bool:
        return self.state is WorkflowState.ABORTED


def execute_command(drive: Drive, cmd_runner: CommandRunner) -> None:
    """
    Run every step of the drive's erase command in order.

    Raises:
        ExecutionFailure: On the first step that exits with a nonzero status
    """
    steps = drive.command.argv()
    for index, step in enumerate(steps, 1):
        status = cmd_runner.execute(step)
        if status != 0:
            raise ExecutionFailure(
                f"step {index} of {len(steps)} ({step[0]}) exited with status {status}", status
            )


def run_workflow(
    drive: Drive,
    cmd_runner: CommandRunner,
    confirm: ConfirmFunc,
    clock: Clock = local_now,
) -> WorkflowRecord:
    """
    Confirm and execute the sanitization of a drive.

    Args:
        drive: Drive to sanitize
        cmd_runner: CommandRunner instance for executing commands
        confirm: Asks the operator to type the device path and returns the answer
        clock: Source of the execution timestamps

    Returns:
        WorkflowRecord in the ABORTED or COMPLETED state
    """
    record = WorkflowRecord(drive)

    if not drive.supported:
        logger.warning(colorize(f"{drive.path}: {drive.description}",
                                TermColors.WARNING, cmd_runner.colored_output))
        record.abort(AbortReason.NOT_SUPPORTED)
        return record

    record.transition(WorkflowState.AWAITING_CONFIRMATION)
    try:
        validate_confirmation(drive.path, confirm(drive))
    except ValidationError as e:
        logger.error(colorize(f"Confirmation failed: {e}. Aborting.",
                              TermColors.ERROR, cmd_runner.colored_output))
        record.abort(AbortReason.CONFIRMATION_MISMATCH)
        return record
    record.transition(WorkflowState.CONFIRMED)

    record.transition(WorkflowState.EXECUTING)
    record.started_at = clock()
    logger.info(f"Starting sanitization on {drive.path} ({drive.method.value})...")
    try:
        execute_command(drive, cmd_runner)
    except ExecutionFailure as e:
        logger.error(colorize(f"Sanitization command failed: {e}",
                              TermColors.ERROR, cmd_runner.colored_output))
        record.complete(e.exit_status, clock())
    else:
        logger.info(colorize("Sanitization command completed successfully.",
                             TermColors.SUCCESS, cmd_runner.colored_output))
        record.complete(0, clock())

    return record
