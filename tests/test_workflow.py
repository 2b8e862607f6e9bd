from datetime import datetime, timedelta, timezone

import pytest

from kwsan.core.exceptions import WorkflowError
from kwsan.core.probe import Capability
from kwsan.core.workflow import (
    AbortReason,
    Outcome,
    WorkflowRecord,
    WorkflowState,
    run_workflow,
)
from kwsan.utils.command import EXIT_CANNOT_EXECUTE, CommandRunner, SimulationMode
from kwsan.utils.types import BusClass

START = datetime(2024, 5, 17, 14, 3, 22, tzinfo=timezone(timedelta(hours=2)))


def ticking_clock():
    ticks = iter([START, START + timedelta(minutes=2)])
    return lambda: next(ticks)


def answer(text):
    calls = []

    def confirm(drive):
        calls.append(drive.path)
        return text
    confirm.calls = calls
    return confirm

# ---------------------------------------------------------------------------
# Confirmation gate
# ---------------------------------------------------------------------------

def test_exact_confirmation_executes(make_drive, make_runner):
    drive = make_drive()
    runner = make_runner()

    record = run_workflow(drive, runner, answer("/dev/nvme0n1"), ticking_clock())

    assert record.state is WorkflowState.COMPLETED
    assert record.outcome is Outcome.SUCCESS
    assert record.exit_status == 0
    assert record.started_at == START
    assert record.finished_at == START + timedelta(minutes=2)
    assert runner.executed == [["nvme", "format", "/dev/nvme0n1", "-s", "2"]]


@pytest.mark.parametrize("typed", [
    "nvme0n1",
    "/dev/nvme0n1 ",
    " /dev/nvme0n1",
    "/DEV/NVME0N1",
    "/dev/nvme0n1\n",
    "",
    "/dev/nvme1n1",
])
def test_confirmation_mismatch_aborts_without_executing(make_drive, make_runner, typed):
    runner = make_runner()

    record = run_workflow(make_drive(), runner, answer(typed), ticking_clock())

    assert record.state is WorkflowState.ABORTED
    assert record.outcome is Outcome.ABORTED
    assert record.abort_reason is AbortReason.CONFIRMATION_MISMATCH
    assert record.exit_status is None
    assert runner.executed == []


def test_not_supported_aborts_without_prompt(make_drive, make_runner):
    drive = make_drive(path="/dev/sdc", bus=BusClass.SATA_SSD, capabilities=())
    runner = make_runner()
    confirm = answer("/dev/sdc")

    record = run_workflow(drive, runner, confirm, ticking_clock())

    assert record.aborted
    assert record.abort_reason is AbortReason.NOT_SUPPORTED
    assert confirm.calls == []
    assert runner.executed == []

# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def test_nonzero_exit_completes_with_failure(make_drive, make_runner):
    runner = make_runner(statuses=[5])

    record = run_workflow(make_drive(), runner, answer("/dev/nvme0n1"), ticking_clock())

    assert record.completed
    assert record.outcome is Outcome.FAILURE
    assert record.exit_status == 5


def test_ata_steps_run_in_order(make_drive, make_runner):
    drive = make_drive(path="/dev/sdb", bus=BusClass.SATA_HDD,
                       capabilities=(Capability.SECURITY_ERASE,))
    runner = make_runner()

    record = run_workflow(drive, runner, answer("/dev/sdb"), ticking_clock())

    assert record.outcome is Outcome.SUCCESS
    assert [step[2:4] for step in runner.executed] == [
        ["u", "--security-set-pass"],
        ["u", "--security-erase"],
    ]


def test_failed_first_step_skips_erase(make_drive, make_runner):
    drive = make_drive(path="/dev/sdb", bus=BusClass.SATA_HDD,
                       capabilities=(Capability.ENHANCED_SECURITY_ERASE,))
    runner = make_runner(statuses=[1])

    record = run_workflow(drive, runner, answer("/dev/sdb"), ticking_clock())

    assert record.outcome is Outcome.FAILURE
    assert record.exit_status == 1
    assert len(runner.executed) == 1


def test_failed_erase_step_reports_its_status(make_drive, make_runner):
    drive = make_drive(path="/dev/sda", bus=BusClass.SATA_SSD, capabilities=(Capability.SANITIZE,))
    runner = make_runner(statuses=[0, 22])

    record = run_workflow(drive, runner, answer("/dev/sda"), ticking_clock())

    assert record.exit_status == 22
    assert len(runner.executed) == 2


def test_command_that_cannot_start_still_completes(make_drive, monkeypatch):
    def refuse(cmd):
        raise PermissionError(13, "Permission denied", cmd[0])

    monkeypatch.setattr("kwsan.utils.command.subprocess.Popen", refuse)
    runner = CommandRunner(SimulationMode.DISABLED, colored_output=False)

    record = run_workflow(make_drive(), runner, answer("/dev/nvme0n1"), ticking_clock())

    assert record.state is WorkflowState.COMPLETED
    assert record.outcome is Outcome.FAILURE
    assert record.exit_status == EXIT_CANNOT_EXECUTE

# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("path", [
    [WorkflowState.EXECUTING],
    [WorkflowState.CONFIRMED],
    [WorkflowState.AWAITING_CONFIRMATION, WorkflowState.EXECUTING],
    [WorkflowState.ABORTED, WorkflowState.AWAITING_CONFIRMATION],
    [WorkflowState.AWAITING_CONFIRMATION, WorkflowState.CONFIRMED, WorkflowState.ABORTED],
])
def test_illegal_transitions_are_rejected(make_drive, path):
    record = WorkflowRecord(make_drive())
    with pytest.raises(WorkflowError):
        for state in path:
            record.transition(state)


def test_terminal_states_accept_nothing(make_drive):
    record = WorkflowRecord(make_drive())
    record.abort(AbortReason.CONFIRMATION_MISMATCH)
    for state in WorkflowState:
        with pytest.raises(WorkflowError):
            record.transition(state)
