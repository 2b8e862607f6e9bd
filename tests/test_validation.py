import pytest

from kwsan.core.exceptions import PreconditionError, ValidationError
from kwsan.utils import validation
from kwsan.utils.command import CommandRunner, SimulationMode
from kwsan.utils.validation import check_prerequisites, parse_menu_choice, validate_confirmation

# ---------------------------------------------------------------------------
# Prerequisites
# ---------------------------------------------------------------------------

def test_requires_root(monkeypatch):
    monkeypatch.setattr(validation.os, "geteuid", lambda: 1000)
    with pytest.raises(PreconditionError, match="root"):
        check_prerequisites(CommandRunner(SimulationMode.DISABLED))


def test_reports_every_missing_tool(monkeypatch):
    monkeypatch.setattr(validation.os, "geteuid", lambda: 0)
    monkeypatch.setattr(validation.shutil, "which", lambda tool: None if tool != "lsblk" else "/bin/lsblk")
    with pytest.raises(PreconditionError) as excinfo:
        check_prerequisites(CommandRunner(SimulationMode.DISABLED))
    assert "hdparm, nvme" in str(excinfo.value)


def test_all_tools_present(monkeypatch):
    monkeypatch.setattr(validation.os, "geteuid", lambda: 0)
    monkeypatch.setattr(validation.shutil, "which", lambda tool: f"/usr/sbin/{tool}")
    check_prerequisites(CommandRunner(SimulationMode.DISABLED))


def test_pure_simulation_needs_nothing(monkeypatch):
    monkeypatch.setattr(validation.os, "geteuid", lambda: 1000)
    monkeypatch.setattr(validation.shutil, "which", lambda tool: None)
    check_prerequisites(CommandRunner(SimulationMode.SIMULATE))


def test_simulation_with_real_drives_needs_root(monkeypatch):
    monkeypatch.setattr(validation.os, "geteuid", lambda: 1000)
    with pytest.raises(PreconditionError, match="--sim-use-real"):
        check_prerequisites(CommandRunner(SimulationMode.SIMULATE), use_real_disk_info=True)

# ---------------------------------------------------------------------------
# Menu choice
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("choice,expected", [("1", 0), ("3", 2), (" 2 ", 1), ("q", None), ("Q", None)])
def test_valid_menu_choices(choice, expected):
    assert parse_menu_choice(choice, 3) == expected


@pytest.mark.parametrize("choice", ["0", "4", "", "quit", "-1", "+1", "1.5", "٣"])
def test_invalid_menu_choices(choice):
    with pytest.raises(ValidationError):
        parse_menu_choice(choice, 3)

# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------

def test_confirmation_exact_match():
    validate_confirmation("/dev/sda", "/dev/sda")


@pytest.mark.parametrize("answer", ["/dev/sda ", "sda", "/dev/SDA", "/dev/sdb", ""])
def test_confirmation_mismatch(answer):
    with pytest.raises(ValidationError):
        validate_confirmation("/dev/sda", answer)
