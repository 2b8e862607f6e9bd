"""
Formatting utilities.

This module provides functions for formatting sizes, parsing size specifications,
and consistent terminal output formatting.
"""
import re


# ANSI Terminal Colors
class TermColors:
    """ANSI color codes for terminal output"""
    INFO = '\033[94m'     # Blue for informational messages
    SUCCESS = '\033[92m'  # Green for success messages
    WARNING = '\033[93m'  # Yellow for warnings
    ERROR = '\033[91m'    # Red for errors
    SIM = '\033[96m'      # Cyan for simulation messages
    HEADER = '\033[95m'   # Purple for headers
    BOLD = '\033[1m'      # Bold text
    ENDC = '\033[0m'      # End color


def colorize(message: str, color: str, enabled: bool = True) -> str:
    """
    Add color to a message if color output is enabled.

    Args:
        message: The message to colorize
        color: The color to use (from TermColors)
        enabled: Whether colorization is enabled

    Returns:
        Colorized message or original message if colors disabled
    """
    if not enabled:
        return message
    return f"{color}{message}{TermColors.ENDC}"


def format_size_gb(size_bytes: int) -> str:
    """Format a size the way menus and certificates print it: '465.76 GB'"""
    return f"{size_bytes / (1024**3):.2f} GB"


def parse_size_spec(spec: str) -> int:
    """
    Parse an absolute size specification.

    Args:
        spec: Size specification (e.g., "500G", "500GB", "500GiB", "1T")

    Returns:
        Size in bytes

    Raises:
        ValueError: If the specification cannot be parsed
    """
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([KMGT]i?B?|B)?$", spec.strip(), re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size specification: {spec}")

    value, unit = match.groups()
    value = float(value)

    if not unit or unit.upper() == "B":
        return int(value)

    unit = unit.upper()
    exponent = "KMGT".index(unit[0]) + 1

    # Decimal units (powers of 1000) only when spelled out as KB, MB, ...
    if unit.endswith("B") and "I" not in unit:
        return int(value * 1000**exponent)
    return int(value * 1024**exponent)
