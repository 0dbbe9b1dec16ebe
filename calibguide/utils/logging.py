"""
calibguide Logging Utility

Timestamped console logging for the capture loop, the guidance engine and
the calibration solver. The capture loop runs at the pipeline rate, so
per-tick messages go out at DEBUG and are hidden unless the threshold is
lowered (config `log_level` or `--verbose`).
"""

from datetime import datetime
from typing import Optional

from ..errors import ConfigurationError


LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

_threshold = LEVELS.index("INFO")


def set_log_level(level: str) -> None:
    """
    Set the lowest level that is printed.

    Raises:
        ConfigurationError: for a level name outside LEVELS
    """
    global _threshold
    name = level.upper()
    if name == "WARNING":
        name = "WARN"
    if name not in LEVELS:
        raise ConfigurationError(f"Unknown log level: {level!r}")
    _threshold = LEVELS.index(name)


def get_log_level() -> str:
    return LEVELS[_threshold]


def is_enabled(level: str) -> bool:
    return LEVELS.index(level) >= _threshold


def log(message: str, level: str = "INFO", component: Optional[str] = None) -> None:
    """
    Print a timestamped log message if its level passes the threshold.

    Args:
        message: The message to log
        level: One of LEVELS
        component: Optional component name (e.g., "Capture", "Calibration")
    """
    if not is_enabled(level):
        return

    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]  # HH:MM:SS.mmm

    if component:
        prefix = f"[{timestamp}] [{level}] [{component}]"
    else:
        prefix = f"[{timestamp}] [{level}]"

    print(f"{prefix} {message}")


class ComponentLogger:
    """Logger bound to one pipeline component."""

    def __init__(self, component: str):
        self.component = component

    def info(self, message: str) -> None:
        log(message, "INFO", self.component)

    def warn(self, message: str) -> None:
        log(message, "WARN", self.component)

    def error(self, message: str) -> None:
        log(message, "ERROR", self.component)

    def debug(self, message: str) -> None:
        log(message, "DEBUG", self.component)


capture_log = ComponentLogger("Capture")
guidance_log = ComponentLogger("Guidance")
calibration_log = ComponentLogger("Calibration")
camera_log = ComponentLogger("Camera")
vision_log = ComponentLogger("Vision")
