"""Starting, stopping and locating the fan control service."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time

from .numbers import parse_number

EXIT_SUCCESS = 0
SERVICE_PROGRAM = "nbfc_service"
RESTART_DELAY = 1.0
HWMON_ROOT = "/sys/class/hwmon"
_INT_MAX = 2**31 - 1
_HWMON_NAME_FILES = ("hwmon{}/name", "hwmon{}/device/name")
_TEMP_SENSOR_NAMES = frozenset({"coretemp", "k10temp", "zenpower"})

_log = logging.getLogger(__name__)


class ServiceError(Exception):
    """The service could not be controlled."""


def get_pid(pid_file: str) -> int | None:
    """Return the PID stored in ``pid_file``, or ``None`` if there is none."""
    try:
        with open(pid_file, encoding="utf-8", errors="replace") as fh:
            content = fh.read()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise ServiceError(f"Failed to read the pid file: {pid_file}: {exc.strerror}") from exc

    try:
        return parse_number(content.split("\n", 1)[0], 0, _INT_MAX)
    except ValueError as exc:
        raise ServiceError(f"Failed to read the pid file: {pid_file}: {exc}") from exc


def start_service(pid_file: str, read_only: bool = False) -> int:
    """Start the service unless it runs already; return its exit status."""
    pid = get_pid(pid_file)
    if pid is not None:
        _log.info("Service already running (pid: %d)", pid)
        return EXIT_SUCCESS

    command = [SERVICE_PROGRAM, "-f"]
    if read_only:
        command.append("-r")

    try:
        result = subprocess.run(command, check=False)
    except FileNotFoundError as exc:
        raise ServiceError(
            f"Can't run {SERVICE_PROGRAM}, make sure the binary is installed"
        ) from exc
    except OSError as exc:
        raise ServiceError(f"Failed to start process: {exc.strerror}") from exc

    if result.returncode == 127:
        raise ServiceError(f"Can't run {SERVICE_PROGRAM}, make sure the binary is installed")
    return result.returncode


def stop_service(pid_file: str) -> bool:
    """Interrupt the running service; return ``False`` if it was not running."""
    pid = get_pid(pid_file)
    if pid is None:
        _log.error("Service not running")
        return False

    _log.info("Killing %s (%d)", SERVICE_PROGRAM, pid)
    try:
        os.kill(pid, signal.SIGINT)
    except OSError as exc:
        raise ServiceError(
            f"Failed to kill {SERVICE_PROGRAM} process ({pid}): {exc.strerror}"
        ) from exc

    try:
        os.unlink(pid_file)
    except OSError:
        pass
    return True


def restart_service(pid_file: str, read_only: bool = False) -> int:
    """Stop the service, wait a moment and start it again."""
    try:
        stop_service(pid_file)
    except ServiceError as exc:
        _log.error("%s", exc)
    time.sleep(RESTART_DELAY)
    return start_service(pid_file, read_only)


def _read_first_line(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8", errors="replace") as fh:
            return fh.read().split("\n", 1)[0]
    except OSError:
        return None


def wait_for_hwmon(root: str = HWMON_ROOT, tries: int = 30, delay: float = 1.0) -> bool:
    """Wait until a CPU temperature sensor shows up under ``root``."""
    for _ in range(tries):
        for pattern in _HWMON_NAME_FILES:
            for index in range(10):
                name = _read_first_line(os.path.join(root, pattern.format(index)))
                if name in _TEMP_SENSOR_NAMES:
                    return True
        time.sleep(delay)
    return False