"""Access to the laptop's embedded controller."""

from __future__ import annotations

import abc
import enum
import errno
import logging
import os
from collections.abc import Iterable


class ECError(Exception):
    """An embedded controller operation failed."""


class ECStatus(enum.IntFlag):
    """Status register bits (ACPI specification, chapter 12.2)."""

    OUTPUT_BUFFER_FULL = 0x01
    INPUT_BUFFER_FULL = 0x02
    COMMAND = 0x08
    BURST_MODE = 0x10
    SCI_EVENT_PENDING = 0x20
    SMI_EVENT_PENDING = 0x40


class ECCommand(enum.IntEnum):
    """Embedded controller commands (ACPI specification, chapter 12.3)."""

    READ = 0x80
    WRITE = 0x81
    BURST_ENABLE = 0x82
    BURST_DISABLE = 0x83
    QUERY = 0x84


def _check_range(what: str, value: int, maximum: int) -> None:
    if not 0 <= value <= maximum:
        raise ValueError(f"{what} out of range: {value}")


class EmbeddedController(abc.ABC):
    """Interface of an embedded controller; usable as a context manager."""

    @abc.abstractmethod
    def open(self) -> None:
        """Open the controller."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the controller."""

    @abc.abstractmethod
    def read_byte(self, register: int) -> int:
        """Read one byte from ``register``."""

    @abc.abstractmethod
    def write_byte(self, register: int, value: int) -> None:
        """Write one byte to ``register``."""

    @abc.abstractmethod
    def read_word(self, register: int) -> int:
        """Read a little-endian word starting at ``register``."""

    @abc.abstractmethod
    def write_word(self, register: int, value: int) -> None:
        """Write a little-endian word starting at ``register``."""

    def __enter__(self) -> "EmbeddedController":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class DummyController(EmbeddedController):
    """An in-memory controller with 256 registers."""

    SIZE = 256

    def __init__(self) -> None:
        self._registers: bytearray | None = None

    def _require_open(self) -> bytearray:
        if self._registers is None:
            raise ECError("embedded controller is not open")
        return self._registers

    def open(self) -> None:
        if self._registers is None:
            self._registers = bytearray(self.SIZE)

    def close(self) -> None:
        self._registers = None

    def read_byte(self, register: int) -> int:
        _check_range("register", register, 0xFF)
        return self._require_open()[register]

    def write_byte(self, register: int, value: int) -> None:
        _check_range("register", register, 0xFF)
        _check_range("value", value, 0xFF)
        self._require_open()[register] = value

    def read_word(self, register: int) -> int:
        _check_range("register", register, 0xFF)
        registers = self._require_open()
        if register + 1 >= self.SIZE:
            return 0
        return registers[register] | (registers[register + 1] << 8)

    def write_word(self, register: int, value: int) -> None:
        _check_range("register", register, 0xFF)
        _check_range("value", value, 0xFFFF)
        registers = self._require_open()
        if register + 1 < self.SIZE:
            registers[register] = value & 0xFF
            registers[register + 1] = value >> 8


class DebugController(EmbeddedController):
    """Wraps another controller and logs every access."""

    def __init__(self, controller: EmbeddedController, logger: logging.Logger | None = None) -> None:
        self.controller = controller
        self.logger = logger or logging.getLogger(__name__)

    def open(self) -> None:
        self.controller.open()

    def close(self) -> None:
        self.controller.close()

    def _failed(self, message: str, exc: ECError) -> None:
        self.logger.debug(message)
        self.logger.warning("%s", exc)

    def write_byte(self, register: int, value: int) -> None:
        message = f"WriteByte(0x{register:X}, 0x{value:X})"
        try:
            self.controller.write_byte(register, value)
        except ECError as exc:
            self._failed(message, exc)
            raise
        self.logger.debug(message)

    def write_word(self, register: int, value: int) -> None:
        message = f"WriteWord(0x{register:X}, 0x{value:X})"
        try:
            self.controller.write_word(register, value)
        except ECError as exc:
            self._failed(message, exc)
            raise
        self.logger.debug(message)

    def read_byte(self, register: int) -> int:
        try:
            value = self.controller.read_byte(register)
        except ECError as exc:
            self._failed(f"ReadByte(0x{register:X}, out = 0x0)", exc)
            raise
        self.logger.debug("ReadByte(0x%X, out = 0x%X)", register, value)
        return value

    def read_word(self, register: int) -> int:
        try:
            value = self.controller.read_word(register)
        except ECError as exc:
            self._failed(f"ReadWord(0x{register:X}, out = 0x0)", exc)
            raise
        self.logger.debug("ReadWord(0x%X, out = 0x%X)", register, value)
        return value


class PortController(EmbeddedController):
    """Talks to the controller through the I/O port file (``/dev/port``)."""

    COMMAND_PORT = 0x66
    DATA_PORT = 0x62
    RW_TIMEOUT = 500
    FAILURES_BEFORE_SKIP = 20
    MAX_RETRIES = 5

    def __init__(self, path: str = "/dev/port") -> None:
        self.path = path
        self._fd: int | None = None
        self._wait_read_failures = 0

    def open(self) -> None:
        try:
            self._fd = os.open(self.path, os.O_RDWR)
        except OSError as exc:
            raise ECError(f"{self.path}: {exc.strerror}") from exc

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def _require_fd(self) -> int:
        if self._fd is None:
            raise ECError("embedded controller is not open")
        return self._fd

    def _write_port(self, port: int, value: int) -> bool:
        try:
            return os.pwrite(self._require_fd(), bytes([value]), port) == 1
        except OSError:
            return False

    def _read_port(self, port: int) -> int | None:
        try:
            data = os.pread(self._require_fd(), 1, port)
        except OSError:
            return None
        return data[0] if len(data) == 1 else None

    def _wait_for_status(self, status: ECStatus, is_set: bool) -> bool:
        for _ in range(self.RW_TIMEOUT):
            value = self._read_port(self.COMMAND_PORT)
            if value is None:
                continue
            if is_set:
                value = ~value & 0xFF
            if status & value == 0:
                return True
        return False

    def _wait_write(self) -> bool:
        return self._wait_for_status(ECStatus.INPUT_BUFFER_FULL, False)

    def _wait_read(self) -> bool:
        if self._wait_read_failures > self.FAILURES_BEFORE_SKIP:
            return True
        if self._wait_for_status(ECStatus.OUTPUT_BUFFER_FULL, True):
            self._wait_read_failures = 0
            return True
        self._wait_read_failures += 1
        return False

    def _try_read_byte(self, register: int) -> int | None:
        if (
            self._wait_write()
            and self._write_port(self.COMMAND_PORT, ECCommand.READ)
            and self._wait_write()
            and self._write_port(self.DATA_PORT, register)
            and self._wait_write()
            and self._wait_read()
        ):
            return self._read_port(self.DATA_PORT)
        return None

    def _try_write_byte(self, register: int, value: int) -> bool:
        return (
            self._wait_write()
            and self._write_port(self.COMMAND_PORT, ECCommand.WRITE)
            and self._wait_write()
            and self._write_port(self.DATA_PORT, register)
            and self._wait_write()
            and self._write_port(self.DATA_PORT, value)
        )

    def _try_read_word(self, register: int) -> int | None:
        low = self._try_read_byte(register)
        if low is None:
            return None
        high = self._try_read_byte((register + 1) & 0xFF)
        if high is None:
            return None
        return low | (high << 8)

    def _try_write_word(self, register: int, value: int) -> bool:
        return self._try_write_byte(register, value & 0xFF) and self._try_write_byte(
            (register + 1) & 0xFF, value >> 8
        )

    @staticmethod
    def _timeout(operation: str) -> ECError:
        return ECError(f"{operation}: {os.strerror(errno.ETIME)}")

    def write_byte(self, register: int, value: int) -> None:
        _check_range("register", register, 0xFF)
        _check_range("value", value, 0xFF)
        self._require_fd()
        for _ in range(self.MAX_RETRIES):
            if self._try_write_byte(register, value):
                return
        raise self._timeout("write_byte")

    def write_word(self, register: int, value: int) -> None:
        _check_range("register", register, 0xFF)
        _check_range("value", value, 0xFFFF)
        self._require_fd()
        for _ in range(self.MAX_RETRIES):
            if self._try_write_word(register, value):
                return
        raise self._timeout("write_word")

    def read_byte(self, register: int) -> int:
        _check_range("register", register, 0xFF)
        self._require_fd()
        for _ in range(self.MAX_RETRIES):
            value = self._try_read_byte(register)
            if value is not None:
                return value
        raise self._timeout("read_byte")

    def read_word(self, register: int) -> int:
        _check_range("register", register, 0xFF)
        self._require_fd()
        for _ in range(self.MAX_RETRIES):
            value = self._try_read_word(register)
            if value is not None:
                return value
        raise self._timeout("read_word")


def check_working(controller: EmbeddedController) -> bool:
    """Return whether ``controller`` can be opened and read from."""
    try:
        controller.open()
    except ECError:
        return False
    try:
        controller.read_byte(0)
    except ECError:
        return False
    finally:
        controller.close()
    return True


def find_working(controllers: Iterable[EmbeddedController]) -> EmbeddedController:
    """Return the first controller in ``controllers`` that works."""
    for controller in controllers:
        if check_working(controller):
            return controller
    raise ECError("No working implementation found for accessing the embedded controller")