"""Try register/value combinations on the embedded controller.

Each register is set to each candidate value while the fan register cycles
through fan speed values, so that one can watch which setting lets the fan
react. Every touched register is restored afterwards.
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, TextIO

from .ec import ECError, EmbeddedController, PortController, find_working
from .numbers import parse_number

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CMDLINE = 2

_CONTROLLER_TYPES: dict[str, Callable[[], EmbeddedController]] = {
    "dev_port": PortController,
}


def expand_ints(text: str) -> list[int]:
    """Expand a list such as ``"1,5-7"`` into ``[1, 5, 6, 7]``.

    Every number must lie in 0..255. Raises ``ValueError`` on bad input.
    """
    parts = text.split(",")
    if parts[-1] == "":
        parts.pop()

    result: list[int] = []
    for part in parts:
        if "-" in part:
            first, second = part.split("-", 1)
            start = _parse_byte(first)
            stop = _parse_byte(second)
            if start > stop:
                raise ValueError(f"From ({start}) is larger than to ({stop}): {part}")
            result.extend(range(start, stop + 1))
        else:
            result.append(_parse_byte(part))
    return result


def _parse_byte(text: str) -> int:
    try:
        return parse_number(text, 0, 255)
    except ValueError as exc:
        raise ValueError(f"Invalid number: {text}: {exc}") from exc


@dataclass
class BruteforceOptions:
    """What to try and how long to wait between attempts."""

    fan_register: int
    fan_values: list[int] = field(default_factory=list)
    bruteforce_registers: list[int] = field(default_factory=list)
    bruteforce_values: list[int] = field(default_factory=list)
    sleep: float = 0.5


class Bruteforcer:
    """Runs the register search and restores the controller afterwards."""

    def __init__(
        self,
        controller: EmbeddedController,
        options: BruteforceOptions,
        sleep: Callable[[float], object] = time.sleep,
        output: TextIO | None = None,
    ) -> None:
        self.controller = controller
        self.options = options
        self._sleep = sleep
        self._output = output
        self._fan_old_value: int | None = None
        self._register: int | None = None
        self._register_old_value = 0

    def _print(self, text: str) -> None:
        print(text, file=self._output or sys.stdout)

    def run(self) -> None:
        """Try every combination; raises ``ECError`` if an access fails."""
        ec = self.controller
        opts = self.options
        self._fan_old_value = ec.read_byte(opts.fan_register)

        for register in opts.bruteforce_registers:
            self._register = register
            self._register_old_value = ec.read_byte(register)

            for value in opts.bruteforce_values:
                ec.write_byte(register, value)
                for speed in opts.fan_values:
                    ec.write_byte(opts.fan_register, speed)
                    self._print(
                        f"Register = {register} ({register:X}), "
                        f"Value = {value} ({value:X}), "
                        f"FanSpeedValue = {speed} ({speed:X})"
                    )
                    self._sleep(opts.sleep)

            ec.write_byte(register, self._register_old_value)

    def reset(self) -> None:
        """Write back the original values of the touched registers."""
        self._print("Resetting embedded controller")
        try:
            if self._fan_old_value is not None:
                self.controller.write_byte(self.options.fan_register, self._fan_old_value)
            if self._register is not None:
                self.controller.write_byte(self._register, self._register_old_value)
        except ECError:
            pass


def _error(message: str) -> None:
    print(f"bruteforce: {message}", file=sys.stderr)


def _parse_seconds(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise ValueError(text) from None
    if not 0.1 <= value <= 100:
        raise ValueError(text)
    return value


def _expand_all(label: str, texts: list[str] | None) -> list[int]:
    values: list[int] = []
    for text in texts or []:
        values.extend(expand_ints(text))
        print(f"{label}: " + "".join(f"{v}," for v in values))
    return values


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    parser = argparse.ArgumentParser(
        prog="bruteforce",
        description="Search for embedded controller registers that affect the fan.",
    )
    parser.add_argument("-e", "--embedded-controller", choices=None)
    parser.add_argument("-f", "--fan-register")
    parser.add_argument("-F", "--fan-values", action="append")
    parser.add_argument("-b", "--bruteforce-registers", action="append")
    parser.add_argument("-v", "--bruteforce-values", action="append")
    parser.add_argument("-s", "--sleep")
    args = parser.parse_args(argv)

    controller: EmbeddedController | None = None
    if args.embedded_controller is not None:
        factory = _CONTROLLER_TYPES.get(args.embedded_controller)
        if factory is None:
            _error(f"-e|--embedded-controller: Invalid value: {args.embedded_controller}")
            return EXIT_CMDLINE
        controller = factory()

    fan_register = -1
    if args.fan_register is not None:
        try:
            fan_register = parse_number(args.fan_register, 0, 255)
        except ValueError as exc:
            _error(f"-f|--fan-register: {exc}")
            return EXIT_CMDLINE

    try:
        fan_values = _expand_all("Fan-Values", args.fan_values)
        registers = _expand_all("Bruteforce-registers", args.bruteforce_registers)
        values = _expand_all("Bruteforce-values", args.bruteforce_values)
    except ValueError as exc:
        _error(str(exc))
        return EXIT_CMDLINE

    sleep = 0.5
    if args.sleep is not None:
        try:
            sleep = _parse_seconds(args.sleep)
        except ValueError:
            _error(f"Invalid value for -s|--sleep: {args.sleep}")
            return EXIT_CMDLINE

    missing = [
        (fan_register == -1, "-f|--fan-register"),
        (not fan_values, "-F|--fan-values"),
        (not registers, "-b|--bruteforce-registers"),
        (not values, "-v|--bruteforce-values"),
    ]
    for is_missing, name in missing:
        if is_missing:
            _error(f"Option {name} not given")
            return EXIT_CMDLINE

    if os.geteuid() != 0:
        _error("This program must be run as root")
        return EXIT_FAILURE

    options = BruteforceOptions(fan_register, fan_values, registers, values, sleep)
    try:
        if controller is None:
            controller = find_working([PortController()])
        controller.open()
    except ECError as exc:
        _error(str(exc))
        return EXIT_FAILURE

    bruteforcer = Bruteforcer(controller, options)
    try:
        bruteforcer.run()
    except ECError as exc:
        _error(str(exc))
        return EXIT_FAILURE
    finally:
        bruteforcer.reset()
        controller.close()
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())