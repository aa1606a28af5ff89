"""Parsing of integer arguments given on the command line."""

from __future__ import annotations

import errno
import os
import re

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# Leading C whitespace, an optional sign, then a hexadecimal, octal or
# decimal literal, exactly as accepted with an automatically detected base.
_NUMBER = re.compile(
    r"[ \t\n\v\f\r]*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)"
)


def _literal_value(literal: str) -> int:
    if literal[:2] in ("0x", "0X"):
        return int(literal[2:], 16)
    if len(literal) > 1 and literal.startswith("0"):
        return int(literal[1:], 8)
    return int(literal, 10)


def parse_number(text: str, minimum: int, maximum: int) -> int:
    """Parse ``text`` as an integer within ``[minimum, maximum]``.

    Hexadecimal (``0x``) and octal (leading ``0``) notations are accepted.
    Raises ``ValueError`` with a short reason on failure.
    """
    match = _NUMBER.match(text)
    if match is None:
        raise ValueError(os.strerror(errno.EINVAL))

    sign, literal = match.groups()
    value = _literal_value(literal)
    if sign == "-":
        value = -value

    if value < _INT64_MIN or value > _INT64_MAX:
        raise ValueError(os.strerror(errno.ERANGE))
    if match.end() != len(text):
        raise ValueError(os.strerror(errno.EINVAL))
    if value < minimum:
        raise ValueError("value too small")
    if value > maximum:
        raise ValueError("value too large")
    return value