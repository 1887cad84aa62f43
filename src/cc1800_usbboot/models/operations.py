"""User operations consumed by the command sequencer.

Three commands are understood, and any number of them may be chained::

    write <address> <file>
    read <address> <length> <file>
    exec

Addresses and lengths accept a ``0x`` prefix for hexadecimal, otherwise
they are decimal.
"""

from __future__ import annotations

import logging
import string
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from ..errors import InvalidArgument

logger = logging.getLogger(__name__)

MAX_ADDRESS = 0xFFFFFFFF
MAX_LENGTH = 0x7FFFFFFF  # bit 31 carries the transfer direction

DECIMAL_DIGITS = frozenset(string.digits)
HEX_DIGITS = frozenset(string.hexdigits)


def check_address(address: int) -> int:
    if not 0 <= address <= MAX_ADDRESS:
        raise InvalidArgument(f"Address must fit in 32 bits, got {address:#x}")
    return address


def check_length(length: int) -> int:
    if length == 0:
        raise InvalidArgument("Transfer length must be non-zero")
    if not 0 < length <= MAX_LENGTH:
        raise InvalidArgument(f"Transfer length must be 1-{MAX_LENGTH:#x}, got {length:#x}")
    return length


@dataclass(frozen=True)
class WriteOp:
    """Upload ``data`` to ``address`` and read it back for verification."""

    address: int
    data: bytes = field(repr=False)
    source: str | None = None

    def __post_init__(self) -> None:
        check_address(self.address)
        check_length(len(self.data))

    def describe(self) -> str:
        return f"write {len(self.data)} bytes to 0x{self.address:08X}"


@dataclass(frozen=True)
class ReadOp:
    """Download ``length`` bytes from ``address``."""

    address: int
    length: int
    destination: str | None = None

    def __post_init__(self) -> None:
        check_address(self.address)
        check_length(self.length)

    def describe(self) -> str:
        return f"read {self.length} bytes from 0x{self.address:08X}"


@dataclass(frozen=True)
class ExecOp:
    """Execute at the last address set on the device."""

    def describe(self) -> str:
        return "exec"


Operation = Union[WriteOp, ReadOp, ExecOp]


@dataclass
class OperationResult:
    """Outcome of one completed operation."""

    operation: Operation
    data: bytes | None = None
    verified: bool | None = None

    def to_dict(self) -> dict:
        result: dict = {"operation": self.operation.describe()}
        if self.data is not None:
            result["length"] = len(self.data)
        if self.verified is not None:
            result["verified"] = self.verified
        return result


def parse_number(token: str) -> int:
    """Parse a decimal or ``0x``-prefixed hexadecimal value."""
    text = token.strip()
    if text[:2].lower() == "0x":
        digits, base, allowed = text[2:], 16, HEX_DIGITS
    else:
        digits, base, allowed = text, 10, DECIMAL_DIGITS
    # digits only: no sign, no underscores
    if not digits or not set(digits) <= allowed:
        raise InvalidArgument(f"bad value '{token}'")
    return int(digits, base)


def load_file(path: str) -> bytes:
    """Read a whole file into memory for a ``write`` command."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise InvalidArgument(f"cannot read file '{path}': {e.strerror or e}") from e
    logger.info("Loaded file '%s' (%d bytes)", path, len(data))
    return data


def parse_operations(
    tokens: Sequence[str],
    loader: Callable[[str], bytes] = load_file,
) -> list[Operation]:
    """Turn command-line tokens into a list of operations.

    Args:
        tokens: Command words and their arguments, in order.
        loader: Called with the file name of each ``write`` command.

    Raises:
        InvalidArgument: On an unknown command, a missing argument or a
            malformed number.
    """
    operations: list[Operation] = []
    i = 0
    while i < len(tokens):
        command = tokens[i]
        remaining = len(tokens) - i - 1

        if command == "write":
            if remaining < 2:
                raise InvalidArgument(
                    "write command requires two arguments (address and file name)"
                )
            address = parse_number(tokens[i + 1])
            source = tokens[i + 2]
            operations.append(WriteOp(address, loader(source), source=source))
            i += 3

        elif command == "read":
            if remaining < 3:
                raise InvalidArgument(
                    "read command requires three arguments (address, length and file name)"
                )
            address = parse_number(tokens[i + 1])
            length = parse_number(tokens[i + 2])
            operations.append(ReadOp(address, length, destination=tokens[i + 3]))
            i += 4

        elif command == "exec":
            operations.append(ExecOp())
            i += 1

        else:
            raise InvalidArgument(f"unknown command '{command}'")

    return operations
