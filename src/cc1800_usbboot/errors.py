"""Exception hierarchy shared by the protocol layer and the sequencer."""

from __future__ import annotations


class BootError(Exception):
    """Base class for every error raised while talking to the boot ROM."""


class TransportError(BootError, IOError):
    """A control or bulk transfer failed or timed out."""


class ShortTransfer(BootError):
    """A bulk transfer moved fewer bytes than requested."""

    def __init__(self, direction: str, expected: int, actual: int) -> None:
        super().__init__(
            f"short bulk {direction}: expected {expected} bytes, got {actual}"
        )
        self.direction = direction
        self.expected = expected
        self.actual = actual


class VerifyMismatch(BootError):
    """Data read back after an upload differs from what was sent."""

    def __init__(self, address: int, offset: int) -> None:
        super().__init__(
            f"verification failed at 0x{address + offset:08X} "
            f"(offset {offset} from 0x{address:08X})"
        )
        self.address = address
        self.offset = offset


class DeviceUnresponsive(BootError):
    """The liveness probe (get CPU info) did not succeed."""


class InvalidArgument(BootError, ValueError):
    """Malformed address, length, window or command token."""


class DeviceNotFound(BootError, ConnectionError):
    """No matching device could be found or opened."""
