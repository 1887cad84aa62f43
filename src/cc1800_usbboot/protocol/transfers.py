"""Composite upload, download and verified-execute operations."""

from __future__ import annotations

import logging

from ..errors import VerifyMismatch
from .requests import DEFAULT_TIMEOUT_MS, DeviceSession
from .window import ArmedTransfer, Direction, MemoryWindow

logger = logging.getLogger(__name__)


def first_difference(expected: bytes, actual: bytes) -> int | None:
    """Return the offset of the first differing byte, or None if equal."""
    for offset, (a, b) in enumerate(zip(expected, actual)):
        if a != b:
            return offset
    if len(expected) != len(actual):
        return min(len(expected), len(actual))
    return None


def upload(
    session: DeviceSession,
    data: bytes,
    address: int,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> int:
    """Write ``data`` to device memory at ``address``.

    Returns:
        Number of bytes written, always ``len(data)``.

    Raises:
        InvalidArgument: If ``data`` is empty or the window is out of range.
        TransportError: If a control or bulk transfer fails.
        ShortTransfer: If the device accepted fewer bytes than sent.
    """
    window = MemoryWindow(address, len(data), Direction.WRITE)
    return ArmedTransfer.arm(session, window, timeout_ms).write(data)


def download(
    session: DeviceSession,
    address: int,
    length: int,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> bytes:
    """Read ``length`` bytes of device memory starting at ``address``.

    Raises:
        InvalidArgument: If ``length`` is zero or the window is out of range.
        TransportError: If a control or bulk transfer fails.
        ShortTransfer: If the device delivered fewer bytes than requested.
    """
    window = MemoryWindow(address, length, Direction.READ)
    return ArmedTransfer.arm(session, window, timeout_ms).read()


def verify(
    session: DeviceSession,
    data: bytes,
    address: int,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> tuple[int | None, ArmedTransfer]:
    """Read back ``len(data)`` bytes from ``address`` and compare.

    Returns:
        The first differing offset, or None if the device memory matches,
        and the armed read window, which can still be executed.
    """
    window = MemoryWindow(address, len(data), Direction.READ)
    armed = ArmedTransfer.arm(session, window, timeout_ms)
    return first_difference(data, armed.read()), armed


def upload_verify_execute(
    session: DeviceSession,
    data: bytes,
    address: int,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> None:
    """Upload ``data``, read it back and execute it if it matches.

    Raises:
        VerifyMismatch: If the readback differs. Nothing is executed.
    """
    upload(session, data, address, timeout_ms)

    offset, armed = verify(session, data, address, timeout_ms)
    if offset is not None:
        raise VerifyMismatch(address, offset)

    logger.info("Verified %d bytes at 0x%08X, executing", len(data), address)
    armed.execute()
