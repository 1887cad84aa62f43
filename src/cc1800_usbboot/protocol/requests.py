"""CC1800 mask-ROM boot requests.

The boot ROM understands five vendor control requests on the default
control pipe plus bulk transfers on endpoint 1::

    +-------------+----------+-----+-------------------+-------------------+-----------+
    | Request     | bRequest | Dir | wValue            | wIndex            | Data      |
    +-------------+----------+-----+-------------------+-------------------+-----------+
    | CPU info    | 0x00     | IN  | 0                 | 0                 | 8 bytes   |
    | Set address | 0x01     | OUT | addr[31:16]       | addr[15:0]        | none      |
    | Set length  | 0x02     | OUT | (len|dir)[31:16]  | (len|dir)[15:0]   | none      |
    | Get status  | 0x03     | IN  | 0                 | 0                 | 1 byte    |
    | Execute     | 0x04     | OUT | 0                 | 0                 | none      |
    +-------------+----------+-----+-------------------+-------------------+-----------+

Bit 31 of the length tells the device which way the next bulk transfer
goes: set for host-to-device (upload), clear for device-to-host
(download).

Every function borrows a device session for the duration of the call.
A session is anything with the transfer API of ``usb.core.Device``.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Protocol

import usb.core
import usb.util

from ..errors import InvalidArgument, TransportError
from ..models.cpu_info import CPU_INFO_SIZE, CpuInfo

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000
BULK_ENDPOINT = 1
EP_BULK_OUT = BULK_ENDPOINT | usb.util.ENDPOINT_OUT
EP_BULK_IN = BULK_ENDPOINT | usb.util.ENDPOINT_IN
STATUS_SIZE = 1

WRITE_FLAG = 0x80000000
ADDRESS_MASK = 0xFFFFFFFF
LENGTH_MASK = 0x7FFFFFFF

REQUEST_TYPE_IN = usb.util.build_request_type(
    usb.util.CTRL_IN, usb.util.CTRL_TYPE_VENDOR, usb.util.CTRL_RECIPIENT_DEVICE
)
REQUEST_TYPE_OUT = usb.util.build_request_type(
    usb.util.CTRL_OUT, usb.util.CTRL_TYPE_VENDOR, usb.util.CTRL_RECIPIENT_DEVICE
)


class Request(IntEnum):
    """Vendor request codes (bRequest)."""

    GET_CPU_INFO = 0x00
    SET_ADDRESS = 0x01
    SET_LENGTH = 0x02
    GET_STATUS = 0x03
    EXECUTE = 0x04


class DeviceSession(Protocol):
    """The subset of ``usb.core.Device`` the boot protocol needs."""

    def ctrl_transfer(
        self,
        bmRequestType: int,
        bRequest: int,
        wValue: int = 0,
        wIndex: int = 0,
        data_or_wLength=None,
        timeout: int | None = None,
    ): ...

    def write(self, endpoint: int, data, timeout: int | None = None) -> int: ...

    def read(self, endpoint: int, size_or_buffer, timeout: int | None = None): ...


def split_word(value: int) -> tuple[int, int]:
    """Split a 32-bit value into the (wValue, wIndex) pair: high half, low half."""
    return (value >> 16) & 0xFFFF, value & 0xFFFF


def encode_length(length: int, for_write: bool) -> int:
    """Combine a transfer length with the direction bit."""
    if not 0 <= length <= LENGTH_MASK:
        raise InvalidArgument(f"Length must be 0-{LENGTH_MASK:#x}, got {length:#x}")
    if for_write:
        return length | WRITE_FLAG
    return length & LENGTH_MASK


def _control_in(
    session: DeviceSession, request: Request, length: int, timeout_ms: int
) -> bytes:
    logger.debug("%s wLength=%d", request.name, length)
    try:
        data = session.ctrl_transfer(
            REQUEST_TYPE_IN, request, 0, 0, length, timeout=timeout_ms
        )
    except usb.core.USBError as e:
        raise TransportError(f"{request.name} request failed: {e}") from e
    return bytes(data)


def _control_out(
    session: DeviceSession,
    request: Request,
    value: int = 0,
    index: int = 0,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> None:
    logger.debug(
        "%s wValue=0x%04X wIndex=0x%04X", request.name, value, index
    )
    try:
        session.ctrl_transfer(
            REQUEST_TYPE_OUT, request, value, index, None, timeout=timeout_ms
        )
    except usb.core.USBError as e:
        raise TransportError(f"{request.name} request failed: {e}") from e


def get_cpu_info(
    session: DeviceSession, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> CpuInfo:
    """Read the 8-byte CPU information string.

    Raises:
        TransportError: If the transfer fails or returns fewer than 8 bytes.
    """
    data = _control_in(session, Request.GET_CPU_INFO, CPU_INFO_SIZE, timeout_ms)
    if len(data) < CPU_INFO_SIZE:
        raise TransportError(
            f"CPU info response too short: {len(data)} of {CPU_INFO_SIZE} bytes"
        )
    return CpuInfo.from_bytes(data)


def set_address(
    session: DeviceSession, address: int, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> None:
    """Set the device address used by the next bulk transfer or execute."""
    if not 0 <= address <= ADDRESS_MASK:
        raise InvalidArgument(f"Address must fit in 32 bits, got {address:#x}")
    value, index = split_word(address)
    _control_out(session, Request.SET_ADDRESS, value, index, timeout_ms)


def set_length(
    session: DeviceSession,
    length: int,
    for_write: bool,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> None:
    """Set the length and direction of the next bulk transfer.

    Args:
        length: Number of bytes, at most 31 bits.
        for_write: True if the next bulk transfer is an upload.
    """
    value, index = split_word(encode_length(length, for_write))
    _control_out(session, Request.SET_LENGTH, value, index, timeout_ms)


def get_status(
    session: DeviceSession, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> int:
    """Read the one-byte status value.

    Experimental: the meaning of this request is unknown and issuing it
    has been seen to start the NAND boot path. Nothing in this package
    calls it on its own.
    """
    logger.warning("GET_STATUS is unsupported; the device may leave boot mode")
    data = _control_in(session, Request.GET_STATUS, STATUS_SIZE, timeout_ms)
    if len(data) < STATUS_SIZE:
        raise TransportError("GET_STATUS returned no data")
    return data[0]


def execute(session: DeviceSession, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
    """Start executing at the address most recently set on the device.

    Calling this before any ``set_address`` in the session is a caller
    error the device cannot report.
    """
    _control_out(session, Request.EXECUTE, timeout_ms=timeout_ms)


def bulk_write(
    session: DeviceSession, data: bytes, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> int:
    """Send ``data`` on the bulk OUT endpoint and return the bytes written."""
    try:
        return session.write(EP_BULK_OUT, data, timeout=timeout_ms)
    except usb.core.USBError as e:
        raise TransportError(f"bulk write of {len(data)} bytes failed: {e}") from e


def bulk_read(
    session: DeviceSession, length: int, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> bytes:
    """Receive up to ``length`` bytes from the bulk IN endpoint."""
    try:
        data = session.read(EP_BULK_IN, length, timeout=timeout_ms)
    except usb.core.USBError as e:
        raise TransportError(f"bulk read of {length} bytes failed: {e}") from e
    return bytes(data)
