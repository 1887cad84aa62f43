"""Memory windows and armed transfers.

The device keeps one address/length/direction register set per session and
every bulk transfer or execute acts on whatever was last loaded into it.
``ArmedTransfer`` makes that ordering explicit: the only way to get one is
``ArmedTransfer.arm()``, which issues SET_ADDRESS and SET_LENGTH first, and
only an armed transfer can move bulk data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import InvalidArgument, ShortTransfer
from ..models.operations import check_address, check_length
from . import requests
from .requests import DEFAULT_TIMEOUT_MS, DeviceSession

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Direction of the bulk transfer, seen from the device."""

    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class MemoryWindow:
    """A single address range on the device plus the transfer direction."""

    address: int
    length: int
    direction: Direction

    def __post_init__(self) -> None:
        check_address(self.address)
        check_length(self.length)

    @property
    def for_write(self) -> bool:
        return self.direction is Direction.WRITE

    def __str__(self) -> str:
        return (
            f"{self.direction.value} 0x{self.address:08X}"
            f"+0x{self.length:X}"
        )


class ArmedTransfer:
    """A window whose address and length have been loaded into the device.

    Use :meth:`arm` to create one. Bulk data can be moved once per arming.
    """

    def __init__(
        self,
        session: DeviceSession,
        window: MemoryWindow,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._session = session
        self._window = window
        self._timeout_ms = timeout_ms
        self._used = False

    @classmethod
    def arm(
        cls,
        session: DeviceSession,
        window: MemoryWindow,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> ArmedTransfer:
        """Issue SET_ADDRESS and SET_LENGTH for ``window``."""
        logger.debug("Arming %s", window)
        requests.set_address(session, window.address, timeout_ms)
        requests.set_length(session, window.length, window.for_write, timeout_ms)
        return cls(session, window, timeout_ms)

    @property
    def window(self) -> MemoryWindow:
        return self._window

    def _claim(self, direction: Direction) -> None:
        if self._window.direction is not direction:
            raise InvalidArgument(
                f"Window {self._window} is not armed for {direction.value}"
            )
        if self._used:
            raise InvalidArgument(
                f"Window {self._window} was already transferred; arm it again"
            )
        self._used = True

    def write(self, data: bytes) -> int:
        """Upload ``data``, which must be exactly the window length.

        Raises:
            ShortTransfer: If the device accepted fewer bytes.
        """
        if len(data) != self._window.length:
            raise InvalidArgument(
                f"Data is {len(data)} bytes but the window is {self._window.length}"
            )
        self._claim(Direction.WRITE)
        written = requests.bulk_write(self._session, data, self._timeout_ms)
        if written < len(data):
            raise ShortTransfer("write", len(data), written)
        return written

    def read(self) -> bytes:
        """Download the whole window.

        Raises:
            ShortTransfer: If the device delivered fewer bytes.
        """
        self._claim(Direction.READ)
        data = requests.bulk_read(self._session, self._window.length, self._timeout_ms)
        if len(data) < self._window.length:
            raise ShortTransfer("read", self._window.length, len(data))
        return data[: self._window.length]

    def execute(self) -> None:
        """Run code at the armed address."""
        logger.debug("Executing at 0x%08X", self._window.address)
        requests.execute(self._session, self._timeout_ms)
