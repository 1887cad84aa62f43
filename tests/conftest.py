"""Shared fixtures: a memory-backed model of the CC1800 boot ROM."""

from __future__ import annotations

from array import array

import pytest
import usb.core

CPU_INFO = b"CC1800\x00\x00"


class FakeBootDevice:
    """Implements the ``usb.core.Device`` transfer API on top of a RAM model.

    Every request is decoded from its raw wValue/wIndex and appended to
    ``log`` so tests can assert the exact sequence sent to the device.
    Faults can be injected through the public attributes.
    """

    def __init__(self, cpu_info: bytes = CPU_INFO) -> None:
        self.cpu_info = cpu_info
        self.memory: dict[int, int] = {}
        self.address: int | None = None
        self.length_word: int | None = None

        self.log: list[tuple] = []
        self.ctrl_calls: list[tuple] = []

        # Fault injection
        self.fail_probe_after: int | None = None  # fail probes after N successes
        self.short_write_by = 0
        self.short_read_by = 0
        self.corrupt_offset: int | None = None
        self.fail_requests: set[int] = set()
        self.fail_bulk = False

        self._probes = 0

    # ─── pyusb API ────────────────────────────────────────────────────

    def ctrl_transfer(self, bmRequestType, bRequest, wValue=0, wIndex=0,
                      data_or_wLength=None, timeout=None):
        self.ctrl_calls.append((bmRequestType, int(bRequest), wValue, wIndex, data_or_wLength))
        if int(bRequest) in self.fail_requests:
            raise usb.core.USBError("Operation timed out", errno=110)

        word = (wValue << 16) | wIndex
        if bRequest == 0x00:
            self._probes += 1
            if self.fail_probe_after is not None and self._probes > self.fail_probe_after:
                raise usb.core.USBError("No such device", errno=19)
            self.log.append(("cpu_info",))
            return array("B", self.cpu_info[:data_or_wLength])
        if bRequest == 0x01:
            self.address = word
            self.log.append(("set_address", word))
            return 0
        if bRequest == 0x02:
            self.length_word = word
            self.log.append(("set_length", word & 0x7FFFFFFF, bool(word & 0x80000000)))
            return 0
        if bRequest == 0x03:
            self.log.append(("status",))
            return array("B", [0x5A])
        if bRequest == 0x04:
            self.log.append(("execute", self.address))
            return 0
        raise usb.core.USBError("Pipe error", errno=32)

    def write(self, endpoint, data, timeout=None):
        assert endpoint == 0x01
        if self.fail_bulk:
            raise usb.core.USBError("Operation timed out", errno=110)
        assert self.length_word is not None and self.length_word & 0x80000000
        data = bytes(data)
        count = max(len(data) - self.short_write_by, 0)
        for i, b in enumerate(data[:count]):
            self.memory[self.address + i] = b
        self.log.append(("bulk_write", len(data)))
        return count

    def read(self, endpoint, size_or_buffer, timeout=None):
        assert endpoint == 0x81
        if self.fail_bulk:
            raise usb.core.USBError("Operation timed out", errno=110)
        assert self.length_word is not None and not self.length_word & 0x80000000
        size = size_or_buffer
        out = array("B", (self.memory.get(self.address + i, 0) for i in range(size)))
        if self.corrupt_offset is not None and self.corrupt_offset < size:
            out[self.corrupt_offset] ^= 0xFF
        self.log.append(("bulk_read", size))
        return out[: size - self.short_read_by]

    # ─── helpers ──────────────────────────────────────────────────────

    def load(self, address: int, data: bytes) -> None:
        for i, b in enumerate(data):
            self.memory[address + i] = b

    def dump(self, address: int, length: int) -> bytes:
        return bytes(self.memory.get(address + i, 0) for i in range(length))

    def requests(self) -> list[tuple]:
        """The log without liveness probes."""
        return [entry for entry in self.log if entry[0] != "cpu_info"]


@pytest.fixture
def device() -> FakeBootDevice:
    return FakeBootDevice()
