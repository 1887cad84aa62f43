"""Tests for armed transfers and the composite operations."""

import pytest

from cc1800_usbboot.errors import (
    InvalidArgument,
    ShortTransfer,
    TransportError,
    VerifyMismatch,
)
from cc1800_usbboot.protocol.transfers import (
    download,
    first_difference,
    upload,
    upload_verify_execute,
    verify,
)
from cc1800_usbboot.protocol.window import ArmedTransfer, Direction, MemoryWindow


def test_upload_then_download_returns_same_bytes(device):
    """Memory written by upload reads back unchanged."""
    data = bytes(range(256)) * 3
    assert upload(device, data, 0x80001000) == len(data)
    assert download(device, 0x80001000, len(data)) == data
    assert device.dump(0x80001000, len(data)) == data


def test_upload_request_order(device):
    upload(device, b"\x01\x02\x03", 0x400)
    assert device.log == [
        ("set_address", 0x400),
        ("set_length", 3, True),
        ("bulk_write", 3),
    ]


def test_download_request_order(device):
    device.load(0x400, b"\xde\xad")
    assert download(device, 0x400, 2) == b"\xde\xad"
    assert device.log == [
        ("set_address", 0x400),
        ("set_length", 2, False),
        ("bulk_read", 2),
    ]


def test_short_bulk_write(device):
    device.short_write_by = 1
    with pytest.raises(ShortTransfer) as excinfo:
        upload(device, b"\x00" * 64, 0)
    assert excinfo.value.expected == 64
    assert excinfo.value.actual == 63


def test_short_bulk_read(device):
    device.short_read_by = 4
    with pytest.raises(ShortTransfer) as excinfo:
        download(device, 0, 32)
    assert (excinfo.value.expected, excinfo.value.actual) == (32, 28)


def test_control_failure_stops_before_bulk(device):
    device.fail_requests.add(0x02)
    with pytest.raises(TransportError):
        upload(device, b"\xff" * 8, 0x10)
    assert ("bulk_write", 8) not in device.log


def test_bulk_failure(device):
    device.fail_bulk = True
    with pytest.raises(TransportError):
        download(device, 0x10, 8)


def test_zero_length_rejected(device):
    """Zero-length transfers never reach the device."""
    with pytest.raises(InvalidArgument):
        upload(device, b"", 0x1000)
    with pytest.raises(InvalidArgument):
        download(device, 0x1000, 0)
    assert device.log == []


def test_verify(device):
    device.load(0x100, b"abcd")
    offset, _ = verify(device, b"abcd", 0x100)
    assert offset is None
    offset, armed = verify(device, b"abXd", 0x100)
    assert offset == 2
    armed.execute()
    assert device.log[-1] == ("execute", 0x100)


def test_upload_verify_execute(device):
    data = b"\xaa" * 16
    upload_verify_execute(device, data, 0x1000)
    assert device.log == [
        ("set_address", 0x1000),
        ("set_length", 16, True),
        ("bulk_write", 16),
        ("set_address", 0x1000),
        ("set_length", 16, False),
        ("bulk_read", 16),
        ("execute", 0x1000),
    ]


def test_upload_verify_execute_mismatch_does_not_execute(device):
    """A corrupted readback is fatal here and nothing is executed."""
    device.corrupt_offset = 5
    with pytest.raises(VerifyMismatch) as excinfo:
        upload_verify_execute(device, b"\xaa" * 16, 0x1000)
    assert excinfo.value.offset == 5
    assert excinfo.value.address == 0x1000
    assert not any(entry[0] == "execute" for entry in device.log)


def test_first_difference():
    assert first_difference(b"abc", b"abc") is None
    assert first_difference(b"abc", b"xbc") == 0
    assert first_difference(b"abc", b"ab") == 2


class TestMemoryWindow:
    """Window validation and the armed-transfer typestate."""

    def test_valid_window(self):
        window = MemoryWindow(0xFFFFFFFF, 0x7FFFFFFF, Direction.WRITE)
        assert window.for_write

    @pytest.mark.parametrize(
        "address, length",
        [(0, 0), (-1, 4), (0x1_0000_0000, 4), (0, 0x80000000)],
    )
    def test_invalid_window(self, address, length):
        with pytest.raises(InvalidArgument):
            MemoryWindow(address, length, Direction.READ)

    def test_arm_issues_address_then_length(self, device):
        ArmedTransfer.arm(device, MemoryWindow(0x20, 4, Direction.READ))
        assert device.log == [("set_address", 0x20), ("set_length", 4, False)]

    def test_direction_enforced(self, device):
        armed = ArmedTransfer.arm(device, MemoryWindow(0x20, 4, Direction.READ))
        with pytest.raises(InvalidArgument):
            armed.write(b"\x00" * 4)

    def test_length_must_match_window(self, device):
        armed = ArmedTransfer.arm(device, MemoryWindow(0x20, 4, Direction.WRITE))
        with pytest.raises(InvalidArgument):
            armed.write(b"\x00" * 5)

    def test_single_use(self, device):
        """Bulk data can move only once per arming."""
        armed = ArmedTransfer.arm(device, MemoryWindow(0x20, 4, Direction.READ))
        armed.read()
        with pytest.raises(InvalidArgument):
            armed.read()

    def test_execute_after_transfer(self, device):
        armed = ArmedTransfer.arm(device, MemoryWindow(0x30, 4, Direction.READ))
        armed.read()
        armed.execute()
        assert device.log[-1] == ("execute", 0x30)
