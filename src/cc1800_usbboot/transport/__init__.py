"""USB transport: device lookup and session lifecycle."""

from .usb_connection import BootConnection, DeviceInfo
