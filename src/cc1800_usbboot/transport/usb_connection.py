"""USB connection to a CC1800 in boot ROM mode.

The chip enumerates with a fixed vendor/product ID while it waits in its
USB boot mode. We select configuration 1, claim interface 0 and hand the
``usb.core.Device`` to the protocol layer as the device session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import usb.core
import usb.util

from ..errors import DeviceNotFound

logger = logging.getLogger(__name__)

VENDOR_ID = 0x2009
PRODUCT_ID = 0x1218
CONFIGURATION = 1
INTERFACE = 0


@dataclass
class DeviceInfo:
    """Where the device was found on the bus."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    bus: int | None = None
    address: int | None = None

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"0x{self.vendor_id:04X}",
            "product_id": f"0x{self.product_id:04X}",
            "bus": self.bus,
            "address": self.address,
        }


class BootConnection:
    """Finds the boot-mode device and owns its USB session.

    Usage::

        with BootConnection() as conn:
            CommandSequencer(conn.device).run(operations)
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        configuration: int = CONFIGURATION,
        interface: int = INTERFACE,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._configuration = configuration
        self._interface = interface
        self._device: usb.core.Device | None = None
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._device is not None

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    @property
    def device(self) -> usb.core.Device:
        """The open device session.

        Raises:
            ConnectionError: If not connected.
        """
        if self._device is None:
            raise ConnectionError("Not connected to device")
        return self._device

    def open(self) -> DeviceInfo:
        """Find the device, set its configuration and claim the interface.

        Raises:
            DeviceNotFound: If the device is absent or cannot be opened.
        """
        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise DeviceNotFound(
                f"cannot find CC1800 device "
                f"({self._vendor_id:#06x}:{self._product_id:#06x})"
            )

        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            bus=dev.bus,
            address=dev.address,
        )
        logger.info(
            "Found device %03d at bus %03d", dev.address or 0, dev.bus or 0
        )

        try:
            dev.set_configuration(self._configuration)
        except usb.core.USBError as e:
            usb.util.dispose_resources(dev)
            raise DeviceNotFound(f"cannot set configuration: {e}") from e

        try:
            usb.util.claim_interface(dev, self._interface)
        except usb.core.USBError as e:
            usb.util.dispose_resources(dev)
            raise DeviceNotFound(f"cannot claim interface: {e}") from e

        self._device = dev
        return self._device_info

    def close(self) -> None:
        """Release the interface and free the pyusb resources."""
        if self._device is None:
            return

        try:
            usb.util.release_interface(self._device, self._interface)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            logger.debug("Disconnected")

    def __enter__(self) -> BootConnection:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
