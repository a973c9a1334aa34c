"""USB HID connection to a Ledger device.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends. Ledger
devices expose the APDU channel on interface 0 with endpoints 0x82 (IN)
and 0x02 (OUT); every transfer is one 64-byte report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import DEFAULT_CHANNEL, LEDGER_VENDOR_ID, PACKET_SIZE, READ_TIMEOUT_MS
from ..errors import TransportError
from ..protocol.framing import unwrap_response_apdu, wrap_command_apdu

logger = logging.getLogger(__name__)

HID_INTERFACE = 0
LEDGER_USAGE_PAGE = 0xFFA0
EP_IN = 0x82
EP_OUT = 0x02


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = LEDGER_VENDOR_ID
    product_id: int = 0
    manufacturer: str = ""
    product: str = ""
    path: str = ""

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"0x{self.vendor_id:04X}",
            "product_id": f"0x{self.product_id:04X}",
            "manufacturer": self.manufacturer,
            "product": self.product,
            "path": self.path,
        }


def _is_ledger_interface(entry: dict) -> bool:
    return (
        entry.get("interface_number") == HID_INTERFACE
        or entry.get("usage_page") == LEDGER_USAGE_PAGE
    )


def list_devices(vendor_id: int = LEDGER_VENDOR_ID) -> list[DeviceInfo]:
    """Enumerate connected Ledger APDU interfaces through hidapi."""
    import hid

    devices = []
    for entry in hid.enumerate(vendor_id, 0):
        if not _is_ledger_interface(entry):
            continue
        path = entry.get("path", b"")
        devices.append(
            DeviceInfo(
                vendor_id=entry.get("vendor_id", vendor_id),
                product_id=entry.get("product_id", 0),
                manufacturer=entry.get("manufacturer_string") or "",
                product=entry.get("product_string") or "",
                path=path.decode(errors="replace") if isinstance(path, bytes) else str(path),
            )
        )
    return devices


class HIDTransport:
    """Manages the USB HID connection to a Ledger device.

    Usage::

        transport = HIDTransport()
        transport.open()
        response = transport.exchange(apdu)
        transport.close()
    """

    def __init__(
        self,
        vendor_id: int = LEDGER_VENDOR_ID,
        channel: int = DEFAULT_CHANNEL,
        packet_size: int = PACKET_SIZE,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._channel = channel
        self._packet_size = packet_size
        self._read_timeout_ms = read_timeout_ms
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Open the first Ledger device found, trying hidapi first, then pyusb.

        Raises:
            TransportError: If no device can be found or opened.
        """
        try:
            return self._open_hidapi()
        except (ImportError, OSError, ValueError, TransportError) as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except (ImportError, OSError, ValueError, TransportError) as e:
            raise TransportError(
                f"Could not connect to a Ledger device ({self._vendor_id:#06x}). "
                f"Ensure the device is connected, unlocked and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        devices = list_devices(self._vendor_id)
        if not devices:
            raise TransportError("No Ledger device found via hidapi")
        info = devices[0]

        device = hid.device()
        device.open_path(info.path.encode())
        device.set_nonblocking(False)

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._device_info = info

        logger.info("Connected via hidapi: %s %s", info.manufacturer, info.product)
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id)
        if dev is None:
            raise TransportError("No Ledger device found via pyusb")

        if dev.is_kernel_driver_active(HID_INTERFACE):
            dev.detach_kernel_driver(HID_INTERFACE)

        usb.util.claim_interface(dev, HID_INTERFACE)

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=dev.idProduct,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, HID_INTERFACE)
                usb.util.dispose_resources(self._device)
        except OSError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write one HID report to the device.

        Raises:
            TransportError: If not connected or the write fails.
        """
        if not self._connected:
            raise TransportError("Not connected to device")

        if len(data) != self._packet_size:
            raise ValueError(
                f"HID report must be {self._packet_size} bytes, got {len(data)}"
            )

        try:
            if self._backend == "hidapi":
                # hidapi expects the report number first; Ledger uses none.
                written = self._device.write(b"\x00" + data)
            else:
                written = self._device.write(EP_OUT, data, timeout=self._read_timeout_ms)
        except OSError as e:
            raise TransportError(f"Write failed: {e}") from e

        if written < 0:
            raise TransportError("Write failed")
        return written

    def read(self) -> bytes | None:
        """Read one HID report from the device.

        Returns:
            The report, or None if the read timed out.

        Raises:
            TransportError: If not connected or the read fails.
        """
        if not self._connected:
            raise TransportError("Not connected to device")

        if self._backend == "hidapi":
            try:
                data = self._device.read(self._packet_size + 1, self._read_timeout_ms)
            except OSError as e:
                raise TransportError(f"Read failed: {e}") from e
            return bytes(data) if data else None

        import usb.core

        try:
            data = self._device.read(EP_IN, self._packet_size, timeout=self._read_timeout_ms)
        except usb.core.USBTimeoutError:
            return None
        except usb.core.USBError as e:
            raise TransportError(f"Read failed: {e}") from e
        return bytes(data)

    def exchange(self, apdu: bytes) -> bytes:
        """Send one APDU and return the full response, status word included."""
        logger.debug("=> %s", apdu.hex())
        for packet in wrap_command_apdu(apdu, self._channel, self._packet_size):
            self.write(packet)

        response = unwrap_response_apdu(self.read, self._channel, self._packet_size)
        logger.debug("<= %s", response.hex())
        return response
