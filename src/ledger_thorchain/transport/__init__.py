"""Transports carrying APDUs to the device."""

from .base import Transport
from .usb_connection import DeviceInfo, HIDTransport, list_devices
