"""Alarm device HTTP client."""

from .client import DeviceClient, DeviceError, DeviceRejectedError, DeviceTransportError

__all__ = ["DeviceClient", "DeviceError", "DeviceRejectedError", "DeviceTransportError"]
