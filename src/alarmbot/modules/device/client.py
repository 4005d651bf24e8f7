"""
HTTP client for the alarm device control surface.

The device answers four routes. State-changing routes are plain GETs, which is
what the deployed firmware accepts; success means any 2xx reply.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ...core.contracts import BaseModule, DeviceStatus, HealthStatus, ModuleConfig

logger = logging.getLogger(__name__)


class DeviceError(RuntimeError):
    """Base class for failures talking to the alarm device."""


class DeviceTransportError(DeviceError):
    """Raised when the device cannot be reached (connect, DNS, timeout)."""


class DeviceRejectedError(DeviceError):
    """Raised when the device answers with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"alarm returned {status_code} {reason}".rstrip())


def parse_status_body(body: str) -> DeviceStatus:
    """
    Normalise a status reply that may be JSON (`{"state": "..."}`) or plain text.

    A body that is not JSON, not an object, or has an empty `state` falls back
    to the whole body as text.
    """
    try:
        decoded: Any = json.loads(body)
    except ValueError:
        decoded = None
    if isinstance(decoded, dict):
        state = decoded.get("state")
        if isinstance(state, str) and state.strip():
            return DeviceStatus(state=state.strip().upper(), raw=body, structured=True)
    return DeviceStatus(state=body.strip().upper(), raw=body, structured=False)


class DeviceClient(BaseModule):
    """Translate arm/disarm/status/change-PIN into calls against the device."""

    name = "modules.device.client"

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._base_url = (base_url or "").rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._last_error: str | None = None

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._base_url = str(options.get("base_url", self._base_url)).rstrip("/")
        self._timeout = float(options.get("timeout", self._timeout))

    async def start(self) -> None:
        if not self._base_url:
            raise ValueError("DeviceClient requires a base_url.")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            )
        logger.info("DeviceClient targeting %s", self._base_url)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def health(self) -> HealthStatus:
        details = {
            "base_url": self._base_url,
            "client_open": self._client is not None,
            "last_error": self._last_error,
        }
        status = "healthy" if self._client is not None and not self._last_error else "degraded"
        return HealthStatus(status=status, details=details)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def arm(self) -> None:
        await self._command("/arm")

    async def disarm(self) -> None:
        await self._command("/disarm")

    async def status(self) -> DeviceStatus:
        response = await self._get("/status")
        result = parse_status_body(response.text)
        logger.debug("Device status %s (structured=%s)", result.state, result.structured)
        return result

    async def change_pin(self, pin: str) -> None:
        # httpx percent-encodes query values, so the PIN arrives unchanged.
        await self._command("/change_pin", params={"pin": pin})

    async def _command(self, path: str, *, params: dict[str, str] | None = None) -> None:
        await self._get(path, params=params)
        logger.info("Device accepted %s", path)

    async def _get(self, path: str, *, params: dict[str, str] | None = None) -> httpx.Response:
        client = self._ensure_client()
        try:
            response = await client.get(path, params=params)
        except httpx.HTTPError as exc:
            self._last_error = str(exc) or exc.__class__.__name__
            logger.warning("Device request %s failed: %s", path, self._last_error)
            raise DeviceTransportError(self._last_error) from exc
        if not response.is_success:
            self._last_error = f"{path} -> {response.status_code}"
            logger.warning("Device rejected %s with %s", path, response.status_code)
            raise DeviceRejectedError(response.status_code, response.reason_phrase)
        self._last_error = None
        return response

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("DeviceClient has not been started yet.")
        return self._client


__all__ = [
    "DeviceClient",
    "DeviceError",
    "DeviceRejectedError",
    "DeviceTransportError",
    "parse_status_body",
]
