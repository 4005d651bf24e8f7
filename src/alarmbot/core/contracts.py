"""
Contracts and payload schemas shared by the alarm bridge modules.

Payloads are frozen pydantic models so they can be passed between the chat
side and the local listener without defensive copies. The lifecycle base
class mirrors what every long-lived component implements.
"""

from __future__ import annotations

import abc
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AlarmState(StrEnum):
    """The two values the shared alarm can take."""

    ARMED = "ARMED"
    DISARMED = "DISARMED"


class BasePayload(BaseModel):
    """Base class for all payloads exchanged between modules."""

    model_config = ConfigDict(extra="allow", frozen=True)


class InboundEvent(BasePayload):
    """A chat message decoded from the messaging platform."""

    update_id: int = Field(ge=0, description="Platform cursor value of the update.")
    chat_id: int | None = Field(
        default=None,
        description="Originating chat; None when the update carries no message.",
    )
    text: str = Field(default="", description="Trimmed message text.")

    @property
    def addressable(self) -> bool:
        return self.chat_id is not None


class DeviceStatus(BasePayload):
    """Result of a status query against the alarm device."""

    state: str = Field(description="Trimmed, uppercased state reported by the device.")
    raw: str = Field(default="", description="Body as returned by the device.")
    structured: bool = Field(
        default=False, description="Whether the state came from a JSON reply."
    )

    @property
    def is_armed(self) -> bool:
        return self.state == AlarmState.ARMED.value


class HealthStatus(BaseModel):
    """Structured health report for modules."""

    model_config = ConfigDict(extra="allow", frozen=True)

    status: str = Field(description="Health classification such as healthy/degraded/error.")
    details: dict[str, Any] = Field(default_factory=dict)


class ModuleConfig(BaseModel):
    """Baseline configuration contract applied to all modules."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = Field(default=True)
    options: dict[str, Any] = Field(
        default_factory=dict, description="Arbitrary module configuration."
    )


class BaseModule(abc.ABC):
    """
    Abstract base class for long-lived components.

    Collaborators are passed to the constructor; configuration arrives via
    `configure` before `start` is awaited.
    """

    name: str

    def __init__(self) -> None:
        self._configured = False
        self._config = ModuleConfig()

    async def configure(self, config: ModuleConfig) -> None:
        """Apply the provided configuration prior to module start."""
        self._config = config
        self._configured = True

    @abc.abstractmethod
    async def start(self) -> None:
        """Acquire resources or schedule background tasks."""

    async def stop(self) -> None:
        """
        Optional hook to release resources.

        Base implementation is a no-op so subclasses can override only
        when needed without being forced to mark the method abstract.
        """
        return None

    async def health(self) -> HealthStatus:
        """Return a basic health status; modules can override for richer diagnostics."""
        status = "healthy" if self._configured else "degraded"
        return HealthStatus(status=status, details={"configured": self._configured})


__all__ = [
    "AlarmState",
    "BaseModule",
    "BasePayload",
    "DeviceStatus",
    "HealthStatus",
    "InboundEvent",
    "ModuleConfig",
]
