"""
Core infrastructure for the alarm bridge.

This package exposes the shared contracts, the alarm state store, the
configuration service and the module runtime.
"""

from .config import ConfigError, ConfigService, ConfigSnapshot
from .contracts import (
    AlarmState,
    BaseModule,
    BasePayload,
    DeviceStatus,
    HealthStatus,
    InboundEvent,
    ModuleConfig,
)
from .runtime import Runtime
from .state import ReadWriteLock, StateStore

__all__ = [
    "AlarmState",
    "BaseModule",
    "BasePayload",
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "DeviceStatus",
    "HealthStatus",
    "InboundEvent",
    "ModuleConfig",
    "ReadWriteLock",
    "Runtime",
    "StateStore",
]
