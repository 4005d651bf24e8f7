"""Local HTTP listener invoked by the alarm device."""

from .local_api import LocalEventListener

__all__ = ["LocalEventListener"]
