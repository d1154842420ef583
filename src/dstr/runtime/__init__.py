"""Configuration and telemetry shared by every container."""

from . import settings, telemetry

__all__ = ["settings", "telemetry"]
