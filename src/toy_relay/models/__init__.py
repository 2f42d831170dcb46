"""Data models for relay roles."""

from .settings import DeviceType, RelaySettings, create_settings
