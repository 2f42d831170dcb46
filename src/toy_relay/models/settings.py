"""Role settings for proxies, toys and controllers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping


class DeviceType(str, Enum):
    """The three roles in a relay network."""

    PROXY = "proxy"
    TOY = "toy"
    CONTROLLER = "controller"


DEFAULT_PROXY_URL = "localhost"
DEFAULT_PORT = 33330
DEFAULT_CHANNEL = 1
DEFAULT_KEEPALIVE = 30


@dataclass
class RelaySettings:
    """Connection settings shared by every role.

    Attributes:
        device_type: Role this process plays.
        proxy_url: Host of the proxy. Only toys and controllers use it.
        port: Proxy port. All three roles must agree on it.
        channel: Only devices on the same channel talk to each other.
        keepalive: Seconds between pings to the proxy, 0 disables.
        tcp: Use TCP. Only the proxy may enable both TCP and UDP.
        udp: Use UDP.
        compression: Compress every frame.
    """

    device_type: DeviceType
    proxy_url: str = DEFAULT_PROXY_URL
    port: int = DEFAULT_PORT
    channel: int | str = DEFAULT_CHANNEL
    keepalive: float = DEFAULT_KEEPALIVE
    tcp: bool = False
    udp: bool = True
    compression: bool = False

    @property
    def protocol(self) -> str:
        """Transport a toy or controller connects with; TCP wins when both are set."""
        return "tcp" if self.tcp else "udp"

    def to_dict(self) -> dict[str, Any]:
        """Settings as a JSON-friendly dict, including the resolved protocol."""
        d = asdict(self)
        d["device_type"] = self.device_type.value
        d["protocol"] = self.protocol
        return d


def create_settings(
    device_type: DeviceType | str,
    params: Mapping[str, Any] | None = None,
) -> RelaySettings:
    """Build settings for a role, falling back to defaults for falsy values.

    ``params`` uses the keys ``proxyUrl``/``proxy_url``, ``port``,
    ``channel``, ``keepalive``, ``tcp4``/``tcp``, ``udp4``/``udp`` and
    ``compression``.

    Raises:
        ValueError: If ``device_type`` is not a known role.
    """
    try:
        role = DeviceType(device_type)
    except ValueError:
        raise ValueError("Could not determine server type.") from None

    params = params or {}

    def pick(*names: str, default: Any) -> Any:
        for name in names:
            if params.get(name):
                return params[name]
        return default

    return RelaySettings(
        device_type=role,
        proxy_url=pick("proxyUrl", "proxy_url", default=DEFAULT_PROXY_URL),
        port=int(pick("port", default=DEFAULT_PORT)),
        channel=pick("channel", default=DEFAULT_CHANNEL),
        keepalive=pick("keepalive", default=DEFAULT_KEEPALIVE),
        tcp=bool(pick("tcp4", "tcp", default=False)),
        udp=bool(pick("udp4", "udp", default=True)),
        compression=bool(pick("compression", default=False)),
    )


def create_proxy(params: Mapping[str, Any] | None = None) -> RelaySettings:
    """Settings for the proxy role."""
    return create_settings(DeviceType.PROXY, params)


def create_toy(params: Mapping[str, Any] | None = None) -> RelaySettings:
    """Settings for the toy role."""
    return create_settings(DeviceType.TOY, params)


def create_controller(params: Mapping[str, Any] | None = None) -> RelaySettings:
    """Settings for the controller role."""
    return create_settings(DeviceType.CONTROLLER, params)
