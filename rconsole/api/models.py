"""
API-level models.

This module contains models that belong to the api layer:
- RConConfig, the validated connection configuration
"""

from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Optional, Self, Union

import yaml

from .types import TransportKind
from ..exceptions import RConConfigurationError

# A custom transport factory receives the protocol factory and returns
# (transport, protocol), either directly or as an awaitable, in the same
# shape as loop.create_connection().
TransportFactory = Callable[[Callable[[], Any]], Union[tuple[Any, Any], Awaitable[tuple[Any, Any]]]]


@dataclass
class RConConfig:
    """Connection configuration, validated on construction"""
    password: str
    transport: TransportKind | str = TransportKind.DIRECT
    host: Optional[str] = None
    port: Optional[int] = None
    factory: Optional[TransportFactory] = None
    reconnect: bool = True

    def __post_init__(self):
        try:
            self.transport = TransportKind(self.transport)
        except ValueError:
            raise RConConfigurationError(f"Invalid transport '{self.transport}', expected one of {[t.value for t in TransportKind]}") from None
        if self.password is None:
            raise RConConfigurationError("Missing password")
        match self.transport:
            case TransportKind.DIRECT:
                if not self.host:
                    raise RConConfigurationError("Missing host")
                if not self.port:
                    raise RConConfigurationError("Missing port")
                try:
                    self.port = int(self.port)
                except (TypeError, ValueError):
                    raise RConConfigurationError(f"Invalid port '{self.port}'") from None
                if not 0 < self.port < 65536:
                    raise RConConfigurationError(f"Port {self.port} out of range")
            case TransportKind.CUSTOM:
                if self.factory is None:
                    raise RConConfigurationError("Missing transport factory")
                if not callable(self.factory):
                    raise RConConfigurationError("Transport factory must be callable")
        self.reconnect = bool(self.reconnect)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        if not isinstance(data, dict):
            raise RConConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise RConConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        if "password" not in data:
            raise RConConfigurationError("Missing password")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str, section: str = "rcon") -> Self:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        if section:
            config = config.get(section)
            if config is None:
                raise RConConfigurationError(f"No '{section}' section in {path}")
        return cls.from_dict(config)
