"""Typed configuration for the telemetry uplink."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .core.config_loader import ConfigLoader
from .core.exceptions import ConfigurationError
from .fix.types import FixQuality
from .paths.types import PathConfig

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.txt")

SOURCE_KINDS = ("gpsd", "serial")

# Keys recognised in config.txt; values give the coercion type
DEFAULTS: Dict[str, Any] = {
    # Endpoint
    "endpoint_host": "",
    "endpoint_port": 5000,
    "mptcp": True,
    "connect_timeout": 5.0,
    "send_timeout": 2.0,
    "precision": 7,
    # Paths
    "paths": "",
    "probe_host": "",
    "probe_port": 0,
    "probe_interval": 5.0,
    "probe_timeout": 2.0,
    "down_after": 3,
    # Fix source
    "source": "gpsd",
    "gpsd_host": "127.0.0.1",
    "gpsd_port": 2947,
    "serial_port": "/dev/serial0",
    "baud_rate": 9600,
    "min_quality": "2d",
    # Buffering and reconnect
    "buffer_capacity": 1000,
    "backoff_base": 1.0,
    "backoff_max": 30.0,
    "backoff_factor": 2.0,
    "backoff_jitter": 0.2,
    "drain_timeout": 5.0,
    # Logging
    "log_level": "info",
    "log_file": "",
    "event_log": "",
    # Status API
    "status_api": True,
    "status_host": "127.0.0.1",
    "status_port": 8765,
}


def parse_paths(value: str) -> List[PathConfig]:
    """Parse ``"lte=wwan0, wifi=wlan0"`` into path configs, keeping order."""
    paths: List[PathConfig] = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        paths.append(parse_path_entry(item))
    return paths


def parse_path_entry(item: str) -> PathConfig:
    path_id, sep, interface = item.partition("=")
    path_id = path_id.strip()
    interface = interface.strip()
    if not sep or not path_id or not interface:
        raise ConfigurationError(f"Invalid path entry '{item}' (expected id=interface)")
    return PathConfig(id=path_id, local_interface=interface)


def parse_endpoint(value: str) -> Tuple[str, int]:
    """Parse ``host:port`` (``[v6addr]:port`` for IPv6 literals)."""
    text = value.strip()
    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    else:
        host, sep, port_text = text.rpartition(":")
    if not sep or not host or not port_text:
        raise ConfigurationError(f"Invalid endpoint '{value}' (expected HOST:PORT)")
    try:
        port = int(port_text)
    except ValueError:
        raise ConfigurationError(f"Invalid endpoint port in '{value}'") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"Endpoint port out of range in '{value}'")
    return host, port


@dataclass(slots=True)
class UplinkConfig:
    """Typed configuration for the telemetry uplink."""

    # Endpoint
    endpoint_host: str = ""
    endpoint_port: int = 5000
    mptcp: bool = True
    connect_timeout: float = 5.0
    send_timeout: float = 2.0
    precision: int = 7

    # Paths
    paths: List[PathConfig] = field(default_factory=list)
    probe_host: str = ""
    probe_port: int = 0
    probe_interval: float = 5.0
    probe_timeout: float = 2.0
    down_after: int = 3

    # Fix source
    source: str = "gpsd"
    gpsd_host: str = "127.0.0.1"
    gpsd_port: int = 2947
    serial_port: str = "/dev/serial0"
    baud_rate: int = 9600
    min_quality: FixQuality = FixQuality.FIX_2D

    # Buffering and reconnect
    buffer_capacity: int = 1000
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    backoff_factor: float = 2.0
    backoff_jitter: float = 0.2
    drain_timeout: float = 5.0

    # Logging
    log_level: str = "info"
    log_file: Optional[Path] = None
    event_log: Optional[Path] = None

    # Status API
    status_api: bool = True
    status_host: str = "127.0.0.1"
    status_port: int = 8765

    @classmethod
    def from_dict(cls, values: Dict[str, Any], args: Any = None) -> "UplinkConfig":
        """Build config from loaded ``config.txt`` values with optional CLI overrides."""
        merged = dict(DEFAULTS)
        merged.update(values)

        try:
            min_quality = FixQuality.parse(merged["min_quality"])
        except ValueError as exc:
            raise ConfigurationError(f"Invalid min_quality: {exc}") from None

        config = cls(
            endpoint_host=str(merged["endpoint_host"]),
            endpoint_port=int(merged["endpoint_port"]),
            mptcp=bool(merged["mptcp"]),
            connect_timeout=float(merged["connect_timeout"]),
            send_timeout=float(merged["send_timeout"]),
            precision=int(merged["precision"]),
            paths=parse_paths(str(merged["paths"])),
            probe_host=str(merged["probe_host"]),
            probe_port=int(merged["probe_port"]),
            probe_interval=float(merged["probe_interval"]),
            probe_timeout=float(merged["probe_timeout"]),
            down_after=int(merged["down_after"]),
            source=str(merged["source"]).lower(),
            gpsd_host=str(merged["gpsd_host"]),
            gpsd_port=int(merged["gpsd_port"]),
            serial_port=str(merged["serial_port"]),
            baud_rate=int(merged["baud_rate"]),
            min_quality=min_quality,
            buffer_capacity=int(merged["buffer_capacity"]),
            backoff_base=float(merged["backoff_base"]),
            backoff_max=float(merged["backoff_max"]),
            backoff_factor=float(merged["backoff_factor"]),
            backoff_jitter=float(merged["backoff_jitter"]),
            drain_timeout=float(merged["drain_timeout"]),
            log_level=str(merged["log_level"]),
            log_file=Path(merged["log_file"]) if merged["log_file"] else None,
            event_log=Path(merged["event_log"]) if merged["event_log"] else None,
            status_api=bool(merged["status_api"]),
            status_host=str(merged["status_host"]),
            status_port=int(merged["status_port"]),
        )

        if args is not None:
            config = config._apply_args_override(args)

        config.validate()
        return config

    @classmethod
    def load(cls, config_path: Optional[Path] = None, args: Any = None) -> "UplinkConfig":
        values = ConfigLoader.load(config_path or DEFAULT_CONFIG_PATH, defaults=DEFAULTS, strict=True)
        return cls.from_dict(values, args)

    @classmethod
    async def load_async(cls, config_path: Optional[Path] = None, args: Any = None) -> "UplinkConfig":
        values = await ConfigLoader.load_async(config_path or DEFAULT_CONFIG_PATH, defaults=DEFAULTS, strict=True)
        return cls.from_dict(values, args)

    def _apply_args_override(self, args: Any) -> "UplinkConfig":
        """Apply CLI argument overrides to config values."""
        values = {name: getattr(self, name) for name in self.__dataclass_fields__}

        arg_mappings = {
            "log_level": "log_level",
            "log_file": "log_file",
            "source": "source",
            "status_port": "status_port",
            "serial_port": "serial_port",
        }

        for arg_name, config_key in arg_mappings.items():
            val = getattr(args, arg_name, None)
            if val is not None:
                values[config_key] = val

        endpoint = getattr(args, "endpoint", None)
        if endpoint:
            values["endpoint_host"], values["endpoint_port"] = parse_endpoint(endpoint)

        # --path replaces the configured path list rather than extending it
        cli_paths = getattr(args, "paths", None)
        if cli_paths:
            values["paths"] = [parse_path_entry(item) for item in cli_paths]

        if getattr(args, "no_status_api", False):
            values["status_api"] = False

        if isinstance(values["log_file"], str):
            values["log_file"] = Path(values["log_file"])

        return UplinkConfig(**values)

    def validate(self) -> None:
        if not self.endpoint_host:
            raise ConfigurationError("No endpoint configured (set endpoint_host or pass --endpoint)")
        if self.source not in SOURCE_KINDS:
            raise ConfigurationError(f"Unknown source '{self.source}' (expected one of {', '.join(SOURCE_KINDS)})")
        if self.buffer_capacity < 1:
            raise ConfigurationError("buffer_capacity must be at least 1")
        if self.send_timeout <= 0 or self.drain_timeout < 0:
            raise ConfigurationError("send_timeout must be positive and drain_timeout non-negative")
        if self.down_after < 1:
            raise ConfigurationError("down_after must be at least 1")
        if not 0 <= self.precision <= 12:
            raise ConfigurationError("precision must be between 0 and 12")

    @property
    def probe_target(self) -> Tuple[str, int]:
        """Where path probes connect; defaults to the endpoint itself."""
        return (self.probe_host or self.endpoint_host, self.probe_port or self.endpoint_port)

    def to_dict(self) -> dict[str, Any]:
        """Export config values as dictionary."""
        data = asdict(self)
        data["paths"] = [f"{p.id}={p.local_interface}" for p in self.paths]
        data["min_quality"] = self.min_quality.name
        data["log_file"] = str(self.log_file) if self.log_file else None
        data["event_log"] = str(self.event_log) if self.event_log else None
        return data


__all__ = [
    "DEFAULTS",
    "DEFAULT_CONFIG_PATH",
    "SOURCE_KINDS",
    "UplinkConfig",
    "parse_endpoint",
    "parse_path_entry",
    "parse_paths",
]
