"""
Speed Test Configuration
Process-wide settings for the control server, bulk listener and test driver
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Tuple

MEASUREMENT_MODES = ('pull', 'push')


def parse_address(value: str, default_host: str = '0.0.0.0') -> Tuple[str, int]:
    """
    Parse a listen address such as ":8080", "127.0.0.1:3001" or "8080".

    Returns:
        (host, port)
    """
    value = value.strip()
    if ':' not in value:
        return default_host, int(value)

    host, _, port = value.rpartition(':')
    host = host.strip('[]') or default_host
    return host, int(port)


@dataclass(frozen=True)
class SpeedTestConfig:
    """Immutable configuration built once at process start"""

    # Control channel (HTTP + WebSocket)
    host: str = '0.0.0.0'
    port: int = 8080

    # Bulk transfer channel (pull mode)
    bulk_host: str = '0.0.0.0'
    bulk_port: int = 3001
    bulk_target_host: str = '127.0.0.1'  # Where the driver dials the bulk listener

    # Payload
    chunk_size: int = 8 * 1024 * 1024  # 8MB blocks
    reuse_payload: bool = False

    # Test run
    default_duration: int = 10
    max_duration: int = 300  # 5 minutes maximum run duration
    sample_interval: float = 1.0
    measurement_mode: str = 'pull'

    # I/O deadlines
    connect_timeout: float = 5.0
    transfer_timeout: float = 10.0
    send_timeout: float = 10.0

    # Capacity
    max_connections: int = 30

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'SpeedTestConfig':
        """Create configuration from environment variables"""
        defaults = cls()
        return cls(
            host=os.getenv('LANSPEED_HOST', defaults.host),
            port=int(os.getenv('LANSPEED_PORT', defaults.port)),
            bulk_host=os.getenv('LANSPEED_BULK_HOST', defaults.bulk_host),
            bulk_port=int(os.getenv('LANSPEED_BULK_PORT', defaults.bulk_port)),
            bulk_target_host=os.getenv('LANSPEED_BULK_TARGET_HOST', defaults.bulk_target_host),
            chunk_size=int(os.getenv('LANSPEED_CHUNK_SIZE', defaults.chunk_size)),
            reuse_payload=os.getenv('LANSPEED_REUSE_PAYLOAD', 'false').lower() == 'true',
            default_duration=int(os.getenv('LANSPEED_DEFAULT_DURATION', defaults.default_duration)),
            max_duration=int(os.getenv('LANSPEED_MAX_DURATION', defaults.max_duration)),
            sample_interval=float(os.getenv('LANSPEED_SAMPLE_INTERVAL', defaults.sample_interval)),
            measurement_mode=os.getenv('LANSPEED_MODE', defaults.measurement_mode).lower(),
            connect_timeout=float(os.getenv('LANSPEED_CONNECT_TIMEOUT', defaults.connect_timeout)),
            transfer_timeout=float(os.getenv('LANSPEED_TRANSFER_TIMEOUT', defaults.transfer_timeout)),
            send_timeout=float(os.getenv('LANSPEED_SEND_TIMEOUT', defaults.send_timeout)),
            max_connections=int(os.getenv('LANSPEED_MAX_CONNECTIONS', defaults.max_connections)),
            log_level=os.getenv('LANSPEED_LOG_LEVEL', defaults.log_level).upper(),
        )

    def with_overrides(self, **changes: Any) -> 'SpeedTestConfig':
        """Return a copy with the given fields replaced, ignoring None values"""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def resolve_duration(self, requested: int) -> int:
        """Map a requested run duration to the one actually used (0 means default)"""
        if requested <= 0:
            return self.default_duration
        return min(requested, self.max_duration)

    def summary(self) -> Dict[str, Any]:
        """Non-sensitive settings for health output"""
        return {
            'measurement_mode': self.measurement_mode,
            'chunk_size': self.chunk_size,
            'sample_interval': self.sample_interval,
            'default_duration': self.default_duration,
            'max_duration': self.max_duration,
            'max_connections': self.max_connections,
        }

    def validate(self) -> bool:
        """Validate configuration parameters"""
        for name in ('port', 'bulk_port'):
            value = getattr(self, name)
            if not 0 <= value <= 65535:
                raise ValueError(f"Invalid {name}: {value}")

        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

        if self.measurement_mode not in MEASUREMENT_MODES:
            raise ValueError(f"Unknown measurement mode: {self.measurement_mode}")

        if self.default_duration <= 0 or self.max_duration < self.default_duration:
            raise ValueError("default_duration must be positive and not exceed max_duration")

        if self.sample_interval < 0:
            raise ValueError("sample_interval cannot be negative")

        for name in ('connect_timeout', 'transfer_timeout', 'send_timeout'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.max_connections <= 0:
            raise ValueError("max_connections must be positive")

        return True
