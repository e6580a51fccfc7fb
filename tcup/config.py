"""
Configuration module for the tcup relay
"""

import os
from typing import Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def split_host_port(address: str) -> Tuple[str, int]:
    """Split "host:port" (or "[v6]:port") into a (host, port) tuple"""
    host, sep, port = address.rpartition(":")
    if not sep or not port:
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    if not 0 <= port_num <= 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host, port_num


# Largest payload a single UDP datagram can carry over IPv4
MAX_UDP_PAYLOAD = 65507

# Logging configuration
LOG_LEVEL = os.getenv("TCUP_LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("TCUP_LOG_FORMAT", "text")
LOGGING_CONFIG_FILE = os.getenv("TCUP_LOGGING_CONFIG", "")
HTTP_LOG_SAMPLE_RATE = float(os.getenv("TCUP_HTTP_LOG_SAMPLE_RATE", "0.0"))


class RelayConfig(BaseModel):
    """Startup parameters of one relay instance. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    listen: str = Field("127.0.0.1:8125", description="TCP listening address (host:port)")
    out: str = Field("127.0.0.1:8125", description="UDP destination address (host:port)")
    token: str = Field("", description="Expected X-Token header value; empty matches only an empty header")
    cert: str = Field("cert.pem", description="Path to TLS certificate file")
    key: str = Field("key.pem", description="Path to TLS key file")
    stats_interval: float = Field(0, ge=0, description="Stats flush interval in seconds (0 = disabled)")
    forward_mode: Literal["atomic", "streaming"] = Field("atomic", description="One datagram per request, or one per body chunk")
    track_latency: bool = Field(True, description="Accumulate per-request latency into the stats line")
    empty_body: Literal["reject", "forward"] = Field("reject", description="Reject empty bodies with 400, or forward a zero-length datagram")
    max_body_bytes: int = Field(MAX_UDP_PAYLOAD, ge=0, description="Largest accepted body (0 = unlimited); unset means 65507 atomic, unlimited streaming")
    token_constant_time: bool = Field(True, description="Compare tokens in constant time")
    stream_chunk_size: int = Field(32 * 1024, gt=0, description="Largest datagram written in streaming mode")
    dial_timeout: float = Field(1.0, gt=0, description="Timeout for connecting the UDP socket at startup")
    metrics_port: int = Field(0, ge=0, le=65535, description="Prometheus exporter port (0 = disabled)")

    @model_validator(mode="before")
    @classmethod
    def default_body_limit(cls, data):
        # Streaming exists to carry bodies larger than one datagram
        if isinstance(data, dict) and data.get("max_body_bytes") is None:
            data = dict(data)
            data["max_body_bytes"] = 0 if data.get("forward_mode") == "streaming" else MAX_UDP_PAYLOAD
        return data

    @field_validator("listen", "out")
    @classmethod
    def validate_address(cls, value: str) -> str:
        split_host_port(value)
        return value

    @model_validator(mode='after')
    def validate_chunking(self) -> 'RelayConfig':
        if self.forward_mode == "streaming" and self.stream_chunk_size > MAX_UDP_PAYLOAD:
            raise ValueError(f"stream_chunk_size cannot exceed {MAX_UDP_PAYLOAD} bytes")
        return self

    @property
    def listen_host_port(self) -> Tuple[str, int]:
        return split_host_port(self.listen)

    @property
    def out_host_port(self) -> Tuple[str, int]:
        return split_host_port(self.out)

    @property
    def stats_enabled(self) -> bool:
        return self.stats_interval > 0


def load_config(**overrides) -> RelayConfig:
    """Build a RelayConfig from TCUP_* environment variables, then apply overrides.

    Overrides whose value is None are ignored so callers can pass unset CLI flags
    straight through.
    """
    values = {
        "listen": os.getenv("TCUP_LISTEN", "127.0.0.1:8125"),
        "out": os.getenv("TCUP_OUT", "127.0.0.1:8125"),
        "token": os.getenv("TCUP_TOKEN", ""),
        "cert": os.getenv("TCUP_CERT", "cert.pem"),
        "key": os.getenv("TCUP_KEY", "key.pem"),
        "stats_interval": os.getenv("TCUP_STATS_INTERVAL", "0"),
        "forward_mode": os.getenv("TCUP_FORWARD_MODE", "atomic"),
        "track_latency": env_bool("TCUP_TRACK_LATENCY", True),
        "empty_body": os.getenv("TCUP_EMPTY_BODY", "reject"),
        "max_body_bytes": os.getenv("TCUP_MAX_BODY_BYTES"),
        "token_constant_time": env_bool("TCUP_TOKEN_CONSTANT_TIME", True),
        "stream_chunk_size": os.getenv("TCUP_STREAM_CHUNK_BYTES", str(32 * 1024)),
        "dial_timeout": os.getenv("TCUP_DIAL_TIMEOUT", "1.0"),
        "metrics_port": os.getenv("TCUP_METRICS_PORT", "0"),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return RelayConfig(**values)
