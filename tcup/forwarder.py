"""
Forwarder: owns the single outbound UDP socket and serializes writes to it.

Two write disciplines are supported:
  atomic     - the whole payload goes out in one send(), so one HTTP request
               produces exactly one datagram (bounded by the UDP payload limit)
  streaming  - the body is copied as it arrives, one datagram per received
               chunk, chunks larger than chunk_size are split
"""

import asyncio
import logging
import socket
from typing import AsyncIterable, Optional

from .config import split_host_port
from .errors import ForwardFailure, StartupFailure
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("tcup.forwarder")


class Forwarder:
    def __init__(self, address: str, mode: str = "atomic", chunk_size: int = 32 * 1024, dial_timeout: float = 1.0):
        self.address = address
        self.mode = mode
        self.chunk_size = chunk_size
        self.dial_timeout = dial_timeout
        self._sock: Optional[socket.socket] = None
        # At most one forward touches the socket at a time
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self):
        """Resolve and connect the UDP socket. Any failure is fatal to startup."""
        if self._sock is not None:
            return

        host, port = split_host_port(self.address)
        try:
            infos = socket.getaddrinfo(host or None, port, type=socket.SOCK_DGRAM)
        except socket.gaierror as e:
            raise StartupFailure(f"cannot resolve UDP destination {self.address}: {e}") from e

        last_error = None
        for family, socktype, proto, _canon, sockaddr in infos:
            sock = socket.socket(family, socktype, proto)
            try:
                sock.settimeout(self.dial_timeout)
                sock.connect(sockaddr)
            except OSError as e:
                last_error = e
                sock.close()
                continue
            # Writes after startup are only bounded by the kernel
            sock.settimeout(None)
            self._sock = sock
            break

        if self._sock is None:
            raise StartupFailure(f"cannot connect UDP destination {self.address}: {last_error}")

        prometheus_metrics.set_destination_connected(True)
        logger.info("UDP destination connected", extra={
            "component": "forwarder",
            "event": "connected",
            "addr": self.address,
            "mode": self.mode
        })

    def close(self):
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing UDP socket: %s", e)
        finally:
            self._sock = None
            prometheus_metrics.set_destination_connected(False)

    def _send(self, datagram: bytes) -> int:
        if self._sock is None:
            raise ForwardFailure("UDP destination is not connected")
        try:
            sent = self._sock.send(datagram)
        except OSError as e:
            prometheus_metrics.increment_forward_errors()
            raise ForwardFailure(str(e)) from e
        if sent != len(datagram):
            prometheus_metrics.increment_forward_errors()
            raise ForwardFailure(f"short write: {sent} of {len(datagram)} bytes")
        return sent

    async def forward(self, payload: bytes) -> int:
        """Send the payload as one datagram and return the number of bytes written."""
        async with self._lock:
            sent = self._send(payload)
        prometheus_metrics.increment_datagrams(self.mode)
        return sent

    async def forward_stream(self, chunks: AsyncIterable[bytes]) -> int:
        """Copy chunks to the socket as they arrive.

        The lock is held until the iterator is exhausted, so datagrams of two
        requests never interleave. Errors raised by the iterator propagate
        unchanged; the caller treats the whole request as undelivered.
        """
        total = 0
        datagrams = 0
        async with self._lock:
            try:
                async for chunk in chunks:
                    for start in range(0, len(chunk), self.chunk_size):
                        total += self._send(chunk[start:start + self.chunk_size])
                        datagrams += 1
            finally:
                if datagrams:
                    prometheus_metrics.increment_datagrams(self.mode, datagrams)
        return total
