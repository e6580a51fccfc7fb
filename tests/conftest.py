import socket

import pytest
from fastapi.testclient import TestClient

from tcup.config import RelayConfig
from tcup.main import create_app

TOKEN = "secret"
VALID_HEADERS = {"X-Token": TOKEN}


class UdpSink:
    """Loopback UDP socket standing in for the downstream collector"""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(1.0)

    @property
    def address(self) -> str:
        host, port = self.sock.getsockname()
        return f"{host}:{port}"

    def recv(self) -> bytes:
        data, _addr = self.sock.recvfrom(65535)
        return data

    def recv_many(self, count: int) -> list:
        return [self.recv() for _ in range(count)]

    def assert_empty(self, wait: float = 0.1):
        self.sock.settimeout(wait)
        try:
            data, _addr = self.sock.recvfrom(65535)
        except socket.timeout:
            return
        finally:
            self.sock.settimeout(1.0)
        raise AssertionError(f"unexpected datagram: {data!r}")

    def close(self):
        self.sock.close()


@pytest.fixture
def udp_sink():
    sink = UdpSink()
    yield sink
    sink.close()


@pytest.fixture
def make_config(udp_sink):
    def _make(**overrides) -> RelayConfig:
        values = {"out": udp_sink.address, "token": TOKEN}
        values.update(overrides)
        return RelayConfig(**values)
    return _make


@pytest.fixture
def make_client(make_config):
    """Start a relay app (lifespan included) for the given config overrides"""
    clients = []

    def _make(**overrides) -> TestClient:
        client = TestClient(create_app(make_config(**overrides)))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
