#!/usr/bin/env python3
"""
Command-line entry point: parse flags, validate TLS material, and serve the
relay over HTTPS with uvicorn.
"""

import argparse
import logging
import ssl
import sys
from typing import List, Optional

import uvicorn
from pydantic import ValidationError

from .config import load_config, RelayConfig
from .errors import StartupFailure
from .logging_config import setup_logging
from .main import create_app

logger = logging.getLogger("tcup")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcup",
        description="Relay authenticated HTTPS request bodies to a UDP destination",
    )
    parser.add_argument("--in", dest="listen", help="TCP listening address (default 127.0.0.1:8125)")
    parser.add_argument("--out", help="UDP destination address (default 127.0.0.1:8125)")
    parser.add_argument("--token", help='Expected "X-Token" header for all requests')
    parser.add_argument("--cert", help="Path to SSL certificate file (default cert.pem)")
    parser.add_argument("--key", help="Path to SSL key file (default key.pem)")
    parser.add_argument("--log", dest="stats_interval", type=float,
                        help="Stats logging interval in seconds. 0 disables stats logging")
    parser.add_argument("--forward-mode", choices=["atomic", "streaming"],
                        help="atomic: one datagram per request; streaming: one per body chunk")
    parser.add_argument("--empty-body", choices=["reject", "forward"],
                        help="Reject empty bodies with 400, or forward a zero-length datagram")
    parser.add_argument("--max-body", dest="max_body_bytes", type=int,
                        help="Largest accepted body in bytes, 0 for unlimited (default 65507 atomic, unlimited streaming)")
    parser.add_argument("--chunk-size", dest="stream_chunk_size", type=int,
                        help="Largest datagram written in streaming mode")
    parser.add_argument("--metrics-port", type=int, help="Serve Prometheus metrics on this port")
    parser.add_argument("--no-latency", dest="track_latency", action="store_const", const=False,
                        help="Do not track per-request latency in the stats line")
    parser.add_argument("--timing-unsafe-token", dest="token_constant_time", action="store_const", const=False,
                        help="Compare tokens with plain equality instead of in constant time")
    return parser


def check_tls_material(cert: str, key: str):
    """Load the certificate/key pair once so bad material fails before binding"""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        context.load_cert_chain(certfile=cert, keyfile=key)
    except (OSError, ssl.SSLError) as e:
        raise StartupFailure(f"cannot load TLS certificate {cert!r} / key {key!r}: {e}") from e


def serve(config: RelayConfig):
    check_tls_material(config.cert, config.key)
    host, port = config.listen_host_port
    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        ssl_certfile=config.cert,
        ssl_keyfile=config.key,
        lifespan="on",
        log_config=None,
        access_log=False,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        config = load_config(**vars(args))
    except ValidationError as e:
        logger.error("invalid configuration: %s", e)
        return 1

    try:
        serve(config)
    except StartupFailure as e:
        logger.error("startup failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
