"""
Relay endpoint: every method on every path forwards the request body to the
UDP destination.
"""

import time
from typing import AsyncIterator

from fastapi import APIRouter, Request, Response
from starlette.requests import ClientDisconnect

from ..auth import require_token
from ..config import RelayConfig
from ..errors import BodyReadFailure, EmptyPayload, PayloadTooLarge
from ..services.prometheus_metrics import prometheus_metrics

router = APIRouter()


async def read_body_chunks(request: Request, limit: int) -> AsyncIterator[bytes]:
    """Yield the non-empty body chunks, enforcing the size limit (0 = unlimited)"""
    declared = request.headers.get("content-length")
    if limit and declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge()

    received = 0
    try:
        async for chunk in request.stream():
            if not chunk:
                continue
            received += len(chunk)
            if limit and received > limit:
                raise PayloadTooLarge()
            yield chunk
    except ClientDisconnect as e:
        raise BodyReadFailure("client disconnected while sending body") from e
    except OSError as e:
        raise BodyReadFailure(str(e)) from e


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    yield first
    async for chunk in rest:
        yield chunk


def _check_empty(config: RelayConfig):
    if config.empty_body == "reject":
        raise EmptyPayload()


async def relay(request: Request) -> Response:
    session = request.app.state.session
    config = session.config
    started = time.perf_counter()

    require_token(request.headers.get("x-token"), config)

    chunks = read_body_chunks(request, config.max_body_bytes)
    try:
        if config.forward_mode == "streaming":
            first = await anext(chunks, None)
            if first is None:
                _check_empty(config)
                sent = await session.forwarder.forward(b"")
            else:
                sent = await session.forwarder.forward_stream(_prepend(first, chunks))
        else:
            body = b"".join([chunk async for chunk in chunks])
            if not body:
                _check_empty(config)
            sent = await session.forwarder.forward(body)
    finally:
        await chunks.aclose()

    elapsed = time.perf_counter() - started
    session.stats.record(sent, elapsed * 1000.0)
    prometheus_metrics.record_forward(sent, elapsed)
    return Response(status_code=200)


# Registered as a plain route with methods=None so no HTTP method is filtered
router.add_route("/{path:path}", relay, methods=None, include_in_schema=False)
