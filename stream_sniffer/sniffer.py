"""Gzip detection over a live stream without consuming its data.

sniff() watches the leading chunks of a readable stream until it has seen
enough bytes to check the gzip signature, while piping everything into a
PassThrough that is handed back to the caller immediately. The detector only
listens to the same "data" events the pipe receives, so the sink still gets
every byte, in order.
"""

import asyncio
import logging
from typing import Any, Callable

from stream_sniffer.config import SnifferConfig
from stream_sniffer.signature import MIN_SIGNATURE_LENGTH, looks_like_gzip
from stream_sniffer.streams import PassThrough, to_bytes

logger = logging.getLogger(__name__)

SniffCallback = Callable[[BaseException | None, bool | None, Any], Any]


class InvalidStreamError(TypeError):
    """The value handed to sniff() is not a readable stream."""

    def __init__(self, message: str = "input is not a readable stream") -> None:
        super().__init__(message)


def is_readable_stream(obj) -> bool:
    """Structural check: callable on/once/pipe and ``readable is True``."""
    if obj is None:
        return False
    for name in ("on", "once", "pipe"):
        if not callable(getattr(obj, name, None)):
            return False
    return getattr(obj, "readable", None) is True


def sniff(source, callback: SniffCallback, config: SnifferConfig | None = None):
    """Detect whether *source* carries gzip data.

    Returns a PassThrough sink right away; *callback* is later called once
    as ``callback(err, is_gzipped, sink)``. Invalid input is reported to the
    callback on the next loop turn as InvalidStreamError and the original
    value is returned as-is. Errors emitted by *source* are re-emitted on the
    sink, not passed to the callback.

    A source that never ends and never produces MIN_SIGNATURE_LENGTH bytes
    never calls back.

    Must be called from a running asyncio event loop; without one it raises
    RuntimeError, even for invalid input.
    """
    loop = asyncio.get_running_loop()

    if not is_readable_stream(source):
        logger.warning("sniff() called with non-stream %s", type(source).__name__)
        loop.call_soon(callback, InvalidStreamError(), None, None)
        return source

    config = config or SnifferConfig()
    # The sink must hold a whole signature, or pipe() backpressure would pause
    # the source before detection can finish
    sink = PassThrough(high_water_mark=max(config.high_water_mark, MIN_SIGNATURE_LENGTH))
    chunks: list[bytes] = []
    resolved = False

    def resolve(is_gzipped: bool) -> None:
        nonlocal resolved
        if resolved:
            return
        resolved = True
        callback(None, is_gzipped, sink)

    def on_data(chunk) -> None:
        chunks.append(to_bytes(chunk))
        head = b"".join(chunks)
        if len(head) >= MIN_SIGNATURE_LENGTH:
            is_gzipped = looks_like_gzip(head)
            logger.debug("Sniffed %d leading bytes, gzip=%s", len(head), is_gzipped)
            resolve(is_gzipped)
        else:
            listen_for_data()

    def listen_for_data() -> None:
        source.once("data", on_data)

    def on_end() -> None:
        seen = sum(len(c) for c in chunks)
        if seen < MIN_SIGNATURE_LENGTH:
            logger.debug("Stream ended after %d bytes, not gzip", seen)
            loop.call_soon(resolve, False)

    def on_error(*args) -> None:
        logger.debug("Relaying upstream error to sink: %r", args[0] if args else None)
        sink.emit("error", *args)

    source.on("error", on_error)
    source.on("end", on_end)
    # Forwarding listener first so a raising callback cannot starve the sink
    source.pipe(sink)
    listen_for_data()
    return sink


async def sniff_stream(source, config: SnifferConfig | None = None) -> tuple[bool, PassThrough]:
    """Awaitable form of sniff(): returns ``(is_gzipped, sink)``.

    Raises InvalidStreamError instead of reporting it through a callback.
    """
    result = asyncio.get_running_loop().create_future()

    def on_result(err, is_gzipped, sink) -> None:
        if result.done():
            return
        if err is not None:
            result.set_exception(err)
        else:
            result.set_result((is_gzipped, sink))

    sniff(source, on_result, config)
    return await result
