"""Event-driven pass-through stream with flow control and backpressure."""

import asyncio
import logging
from collections import deque

from stream_sniffer.config import SnifferConfig
from stream_sniffer.events import EventEmitter

logger = logging.getLogger(__name__)

DEFAULT_HIGH_WATER_MARK = SnifferConfig.high_water_mark

# Strong references to running pump tasks so they are not garbage collected
_pump_tasks: set[asyncio.Task] = set()


class WriteAfterEndError(RuntimeError):
    """Raised when writing to a stream whose writable side has ended."""


def to_bytes(chunk) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"chunk must be bytes or str, got {type(chunk).__name__}")


class PassThrough(EventEmitter):
    """Duplex conduit: every chunk written is re-emitted, in order, to readers.

    Starts in neither flowing nor paused mode. Attaching a "data" listener
    (or calling resume()/pipe()) switches it to flowing mode, where buffered
    chunks are emitted as "data" events on a later loop turn. Otherwise
    chunks stay buffered until read() or async iteration consumes them.

    Events: "data", "end", "finish", "readable", "drain", "error", "pipe".
    All deferred work is scheduled on the running asyncio loop.
    """

    def __init__(self, high_water_mark: int = DEFAULT_HIGH_WATER_MARK) -> None:
        super().__init__()
        if high_water_mark <= 0:
            raise ValueError(f"high_water_mark must be positive, got {high_water_mark}")
        self.high_water_mark = high_water_mark
        self.readable = True
        self.writable = True
        self._buffer: deque[bytes] = deque()
        self._buffered = 0
        self._flowing: bool | None = None
        self._ended = False
        self._end_emitted = False
        self._need_drain = False
        self._flow_scheduled = False
        self._readable_scheduled = False
        self._end_scheduled = False

    @property
    def flowing(self) -> bool | None:
        return self._flowing

    @property
    def buffered_bytes(self) -> int:
        return self._buffered

    @property
    def writable_ended(self) -> bool:
        return self._ended

    @property
    def readable_ended(self) -> bool:
        return self._end_emitted

    def on(self, event, listener):
        super().on(event, listener)
        if event == "data" and self._flowing is None:
            self.resume()
        elif event == "readable" and (self._buffer or self._ended):
            self._schedule_readable()
        return self

    add_listener = on

    # ── Writable side ─────────────────────────────────────────────

    def write(self, chunk) -> bool:
        """Buffer *chunk*. Returns False once the high-water mark is reached."""
        if self._ended:
            raise WriteAfterEndError("write after end")
        data = to_bytes(chunk)
        if data:
            self._buffer.append(data)
            self._buffered += len(data)
            self._signal_data()
        if self._buffered >= self.high_water_mark:
            self._need_drain = True
            return False
        return True

    def end(self, chunk=None) -> None:
        """Finish the writable side, optionally writing a last *chunk*."""
        if self._ended:
            return
        if chunk is not None:
            self.write(chunk)
        self._ended = True
        self.writable = False
        asyncio.get_running_loop().call_soon(self.emit, "finish")
        self._signal_data()

    # ── Readable side ─────────────────────────────────────────────

    def pause(self) -> "PassThrough":
        self._flowing = False
        return self

    def resume(self) -> "PassThrough":
        if not self._flowing:
            self._flowing = True
            self._schedule_flow()
        return self

    def is_paused(self) -> bool:
        return self._flowing is False

    def read(self, size: int | None = None) -> bytes | None:
        """Return up to *size* buffered bytes (all of them by default).

        Returns None when nothing is buffered. Once the writable side has
        ended and the buffer is empty, "end" is emitted on a later turn.
        """
        if size is not None and size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        if not self._buffer:
            if self._ended:
                self._schedule_end()
            return None
        joined = b"".join(self._buffer)
        self._buffer.clear()
        if size is not None and size < len(joined):
            data = joined[:size]
            self._buffer.append(joined[size:])
        else:
            data = joined
        return self._consumed(data)

    def pipe(self, dest, end: bool = True):
        """Forward every chunk to *dest*, honouring its backpressure."""

        def ondata(chunk):
            if dest.write(chunk) is False:
                self.pause()

        def ondrain():
            if self._flowing is False:
                self.resume()

        dest.on("drain", ondrain)
        if end:
            self.once("end", dest.end)
        self.on("data", ondata)
        dest.emit("pipe", self)
        self.resume()
        return dest

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        # Paused-mode consumption; do not combine with "data" listeners.
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future | None = None
        errors: list = []

        def wake(*_):
            if waiter is not None and not waiter.done():
                waiter.set_result(None)

        def on_error(*args):
            errors.append(args[0] if args else None)
            wake()

        self.on("readable", wake)
        self.on("end", wake)
        self.on("error", on_error)
        try:
            while True:
                if errors:
                    err = errors[0]
                    if isinstance(err, BaseException):
                        raise err
                    raise RuntimeError(f"Stream error: {err!r}")
                chunk = self._shift()
                if chunk is not None:
                    yield chunk
                    continue
                if self._end_emitted:
                    return
                waiter = loop.create_future()
                await waiter
        finally:
            self.remove_listener("readable", wake)
            self.remove_listener("end", wake)
            self.remove_listener("error", on_error)

    # ── Internals ─────────────────────────────────────────────────

    def _shift(self) -> bytes | None:
        """Pop a single buffered chunk, keeping write boundaries."""
        if not self._buffer:
            if self._ended:
                self._schedule_end()
            return None
        return self._consumed(self._buffer.popleft())

    def _consumed(self, data: bytes) -> bytes:
        self._buffered -= len(data)
        self._maybe_drain()
        if self._ended and not self._buffer:
            self._schedule_end()
        return data

    def _signal_data(self) -> None:
        if self._flowing:
            self._schedule_flow()
        else:
            self._schedule_readable()

    def _schedule_flow(self) -> None:
        if not self._flow_scheduled:
            self._flow_scheduled = True
            asyncio.get_running_loop().call_soon(self._flow)

    def _flow(self) -> None:
        self._flow_scheduled = False
        try:
            # A listener may pause the stream mid-loop
            while self._flowing and self._buffer:
                chunk = self._buffer.popleft()
                self._buffered -= len(chunk)
                self.emit("data", chunk)
        except BaseException:
            # Chunks behind a raising listener still get delivered
            if self._flowing:
                self._schedule_flow()
            raise
        self._maybe_drain()
        if self._flowing and self._ended and not self._buffer:
            self._schedule_end()

    def _maybe_drain(self) -> None:
        if self._need_drain and self._buffered < self.high_water_mark:
            self._need_drain = False
            self.emit("drain")

    def _schedule_readable(self) -> None:
        if not self._readable_scheduled:
            self._readable_scheduled = True
            asyncio.get_running_loop().call_soon(self._emit_readable)

    def _emit_readable(self) -> None:
        self._readable_scheduled = False
        if self._flowing or self._end_emitted:
            return
        if self._buffer or self._ended:
            self.emit("readable")

    def _schedule_end(self) -> None:
        if not self._end_scheduled and not self._end_emitted:
            self._end_scheduled = True
            asyncio.get_running_loop().call_soon(self._emit_end)

    def _emit_end(self) -> None:
        self._end_scheduled = False
        if self._end_emitted or self._buffer or not self._ended:
            return
        self._end_emitted = True
        self.readable = False
        logger.debug("Stream %r ended", self)
        self.emit("end")


async def _pump(reader, stream: PassThrough, chunk_size: int) -> None:
    loop = asyncio.get_running_loop()
    logger.debug("Pumping %r in %d-byte chunks", reader, chunk_size)
    try:
        while True:
            data = await reader.read(chunk_size)
            if not data:
                break
            if not stream.write(data):
                drained = loop.create_future()

                def _on_drain():
                    if not drained.done():
                        drained.set_result(None)

                stream.once("drain", _on_drain)
                await drained
    except Exception as e:
        logger.exception("Reading from %r failed", reader)
        stream.emit("error", e)
        return
    stream.end()
    logger.debug("Finished pumping %r", reader)


def from_reader(reader, chunk_size: int | None = None,
                config: SnifferConfig | None = None) -> PassThrough:
    """Expose an object with ``async read(n)`` as a readable PassThrough.

    Works with asyncio.StreamReader and aiofiles file handles. Reading
    starts on the next loop turn; an empty read ends the stream and a
    failed read is emitted as "error".
    """
    config = config or SnifferConfig()
    size = chunk_size or config.read_chunk_size
    if size <= 0:
        raise ValueError(f"chunk_size must be positive, got {size}")
    stream = PassThrough(high_water_mark=config.high_water_mark)
    task = asyncio.ensure_future(_pump(reader, stream, size))
    _pump_tasks.add(task)
    task.add_done_callback(_pump_tasks.discard)
    return stream
