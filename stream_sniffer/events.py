"""Minimal synchronous event emitter used by the stream primitives."""

from typing import Any, Callable

Listener = Callable[..., Any]


class EventEmitter:
    """Registers listeners per event name and calls them on emit().

    Listeners run synchronously, in registration order, against a snapshot
    of the listener list taken when emit() starts.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> "EventEmitter":
        self._listeners.setdefault(event, []).append(listener)
        return self

    add_listener = on

    def once(self, event: str, listener: Listener) -> "EventEmitter":
        """Register *listener* for the next *event* only."""

        def _once(*args):
            self.remove_listener(event, _once)
            return listener(*args)

        _once.listener = listener
        return self.on(event, _once)

    def remove_listener(self, event: str, listener: Listener) -> "EventEmitter":
        registered = self._listeners.get(event)
        if not registered:
            return self
        for i in range(len(registered) - 1, -1, -1):
            candidate = registered[i]
            # Equality, not identity: bound methods are recreated on each access
            if candidate == listener or getattr(candidate, "listener", None) == listener:
                del registered[i]
                break
        if not registered:
            del self._listeners[event]
        return self

    off = remove_listener

    def listeners(self, event: str) -> list[Listener]:
        return [
            getattr(listener, "listener", listener)
            for listener in self._listeners.get(event, [])
        ]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args) -> bool:
        """Call every listener for *event*. Returns False if there were none.

        An "error" event nobody listens for is raised instead.
        """
        listeners = list(self._listeners.get(event, []))
        if not listeners:
            if event == "error":
                err = args[0] if args else None
                if isinstance(err, BaseException):
                    raise err
                raise RuntimeError(f"Unhandled error event: {err!r}")
            return False
        for listener in listeners:
            listener(*args)
        return True
