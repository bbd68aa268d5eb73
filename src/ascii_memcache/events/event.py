from typing import Any, Callable, List

Handler = Callable[..., None]


class Event(object):
    def __init__(self) -> None:
        self._eventhandlers: List[Handler] = []

    def __iadd__(self, handler: Handler) -> "Event":
        self._eventhandlers.append(handler)
        return self

    def __isub__(self, handler: Handler) -> "Event":
        self._eventhandlers.remove(handler)
        return self

    def __len__(self) -> int:
        return len(self._eventhandlers)

    def __call__(self, *args: Any) -> None:
        for eventhandler in list(self._eventhandlers):
            eventhandler(*args)

    def clear(self) -> None:
        self._eventhandlers.clear()


class ClientEvents(object):
    """
    Out of band notifications of a client connection:

    * on_connect(): first connection attempt started
    * on_reconnect(): a reconnection attempt started
    * on_ready(): socket connected, commands can flow
    * on_closed(error): socket closed, error is None on graceful close
    * on_timeout(): idle timeout expired, socket is being closed
    * on_connection_timeout(): connection could not be established in time
    * on_error(error): non fatal socket / stream error
    * on_fatal(error): max retries reached or client destroyed
    * on_debug(message): debug traces, only when debug is enabled
    """

    def __init__(self) -> None:
        self.on_connect = Event()
        self.on_reconnect = Event()
        self.on_ready = Event()
        self.on_closed = Event()
        self.on_timeout = Event()
        self.on_connection_timeout = Event()
        self.on_error = Event()
        self.on_fatal = Event()
        self.on_debug = Event()

    def clear(self) -> None:
        for event in vars(self).values():
            event.clear()
