# A client connection exposes named inbound events and an outbound emit.
# Controllers bind to one connection each and own their own listeners and
# teardown; Session guarantees every termination path reaches every
# controller's teardown.
import asyncio, logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

log = logging.getLogger("session")

Handler = Callable[[Any], Any]

class Subscription:
    def __init__(self, conn: "Connection", event: str, handler: Handler):
        self._conn = conn
        self.event = event
        self.handler = handler
        self.active = True

    def cancel(self):
        if self.active:
            self.active = False
            self._conn._detach(self.event, self.handler)

class Subscriptions:
    """Every listener one controller registered; cancelled together."""

    def __init__(self):
        self._subs: List[Subscription] = []

    def on(self, conn: "Connection", event: str, handler: Handler) -> Subscription:
        sub = conn.on(event, handler)
        self._subs.append(sub)
        return sub

    def cancel(self):
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.cancel()

class Connection:
    """Transport independent half of a client session.

    Transports call `fire()` for every inbound event and implement `_send()`
    and `_close()`. Async listeners run as tasks so a slow handler never
    holds up the next inbound event.
    """

    def __init__(self, cols: int = 80, rows: int = 24):
        self.cols = cols
        self.rows = rows
        self.closed = False
        self._listeners: Dict[str, List[Handler]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def on(self, event: str, handler: Handler) -> Subscription:
        self._listeners.setdefault(event, []).append(handler)
        return Subscription(self, event, handler)

    def _detach(self, event: str, handler: Handler):
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._listeners[event]

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, ()))
        return sum(len(h) for h in self._listeners.values())

    def fire(self, event: str, data: Any = None) -> List[asyncio.Task]:
        tasks = []
        for handler in list(self._listeners.get(event, ())):
            try:
                result = handler(data)
            except Exception:
                log.exception("%s listener failed", event)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.create_task(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
                tasks.append(task)
        return tasks

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("listener task failed", exc_info=task.exception())

    async def emit(self, event: str, data: Any = None):
        if self.closed:
            return
        await self._send(event, data)

    async def close(self):
        if self.closed:
            return
        self.closed = True
        await self._close()

    async def _send(self, event: str, data: Any):
        raise NotImplementedError

    async def _close(self):
        pass

class Controller(Protocol):
    async def bind(self, conn: Connection) -> None: ...
    async def teardown(self) -> None: ...

class Session:
    def __init__(self, conn: Connection, controllers: List[Controller]):
        self.conn = conn
        self.controllers = list(controllers)
        self.closed = False
        self._subs = Subscriptions()

    async def open(self):
        self._subs.on(self.conn, "disconnect", self._on_terminate)
        self._subs.on(self.conn, "end", self._on_terminate)
        await asyncio.gather(*(c.bind(self.conn) for c in self.controllers))

    def _on_terminate(self, data=None):
        return self.close()

    async def close(self):
        if self.closed:
            return
        self.closed = True
        self._subs.cancel()
        for c in self.controllers:
            try:
                await c.teardown()
            except Exception:
                log.exception("teardown of %s failed", type(c).__name__)
        await self.conn.close()
