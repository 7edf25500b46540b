import asyncio, logging, os
from typing import Any, List, Optional, Set
from pydantic import BaseModel, ValidationError
from .bridge_config import read_json, write_json
from .errors import AuthRequired, CollaboratorUnavailable, CommandTargetNotFound
from .hap_client import DeviceService
from .session import Connection, Subscriptions

log = logging.getLogger("accessories")

class SetCharacteristic(BaseModel):
    aid: int
    siid: int
    iid: int
    value: Any = None

class ControlMessage(BaseModel):
    set: Optional[SetCharacteristic] = None

class AccessoryReconciler:
    """Streams full accessory snapshots to one connection and applies its control messages.

    The bridge offers no push interface, so state is re-fetched wholesale every
    `poll_interval` seconds. After a write the list is re-fetched straight away
    and once more after `refresh_delay` to pick up side effects on other
    accessories.
    """

    def __init__(self, client, *, poll_interval: float = 3.0, refresh_delay: float = 1.5,
                 request_timeout: Optional[float] = 10.0):
        self.client = client
        self.poll_interval = poll_interval
        self.refresh_delay = refresh_delay
        self.request_timeout = request_timeout
        self.services: List[DeviceService] = []
        self.conn: Optional[Connection] = None
        self.torn_down = False
        self._subs = Subscriptions()
        self._poller: Optional[asyncio.Task] = None
        self._delayed: Set[asyncio.Task] = set()

    async def bind(self, conn: Connection):
        self.conn = conn
        self._subs.on(conn, "accessory-control", self._on_control)
        self._subs.on(conn, "disconnect", self._on_end)
        self._subs.on(conn, "end", self._on_end)

        services = await self._load()
        await self._refresh_characteristics(services)
        if self.torn_down:
            return
        self.services = services
        await self._emit()
        self._poller = asyncio.create_task(self._poll_loop())

    def _on_end(self, data=None):
        return self.teardown()

    async def teardown(self):
        if self.torn_down:
            return
        self.torn_down = True
        self._subs.cancel()
        pending = list(self._delayed)
        if self._poller is not None:
            pending.append(self._poller)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._delayed.clear()

    async def _call(self, awaitable):
        if self.request_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self.request_timeout)

    async def _load(self) -> List[DeviceService]:
        try:
            return await self._call(self.client.get_all_services())
        except AuthRequired:
            log.warning("Homebridge must be running in insecure mode to view and control accessories from this plugin.")
        except CollaboratorUnavailable as e:
            log.error("Failed load accessories from Homebridge: %s", e)
        except asyncio.TimeoutError:
            log.error("Failed load accessories from Homebridge: no answer after %ss", self.request_timeout)
        return []

    async def _refresh_characteristics(self, services: List[DeviceService]):
        async def refresh(service: DeviceService):
            try:
                await self._call(service.refresh_characteristics())
            except (CollaboratorUnavailable, asyncio.TimeoutError) as e:
                log.warning("Could not refresh %s: %s", service.service_name, str(e) or "timed out")
        await asyncio.gather(*(refresh(s) for s in services))

    async def _emit(self):
        await self.conn.emit("accessories-data", [s.to_dict() for s in self.services])

    async def reload(self):
        """Fetch the full list and send it as a snapshot."""
        services = await self._load()
        if self.torn_down:
            return
        self.services = services
        await self._emit()

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.reload()
            except Exception as e:
                # a failed poll must not end polling for the session
                log.error("Accessory poll failed: %s; retrying in %ss", e, self.poll_interval)

    async def _delayed_reload(self):
        try:
            await asyncio.sleep(self.refresh_delay)
            await self.reload()
        finally:
            self._delayed.discard(asyncio.current_task())

    def find_service(self, aid: int, siid: int) -> DeviceService:
        for s in self.services:
            if s.aid == aid and s.iid == siid:
                return s
        raise CommandTargetNotFound(aid, siid)

    async def _on_control(self, msg):
        try:
            cmd = ControlMessage.model_validate(msg).set
        except ValidationError as e:
            log.debug("Ignoring malformed accessory-control message: %s", e)
            return
        if cmd is None:
            return
        try:
            service = self.find_service(cmd.aid, cmd.siid)
        except CommandTargetNotFound as e:
            log.debug("Dropping accessory-control message: %s", e)
            return

        try:
            await self._call(service.set_characteristic(cmd.iid, cmd.value))
        except (CollaboratorUnavailable, asyncio.TimeoutError) as e:
            log.error("Failed to set %s.%s on %s: %s", cmd.aid, cmd.iid, service.service_name, str(e) or "timed out")

        if self.torn_down:
            return
        await self.reload()
        if not self.torn_down:
            self._delayed.add(asyncio.create_task(self._delayed_reload()))

class Room(BaseModel):
    name: str
    services: List[Any] = []

def default_layout() -> List[dict]:
    return [{"name": "Default Room", "services": []}]

async def get_accessory_layout(path: str, username: str) -> List[dict]:
    try:
        layout = await read_json(path)
        return layout[username]
    except (OSError, ValueError, KeyError, TypeError):
        return default_layout()

async def save_accessory_layout(path: str, username: str, layout: List[dict]) -> List[dict]:
    try:
        current = await read_json(path)
        if not isinstance(current, dict):
            current = {}
    except (OSError, ValueError):
        current = {}
    current[username] = layout
    await asyncio.to_thread(os.makedirs, os.path.dirname(path) or ".", exist_ok=True)
    await write_json(path, current)
    log.info("[%s] Accessory layout changes saved.", username)
    return layout
