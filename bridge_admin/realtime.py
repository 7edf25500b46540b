import logging
from typing import Any, List
import orjson
from fastapi import WebSocket, WebSocketDisconnect
from .accessories import AccessoryReconciler
from .bridge_config import load_bridge_config, load_ui_config
from .hap_client import HapClient
from .log_stream import LogStreamController
from .session import Connection, Controller, Session
from .settings import settings

log = logging.getLogger("realtime")

class WebSocketConnection(Connection):
    """Connection over a WebSocket carrying `{"event": ..., "data": ...}` JSON frames."""

    def __init__(self, ws: WebSocket, cols: int = 80, rows: int = 24):
        super().__init__(cols=cols, rows=rows)
        self.ws = ws

    async def _send(self, event: str, data: Any):
        try:
            await self.ws.send_text(orjson.dumps({"event": event, "data": data}).decode())
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            # the socket is gone; the receive loop reports the disconnect
            log.debug("dropping %s frame: %s", event, e)

    async def _close(self):
        try:
            await self.ws.close()
        except RuntimeError:
            pass

    async def run(self):
        """Dispatch inbound frames until the client disconnects or ends the session."""
        while True:
            try:
                raw = await self.ws.receive_text()
            except WebSocketDisconnect:
                self.fire("disconnect")
                return
            try:
                msg = orjson.loads(raw)
            except orjson.JSONDecodeError:
                log.warning("ignoring malformed frame")
                continue
            if not isinstance(msg, dict) or not isinstance(msg.get("event"), str):
                continue
            self.fire(msg["event"], msg.get("data"))
            if msg["event"] == "end":
                return

async def make_log_controller() -> LogStreamController:
    ui = await load_ui_config(settings.config_path, settings.UIX_MULTIMODE)
    return LogStreamController(ui.log, sudo=ui.sudo, cwd=settings.BRIDGE_STORAGE_PATH)

async def make_reconciler() -> AccessoryReconciler:
    config = await load_bridge_config(settings.config_path)
    if not config.bridge.port:
        log.error("config.json does not define a port under bridge.port")
        log.error("You can correct this automatically by going to the Config editor and clicking save and then restarting Homebridge.")
    client = HapClient(f"http://{settings.BRIDGE_HOST}:{config.bridge.port}", config.bridge.pin,
                       timeout=settings.REQUEST_TIMEOUT_S)
    return AccessoryReconciler(client,
                               poll_interval=settings.POLL_INTERVAL_S,
                               refresh_delay=settings.REFRESH_DELAY_S,
                               request_timeout=settings.REQUEST_TIMEOUT_S)

async def serve(ws: WebSocket, controllers: List[Controller], cols: int = 80, rows: int = 24):
    await ws.accept()
    conn = WebSocketConnection(ws, cols=cols, rows=rows)
    session = Session(conn, controllers)
    try:
        await session.open()
        await conn.run()
    finally:
        await session.close()
