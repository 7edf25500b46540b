import asyncio, io, logging, os, shutil, signal
from typing import Any, Dict, Optional, Set
import segno
from .bridge_config import generate_pin, generate_username, load_bridge_config, load_ui_config, save_bridge_config
from .settings import Settings, settings
from .setup_code import SetupCodeCache

log = logging.getLogger("server")

class ServerService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._setup_code: Optional[SetupCodeCache] = None
        self._tasks: Set[asyncio.Task] = set()

    async def restart(self) -> Dict[str, Any]:
        """Schedule a restart of the bridge and answer right away."""
        log.info("Homebridge restart request received")
        ui = await load_ui_config(self.settings.config_path, self.settings.UIX_MULTIMODE)
        task = asyncio.create_task(self._restart_later(ui.restart))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return {"ok": True, "command": ui.restart}

    async def _restart_later(self, command: Optional[str]):
        await asyncio.sleep(self.settings.RESTART_DELAY_S)
        if command:
            log.info("Executing restart command: %s", command)
            proc = await asyncio.create_subprocess_shell(command)
            if await proc.wait() != 0:
                log.error("Restart command exited with an error. Failed to restart Homebridge.")
        else:
            log.info("No restart command defined, killing process...")
            os.kill(os.getpid(), signal.SIGTERM)

    async def reset_accessory(self):
        """Give the bridge a new identity and drop its cached accessories.

        Plugin configuration in config.json is preserved.
        """
        config = await load_bridge_config(self.settings.config_path)
        config.bridge.pin = generate_pin()
        config.bridge.username = generate_username()
        log.warning("Homebridge Reset: New Username: %s", config.bridge.username)
        log.warning("Homebridge Reset: New Pin: %s", config.bridge.pin)
        await save_bridge_config(self.settings.config_path, config)

        storage = self.settings.BRIDGE_STORAGE_PATH
        for name in ("accessories", "persist"):
            await asyncio.to_thread(shutil.rmtree, os.path.join(storage, name), True)
            log.info('Homebridge Reset: "%s" directory removed.', name)

    async def setup_code(self) -> Optional[str]:
        if self._setup_code is None:
            config = await load_bridge_config(self.settings.config_path)
            path = os.path.join(self.settings.BRIDGE_STORAGE_PATH, "persist",
                                f"AccessoryInfo.{config.accessory_id}.json")
            self._setup_code = SetupCodeCache(path)
        return await self._setup_code.get()

    async def qrcode_svg(self) -> Optional[bytes]:
        code = await self.setup_code()
        if not code:
            return None
        out = io.BytesIO()
        segno.make(code, micro=False).save(out, kind="svg", border=0)
        return out.getvalue()

server = ServerService(settings)
