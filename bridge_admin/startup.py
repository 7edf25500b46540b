# Entry point: the listen address, TLS files and log level come from the UI
# block of the bridge config so the admin service follows the bridge's setup.
import asyncio, logging, socket
from typing import Any, Dict
import uvicorn
from .bridge_config import UiConfig, load_ui_config
from .settings import settings

log = logging.getLogger("startup")

DEFAULT_PORT = 8581

def ipv6_available() -> bool:
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as s:
            s.bind(("::1", 0))
        return True
    except OSError:
        return False

def server_options(ui: UiConfig, *, ipv6: bool, log_level: str = "info") -> Dict[str, Any]:
    """Keyword arguments for `uvicorn.run`."""
    opts: Dict[str, Any] = {
        "host": ui.host or ("::" if ipv6 else "0.0.0.0"),
        "port": ui.port or DEFAULT_PORT,
        "log_level": "debug" if ui.debug else log_level.lower(),
    }
    ssl = ui.ssl
    if ssl is not None:
        if ssl.key and ssl.cert:
            opts["ssl_keyfile"] = ssl.key
            opts["ssl_certfile"] = ssl.cert
            if ssl.passphrase:
                opts["ssl_keyfile_password"] = ssl.passphrase
        elif ssl.pfx:
            # uvicorn only loads PEM key/cert pairs
            log.warning("ssl.pfx is not supported, configure ssl.key and ssl.cert instead; serving without TLS")
    return opts

def main():
    ui = asyncio.run(load_ui_config(settings.config_path, settings.UIX_MULTIMODE))
    if ui.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    uvicorn.run("bridge_admin.main:app", **server_options(ui, ipv6=ipv6_available(), log_level=settings.LOG_LEVEL))
