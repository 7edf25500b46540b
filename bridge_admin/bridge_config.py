import asyncio, json, os, random
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

class LogSourceConfig(BaseModel):
    """The `log` block of the UI platform config."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    method: Optional[str] = None
    path: Optional[str] = None
    service: Optional[str] = None
    command: Optional[str] = None

class SslConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    key: Optional[str] = None
    cert: Optional[str] = None
    pfx: Optional[str] = None
    passphrase: Optional[str] = None

class UiConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    platform: str = "config"
    port: Optional[int] = None
    host: Optional[str] = None
    sudo: bool = False
    restart: Optional[str] = None
    debug: bool = False
    log: Optional[LogSourceConfig] = None
    ssl: Optional[SslConfig] = None

    @field_validator("log", mode="before")
    @classmethod
    def _log_must_be_object(cls, v):
        # anything but an object means logging is not configured
        return v if isinstance(v, (dict, LogSourceConfig)) else None

class BridgeSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = "Homebridge"
    username: str = ""
    port: Optional[int] = None
    pin: str = ""

class BridgeConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    bridge: BridgeSection = Field(default_factory=BridgeSection)
    platforms: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def ui(self) -> UiConfig:
        for p in self.platforms:
            if isinstance(p, dict) and p.get("platform") == "config":
                return UiConfig.model_validate(p)
        return UiConfig()

    @property
    def accessory_id(self) -> str:
        return self.bridge.username.replace(":", "")

def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def _write_json(path: str, data: Any):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4)

async def read_json(path: str) -> Any:
    return await asyncio.to_thread(_read_json, path)

async def write_json(path: str, data: Any):
    await asyncio.to_thread(_write_json, path, data)

async def load_bridge_config(path: str) -> BridgeConfig:
    try:
        raw = await read_json(path)
    except FileNotFoundError:
        return BridgeConfig()
    return BridgeConfig.model_validate(raw)

async def load_ui_config(config_path: str, multimode_dir: Optional[str] = None) -> UiConfig:
    """UI settings: `ui.json` in the multimode directory, else the `config` platform block."""
    if multimode_dir:
        try:
            raw = await read_json(os.path.join(multimode_dir, "ui.json"))
        except FileNotFoundError:
            return UiConfig()
        return UiConfig.model_validate(raw)
    return (await load_bridge_config(config_path)).ui

async def save_bridge_config(path: str, config: BridgeConfig):
    await write_json(path, config.model_dump(exclude_none=True))

def generate_pin() -> str:
    digits = "".join(str(random.randint(0, 9)) for _ in range(8))
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"

def generate_username() -> str:
    return ":".join(f"{random.randint(0, 255):02X}" for _ in range(6))
