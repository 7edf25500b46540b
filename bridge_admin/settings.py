import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    BRIDGE_STORAGE_PATH: str = os.path.expanduser("~/.homebridge")
    BRIDGE_CONFIG_PATH: Optional[str] = None
    UIX_CONFIG_PATH: Optional[str] = None
    UIX_MULTIMODE: Optional[str] = None
    ACCESSORY_LAYOUT_PATH: Optional[str] = None
    BRIDGE_HOST: str = "localhost"
    LOG_LEVEL: str = "INFO"
    POLL_INTERVAL_S: float = 3.0
    REFRESH_DELAY_S: float = 1.5
    REQUEST_TIMEOUT_S: float = 10.0
    RESTART_DELAY_S: float = 0.5

    @property
    def config_path(self) -> str:
        return self.BRIDGE_CONFIG_PATH or self.UIX_CONFIG_PATH or os.path.join(self.BRIDGE_STORAGE_PATH, "config.json")

    @property
    def layout_path(self) -> str:
        return self.ACCESSORY_LAYOUT_PATH or os.path.join(
            self.BRIDGE_STORAGE_PATH, "accessories", "uiAccessoriesLayout.json")

settings = Settings()
