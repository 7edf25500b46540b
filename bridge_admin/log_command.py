# Builds the argv used to stream the bridge's logs, from the `log` block of
# the UI config. No shell escaping is done for the custom method: the command
# string is split on whitespace exactly as configured.
import sys
from typing import List, Optional
from .bridge_config import LogSourceConfig

SUDO_PREFIX = ["sudo", "-n"]
DEFAULT_UNIT = "homebridge"

def _is_windows(platform: str) -> bool:
    return platform.startswith("win")

def build_command(log: Optional[LogSourceConfig], *, sudo: bool = False,
                  platform: str = sys.platform) -> Optional[List[str]]:
    """Return the log command for `log`, or None when logging is not configured."""
    if log is None:
        return None

    if log.method == "file" and log.path:
        if _is_windows(platform):
            command = ["powershell.exe", "-command", f"Get-Content -Path '{log.path}' -Wait -Tail 200"]
        else:
            command = ["tail", "-n", "200", "-f", log.path]
    elif log.method == "systemd":
        command = ["journalctl", "-o", "cat", "-n", "500", "-f", "-u", log.service or DEFAULT_UNIT]
    elif log.method == "custom" and log.command:
        command = log.command.split()
    else:
        return None

    # there is no sudo on windows
    if sudo and not _is_windows(platform):
        command = SUDO_PREFIX + command
    return command

def describe(command: List[str]) -> str:
    return " ".join(command)
