import pytest
from bridge_admin.bridge_config import LogSourceConfig, UiConfig
from bridge_admin.log_command import build_command

FILE = LogSourceConfig(method="file", path="/var/log/homebridge.log")
SYSTEMD = LogSourceConfig(method="systemd", service="hb")
CUSTOM = LogSourceConfig(method="custom", command="tail -n 10 -f /var/log/x")

def test_file_method_tails_the_file():
    assert build_command(FILE, platform="linux") == ["tail", "-n", "200", "-f", "/var/log/homebridge.log"]

def test_file_method_on_windows_uses_powershell():
    cmd = build_command(FILE, platform="win32")
    assert cmd[0] == "powershell.exe"
    assert cmd[2] == "Get-Content -Path '/var/log/homebridge.log' -Wait -Tail 200"

def test_systemd_method():
    assert build_command(SYSTEMD, platform="linux") == ["journalctl", "-o", "cat", "-n", "500", "-f", "-u", "hb"]

def test_systemd_defaults_to_homebridge_unit():
    cmd = build_command(LogSourceConfig(method="systemd"), platform="linux")
    assert cmd[-2:] == ["-u", "homebridge"]

def test_custom_command_is_split_on_whitespace():
    assert build_command(CUSTOM, platform="linux") == ["tail", "-n", "10", "-f", "/var/log/x"]

@pytest.mark.parametrize("log", [
    None,
    LogSourceConfig(),
    LogSourceConfig(method="file"),
    LogSourceConfig(method="custom"),
    LogSourceConfig(method="syslog", path="/var/log/x"),
])
def test_not_configured(log):
    assert build_command(log, platform="linux") is None
    assert build_command(log, sudo=True, platform="linux") is None

@pytest.mark.parametrize("log,tool", [(FILE, "tail"), (SYSTEMD, "journalctl"), (CUSTOM, "tail")])
def test_sudo_prefix_only_when_requested(log, tool):
    plain = build_command(log, platform="linux")
    elevated = build_command(log, sudo=True, platform="linux")
    assert plain[0] == tool
    assert elevated[:2] == ["sudo", "-n"]
    assert elevated[2:] == plain

def test_output_is_deterministic():
    assert build_command(SYSTEMD, sudo=True, platform="linux") == build_command(SYSTEMD, sudo=True, platform="linux")

def test_ui_config_ignores_non_object_log():
    assert UiConfig.model_validate({"platform": "config", "log": "yes"}).log is None
    ui = UiConfig.model_validate({"platform": "config", "sudo": True, "log": {"method": "systemd"}})
    assert ui.sudo and ui.log.method == "systemd"
