import asyncio, codecs, enum, logging, os, sys
from typing import List, Optional
from .bridge_config import LogSourceConfig
from .errors import ConfigurationMissing, ProcessExitedEarly
from .log_command import build_command, describe
from .pty_process import spawn_pty
from .session import Connection, Subscriptions

log = logging.getLogger("log")

RED = "\033[31m"
CYAN = "\033[36m"
RESET = "\033[0m"

DOCS_URL = "https://github.com/oznu/homebridge-config-ui-x#log-viewer-configuration"

def red(s: str) -> str:
    return f"{RED}{s}{RESET}"

def cyan(s: str) -> str:
    return f"{CYAN}{s}{RESET}"

class LogState(str, enum.Enum):
    IDLE = "idle"
    CONFIGURED = "configured"
    STREAMING = "streaming"
    TERMINATED = "terminated"

async def elevated_kill(pid: int):
    # the plain kill may not reach a child started through sudo
    try:
        proc = await asyncio.create_subprocess_exec(
            "sudo", "-n", "kill", "-9", str(pid),
            stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL,
        )
        await proc.wait()
    except OSError as e:
        log.debug("sudo kill %s failed: %s", pid, e)

class LogStreamController:
    """Runs the configured log command on a pty and forwards its output as `stdout`."""

    def __init__(self, log_config: Optional[LogSourceConfig], *, sudo: bool = False,
                 cwd: Optional[str] = None, spawn=spawn_pty, platform: str = sys.platform):
        self.log_config = log_config
        self.sudo = sudo
        self.cwd = cwd
        self.platform = platform
        self.state = LogState.IDLE
        self.command: Optional[List[str]] = None
        self.process = None
        self.conn: Optional[Connection] = None
        self.torn_down = False
        self._spawn = spawn
        self._subs = Subscriptions()
        self._pump: Optional[asyncio.Task] = None

    def _resolve_command(self) -> List[str]:
        command = build_command(self.log_config, sudo=self.sudo, platform=self.platform)
        if command is None:
            raise ConfigurationMissing('"log" option is not configured')
        return command

    async def bind(self, conn: Connection):
        self.conn = conn
        self._subs.on(conn, "disconnect", self._on_end)
        self._subs.on(conn, "end", self._on_end)

        try:
            self.command = self._resolve_command()
        except ConfigurationMissing:
            await conn.emit("stdout",
                            red('Cannot show logs. "log" option is not configured correctly in your Homebridge config.json file.\r\n\r\n')
                            + cyan(f"See {DOCS_URL} for instructions.\r\n"))
            return

        self.state = LogState.CONFIGURED
        method = self.log_config.method
        await conn.emit("stdout",
                        cyan(f'Loading logs using "{method}" method...\r\n')
                        + cyan(f"CMD: {describe(self.command)}\r\n\r\n"))
        if self.torn_down:
            return

        try:
            self.process = await self._start(conn)
        except ProcessExitedEarly as e:
            await self._report_exit(e)
            return

        if self.torn_down:
            # the client went away while the process was starting
            self.process.kill()
            return
        self.state = LogState.STREAMING
        self._subs.on(conn, "resize", self._on_resize)
        self._pump = asyncio.create_task(self._stream())

    async def _start(self, conn: Connection):
        env = dict(os.environ, TERM="xterm-color")
        try:
            return await self._spawn(self.command, cwd=self.cwd, env=env,
                                     cols=conn.cols, rows=conn.rows)
        except OSError as e:
            log.error("Could not start log command %s: %s", describe(self.command), e)
            raise ProcessExitedEarly(self.command, -1) from e

    async def _stream(self):
        try:
            await self._forward_output()
        except ProcessExitedEarly as e:
            await self._report_exit(e)

    async def _forward_output(self):
        """Forward output until EOF; raises ProcessExitedEarly unless torn down first."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await self.process.read()
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                await self.conn.emit("stdout", text)
        tail = decoder.decode(b"", final=True)
        if tail:
            await self.conn.emit("stdout", tail)

        code = await self.process.wait()
        if not self.torn_down:
            raise ProcessExitedEarly(self.command, code)

    async def _report_exit(self, exc: ProcessExitedEarly):
        log.warning("Log command stopped: %s", exc)
        self.state = LogState.TERMINATED
        await self.conn.emit("stdout",
                             "\n\r"
                             + red(f'The log tail command "{describe(self.command)}" exited with code {exc.code}.\n\r')
                             + red("Please check the command in your config.json is correct.\n\r\n\r"))

    def _on_resize(self, data):
        try:
            cols, rows = int(data["cols"]), int(data["rows"])
            self.process.resize(cols, rows)
        except (OSError, KeyError, TypeError, ValueError):
            pass
        else:
            self.conn.cols, self.conn.rows = cols, rows

    def _on_end(self, data=None):
        return self.teardown()

    async def teardown(self):
        if self.torn_down:
            return
        self.torn_down = True
        self.state = LogState.TERMINATED
        self._subs.cancel()

        if self._pump is not None:
            self._pump.cancel()
            await asyncio.gather(self._pump, return_exceptions=True)

        proc = self.process
        if proc is None:
            return
        running = proc.returncode is None
        proc.kill()
        if self.sudo and running and proc.pid:
            await elevated_kill(proc.pid)
