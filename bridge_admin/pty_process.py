import asyncio, logging, os, signal, struct
from typing import Dict, List, Optional

log = logging.getLogger("pty")

class PtyProcess:
    """A child process whose stdio is attached to a pseudo-terminal.

    Output is read from the pty master through the event loop's reader
    callbacks, so `read()` never blocks the loop. `read()` returns b"" once
    the child side of the terminal is gone.
    """

    def __init__(self, argv: List[str], *, cwd: Optional[str] = None,
                 env: Optional[Dict[str, str]] = None, cols: int = 80, rows: int = 24):
        self.argv = list(argv)
        self.cwd = cwd
        self.env = env
        self.cols = cols
        self.rows = rows
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._master: Optional[int] = None
        self._chunks: asyncio.Queue = asyncio.Queue()
        self._eof = False

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode if self._proc else None

    async def start(self):
        import pty
        master, slave = pty.openpty()
        try:
            _set_winsize(slave, self.cols, self.rows)
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=slave, stdout=slave, stderr=slave,
                cwd=self.cwd, env=self.env,
                start_new_session=True,
            )
        except BaseException:
            os.close(master)
            raise
        finally:
            os.close(slave)
        os.set_blocking(master, False)
        self._master = master
        asyncio.get_running_loop().add_reader(master, self._on_readable)

    def _on_readable(self):
        try:
            data = os.read(self._master, 65536)
        except (BlockingIOError, InterruptedError):
            return
        except OSError:
            # linux reports EIO on the master once the child side has closed
            data = b""
        if data:
            self._chunks.put_nowait(data)
        else:
            self._close_master()

    def _close_master(self):
        if self._master is None:
            return
        asyncio.get_running_loop().remove_reader(self._master)
        os.close(self._master)
        self._master = None
        self._chunks.put_nowait(b"")

    async def read(self) -> bytes:
        if self._eof:
            return b""
        data = await self._chunks.get()
        if not data:
            self._eof = True
        return data

    def resize(self, cols: int, rows: int):
        if self._master is None:
            raise OSError("terminal is closed")
        _set_winsize(self._master, cols, rows)
        self.cols, self.rows = cols, rows

    async def wait(self) -> int:
        return await self._proc.wait()

    def kill(self):
        if self._proc is not None and self._proc.returncode is None:
            try:
                os.killpg(self._proc.pid, signal.SIGHUP)
            except (ProcessLookupError, PermissionError) as e:
                log.debug("kill %s failed: %s", self._proc.pid, e)
        self._close_master()

def _set_winsize(fd: int, cols: int, rows: int):
    import fcntl, termios
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))

async def spawn_pty(argv: List[str], *, cwd: Optional[str] = None,
                    env: Optional[Dict[str, str]] = None, cols: int = 80, rows: int = 24) -> PtyProcess:
    proc = PtyProcess(argv, cwd=cwd, env=env, cols=cols, rows=rows)
    await proc.start()
    return proc
