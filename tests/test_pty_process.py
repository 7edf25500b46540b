import asyncio
import sys
import pytest
from bridge_admin.pty_process import spawn_pty

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX pty")

async def read_all(proc) -> bytes:
    out = b""
    while True:
        chunk = await proc.read()
        if not chunk:
            return out
        out += chunk

async def test_output_and_exit_code():
    proc = await spawn_pty(["sh", "-c", "printf hello; exit 3"])
    assert await asyncio.wait_for(read_all(proc), 5) == b"hello"
    assert await asyncio.wait_for(proc.wait(), 5) == 3
    assert await proc.read() == b""

async def test_terminal_size_and_resize():
    proc = await spawn_pty(["sh", "-c", "stty size; sleep 5"], cols=91, rows=17)
    first = await asyncio.wait_for(proc.read(), 5)
    assert b"17 91" in first
    proc.resize(120, 40)
    assert (proc.cols, proc.rows) == (120, 40)
    proc.kill()
    assert await asyncio.wait_for(proc.wait(), 5) != 0
    with pytest.raises(OSError):
        proc.resize(10, 10)

async def test_missing_executable():
    with pytest.raises(OSError):
        await spawn_pty(["definitely-not-a-real-command-xyz"])
