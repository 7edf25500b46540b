import asyncio
from typing import Any, Dict, List, Optional
import pytest
from bridge_admin.errors import AuthRequired
from bridge_admin.hap_client import parse_accessories
from bridge_admin.session import Connection

class RecordingConnection(Connection):
    def __init__(self, cols: int = 80, rows: int = 24):
        super().__init__(cols=cols, rows=rows)
        self.sent: List[tuple] = []
        self.close_calls = 0

    async def _send(self, event: str, data: Any):
        self.sent.append((event, data))

    async def _close(self):
        self.close_calls += 1

    def events(self, name: str) -> List[Any]:
        return [data for event, data in self.sent if event == name]

    def stdout(self) -> str:
        return "".join(self.events("stdout"))

def accessories_payload(on: bool = False) -> Dict[str, Any]:
    return {"accessories": [
        {"aid": 1, "services": [
            {"iid": 1, "type": "3E", "characteristics": [
                {"iid": 2, "type": "23", "perms": ["pr"], "format": "string", "value": "Bridge", "description": "Name"},
                {"iid": 3, "type": "20", "perms": ["pr"], "format": "string", "value": "ACME", "description": "Manufacturer"},
            ]},
        ]},
        {"aid": 2, "services": [
            {"iid": 1, "type": "3E", "characteristics": [
                {"iid": 2, "type": "23", "perms": ["pr"], "format": "string", "value": "Desk Lamp", "description": "Name"},
            ]},
            {"iid": 10, "type": "43", "characteristics": [
                {"iid": 11, "type": "23", "perms": ["pr"], "format": "string", "value": "Desk Lamp", "description": "Name"},
                {"iid": 12, "type": "25", "perms": ["pr", "pw", "ev"], "format": "bool", "value": on, "description": "On"},
            ]},
        ]},
    ]}

class FakeHapClient:
    """Serves a freshly parsed accessory list on every fetch."""

    def __init__(self):
        self.on = False
        self.fetches = 0
        self.writes: List[tuple] = []
        self.refreshes: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    async def get_all_services(self):
        self.fetches += 1
        if self.fail_with is not None:
            raise self.fail_with
        return [s.bind_client(self) for s in parse_accessories(accessories_payload(self.on))]

    async def get_characteristics(self, aid, iids):
        self.refreshes.append((aid, tuple(iids)))
        return {12: self.on} if aid == 2 and 12 in iids else {}

    async def set_characteristic(self, aid, iid, value):
        self.writes.append((aid, iid, value))
        if (aid, iid) == (2, 12):
            self.on = bool(value)

class FakeProcess:
    def __init__(self, argv, cwd=None, env=None, cols=80, rows=24, pid=4242):
        self.argv = argv
        self.cwd = cwd
        self.env = env
        self.cols = cols
        self.rows = rows
        self.pid = pid
        self.returncode: Optional[int] = None
        self.kills = 0
        self._chunks: asyncio.Queue = asyncio.Queue()
        self._exited = asyncio.Event()

    def feed(self, data: bytes):
        self._chunks.put_nowait(data)

    def exit(self, code: int):
        self.returncode = code
        self._chunks.put_nowait(b"")
        self._exited.set()

    async def read(self) -> bytes:
        return await self._chunks.get()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def resize(self, cols, rows):
        if self.returncode is not None:
            raise OSError("terminal is closed")
        self.cols, self.rows = cols, rows

    def kill(self):
        self.kills += 1
        if self.returncode is None:
            self.exit(-1)

class FakeSpawner:
    def __init__(self):
        self.processes: List[FakeProcess] = []

    async def __call__(self, argv, *, cwd=None, env=None, cols=80, rows=24):
        proc = FakeProcess(argv, cwd=cwd, env=env, cols=cols, rows=rows)
        self.processes.append(proc)
        return proc

async def settle(times: int = 10):
    for _ in range(times):
        await asyncio.sleep(0)

@pytest.fixture
def conn():
    return RecordingConnection(cols=120, rows=40)

@pytest.fixture
def hap():
    return FakeHapClient()

@pytest.fixture
def spawner():
    return FakeSpawner()

@pytest.fixture
def auth_error():
    return AuthRequired("GET /accessories returned 401", 401)
