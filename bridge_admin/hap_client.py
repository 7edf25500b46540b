import logging
from typing import Any, Dict, List, Optional
import httpx
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from .errors import AuthRequired, CollaboratorUnavailable

log = logging.getLogger("hap")

# 470 is the HAP "connection authorization required" status
AUTH_FAILURE_CODES = (401, 470)

# what a malformed body can raise while decoding or parsing; pydantic's
# ValidationError is a ValueError
PAYLOAD_ERRORS = (ValueError, KeyError, TypeError, AttributeError)

HAP_UUID_SUFFIX = "-0000-1000-8000-0026BB765291"
ACCESSORY_INFORMATION = "0000003E" + HAP_UUID_SUFFIX
PROTOCOL_INFORMATION = "000000A2" + HAP_UUID_SUFFIX
NAME_CHARACTERISTIC = "00000023" + HAP_UUID_SUFFIX

# Service types the UI knows how to draw; everything else is shown generically.
SERVICE_TYPES = {
    "00000040": "Fan",
    "00000041": "GarageDoorOpener",
    "00000043": "Lightbulb",
    "00000045": "LockMechanism",
    "00000047": "Outlet",
    "00000049": "Switch",
    "0000004A": "Thermostat",
    "00000080": "ContactSensor",
    "00000082": "HumiditySensor",
    "00000084": "LightSensor",
    "00000085": "MotionSensor",
    "0000008A": "TemperatureSensor",
    "0000008C": "WindowCovering",
}

def to_long_uuid(uuid: str) -> str:
    uuid = str(uuid).upper()
    if len(uuid) <= 8:
        return uuid.rjust(8, "0") + HAP_UUID_SUFFIX
    return uuid

class Characteristic(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    iid: int
    type: str
    description: Optional[str] = None
    value: Any = None
    format: Optional[str] = None
    perms: List[str] = Field(default_factory=list)
    unit: Optional[str] = None
    min_value: Optional[float] = Field(default=None, alias="minValue")
    max_value: Optional[float] = Field(default=None, alias="maxValue")

    @property
    def can_read(self) -> bool:
        return "pr" in self.perms

    @property
    def can_write(self) -> bool:
        return "pw" in self.perms

    @property
    def key(self) -> str:
        return self.description or self.type

class DeviceService(BaseModel):
    aid: int
    iid: int
    uuid: str
    type: str
    service_name: str
    characteristics: List[Characteristic] = Field(default_factory=list)
    accessory_information: Dict[str, Any] = Field(default_factory=dict)
    values: Dict[str, Any] = Field(default_factory=dict)

    _client: Any = PrivateAttr(default=None)

    def bind_client(self, client: "HapClient") -> "DeviceService":
        self._client = client
        return self

    def characteristic(self, iid: int) -> Optional[Characteristic]:
        for c in self.characteristics:
            if c.iid == iid:
                return c
        return None

    def _apply(self, iid: int, value: Any):
        c = self.characteristic(iid)
        if c is not None:
            c.value = value
            self.values[c.key] = value

    async def set_characteristic(self, iid: int, value: Any):
        await self._client.set_characteristic(self.aid, iid, value)
        self._apply(iid, value)

    async def refresh_characteristics(self):
        iids = [c.iid for c in self.characteristics if c.can_read]
        if not iids:
            return
        for iid, value in (await self._client.get_characteristics(self.aid, iids)).items():
            self._apply(iid, value)

    def to_dict(self) -> Dict[str, Any]:
        out = self.model_dump()
        for c, dumped in zip(self.characteristics, out["characteristics"]):
            dumped["can_read"] = c.can_read
            dumped["can_write"] = c.can_write
        return out

class HapClient:
    """Talks to the bridge's accessory server, which must run in insecure mode."""

    def __init__(self, base_url: str, pin: str, *, timeout: float = 15,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.pin = pin
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": self.pin, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport) as c:
                r = await c.request(method, path, headers=headers, timeout=self.timeout, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise CollaboratorUnavailable(f"{method} {path} failed: {e}") from e
        if r.status_code in AUTH_FAILURE_CODES:
            raise AuthRequired(f"{method} {path} returned {r.status_code}", r.status_code)
        if r.is_error:
            raise CollaboratorUnavailable(f"{method} {path} returned {r.status_code}", r.status_code)
        return r

    async def get_all_services(self) -> List[DeviceService]:
        r = await self._request("GET", "/accessories")
        try:
            services = parse_accessories(r.json())
        except PAYLOAD_ERRORS as e:
            raise CollaboratorUnavailable(f"GET /accessories returned an unreadable payload: {e!r}") from e
        return [s.bind_client(self) for s in services]

    async def get_characteristics(self, aid: int, iids: List[int]) -> Dict[int, Any]:
        ids = ",".join(f"{aid}.{iid}" for iid in iids)
        r = await self._request("GET", "/characteristics", params={"id": ids})
        try:
            return {c["iid"]: c.get("value") for c in r.json().get("characteristics", [])}
        except PAYLOAD_ERRORS as e:
            raise CollaboratorUnavailable(f"GET /characteristics returned an unreadable payload: {e!r}") from e

    async def set_characteristic(self, aid: int, iid: int, value: Any):
        body = {"characteristics": [{"aid": aid, "iid": iid, "value": value}]}
        await self._request("PUT", "/characteristics", json=body)
        log.debug("Set %s.%s to %r", aid, iid, value)

def parse_accessories(payload: Dict[str, Any]) -> List[DeviceService]:
    services = []
    for accessory in payload.get("accessories", []):
        aid = accessory["aid"]
        info: Dict[str, Any] = {}
        rest = []
        for svc in accessory.get("services", []):
            uuid = to_long_uuid(svc["type"])
            if uuid == ACCESSORY_INFORMATION:
                for c in svc.get("characteristics", []):
                    if c.get("description"):
                        info[c["description"]] = c.get("value")
            elif uuid != PROTOCOL_INFORMATION:
                rest.append((uuid, svc))

        for uuid, svc in rest:
            chars = [Characteristic.model_validate({**c, "type": to_long_uuid(c["type"])})
                     for c in svc.get("characteristics", [])]
            name = next((c.value for c in chars if c.type == NAME_CHARACTERISTIC), None)
            services.append(DeviceService(
                aid=aid,
                iid=svc["iid"],
                uuid=uuid,
                type=SERVICE_TYPES.get(uuid[:8], "Unknown"),
                service_name=name or info.get("Name") or f"Accessory {aid}",
                characteristics=chars,
                accessory_information=info,
                values={c.key: c.value for c in chars},
            ))
    return services
