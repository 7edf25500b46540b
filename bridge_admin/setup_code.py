import asyncio, os
from typing import Optional
from .bridge_config import read_json

SCHEME = "X-HM://"
IP_FLAG = 1 << 28
PAYLOAD_LENGTH = 9
_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_DIGITS[r])
    return "".join(reversed(out))

def encode_setup_uri(pincode: str, category: int, setup_id: str) -> str:
    """Pack the pairing pin and accessory category into an X-HM:// setup URI."""
    low = int(str(pincode).replace("-", ""), 10) | IP_FLAG
    if category & 1:
        low |= 1 << 31
    high = category >> 1
    payload = to_base36((high << 32) | low).rjust(PAYLOAD_LENGTH, "0")
    return SCHEME + payload + setup_id

class SetupCodeCache:
    """Setup URI of the bridge, computed from its persisted AccessoryInfo file.

    The first successful result is kept for the life of the process.
    """

    def __init__(self, accessory_info_path: str):
        self.accessory_info_path = accessory_info_path
        self._code: Optional[str] = None

    async def get(self) -> Optional[str]:
        if self._code is None:
            self._code = await self._generate()
        return self._code

    async def _generate(self) -> Optional[str]:
        if not await asyncio.to_thread(os.path.exists, self.accessory_info_path):
            return None
        info = await read_json(self.accessory_info_path)
        return encode_setup_uri(info["pincode"], int(info["category"]), info["setupID"])
