import json
from bridge_admin.setup_code import SetupCodeCache, encode_setup_uri, to_base36

def test_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "Z"
    assert to_base36(36) == "10"

def test_encode_with_odd_category():
    assert encode_setup_uri("031-45-154", 5, "1QJ8") == "X-HM://00522H1VM1QJ8"

def test_encode_with_even_category():
    assert encode_setup_uri("123-45-678", 2, "ABCD") == "X-HM://0023OA632ABCD"

def test_payload_is_always_nine_characters():
    for pin, category in (("000-00-001", 0), ("999-99-999", 1), ("031-45-154", 33)):
        uri = encode_setup_uri(pin, category, "WXYZ")
        assert uri.startswith("X-HM://")
        assert len(uri[len("X-HM://"):-4]) == 9

async def test_cache_returns_none_without_accessory_info(tmp_path):
    cache = SetupCodeCache(str(tmp_path / "AccessoryInfo.X.json"))
    assert await cache.get() is None

async def test_cache_is_computed_once(tmp_path):
    path = tmp_path / "AccessoryInfo.X.json"
    path.write_text(json.dumps({"pincode": "031-45-154", "category": 5, "setupID": "1QJ8"}))
    cache = SetupCodeCache(str(path))
    first = await cache.get()
    path.write_text(json.dumps({"pincode": "111-11-111", "category": 2, "setupID": "ZZZZ"}))
    assert await cache.get() == first == "X-HM://00522H1VM1QJ8"
