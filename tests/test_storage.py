import json

from daystart.storage import FallbackStore, JsonFileStore, MemoryStore


class BrokenStore:
    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk full")

    def remove(self, key):
        raise OSError("disk unavailable")


def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    JsonFileStore(path).set("dayStartTime", "06:00")

    reopened = JsonFileStore(path)

    assert reopened.get("dayStartTime") == "06:00"
    assert json.loads(path.read_text(encoding="utf-8")) == {"dayStartTime": "06:00"}
    assert not path.with_suffix(".json.tmp").exists()


def test_json_file_store_remove(tmp_path):
    path = tmp_path / "cache.json"
    store = JsonFileStore(path)
    store.set("dayStartTime", "06:00")
    store.remove("dayStartTime")
    store.remove("missing")

    assert JsonFileStore(path).get("dayStartTime") is None


def test_json_file_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileStore(path)

    assert store.keys() == []
    store.set("dayStartTime", "07:00")
    assert JsonFileStore(path).get("dayStartTime") == "07:00"


def test_fallback_store_reads_first_tier_holding_key():
    primary = MemoryStore()
    secondary = MemoryStore({"dayStartTime": "08:00"})
    store = FallbackStore(primary, secondary)

    assert store.get("dayStartTime") == "08:00"
    store.set("dayStartTime", "09:00")
    assert primary.get("dayStartTime") == "09:00"
    assert secondary.get("dayStartTime") == "09:00"


def test_fallback_store_survives_broken_tier():
    store = FallbackStore(BrokenStore())

    store.set("dayStartTime", "06:45")

    assert store.get("dayStartTime") == "06:45"
    store.remove("dayStartTime")
    assert store.get("dayStartTime") is None
