import pytest
from filelock import FileLock

from orderdesk.services.local_cache import LocalCache, LocalCacheError, orders_key
from orderdesk.services.preferences import Preferences


def test_get_missing_key_returns_default(cache):
    assert cache.get("nothing") is None
    assert cache.get("nothing", []) == []


def test_set_then_get(cache):
    cache.set(orders_key("tenant-a"), [{"id": 1}])
    assert cache.get(orders_key("tenant-a")) == [{"id": 1}]


def test_keys_are_isolated_per_tenant(cache):
    cache.set(orders_key("tenant-a"), [{"id": 1}])
    assert cache.get(orders_key("tenant-b"), []) == []


def test_update_is_read_modify_write(cache):
    cache.set("counter", 1)
    assert cache.update("counter", lambda v: v + 1) == 2
    assert cache.get("counter") == 2


def test_remove(cache):
    cache.set("k", "v")
    assert cache.remove("k") is True
    assert cache.remove("k") is False
    assert cache.get("k") is None


def test_corrupt_file_reads_as_default(cache):
    cache.set("k", [1])
    cache._path("k").write_text("{not json", encoding="utf-8")
    assert cache.get("k", []) == []


def test_lock_timeout_raises(tmp_path):
    cache = LocalCache(data_dir=tmp_path, lock_timeout=0.05)
    cache.set("k", 1)
    with FileLock(str(cache._path("k")) + ".lock"):
        with pytest.raises(LocalCacheError):
            cache.get("k")


def test_auto_print_preference_persists(cache):
    preferences = Preferences(cache)
    assert preferences.auto_print is False

    preferences.set_auto_print(True)

    assert Preferences(cache).auto_print is True
