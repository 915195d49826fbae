import fakeredis
import pytest

from spendwise.db.cache import Cache


def _offline_cache():
    server = fakeredis.FakeServer()
    server.connected = False
    return Cache(fakeredis.FakeRedis(server=server, decode_responses=True))


def test_remember_returns_same_structure_on_hit_and_miss(cache):
    calls = []

    def loader():
        calls.append(1)
        return {"total": 12.5, "when": (2025, 1)}

    first = cache.remember("report:x", 60, loader)
    second = cache.remember("report:x", 60, loader)
    assert first == second == {"total": 12.5, "when": [2025, 1]}
    assert len(calls) == 1
    assert 0 < cache.client.ttl("report:x") <= 60


def test_loader_errors_are_not_cached(cache):
    def loader():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.remember("report:y", 60, loader)
    assert cache.get_json("report:y") is None


def test_delete_and_generation(cache):
    cache.set_json("a", 1, 60)
    cache.set_json("b", 2, 60)
    cache.delete("a", "b")
    assert cache.get_json("a") is None and cache.get_json("b") is None

    assert cache.generation("gen") == 0
    cache.bump_generation("gen")
    cache.bump_generation("gen")
    assert cache.generation("gen") == 2


def test_push_bounded_keeps_newest(cache):
    for i in range(7):
        assert cache.push_bounded("log", {"n": i}, 5)
    assert [item["n"] for item in cache.list_json("log")] == [6, 5, 4, 3, 2]


def test_update_list_item(cache):
    for i in range(3):
        cache.push_bounded("log", {"n": i, "read": False}, 10)
    changed = cache.update_list_item("log", lambda item: item["n"] == 1, lambda item: {**item, "read": True})
    assert changed
    assert [item["read"] for item in cache.list_json("log")] == [False, True, False]
    assert not cache.update_list_item("log", lambda item: item["n"] == 99, lambda item: item)


def test_unavailable_cache_degrades_to_store():
    cache = _offline_cache()
    assert cache.get_json("k") is None
    assert cache.remember("k", 60, lambda: {"value": 1}) == {"value": 1}
    cache.delete("k")
    assert cache.generation("gen") == 0
    assert cache.push_bounded("log", {"n": 1}, 5) is False
    assert cache.list_json("log") == []
    assert cache.ping() is False
