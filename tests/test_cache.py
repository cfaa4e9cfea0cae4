from __future__ import annotations

import threading
import time

import pytest
from django.core.cache import cache

from charge_planner.services.cache import InflightRequests, get_or_load, make_cache_key


def test_make_cache_key_is_stable_and_prefixed() -> None:
    key = make_cache_key("geocode", "pune")

    assert key == make_cache_key("geocode", "pune")
    assert key.startswith("geocode:")
    assert key != make_cache_key("geocode", "mumbai")


def test_get_or_load_calls_loader_once() -> None:
    calls = []

    def loader() -> dict:
        calls.append(1)
        return {"value": 42}

    assert get_or_load("k", loader, timeout=60) == {"value": 42}
    assert get_or_load("k", loader, timeout=60) == {"value": 42}
    assert len(calls) == 1
    assert cache.get("k") == {"value": 42}


def test_none_results_are_not_cached() -> None:
    calls = []

    def loader() -> None:
        calls.append(1)

    get_or_load("empty", loader, timeout=60)
    get_or_load("empty", loader, timeout=60)

    assert len(calls) == 2


def test_errors_propagate_and_release_the_key() -> None:
    inflight = InflightRequests()

    def failing() -> None:
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError, match="upstream down"):
        inflight.run("key", failing)

    assert inflight.run("key", lambda: "recovered") == "recovered"


def test_concurrent_callers_share_one_load() -> None:
    inflight = InflightRequests()
    started = threading.Event()
    release = threading.Event()
    calls = []
    results = []

    def loader() -> str:
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return "stations"

    leader = threading.Thread(target=lambda: results.append(inflight.run("key", loader)))
    leader.start()
    started.wait(timeout=5)

    follower = threading.Thread(target=lambda: results.append(inflight.run("key", loader)))
    follower.start()
    time.sleep(0.05)
    release.set()
    leader.join(timeout=5)
    follower.join(timeout=5)

    assert results == ["stations", "stations"]
    assert len(calls) == 1
