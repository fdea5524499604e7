from __future__ import annotations

import logging
import threading
import typing as tp

import pytest

from lazycache import (
    CacheableResponse,
    CacheOptions,
    FreshnessDecision,
    InMemoryStorage,
    LazyCache,
    Request,
    Response,
    set_expiration_header,
)

from tests.conftest import T0, FrozenClock, create_request, create_response


class SpyStorage(InMemoryStorage):
    def __init__(self, clock: FrozenClock) -> None:
        super().__init__(clock=clock)
        self.set_calls = 0
        self.remove_calls = 0

    def set(self, key, response, expiration, created=None):
        self.set_calls += 1
        super().set(key, response, expiration, created)

    def remove(self, key):
        self.remove_calls += 1
        super().remove(key)


@pytest.fixture()
def cache(clock: FrozenClock) -> tp.Iterator[LazyCache]:
    cache = LazyCache(clock=clock)
    yield cache
    cache.close()


def store(cache: LazyCache, request: Request, content: bytes = b"payload", ttl: float = 60) -> None:
    cache.on_response(request, CacheableResponse.wrap(create_response(content=content), expiration=T0 + ttl))


class TestResponseCommitter:
    def test_cacheable_response_is_stored(self, cache):
        request = create_request()
        store(cache, request)

        entry = cache.storage.get(cache.key_generator.get(request))

        assert entry is not None
        assert entry.response.content == b"payload"
        assert entry.created == T0
        assert entry.expiration == T0 + 60

    def test_entries_are_stamped_with_the_cache_clock(self, clock):
        cache = LazyCache(storage=InMemoryStorage(), clock=clock)
        request = create_request()
        store(cache, request)

        entry = cache.storage.get(cache.key_generator.get(request))
        assert entry is not None
        assert entry.created == T0

        clock.advance(100)
        assert cache.on_request(create_request(headers={"Cache-Control": "max-age=10"})) is None
        cache.close()

    def test_cacheable_response_keeps_its_creation_time(self, cache):
        request = create_request()
        response = CacheableResponse.wrap(create_response(), expiration=T0 + 60, created=T0 - 500)
        cache.on_response(request, response)

        entry = cache.storage.get(cache.key_generator.get(request))
        assert entry is not None
        assert entry.created == T0 - 500
        assert cache.on_request(create_request(headers={"Cache-Control": "max-age=100"})) is None
        assert cache.on_request(create_request(headers={"Cache-Control": "max-age=600"})) is not None

    def test_cacheable_response_requires_an_expiration(self):
        with pytest.raises(ValueError, match="CacheableResponse requires an expiration timestamp."):
            CacheableResponse(status_code=200)

    def test_plain_response_is_not_stored(self, cache):
        request = create_request()
        cache.on_response(request, create_response())

        assert cache.on_request(request) is None

    def test_expiration_header_opts_into_caching_and_is_stripped(self, cache):
        request = create_request()
        response = set_expiration_header(create_response(), T0 + 60)

        cache.on_response(request, response)

        assert "X-Lazycache-Expires" not in response.headers
        entry = cache.storage.get(cache.key_generator.get(request))
        assert entry is not None
        assert entry.expiration == T0 + 60
        assert "X-Lazycache-Expires" not in entry.response.headers

    def test_custom_expiration_header(self, clock):
        cache = LazyCache(clock=clock, options=CacheOptions(expires_header="X-Cache-Until"))
        request = create_request()

        cache.on_response(request, set_expiration_header(create_response(), T0 + 60, header="X-Cache-Until"))

        assert cache.on_request(request) is not None
        cache.close()

    def test_invalid_expiration_header(self, cache, caplog):
        request = create_request()
        response = create_response(headers={"X-Lazycache-Expires": "tomorrow-ish"})

        with caplog.at_level(logging.WARNING, logger="lazycache.cache"):
            cache.on_response(request, response)

        assert "X-Lazycache-Expires" not in response.headers
        assert cache.storage.get(cache.key_generator.get(request)) is None
        assert "Expected an HTTP-date, but got 'tomorrow-ish'." in caplog.text

    def test_no_store_prevents_storing(self, cache):
        request = create_request(headers={"Cache-Control": "no-store"})
        response = set_expiration_header(create_response(), T0 + 60)

        store(cache, request)
        cache.on_response(request, response)

        assert cache.storage.get(cache.key_generator.get(request)) is None
        assert "X-Lazycache-Expires" not in response.headers

    def test_non_success_response_removes_the_entry(self, cache):
        request = create_request()
        store(cache, request)

        cache.on_response(request, CacheableResponse.wrap(create_response(status_code=404), expiration=T0 + 60))

        assert cache.storage.get(cache.key_generator.get(request)) is None

    def test_uncacheable_request_is_ignored(self, cache):
        request = create_request(method="POST")
        store(cache, request)

        assert len(cache.storage) == 0

    def test_cached_response_is_not_stored_again(self, clock):
        storage = SpyStorage(clock)
        cache = LazyCache(storage=storage, clock=clock)
        request = create_request()
        store(cache, request)

        cached = cache.on_request(request)
        assert cached is not None
        cache.on_response(request, cached)

        assert storage.set_calls == 1
        assert storage.remove_calls == 0
        cache.close()


class TestRequestInterceptor:
    def test_miss(self, cache):
        assert cache.on_request(create_request()) is None

    def test_round_trip_returns_identical_payload(self, cache):
        request = create_request()
        payload = bytes(range(256))
        store(cache, request, content=payload)

        response = cache.on_request(create_request())

        assert response is not None
        assert response.content == payload
        assert response.status_code == 200
        assert response.from_cache
        assert response.metadata["lazycache_created_at"] == T0
        assert response.metadata["lazycache_stale"] is False

    def test_cache_disabled_passes_through(self, cache):
        request = create_request()
        store(cache, request)

        assert cache.on_request(request, cache_disabled=True) is None
        assert cache.lookup(request, cache_disabled=True).decision is FreshnessDecision.BYPASS

    def test_uncacheable_request_bypasses(self, cache):
        assert cache.lookup(create_request(method="DELETE")).decision is FreshnessDecision.BYPASS

    @pytest.mark.parametrize("cache_control", ["no-cache", "max-age=0"])
    def test_client_refuses_cached_responses(self, cache, cache_control):
        store(cache, create_request())

        assert cache.on_request(create_request(headers={"Cache-Control": cache_control})) is None

    def test_malformed_cache_control_is_treated_as_absent(self, cache):
        store(cache, create_request())

        assert cache.on_request(create_request(headers={"Cache-Control": "max-age=\x12"})) is not None

    def test_pre_requirements_veto(self, clock):
        def require_auth(request: Request) -> tp.Optional[Response]:
            if "Authorization" not in request.headers:
                return create_response(status_code=401, content=b"")
            return None

        cache = LazyCache(clock=clock, pre_requirements=require_auth)
        store(cache, create_request())

        denied = cache.on_request(create_request())
        allowed = cache.on_request(create_request(headers={"Authorization": "Bearer token"}))

        assert denied is not None and denied.status_code == 401
        assert allowed is not None and allowed.content == b"payload"
        cache.close()

    def test_pre_requirements_are_not_consulted_on_a_miss(self, clock):
        calls: tp.List[Request] = []
        cache = LazyCache(clock=clock, pre_requirements=lambda request: calls.append(request))

        cache.on_request(create_request())

        assert calls == []
        cache.close()

    def test_stale_entry_without_executor_is_served(self, cache, clock, caplog):
        store(cache, create_request(), ttl=60)
        clock.advance(61)

        with caplog.at_level(logging.WARNING, logger="lazycache.cache"):
            response = cache.on_request(create_request())

        assert response is not None
        assert response.metadata["lazycache_stale"] is True
        assert "without refreshing it since no request executor is installed" in caplog.text


class TestStaleWhileRevalidate:
    def make_cache(self, clock: FrozenClock, status_code: int = 200, block: bool = False):
        calls: tp.List[Request] = []
        release = threading.Event()
        if not block:
            release.set()

        def executor(request: Request, *, cache_disabled: bool = False) -> Response:
            assert cache_disabled
            calls.append(request)
            assert release.wait(timeout=5)
            response = CacheableResponse.wrap(
                create_response(status_code=status_code, content=b"fresh"),
                expiration=clock.now() + 60,
            )
            assert cache.on_request(request, cache_disabled=cache_disabled) is None
            cache.on_response(request, response)
            return response

        cache = LazyCache(clock=clock, executor=executor)
        return cache, calls, release

    def test_scenario_no_header(self, clock):
        cache, calls, _ = self.make_cache(clock)
        store(cache, create_request())
        clock.advance(61)

        response = cache.on_request(create_request())
        assert cache.refresher is not None
        cache.refresher.wait(timeout=5)

        assert response is not None and response.content == b"payload"
        assert len(calls) == 1
        refreshed = cache.on_request(create_request())
        assert refreshed is not None and refreshed.content == b"fresh"
        assert refreshed.metadata["lazycache_stale"] is False
        cache.close()

    def test_scenario_max_stale_within_window(self, clock):
        cache, calls, _ = self.make_cache(clock)
        store(cache, create_request())
        clock.advance(61)

        response = cache.on_request(create_request(headers={"Cache-Control": "max-stale=30"}))

        assert response is not None and response.content == b"payload"
        assert calls == []
        cache.close()

    def test_scenario_max_stale_zero(self, clock):
        cache, calls, _ = self.make_cache(clock)
        store(cache, create_request())
        clock.advance(61)

        assert cache.on_request(create_request(headers={"Cache-Control": "max-stale=0"})) is None
        assert calls == []
        cache.close()

    def test_concurrent_stale_hits_refresh_once(self, clock):
        cache, calls, release = self.make_cache(clock, block=True)
        store(cache, create_request())
        clock.advance(61)
        responses: tp.List[tp.Optional[Response]] = []
        lock = threading.Lock()

        def hit() -> None:
            response = cache.on_request(create_request())
            with lock:
                responses.append(response)

        threads = [threading.Thread(target=hit) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        release.set()
        assert cache.refresher is not None
        cache.refresher.wait(timeout=5)

        assert len(responses) == 16
        assert all(response is not None and response.content == b"payload" for response in responses)
        assert len(calls) == 1
        cache.close()

    def test_failed_refresh_turns_the_next_request_into_a_miss(self, clock):
        cache, calls, _ = self.make_cache(clock, status_code=500)
        store(cache, create_request())
        clock.advance(61)

        assert cache.on_request(create_request()) is not None
        assert cache.refresher is not None
        cache.refresher.wait(timeout=5)

        assert len(calls) == 1
        assert cache.on_request(create_request()) is None
        cache.close()

    def test_stale_hit_still_runs_pre_requirements(self, clock):
        cache, calls, _ = self.make_cache(clock)
        cache.pre_requirements = lambda request: create_response(status_code=403, content=b"")
        store(cache, create_request())
        clock.advance(61)

        response = cache.on_request(create_request())
        assert cache.refresher is not None
        cache.refresher.wait(timeout=5)

        assert response is not None and response.status_code == 403
        assert len(calls) == 1
        cache.close()

    def test_rejected_stale_hit_still_schedules_the_refresh(self, clock):
        cache, calls, _ = self.make_cache(clock, status_code=401)
        cache.pre_requirements = lambda request: create_response(status_code=401, content=b"")
        store(cache, create_request())
        clock.advance(61)

        response = cache.on_request(create_request())
        assert cache.refresher is not None
        cache.refresher.wait(timeout=5)

        assert response is not None and response.status_code == 401
        assert len(calls) == 1
        cache.pre_requirements = None
        assert cache.on_request(create_request()) is None
        cache.close()

    def test_executor_can_only_be_installed_once(self, clock):
        cache, _, _ = self.make_cache(clock)

        with pytest.raises(RuntimeError, match="A request executor is already installed."):
            cache.set_executor(lambda request, *, cache_disabled=False: create_response())
        cache.close()
