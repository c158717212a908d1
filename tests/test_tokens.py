import pytest

from fakes import FakeAdapter, json_response, token_response
from restbridge.cache import MemoryCache, NullCache, get_cache_key
from restbridge.exceptions import AuthError, NetworkError
from restbridge.policy import CachePolicy
from restbridge.tokens import TokenManager, TokenState
from restbridge.types import CacheMode, Request


def make_manager(authentication, handler, mode=CacheMode.NONE, cache=None, **tokens):
    adapter = FakeAdapter(handler)
    manager = TokenManager(
        adapter,
        authentication,
        "http://api",
        cache if cache is not None else NullCache(),
        CachePolicy(mode),
        **tokens,
    )
    return manager, adapter


def test_initial_state(authentication):
    manager, adapter = make_manager(authentication, token_response)
    assert manager.state is TokenState.NO_TOKEN
    assert manager.tokens == (None, None)
    assert adapter.requests == []


def test_seeded_tokens_are_active(authentication):
    manager, adapter = make_manager(
        authentication, token_response, access_token="a", refresh_token="r"
    )
    assert manager.state is TokenState.ACTIVE
    assert manager.ensure_token() == "a"
    assert adapter.requests == []


def test_ensure_token_exchanges_once(authentication):
    manager, adapter = make_manager(
        authentication, lambda request: token_response("fresh", "r")
    )

    assert manager.ensure_token() == "fresh"
    assert manager.ensure_token() == "fresh"

    assert len(adapter.requests) == 1
    assert adapter.last_request.url == "http://api/token"
    assert manager.state is TokenState.ACTIVE
    assert manager.tokens == ("fresh", "r")


def test_refresh_uses_refresh_token(authentication):
    manager, adapter = make_manager(
        authentication,
        lambda request: token_response("new", "r2"),
        access_token="old",
        refresh_token="r1",
    )

    assert manager.refresh() == "new"

    assert "refresh_token=r1" in adapter.last_request.body
    assert manager.tokens == ("new", "r2")


def test_refresh_replaces_missing_refresh_token(authentication):
    manager, _ = make_manager(
        authentication,
        lambda request: token_response("new"),
        access_token="old",
        refresh_token="r1",
    )
    manager.refresh()
    assert manager.tokens == ("new", None)


def test_failed_exchange_restores_state(authentication):
    manager, _ = make_manager(
        authentication,
        lambda request: json_response(500, {"error_description": "down"}),
        access_token="old",
    )

    with pytest.raises(AuthError, match="down"):
        manager.refresh()

    assert manager.state is TokenState.ACTIVE
    assert manager.tokens == ("old", None)


def test_transport_error_during_exchange_propagates(authentication):
    def handler(request):
        raise NetworkError("unreachable")

    manager, _ = make_manager(authentication, handler)

    with pytest.raises(NetworkError):
        manager.ensure_token()
    assert manager.state is TokenState.NO_TOKEN


def test_state_during_exchange(authentication):
    seen = []

    def handler(request):
        seen.append(manager.state)
        return token_response("t")

    manager, _ = make_manager(authentication, handler)
    manager.ensure_token()
    manager.refresh()

    assert seen == [TokenState.ACQUIRING, TokenState.REFRESHING]


def test_authorize_sets_bearer_header(authentication):
    manager, _ = make_manager(authentication, token_response, access_token="abc")
    request = Request(method="GET", url="u", headers={"authorization": "Basic x", "A": "b"})

    authorized = manager.authorize(request)

    assert authorized.headers == {"A": "b", "Authorization": "Bearer abc"}
    assert request.headers["authorization"] == "Basic x"


def test_token_read_from_cache(authentication):
    cache = MemoryCache()
    token_request = authentication.build_token_request("http://api", None)
    cache.set(get_cache_key(token_request), token_response("cached", "r"))

    manager, adapter = make_manager(authentication, token_response, CacheMode.TOKEN, cache)

    assert manager.ensure_token() == "cached"
    assert manager.tokens == ("cached", "r")
    assert adapter.requests == []


@pytest.mark.parametrize("mode", [CacheMode.NONE, CacheMode.GET, CacheMode.REFRESH])
def test_token_not_read_from_cache(authentication, mode):
    cache = MemoryCache()
    token_request = authentication.build_token_request("http://api", None)
    cache.set(get_cache_key(token_request), token_response("cached"))

    manager, adapter = make_manager(
        authentication, lambda request: token_response("live"), mode, cache
    )

    assert manager.ensure_token() == "live"
    assert len(adapter.requests) == 1


def test_exchanged_token_written_to_cache(authentication):
    cache = MemoryCache()
    manager, _ = make_manager(
        authentication,
        lambda request: token_response("live", expires_in=3600),
        CacheMode.ALL,
        cache,
    )

    manager.ensure_token()

    token_request = authentication.build_token_request("http://api", None)
    assert cache.get(get_cache_key(token_request)).json()["access_token"] == "live"


def test_failed_exchange_is_not_cached(authentication):
    cache = MemoryCache()
    manager, _ = make_manager(
        authentication,
        lambda request: json_response(401, {"error": "invalid_client"}),
        CacheMode.ALL,
        cache,
    )

    with pytest.raises(AuthError):
        manager.ensure_token()
    assert len(cache) == 0
