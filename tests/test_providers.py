"""Tests for metadata providers and the shared HTTP helpers."""

from __future__ import annotations

import json
import time
from pathlib import Path

import httpx
import pytest

from gameshelf.config import Config
from gameshelf.models.provider_match import CatalogMatch, IGDBMatch, SteamMatch
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.http import RateLimiter, build_proxy_url, is_retryable, with_retry
from gameshelf.providers.igdb import IGDBProvider
from gameshelf.providers.rawg import RAWGProvider
from gameshelf.providers.steam import SteamProvider
from gameshelf.providers.steamgriddb import SteamGridDBProvider, select_best_image


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.test/")
    return httpx.HTTPStatusError("err", request=request, response=httpx.Response(status, request=request))


class TestHttpHelpers:
    def test_proxy_url(self, tmp_path: Path) -> None:
        config = Config(config_dir=tmp_path)
        assert build_proxy_url(config) == ""
        with config.batch_update():
            config.set("providers.proxy_host", "127.0.0.1")
            config.set("providers.proxy_port", "8080")
        assert build_proxy_url(config) == "http://127.0.0.1:8080"
        assert build_proxy_url(None) == ""

    @pytest.mark.parametrize(("status", "expected"), [(500, True), (503, True), (404, False), (429, False), (401, False)])
    def test_retryable_status(self, status: int, expected: bool) -> None:
        assert is_retryable(_status_error(status)) is expected

    def test_network_errors_are_retryable(self) -> None:
        assert is_retryable(httpx.ConnectError("down"))
        assert is_retryable(httpx.ReadTimeout("slow"))
        assert not is_retryable(ValueError("bad"))

    def test_with_retry_recovers(self) -> None:
        attempts: list[int] = []

        def flaky() -> str:
            attempts.append(1)
            if len(attempts) < 3:
                raise httpx.ConnectError("down")
            return "ok"

        assert with_retry(flaky, backoff=0) == "ok"
        assert len(attempts) == 3

    def test_with_retry_gives_up(self) -> None:
        attempts: list[int] = []

        def down() -> None:
            attempts.append(1)
            raise httpx.ConnectError("down")

        with pytest.raises(httpx.ConnectError):
            with_retry(down, retries=2, backoff=0)
        assert len(attempts) == 3

    def test_client_errors_not_retried(self) -> None:
        attempts: list[int] = []

        def missing() -> None:
            attempts.append(1)
            raise _status_error(404)

        with pytest.raises(httpx.HTTPStatusError):
            with_retry(missing, backoff=0)
        assert len(attempts) == 1

    def test_rate_limiter_spacing(self) -> None:
        limiter = RateLimiter(0.05)
        started = time.monotonic()
        for _ in range(3):
            limiter.wait()
        assert time.monotonic() - started >= 0.09

    def test_rate_limiter_disabled(self) -> None:
        limiter = RateLimiter(0)
        started = time.monotonic()
        for _ in range(100):
            limiter.wait()
        assert time.monotonic() - started < 0.05


class TestSteamProvider:
    def test_app_details(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/appdetails"
            return httpx.Response(200, json={
                "440": {
                    "success": True,
                    "data": {"name": "Team Fortress 2", "release_date": {"date": "10 Oct, 2007"}},
                },
            })

        provider = SteamProvider(transport=httpx.MockTransport(handler))
        matches = provider.search_by_title("tf2", hint_id="440")
        assert matches == [SteamMatch(provider_id="440", title="Team Fortress 2", release_date="2007-10-10", storefront_id="440")]

    def test_store_search(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["term"] == "Portal"
            return httpx.Response(200, json={"items": [{"id": 400, "name": "Portal"}, {"id": 620, "name": "Portal 2"}]})

        provider = SteamProvider(transport=httpx.MockTransport(handler))
        matches = provider.search_by_title("Portal")
        assert [(m.provider_id, m.storefront_id) for m in matches] == [("400", "400"), ("620", "620")]

    def test_disabled_by_config(self, tmp_path: Path) -> None:
        config = Config(config_dir=tmp_path)
        config.set("providers.steam_enabled", False)
        assert not SteamProvider(config=config).is_available()


IGDB_GAME = {
    "id": 1942,
    "name": "The Witcher 3: Wild Hunt",
    "summary": "Geralt hunts monsters.",
    "first_release_date": 1431993600,
    "genres": [{"name": "Role-playing (RPG)"}],
    "themes": [{"name": "Fantasy"}],
    "game_modes": [{"name": "Single player"}],
    "involved_companies": [
        {"company": {"name": "CD PROJEKT RED"}, "developer": True, "publisher": False},
        {"company": {"name": "CD PROJEKT"}, "developer": False, "publisher": True},
    ],
    "cover": {"image_id": "co1wyy"},
    "artworks": [{"image_id": "ar5p8"}],
    "total_rating": 92.456,
    "age_ratings": [{"category": 2, "rating": 5}],
    "external_games": [{"category": 1, "uid": "292030"}, {"category": 5, "uid": "x"}],
}


class IGDBHandler:
    def __init__(self) -> None:
        self.token_requests = 0
        self.bodies: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "id.twitch.tv":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Client-ID"] == "cid"
        body = request.content.decode()
        self.bodies.append(body)
        if request.url.path.endswith("/external_games"):
            return httpx.Response(200, json=[{"game": 1942}])
        return httpx.Response(200, json=[IGDB_GAME])


class TestIGDBProvider:
    @pytest.fixture
    def handler(self) -> IGDBHandler:
        return IGDBHandler()

    @pytest.fixture
    def provider(self, handler: IGDBHandler) -> IGDBProvider:
        return IGDBProvider("cid", "secret", transport=httpx.MockTransport(handler))

    def test_availability(self) -> None:
        assert not IGDBProvider("", "").is_available()
        assert IGDBProvider("cid", "secret").is_available()

    def test_search(self, provider: IGDBProvider, handler: IGDBHandler) -> None:
        matches = provider.search_by_title('The "Witcher" 3')
        assert matches == [IGDBMatch(
            provider_id="1942",
            title="The Witcher 3: Wild Hunt",
            release_date="2015-05-19",
            storefront_id="292030",
            summary="Geralt hunts monsters.",
            cover_url="https://images.igdb.com/igdb/image/upload/t_cover_big/co1wyy.jpg",
        )]
        assert 'search "The \\"Witcher\\" 3"' in handler.bodies[0]

    def test_token_reused(self, provider: IGDBProvider, handler: IGDBHandler) -> None:
        provider.search_by_title("a")
        provider.search_by_title("b")
        assert handler.token_requests == 1

    def test_search_by_steam_id(self, provider: IGDBProvider, handler: IGDBHandler) -> None:
        matches = provider.search_by_steam_id("292030")
        assert [m.provider_id for m in matches] == ["1942"]
        assert 'uid = "292030"' in handler.bodies[0]

    def test_fetch_artwork(self, provider: IGDBProvider) -> None:
        identity = ResolvedIdentity(IGDBMatch(provider_id="1942", title="The Witcher 3: Wild Hunt"), "The Witcher 3: Wild Hunt")
        metadata = provider.fetch_artwork(identity)

        assert metadata.description == "Geralt hunts monsters."
        assert metadata.release_date == "2015-05-19"
        assert metadata.developers == ["CD PROJEKT RED"]
        assert metadata.publishers == ["CD PROJEKT"]
        assert metadata.categories == ["Single player", "Fantasy"]
        assert metadata.age_rating == "PEGI 18"
        assert metadata.rating == 92.5
        assert metadata.box_art.endswith("/t_cover_big/co1wyy.jpg")
        assert metadata.hero.endswith("/t_1080p/ar5p8.jpg")
        assert metadata.sources["description"] == "igdb"

    def test_auth_failure_propagates(self) -> None:
        provider = IGDBProvider("cid", "bad", transport=httpx.MockTransport(lambda r: httpx.Response(401)))
        with pytest.raises(httpx.HTTPStatusError):
            provider.search_by_title("anything")


class TestSteamGridDB:
    def test_select_best_image(self) -> None:
        assets = [
            {"id": 1, "url": "https://a/1.png", "score": 10, "upvotes": 5},
            {"id": 2, "url": "https://a/2.png", "score": 99, "nsfw": True},
            {"id": 3, "url": "https://a/3.png", "score": 1, "lock": True},
            {"id": 4, "url": "https://a/4.png", "score": 10, "upvotes": 9},
        ]
        assert select_best_image(assets)["id"] == 3
        assert select_best_image([a for a in assets if a["id"] != 3])["id"] == 4
        assert select_best_image([{"id": 5, "url": "x", "humor": True}]) is None

    def test_fetch_artwork_by_steam_id(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer key"
            path = request.url.path
            seen.append(path)
            if path.endswith("/games/steam/440"):
                return httpx.Response(200, json={"success": True, "data": {"id": 123, "name": "Team Fortress 2"}})
            if "/grids/game/123" in path:
                assert "600x900" in request.url.params["dimensions"]
                assert "920x430" in request.url.params["dimensions"]
                return httpx.Response(200, json={"success": True, "data": [
                    {"url": "https://grid/box-low.png", "width": 600, "height": 900, "score": 2},
                    {"url": "https://grid/box.png", "width": 660, "height": 930, "score": 7},
                    {"url": "https://grid/banner.png", "width": 920, "height": 430, "score": 4},
                    {"url": "https://grid/odd.png", "width": 512, "height": 512, "score": 50},
                ]})
            if "/logos/game/123" in path:
                return httpx.Response(200, json={"success": True, "data": [{"url": "https://grid/logo.png"}]})
            if "/heroes/game/123" in path:
                return httpx.Response(404)
            return httpx.Response(200, json={"success": True, "data": []})

        provider = SteamGridDBProvider("key", transport=httpx.MockTransport(handler))
        identity = ResolvedIdentity(SteamMatch(provider_id="440", title="Team Fortress 2", storefront_id="440"), "Team Fortress 2")

        metadata = provider.fetch_artwork(identity)

        assert metadata.box_art == "https://grid/box.png"
        assert metadata.banner == "https://grid/banner.png"
        assert metadata.logo == "https://grid/logo.png"
        assert metadata.hero == ""
        assert metadata.icon == ""
        assert metadata.sources["logo"] == "steamgriddb"
        assert metadata.scores == {"box_art": 7.0, "banner": 4.0, "logo": 0.0}
        # Box art and banner share one grids request
        assert sum("/grids/" in p for p in seen) == 1

    def test_title_fallback_requires_exact_name(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if "/games/steam/" in request.url.path:
                return httpx.Response(404)
            return httpx.Response(200, json={"success": True, "data": [
                {"id": 1, "name": "Portal 2 Remix"},
                {"id": 2, "name": "portal 2"},
            ]})

        provider = SteamGridDBProvider("key", transport=httpx.MockTransport(handler))
        identity = ResolvedIdentity(SteamMatch(provider_id="620", title="Portal 2", storefront_id="620"), "Portal 2")
        assert provider.resolve_game_id(identity) == "2"

    def test_search(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert "search/autocomplete/Half-Life%202" in str(request.url)
            return httpx.Response(200, json={"success": True, "data": [{"id": 9, "name": "Half-Life 2", "verified": True}]})

        provider = SteamGridDBProvider("key", transport=httpx.MockTransport(handler))
        assert provider.search_by_title("Half-Life 2") == [CatalogMatch(provider_id="9", title="Half-Life 2", verified=True)]


class TestRAWGProvider:
    def test_search_and_details(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["key"] == "rk"
            if request.url.path == "/api/games":
                return httpx.Response(200, json={"results": [
                    {"id": 3328, "name": "The Witcher 3: Wild Hunt", "released": "2015-05-18", "slug": "the-witcher-3-wild-hunt"},
                ]})
            assert request.url.path == "/api/games/3328"
            return httpx.Response(200, content=json.dumps({
                "id": 3328,
                "description_raw": "  Monster hunting.  ",
                "released": "2015-05-18",
                "genres": [{"name": "RPG"}],
                "developers": [{"name": "CD PROJEKT RED"}],
                "publishers": [{"name": "CD PROJEKT"}],
                "tags": [{"name": f"tag{i}"} for i in range(15)],
                "esrb_rating": {"name": "Mature"},
                "rating": 4.66,
                "background_image": "https://media.rawg.io/bg.jpg",
            }).encode(), headers={"content-type": "application/json"})

        provider = RAWGProvider("rk", transport=httpx.MockTransport(handler))
        identity = ResolvedIdentity(IGDBMatch(provider_id="1942", title="The Witcher 3: Wild Hunt"), "The Witcher 3: Wild Hunt")
        metadata = provider.fetch_artwork(identity)

        assert metadata.description == "Monster hunting."
        assert metadata.age_rating == "ESRB Mature"
        assert len(metadata.categories) == 10
        assert metadata.box_art == "https://media.rawg.io/bg.jpg"
        assert metadata.sources["box_art"] == "rawg"

    def test_no_exact_title(self) -> None:
        provider = RAWGProvider("rk", transport=httpx.MockTransport(
            lambda r: httpx.Response(200, json={"results": [{"id": 1, "name": "Something Else"}]}),
        ))
        identity = ResolvedIdentity(IGDBMatch(provider_id="1", title="Nothing Like It"), "Nothing Like It")
        assert provider.fetch_artwork(identity).is_empty()
