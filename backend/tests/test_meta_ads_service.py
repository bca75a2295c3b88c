"""
Tests for the Graph API client, its caching facade and targeting lookup.
Requests are served by httpx.MockTransport; nothing goes over the network.
"""
import asyncio
import json
import pytest
from types import SimpleNamespace

import httpx

from app.services.cache_service import CacheService
from app.services.combinations import TargetingProvider, targeting_from_graph
from app.services.meta_ads_service import CachedMetaAdsService, MetaAdsService, MetaApiError

BASE = "https://graph.test/v24.0"

GRAPH_TARGETING = {
    "age_min": 25,
    "age_max": 34,
    "genders": [2],
    "geo_locations": {"countries": ["US", "CA"], "cities": [{"key": "2420379", "name": "Austin"}]},
    "flexible_spec": [
        {"interests": [{"id": "6003", "name": "Yoga"}], "behaviors": [{"id": "6002", "name": "Engaged Shoppers"}]}
    ],
}


class GraphStub:
    """Records requests and answers them from a path -> response table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        status, body = self.routes.get(key, (404, {"error": {"message": "Unknown path"}}))
        return httpx.Response(status, json=body)

    def count(self, method, path):
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)


def _services(routes):
    stub = GraphStub(routes)
    api = MetaAdsService("token-abcdefgh", base_url=BASE, transport=httpx.MockTransport(stub))
    cache = CacheService()
    return stub, api, cache, CachedMetaAdsService(api, cache)


class TestMetaAdsService:
    def test_list_campaigns_sends_token_and_fields(self):
        stub, api, _, _ = _services({
            ("GET", "/v24.0/act_1/campaigns"): (200, {"data": [{"id": "c1", "name": "Launch"}]}),
        })

        campaigns = asyncio.run(api.list_campaigns("act_1"))

        assert campaigns == [{"id": "c1", "name": "Launch"}]
        params = stub.requests[0].url.params
        assert params["access_token"] == "token-abcdefgh"
        assert "objective" in params["fields"]

    def test_error_response_raises_meta_api_error(self):
        _, api, _, _ = _services({
            ("GET", "/v24.0/act_1/campaigns"): (400, {"error": {"message": "Invalid OAuth access token"}}),
        })

        with pytest.raises(MetaApiError) as exc_info:
            asyncio.run(api.list_campaigns("act_1"))

        assert exc_info.value.status_code == 400
        assert "Invalid OAuth access token" in str(exc_info.value)

    def test_create_adset_json_encodes_nested_fields(self):
        stub, api, _, _ = _services({
            ("POST", "/v24.0/act_1/adsets"): (200, {"id": "as_9"}),
        })

        adset_id = asyncio.run(api.create_adset("act_1", {"name": "Test", "targeting": {"age_min": 25}}))

        assert adset_id == "as_9"
        form = dict(httpx.QueryParams(stub.requests[0].content.decode()))
        assert json.loads(form["targeting"]) == {"age_min": 25}
        assert form["access_token"] == "token-abcdefgh"


class TestCachedMetaAdsService:
    def test_reads_are_cached(self):
        stub, _, _, meta = _services({
            ("GET", "/v24.0/act_1/campaigns"): (200, {"data": [{"id": "c1"}]}),
            ("GET", "/v24.0/me/accounts"): (200, {"data": [{"id": "p1"}]}),
        })

        async def read_twice():
            await meta.list_campaigns("act_1")
            await meta.list_campaigns("act_1")
            await meta.list_pages()
            await meta.list_pages()

        asyncio.run(read_twice())

        assert stub.count("GET", "/v24.0/act_1/campaigns") == 1
        assert stub.count("GET", "/v24.0/me/accounts") == 1

    def test_create_adset_invalidates_campaigns_and_adsets(self):
        stub, _, cache, meta = _services({
            ("GET", "/v24.0/act_1/campaigns"): (200, {"data": []}),
            ("GET", "/v24.0/c1/adsets"): (200, {"data": []}),
            ("GET", "/v24.0/me/accounts"): (200, {"data": []}),
            ("POST", "/v24.0/act_1/adsets"): (200, {"id": "as_1"}),
        })

        async def scenario():
            await meta.list_campaigns("act_1")
            await meta.list_adsets("c1")
            await meta.list_pages()
            await meta.create_adset("act_1", {"name": "New"})
            await meta.list_campaigns("act_1")

        asyncio.run(scenario())

        assert stub.count("GET", "/v24.0/act_1/campaigns") == 2
        assert "adsets:c1" not in cache
        assert any(key.startswith("pages:") for key in cache._entries)

    def test_create_ad_invalidates_adsets_only(self):
        _, _, cache, meta = _services({
            ("GET", "/v24.0/act_1/campaigns"): (200, {"data": []}),
            ("GET", "/v24.0/c1/adsets"): (200, {"data": []}),
            ("POST", "/v24.0/act_1/ads"): (200, {"id": "ad_1"}),
        })

        async def scenario():
            await meta.list_campaigns("act_1")
            await meta.list_adsets("c1")
            return await meta.create_ad("act_1", {"name": "Ad", "creative": {"creative_id": "cr_1"}})

        assert asyncio.run(scenario()) == "ad_1"
        assert "campaigns:act_1" in cache
        assert "adsets:c1" not in cache

    def test_failed_read_is_not_cached(self):
        stub, _, cache, meta = _services({
            ("GET", "/v24.0/as_1"): (500, {"error": {"message": "Service temporarily unavailable"}}),
        })

        with pytest.raises(MetaApiError):
            asyncio.run(meta.get_adset_details("as_1"))

        assert len(cache) == 0


class TestTargeting:
    def test_targeting_from_graph(self):
        flat = targeting_from_graph(GRAPH_TARGETING)

        assert flat == {
            "age_min": 25,
            "age_max": 34,
            "genders": [2],
            "locations": ["US", "CA", "Austin"],
            "interests": ["Yoga"],
            "behaviors": ["Engaged Shoppers"],
        }

    def test_targeting_from_empty_graph_payload(self):
        assert targeting_from_graph(None)["interests"] == []

    def test_provider_without_meta_uses_stored_targeting(self):
        adset = SimpleNamespace(
            id="a1", facebook_adset_id="as_1", angle="sleep", targeting={"interests": ["Running"]}
        )

        targeting = asyncio.run(TargetingProvider().get_targeting(adset))

        assert targeting.interests == ["Running"]
        assert targeting.angle == "sleep"

    def test_provider_prefers_live_targeting(self):
        _, _, _, meta = _services({
            ("GET", "/v24.0/as_1"): (200, {"id": "as_1", "targeting": GRAPH_TARGETING}),
        })
        adset = SimpleNamespace(id="a1", facebook_adset_id="as_1", angle=None, targeting={"interests": ["Running"]})

        targeting = asyncio.run(TargetingProvider(meta).get_targeting(adset))

        assert targeting.interests == ["Yoga"]
        assert targeting.age_min == 25

    def test_provider_falls_back_when_graph_fails(self):
        _, _, _, meta = _services({
            ("GET", "/v24.0/as_1"): (403, {"error": {"message": "Permissions error"}}),
        })
        adset = SimpleNamespace(id="a1", facebook_adset_id="as_1", angle=None, targeting={"interests": ["Running"]})

        targeting = asyncio.run(TargetingProvider(meta).get_targeting(adset))

        assert targeting.interests == ["Running"]
