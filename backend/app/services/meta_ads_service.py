"""
Meta/Facebook Marketing API service.
MetaAdsService makes the Graph API calls; CachedMetaAdsService wraps the read
calls with the shared CacheService and invalidates affected keys on writes.
"""
import json
import logging
from typing import Optional, List, Dict, Any

import httpx

from app.services.cache_service import CacheService, CacheTTL, make_cache_key

logger = logging.getLogger(__name__)

META_GRAPH_API_BASE = "https://graph.facebook.com/v24.0"


class MetaApiError(Exception):
    """Non-success response from the Graph API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MetaAdsService:
    """Thin async client for the Meta Marketing API."""

    def __init__(
        self,
        access_token: str,
        base_url: str = META_GRAPH_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    @staticmethod
    def _raise_for_error(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        try:
            error = response.json().get("error", {})
            msg = error.get("error_user_msg") or error.get("message") or response.text
        except ValueError:
            msg = response.text
        logger.error("Meta %s failed (%s): %s", action, response.status_code, msg)
        raise MetaApiError(f"Meta API error: {msg}", status_code=response.status_code)

    async def _get(self, path: str, action: str, **params) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(
                f"{self.base_url}/{path}",
                params={"access_token": self.access_token, **params},
            )
        self._raise_for_error(response, action)
        return response.json()

    async def _post(self, path: str, action: str, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/{path}",
                data={**data, "access_token": self.access_token},
            )
        self._raise_for_error(response, action)
        return response.json()

    # ==================== Reads ====================

    async def list_ad_accounts(self) -> List[Dict[str, Any]]:
        data = await self._get(
            "me/adaccounts", "ad account list",
            fields="id,name,account_status,currency,timezone_name", limit=100,
        )
        return data.get("data", [])

    async def list_campaigns(self, ad_account_id: str) -> List[Dict[str, Any]]:
        data = await self._get(
            f"{ad_account_id}/campaigns", "campaign list",
            fields="id,name,status,objective,created_time", limit=100,
        )
        return data.get("data", [])

    async def list_adsets(self, campaign_id: str) -> List[Dict[str, Any]]:
        data = await self._get(
            f"{campaign_id}/adsets", "adset list",
            fields="id,name,status,daily_budget,lifetime_budget", limit=100,
        )
        return data.get("data", [])

    async def get_adset_details(self, adset_id: str) -> Dict[str, Any]:
        return await self._get(
            adset_id, "adset details",
            fields="id,name,status,targeting,optimization_goal,billing_event,daily_budget",
        )

    async def list_pages(self) -> List[Dict[str, Any]]:
        data = await self._get("me/accounts", "page list", fields="id,name", limit=100)
        return data.get("data", [])

    async def get_ad_insights(self, ad_id: str, since: str, until: str) -> List[Dict[str, Any]]:
        data = await self._get(
            f"{ad_id}/insights", "ad insights",
            fields="impressions,clicks,ctr,spend,actions",
            time_range=json.dumps({"since": since, "until": until}),
        )
        return data.get("data", [])

    async def get_account_insights(self, ad_account_id: str, since: str, until: str) -> List[Dict[str, Any]]:
        data = await self._get(
            f"{ad_account_id}/insights", "account insights",
            level="ad",
            fields="ad_id,impressions,clicks,ctr,spend",
            time_range=json.dumps({"since": since, "until": until}),
            limit=500,
        )
        return data.get("data", [])

    # ==================== Writes ====================

    async def create_adset(self, ad_account_id: str, adset_data: Dict[str, Any]) -> str:
        payload = {
            k: json.dumps(v) if isinstance(v, (dict, list)) else v
            for k, v in adset_data.items()
        }
        result = await self._post(f"{ad_account_id}/adsets", "adset creation", payload)
        return result["id"]

    async def create_ad(self, ad_account_id: str, ad_data: Dict[str, Any]) -> str:
        payload = {
            k: json.dumps(v) if isinstance(v, (dict, list)) else v
            for k, v in ad_data.items()
        }
        result = await self._post(f"{ad_account_id}/ads", "ad creation", payload)
        return result["id"]


class CachedMetaAdsService:
    """
    Caching wrapper around MetaAdsService to stay under Graph API rate limits.
    Cache keys are prefixed with the resource type so writes can invalidate them.
    """

    def __init__(self, api: MetaAdsService, cache: CacheService):
        self.api = api
        self.cache = cache

    async def list_ad_accounts(self) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            make_cache_key("adAccounts", self.api.access_token[-8:]),
            CacheTTL.AD_ACCOUNTS,
            self.api.list_ad_accounts,
        )

    async def list_campaigns(self, ad_account_id: str) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            make_cache_key("campaigns", ad_account_id),
            CacheTTL.CAMPAIGNS,
            lambda: self.api.list_campaigns(ad_account_id),
        )

    async def list_adsets(self, campaign_id: str) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            make_cache_key("adsets", campaign_id),
            CacheTTL.ADSETS,
            lambda: self.api.list_adsets(campaign_id),
        )

    async def get_adset_details(self, adset_id: str) -> Dict[str, Any]:
        return await self.cache.get_or_fetch(
            make_cache_key("adsetDetails", adset_id),
            CacheTTL.ADSET_DETAILS,
            lambda: self.api.get_adset_details(adset_id),
        )

    async def list_pages(self) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            make_cache_key("pages", self.api.access_token[-8:]),
            CacheTTL.PAGES,
            self.api.list_pages,
        )

    async def get_ad_insights(self, ad_id: str, since: str, until: str) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            make_cache_key("adInsights", ad_id, since, until),
            CacheTTL.INSIGHTS,
            lambda: self.api.get_ad_insights(ad_id, since, until),
        )

    async def get_account_insights(self, ad_account_id: str, since: str, until: str) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            make_cache_key("accountInsights", ad_account_id, since, until),
            CacheTTL.INSIGHTS,
            lambda: self.api.get_account_insights(ad_account_id, since, until),
        )

    async def create_adset(self, ad_account_id: str, adset_data: Dict[str, Any]) -> str:
        self.cache.invalidate("campaigns:")
        self.cache.invalidate("adsets:")
        return await self.api.create_adset(ad_account_id, adset_data)

    async def create_ad(self, ad_account_id: str, ad_data: Dict[str, Any]) -> str:
        self.cache.invalidate("adsets:")
        return await self.api.create_ad(ad_account_id, ad_data)
