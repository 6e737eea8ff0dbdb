"""
Prompt API Client

Async HTTP client for prompts, models and user statistics.
Reads go through the read-through cache; mutations invalidate the
affected cache groups once they succeed.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import Settings, get_settings
from ...domain.cache.value_objects import (
    TTL,
    CacheKey,
    CacheStats,
    CacheTag,
    CacheTier,
)
from ..cache.cache_manager import CacheManager, TierLike
from ..cache.decorators import cache, cache_evict
from .exceptions import ApiException
from .schemas import (
    CreatePromptRequest,
    OptimizationRequest,
    PromptQueryParams,
    UpdatePromptRequest,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

Payload = Union[Dict[str, Any], Any]


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ApiException) and error.retryable


def _payload(body: Payload) -> Dict[str, Any]:
    if hasattr(body, "to_payload"):
        return body.to_payload()
    return dict(body)


def _query(params: Optional[Union[PromptQueryParams, Dict[str, Any]]]) -> Dict[str, Any]:
    if params is None:
        return {}
    if isinstance(params, PromptQueryParams):
        return params.to_payload()
    return {k: v for k, v in params.items() if v is not None}


class PromptApiClient:
    """
    Client for the prompt API with declarative caching.

    Cached reads live in the memory tier with the TTLs below; each mutation
    evicts the groups it can make stale:

    - list_prompts: 10 min, tags prompts, user-data
    - get_prompt: 30 min, tag prompt-detail
    - get_user_stats: 15 min, tag user-stats
    - list_models: 30 min, tag models
    """

    def __init__(
        self,
        manager: CacheManager,
        settings: Optional[Settings] = None,
        *,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.manager = manager
        self.max_retries = (
            settings.API_MAX_RETRIES if max_retries is None else max_retries
        )
        self.retry_delay = (
            settings.API_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        )

        headers = {"Content-Type": "application/json"}
        token = token or settings.API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=settings.API_TIMEOUT_SECONDS,
            headers=headers,
            transport=transport,
        )

        # Cached reads
        self.list_prompts = cache(
            manager,
            ttl=TTL.prompt_list(),
            tags=[CacheTag.prompts(), CacheTag.user_data()],
            operation="PromptApiClient.list_prompts",
        )(self._list_prompts)
        self.get_prompt = cache(
            manager,
            ttl=TTL.prompt_detail(),
            tags=[CacheTag.prompt_detail()],
            key_generator=lambda prompt_id: CacheKey.prompt_detail(prompt_id).value,
            operation="PromptApiClient.get_prompt",
        )(self._get_prompt)
        self.get_user_stats = cache(
            manager,
            ttl=TTL.user_stats(),
            tags=[CacheTag.user_stats()],
            key_generator=lambda: CacheKey.user_stats().value,
            operation="PromptApiClient.get_user_stats",
        )(self._get_user_stats)
        self.list_models = cache(
            manager,
            ttl=TTL.models(),
            tags=[CacheTag.models()],
            operation="PromptApiClient.list_models",
        )(self._list_models)
        self._preload = cache(
            manager, ttl=TTL.preload(), operation="PromptApiClient.get"
        )(self._get)

        # Invalidating writes
        self.create_prompt = cache_evict(
            manager, [CacheTag.prompts(), CacheTag.user_data(), CacheTag.user_stats()]
        )(self._create_prompt)
        self.update_prompt = cache_evict(
            manager,
            [CacheTag.prompts(), CacheTag.prompt_detail(), CacheTag.user_data()],
        )(self._update_prompt)
        self.delete_prompt = cache_evict(
            manager,
            [
                CacheTag.prompts(),
                CacheTag.prompt_detail(),
                CacheTag.user_data(),
                CacheTag.user_stats(),
            ],
        )(self._delete_prompt)

    # Transport

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ApiException(
                f"Request timed out: {method} {path}",
                error_code="TIMEOUT",
                retryable=True,
            ) from e
        except httpx.TransportError as e:
            raise ApiException(
                "Network error - please check your connection",
                error_code="NETWORK_ERROR",
                retryable=True,
            ) from e

        if response.is_error:
            raise self._error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _error_from_response(self, response: httpx.Response) -> ApiException:
        try:
            body = response.json()
        except ValueError:
            body = None

        error_code = "API_ERROR"
        message = response.reason_phrase or "An unexpected error occurred"
        details: Dict[str, Any] = {}
        if isinstance(body, dict):
            error_code = body.get("code") or body.get("error") or error_code
            message = body.get("message") or message
            if isinstance(body.get("details"), dict):
                details = body["details"]

        return ApiException(
            message,
            error_code=error_code,
            status_code=response.status_code,
            details=details,
            retryable=response.status_code in RETRYABLE_STATUS_CODES,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request, retrying transient failures with exponential backoff."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, max=30),
            retry=retry_if_exception(_is_retryable),
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying {method} {path}",
                extra={
                    "attempt": retry_state.attempt_number,
                    "error": str(retry_state.outcome.exception()),
                },
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(method, path, **kwargs)

    # Reads

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params or None)

    async def _list_prompts(
        self, params: Optional[Union[PromptQueryParams, Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        return await self._request("GET", "/prompts", params=_query(params) or None)

    async def _get_prompt(self, prompt_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/prompts/{prompt_id}")

    async def _get_user_stats(self) -> Dict[str, Any]:
        return await self._request("GET", "/prompts/stats")

    async def _list_models(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/models")

    # Writes

    async def _create_prompt(
        self, body: Union[CreatePromptRequest, Dict[str, Any]]
    ) -> Dict[str, Any]:
        return await self._request("POST", "/prompts", json=_payload(body))

    async def _update_prompt(
        self, prompt_id: str, body: Union[UpdatePromptRequest, Dict[str, Any]]
    ) -> Dict[str, Any]:
        return await self._request("PUT", f"/prompts/{prompt_id}", json=_payload(body))

    async def _delete_prompt(self, prompt_id: str) -> None:
        await self._request("DELETE", f"/prompts/{prompt_id}")

    async def optimize_prompt(
        self, body: Union[OptimizationRequest, Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Run a synchronous optimization. Results are never cached."""
        return await self._request("POST", "/prompts/optimize", json=_payload(body))

    # Cache management

    async def preload(self, path: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Warm the cache for ``path``; failures are logged, not raised."""
        try:
            await self._preload(path, params)
        except ApiException as e:
            logger.warning(
                f"Failed to preload {path}: {e}",
                extra={"error_code": e.error_code, "status_code": e.status_code},
            )

    async def clear_cache(
        self,
        tags: Optional[Iterable[Union[str, CacheTag]]] = None,
        tier: Optional[TierLike] = CacheTier.MEMORY,
    ) -> None:
        """Invalidate the given groups, or clear the tier when no tags are given."""
        if tags:
            await self.manager.evict_tags(tags, tier)
        else:
            await self.manager.clear(tier)

    async def get_cache_stats(self) -> CacheStats:
        return await self.manager.get_stats()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "PromptApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
