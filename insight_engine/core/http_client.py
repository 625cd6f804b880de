"""
Base HTTP client with rate limiting, response caching and error classification.

One ServiceClient is bound to one provider. Every request goes through the
same pipeline:

    rate limiter -> cache lookup (GET) -> HTTP call -> classify failure
    -> cache store (GET) -> data

Retries are not done here; RetryPolicy wraps whole provider operations so
that circuit breaking and backoff see the classified outcome.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import httpx

from insight_engine.core.api_errors import (
    ConfigurationError,
    NetworkError,
    ParsingError,
    RateLimitError,
    RequestTimeoutError,
    classify_http_error,
)
from insight_engine.core.api_registry import (
    API_REGISTRY,
    AuthStyle,
    RateLimitConfig,
    ServiceName,
)
from insight_engine.core.cache import ResponseCache, make_cache_key
from insight_engine.core.config import Settings
from insight_engine.core.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ALLOWED_METHODS = {"GET", "POST", "PUT", "DELETE"}


@dataclass
class RequestDescriptor:
    """One outbound request, as accepted by ServiceClient.send()."""

    service: ServiceName
    method: str
    endpoint: str
    params: Optional[Dict[str, Any]] = None
    body: Optional[Dict[str, Any]] = None
    cache_ttl: Optional[float] = None
    bypass_cache: bool = False


class ServiceClient:
    """
    Request pipeline for a single provider.

    Subclasses should:
    - Set the SERVICE class attribute
    - Implement provider-specific methods that call get()/request()
    """

    # Override in subclass
    SERVICE: Optional[ServiceName] = None

    # Default settings
    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0
    DEFAULT_MAX_CONNECTIONS: int = 10

    def __init__(
        self,
        service: Optional[ServiceName] = None,
        base_url: Optional[str] = None,
        credential: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        rate_limits: Optional[RateLimitConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            service: Provider this client talks to (defaults to SERVICE)
            base_url: Provider base URL (defaults to the registry entry)
            credential: Opaque credential attached per the provider's auth style
            rate_limiter: Shared rate limiter
            cache: Shared response cache
            rate_limits: Ceilings for this provider (defaults to the registry entry)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        service = service or self.SERVICE
        if service is None:
            raise ValueError("ServiceClient requires a service")
        self.service = ServiceName(service)
        self.api_config = API_REGISTRY[self.service]

        self.base_url = (base_url or self.api_config.base_url).rstrip("/")
        self.credential = credential
        self.rate_limiter = rate_limiter or RateLimiter()
        self.cache = cache or ResponseCache()
        self.rate_limits = rate_limits or self.api_config.rate_limits
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._transport = transport

        # HTTP client (lazy initialization)
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized {self.service.value} client: "
            f"credential_present={credential is not None}, "
            f"base_url={self.base_url}"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        rate_limiter: RateLimiter,
        cache: ResponseCache,
        service: Optional[ServiceName] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ServiceClient":
        """Build a client from Settings using the provider's registry entry."""
        service = ServiceName(service or cls.SERVICE)
        api_config = API_REGISTRY[service]
        base_url = (
            getattr(settings, api_config.base_url_key)
            if api_config.base_url_key
            else api_config.base_url
        )
        return cls(
            service=service,
            base_url=base_url,
            credential=getattr(settings, api_config.credential_key),
            rate_limiter=rate_limiter,
            cache=cache,
            timeout=settings.request_timeout,
            connect_timeout=settings.connect_timeout,
            transport=transport,
        )

    @property
    def service_name(self) -> str:
        return self.service.value

    def has_credentials(self) -> bool:
        return bool(self.credential)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
                limits=httpx.Limits(
                    max_connections=self.DEFAULT_MAX_CONNECTIONS,
                    max_keepalive_connections=self.DEFAULT_MAX_CONNECTIONS // 2,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.service_name} client closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build_headers(self) -> Dict[str, str]:
        """
        Build request headers.

        Returns:
            Dict of headers including the provider's auth header, if any
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"InsightEngine/{self.service_name}-client",
        }
        if self.credential:
            if self.api_config.auth_style == AuthStyle.BEARER:
                headers["Authorization"] = f"Bearer {self.credential}"
            elif self.api_config.auth_style == AuthStyle.API_KEY_HEADER:
                headers["X-API-Key"] = self.credential
        return headers

    def _add_auth_to_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Add the credential as a query parameter for providers that want it there."""
        if self.credential and self.api_config.auth_style == AuthStyle.QUERY_PARAM:
            params[self.api_config.credential_param] = self.credential
        return params

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        cache_ttl: Optional[float] = None,
        bypass_cache: bool = False,
    ) -> Any:
        """
        Make one HTTP request through the pipeline.

        Args:
            method: GET, POST, PUT or DELETE
            endpoint: Path relative to base_url, or a full URL
            params: Query parameters (None values are dropped)
            body: JSON body for non-GET requests
            cache_ttl: Seconds to cache a successful GET; None disables caching
            bypass_cache: Skip the cache lookup (the fresh result is still stored)

        Returns:
            Parsed JSON response

        Raises:
            APIError: Classified failure (never a raw httpx exception)
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        if not self.has_credentials():
            raise ConfigurationError(
                f"No credential configured for {self.service_name}",
                service=self.service_name,
                missing_config=self.api_config.credential_key,
            )

        params = {k: v for k, v in (params or {}).items() if v is not None}

        if not self.rate_limiter.can_proceed(self.service_name, self.rate_limits):
            raise RateLimitError(service=self.service_name)

        cacheable = method == "GET" and bool(cache_ttl)
        cache_key = make_cache_key(self.service_name, method, endpoint, params)
        if cacheable and not bypass_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"[{self.service_name}] Cache hit for {method} {endpoint}")
                return cached

        url = self._build_url(endpoint)
        request_params = self._add_auth_to_params(dict(params))
        client = await self._get_client()

        logger.debug(f"[{self.service_name}] {method} {endpoint}")
        try:
            response = await client.request(
                method,
                url,
                params=request_params,
                json=body if method != "GET" else None,
                headers=self._build_headers(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise classify_http_error(
                e.response.status_code,
                e.response.text,
                self.service_name,
                retry_after=e.response.headers.get("Retry-After"),
            ) from e
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                message=f"Request timed out: {e}", service=self.service_name
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(
                message=f"Request failed: {e}", service=self.service_name
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ParsingError(
                message=f"Invalid JSON from {endpoint}: {e}", service=self.service_name
            ) from e

        if cacheable:
            self.cache.set(cache_key, data, cache_ttl)

        return data

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        cache_ttl: Optional[float] = None,
        bypass_cache: bool = False,
    ) -> Any:
        return await self.request(
            "GET", endpoint, params=params, cache_ttl=cache_ttl, bypass_cache=bypass_cache
        )

    async def post(
        self,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self.request("POST", endpoint, params=params, body=body)

    async def put(
        self,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self.request("PUT", endpoint, params=params, body=body)

    async def delete(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self.request("DELETE", endpoint, params=params)

    async def send(self, descriptor: RequestDescriptor) -> Any:
        """Run a RequestDescriptor through the pipeline."""
        if ServiceName(descriptor.service) != self.service:
            raise ValueError(
                f"{self.service_name} client cannot send a request for "
                f"{ServiceName(descriptor.service).value}"
            )
        return await self.request(
            descriptor.method,
            descriptor.endpoint,
            params=descriptor.params,
            body=descriptor.body,
            cache_ttl=descriptor.cache_ttl,
            bypass_cache=descriptor.bypass_cache,
        )

    async def batch_get(self, requests: List[Dict[str, Any]]) -> List[Any]:
        """
        Issue several GETs concurrently.

        Args:
            requests: Dicts with keys endpoint, params, cache_ttl

        Returns:
            Results in request order; the first failure propagates
        """
        return await asyncio.gather(
            *[
                self.send(
                    RequestDescriptor(
                        service=self.service,
                        method="GET",
                        endpoint=r["endpoint"],
                        params=r.get("params"),
                        cache_ttl=r.get("cache_ttl"),
                    )
                )
                for r in requests
            ]
        )

    def get_rate_limit_status(self) -> Dict[str, int]:
        return self.rate_limiter.remaining(self.service_name, self.rate_limits)
