"""
Growi partner API page fetchers.

Each fetcher issues exactly one authenticated GET for one page and either
returns a validated page model or raises a classified ``GrowiApiError``:

- ``TransportError``: the request never produced a response
- ``UpstreamStatusError``: non-2xx status, body truncated into the error
- ``UpstreamShapeError``: 2xx body that fails the page schema, or a public
  envelope reporting ``success: false``

The fetchers do not retry and do not log. ``RetryingPageFetcher`` adds the
bounded retry loop on top.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel, ValidationError

from core.config import Settings, settings as default_settings
from core.exceptions import (
    RESPONSE_BODY_LIMIT,
    ConfigurationError,
    TransportError,
    UpstreamShapeError,
    UpstreamStatusError,
)
from ingestion.retry import RetryHook, RetryPolicy, Sleep, retry_async
from schemas.growi import GrowiPage, GrowiPrivatePage, GrowiPublicPage, PageVariant


@dataclass(frozen=True)
class GrowiPageRequest:
    """Query window and paging for one page request."""

    start_date: str
    end_date: str
    page: int
    per_page: int
    # public variant only
    limit: Optional[int] = None
    include_gmv: bool = False


def describe_validation_error(error: ValidationError) -> str:
    """``"data.0.share_url: Field required"`` for the first failure."""
    issues = error.errors()
    if not issues:
        return "invalid payload"
    first = issues[0]
    path = ".".join(str(part) for part in first["loc"])
    return f"{path}: {first['msg']}" if path else first["msg"]


class GrowiPageFetcher(ABC):
    """
    Base class for one-page Growi requests.

    Subclasses supply the endpoint, query parameters, headers and page model.
    An ``httpx.AsyncClient`` may be injected; otherwise one is created on
    first use and closed by ``aclose()``.
    """

    variant: PageVariant
    page_model: Type[BaseModel]
    max_per_page: int

    def __init__(
        self,
        api_base_url: str,
        credential: Optional[str],
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        credential = (credential or "").strip()
        if not credential:
            raise ConfigurationError(
                f"Missing credential for the Growi {self.variant.value} API",
                context={"variant": self.variant.value}
            )
        self.api_base_url = api_base_url.rstrip("/")
        self._credential = credential
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(api_base_url={self.api_base_url!r})"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Absolute URL of the page endpoint."""

    @abstractmethod
    def build_params(self, request: GrowiPageRequest) -> Dict[str, str]:
        """Query string for one page."""

    @abstractmethod
    def build_headers(self) -> Dict[str, str]:
        """Request headers, including the bearer credential."""

    def check_page(self, page: BaseModel) -> None:
        """Post-parse sanity check; raise UpstreamShapeError to reject the page."""

    def validate_request(self, request: GrowiPageRequest) -> None:
        if request.page < 1:
            raise ConfigurationError(
                "Page number must be at least 1",
                context={"page": request.page}
            )
        if not 1 <= request.per_page <= self.max_per_page:
            raise ConfigurationError(
                f"per_page must be between 1 and {self.max_per_page}",
                context={"per_page": request.per_page, "variant": self.variant.value}
            )

    async def fetch_page(self, request: GrowiPageRequest) -> GrowiPage:
        """
        Fetch and validate one page.

        Raises:
            ConfigurationError: page < 1 or per_page outside the variant's bound
            TransportError: no HTTP response was received
            UpstreamStatusError: non-2xx response
            UpstreamShapeError: body failed validation or the sanity check
        """
        self.validate_request(request)
        context = {
            "api_url": self.endpoint,
            "variant": self.variant.value,
            "page": request.page,
        }

        try:
            response = await self._get_client().get(
                self.endpoint,
                params=self.build_params(request),
                headers=self.build_headers(),
                timeout=self.timeout
            )
        except httpx.RequestError as e:
            raise TransportError(
                f"Growi {self.variant.value} request failed: {e}",
                context=context,
                original_exception=e
            )

        if not response.is_success:
            body = response.text
            raise UpstreamStatusError(
                body[:RESPONSE_BODY_LIMIT] if body else f"HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=body,
                context=context
            )

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise UpstreamShapeError(
                f"Unexpected Growi {self.variant.value} response shape (body: not JSON)",
                path="body",
                context=context,
                original_exception=e
            )

        try:
            page = self.page_model.model_validate(payload)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {"loc": ()}
            raise UpstreamShapeError(
                f"Unexpected Growi {self.variant.value} response shape "
                f"({describe_validation_error(e)})",
                path=".".join(str(part) for part in first["loc"]),
                context=context,
                original_exception=e
            )

        self.check_page(page)
        return page


class GrowiPrivateClient(GrowiPageFetcher):
    """Authenticated ``user_contents`` endpoint of a Growi organization."""

    variant = PageVariant.PRIVATE
    page_model = GrowiPrivatePage
    max_per_page = 1000

    def __init__(
        self,
        bearer_token: Optional[str],
        api_base_url: str = "https://api.growi.io",
        organization_slug: str = "airclub-f80c0262",
        domain_origin: str = "https://www.growi.io",
        source: str = "management_posts",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(api_base_url, bearer_token, timeout=timeout, client=client)
        self.organization_slug = organization_slug
        self.domain_origin = domain_origin.rstrip("/")
        self.source = source

    @classmethod
    def from_settings(
        cls,
        config: Settings = default_settings,
        client: Optional[httpx.AsyncClient] = None
    ) -> "GrowiPrivateClient":
        return cls(
            bearer_token=config.GROWI_BEARER_TOKEN,
            api_base_url=config.GROWI_API_BASE_URL,
            organization_slug=config.GROWI_ORGANIZATION_SLUG,
            domain_origin=config.GROWI_DOMAIN_ORIGIN,
            source=config.GROWI_USER_CONTENTS_SOURCE,
            timeout=config.GROWI_REQUEST_TIMEOUT,
            client=client,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.api_base_url}/api/v1/organizations/{self.organization_slug}/user_contents"

    def build_params(self, request: GrowiPageRequest) -> Dict[str, str]:
        return {
            "start_date": request.start_date,
            "end_date": request.end_date,
            "page": str(request.page),
            "per_page": str(request.per_page),
            "search": "",
            "sort_by": "view_count",
            "sort_direction": "desc",
            "source": self.source,
            "organization_id": self.organization_slug,
            "domain_origin": self.domain_origin,
        }

    def build_headers(self) -> Dict[str, str]:
        return {
            "accept": "*/*",
            "app-name": "web",
            "authorization": f"Bearer {self._credential}",
            "content-type": "application/json",
            "origin": self.domain_origin,
            "referer": f"{self.domain_origin}/",
        }


class GrowiPublicClient(GrowiPageFetcher):
    """Public ``stats/top_posts_by_views`` endpoint (API-key auth)."""

    variant = PageVariant.PUBLIC
    page_model = GrowiPublicPage
    max_per_page = 100

    def __init__(
        self,
        public_api_key: Optional[str],
        api_base_url: str = "https://api.growi.io",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(api_base_url, public_api_key, timeout=timeout, client=client)

    @classmethod
    def from_settings(
        cls,
        config: Settings = default_settings,
        client: Optional[httpx.AsyncClient] = None
    ) -> "GrowiPublicClient":
        return cls(
            public_api_key=config.GROWI_PUBLIC_API_KEY,
            api_base_url=config.GROWI_API_BASE_URL,
            timeout=config.GROWI_REQUEST_TIMEOUT,
            client=client,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.api_base_url}/api/public/v1/stats/top_posts_by_views"

    def build_params(self, request: GrowiPageRequest) -> Dict[str, str]:
        limit = request.limit if request.limit is not None else request.per_page
        return {
            "start_date": request.start_date,
            "end_date": request.end_date,
            "page": str(request.page),
            "limit": str(limit),
            "per_page": str(request.per_page),
            "include_gmv": "true" if request.include_gmv else "false",
        }

    def build_headers(self) -> Dict[str, str]:
        return {
            "authorization": f"Bearer {self._credential}",
            "content-type": "application/json",
        }

    def check_page(self, page: GrowiPublicPage) -> None:
        if not page.success:
            raise UpstreamShapeError(
                "Growi public API returned success=false",
                path="success",
                context={"api_url": self.endpoint, "variant": self.variant.value}
            )


class RetryingPageFetcher:
    """
    A page fetcher wrapped in a retry policy.

    The policy is shared configuration; attempt counting happens per
    ``fetch_page`` call inside ``retry_async``.
    """

    def __init__(
        self,
        fetcher: GrowiPageFetcher,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep
    ):
        self.fetcher = fetcher
        self.policy = policy or RetryPolicy()
        self.sleep = sleep

    @property
    def variant(self) -> PageVariant:
        return self.fetcher.variant

    async def fetch_page(
        self,
        request: GrowiPageRequest,
        on_retry: Optional[RetryHook] = None
    ) -> GrowiPage:
        return await retry_async(
            lambda: self.fetcher.fetch_page(request),
            self.policy,
            sleep=self.sleep,
            on_retry=on_retry,
        )

    async def aclose(self) -> None:
        await self.fetcher.aclose()


def retry_policy_from_settings(config: Settings = default_settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.GROWI_MAX_ATTEMPTS,
        base_delay=config.GROWI_RETRY_BASE_DELAY,
        backoff="linear",
    )
