"""
Unit tests for the Growi page fetchers
"""

import httpx
import pytest
from core.config import Settings
from core.exceptions import (
    ConfigurationError,
    RetriesExhaustedError,
    TransportError,
    UpstreamShapeError,
    UpstreamStatusError,
)
from ingestion.extractors.growi_client import (
    GrowiPageRequest,
    GrowiPrivateClient,
    GrowiPublicClient,
    RetryingPageFetcher,
    retry_policy_from_settings,
)
from ingestion.retry import RetryPolicy
from schemas.growi import GrowiPrivatePage, GrowiPublicPage, PageVariant


def mock_client(responses, seen=None):
    """AsyncClient whose transport replays ``responses`` in order."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def request_for(page: int = 1, per_page: int = 100, **kwargs) -> GrowiPageRequest:
    return GrowiPageRequest(
        start_date="01/01/2025",
        end_date="01/31/2025",
        page=page,
        per_page=per_page,
        **kwargs
    )


class TestGrowiPrivateClient:

    @pytest.mark.asyncio
    async def test_fetch_page_success(self, make_private_page, make_private_row):
        seen = []
        payload = make_private_page([make_private_row(1), make_private_row(2)], page_count=3, next_page=2)
        client = GrowiPrivateClient(
            "secret-token",
            api_base_url="https://api.growi.test/",
            organization_slug="acme-123",
            client=mock_client([httpx.Response(200, json=payload)], seen),
        )

        page = await client.fetch_page(request_for(page=1, per_page=50))

        assert isinstance(page, GrowiPrivatePage)
        assert len(page.records) == 2
        assert page.has_more_pages() is True
        assert page.next_page_number() == 2

        sent = seen[0]
        assert sent.url.path == "/api/v1/organizations/acme-123/user_contents"
        assert sent.url.params["start_date"] == "01/01/2025"
        assert sent.url.params["page"] == "1"
        assert sent.url.params["per_page"] == "50"
        assert sent.url.params["sort_by"] == "view_count"
        assert sent.url.params["organization_id"] == "acme-123"
        assert sent.headers["authorization"] == "Bearer secret-token"

    def test_blank_credential_rejected(self):
        with pytest.raises(ConfigurationError):
            GrowiPrivateClient("   ")
        with pytest.raises(ConfigurationError):
            GrowiPrivateClient(None)

    @pytest.mark.asyncio
    async def test_per_page_above_limit_rejected_before_request(self):
        seen = []
        client = GrowiPrivateClient("token", client=mock_client([], seen))

        with pytest.raises(ConfigurationError):
            await client.fetch_page(request_for(per_page=1001))
        assert seen == []

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        client = GrowiPrivateClient(
            "token",
            client=mock_client([httpx.Response(503, text="x" * 2000)]),
        )

        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.fetch_page(request_for())

        error = exc_info.value
        assert error.status_code == 503
        assert len(error.response_body) == 500
        assert error.context["page"] == 1

    @pytest.mark.asyncio
    async def test_large_error_body_is_truncated_in_message(self):
        html = "<html><body>" + "Not Found " * 2000 + "</body></html>"
        client = GrowiPrivateClient(
            "token",
            client=mock_client([httpx.Response(404, text=html)]),
        )

        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.fetch_page(request_for())

        error = exc_info.value
        assert len(html) > 20000
        assert len(error.message) <= 500
        assert error.message == html[:500]
        assert len(error.to_dict()["message"]) <= 500

    @pytest.mark.asyncio
    async def test_empty_error_body_uses_status(self):
        client = GrowiPrivateClient("token", client=mock_client([httpx.Response(401)]))

        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.fetch_page(request_for())

        assert exc_info.value.message == "HTTP 401"

    @pytest.mark.asyncio
    async def test_missing_field_is_shape_error(self, make_private_page, make_private_row):
        row = make_private_row(1)
        del row["share_url"]
        client = GrowiPrivateClient(
            "token",
            client=mock_client([httpx.Response(200, json=make_private_page([row]))]),
        )

        with pytest.raises(UpstreamShapeError) as exc_info:
            await client.fetch_page(request_for())

        assert exc_info.value.path == "data.0.share_url"
        assert "data.0.share_url" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_body_is_shape_error(self):
        client = GrowiPrivateClient(
            "token",
            client=mock_client([httpx.Response(200, text="<html>maintenance</html>")]),
        )

        with pytest.raises(UpstreamShapeError) as exc_info:
            await client.fetch_page(request_for())
        assert exc_info.value.path == "body"

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self):
        client = GrowiPrivateClient(
            "token",
            client=mock_client([httpx.ConnectError("connection refused")]),
        )

        with pytest.raises(TransportError) as exc_info:
            await client.fetch_page(request_for())
        assert exc_info.value.status_code == 0


class TestGrowiPublicClient:

    @pytest.mark.asyncio
    async def test_fetch_page_success(self, make_public_page, make_public_post):
        seen = []
        client = GrowiPublicClient(
            "public-key",
            client=mock_client(
                [httpx.Response(200, json=make_public_page([make_public_post(5)], page_count=2))],
                seen,
            ),
        )

        page = await client.fetch_page(request_for(per_page=25, include_gmv=True))

        assert isinstance(page, GrowiPublicPage)
        assert page.records[0].id == 5
        assert page.has_more_pages() is True
        assert seen[0].url.path == "/api/public/v1/stats/top_posts_by_views"
        assert seen[0].url.params["limit"] == "25"
        assert seen[0].url.params["include_gmv"] == "true"
        assert seen[0].headers["authorization"] == "Bearer public-key"

    @pytest.mark.parametrize("current_page, page_count, has_more, expected", [
        (1, 5, None, True),
        (1, 5, True, True),
        (1, 5, False, False),
        (5, 5, None, False),
        (6, 5, True, False),
        (1, 0, None, False),
    ])
    def test_public_pagination_signals(self, make_public_page, current_page, page_count, has_more, expected):
        page = GrowiPublicPage.model_validate(
            make_public_page([], current_page=current_page, page_count=page_count, has_more=has_more)
        )

        assert page.has_more_pages() is expected
        assert page.next_page_number() == current_page + 1

    def test_public_meta_accepts_formatted_integers(self, make_public_page):
        payload = make_public_page([])
        payload["meta"].update({"current_page": "1", "page_count": "1,200", "row_count": "24,000"})

        page = GrowiPublicPage.model_validate(payload)

        assert page.page_count == 1200
        assert page.row_count == 24000
        assert page.has_more_pages() is True

    @pytest.mark.asyncio
    async def test_success_false_is_shape_error(self, make_public_page):
        client = GrowiPublicClient(
            "public-key",
            client=mock_client([httpx.Response(200, json=make_public_page([], success=False))]),
        )

        with pytest.raises(UpstreamShapeError) as exc_info:
            await client.fetch_page(request_for())
        assert exc_info.value.path == "success"

    @pytest.mark.asyncio
    async def test_per_page_limit_is_100(self):
        client = GrowiPublicClient("public-key", client=mock_client([]))
        with pytest.raises(ConfigurationError):
            await client.fetch_page(request_for(per_page=101))


class TestRetryingPageFetcher:

    @pytest.mark.asyncio
    async def test_recovers_from_server_errors(self, fake_sleep, make_private_page, make_private_row):
        seen = []
        responses = [httpx.Response(500, text="oops") for _ in range(3)] + [
            httpx.Response(200, json=make_private_page([make_private_row(1)]))
        ]
        fetcher = RetryingPageFetcher(
            GrowiPrivateClient("token", client=mock_client(responses, seen)),
            RetryPolicy(max_attempts=4, base_delay=1.0),
            sleep=fake_sleep,
        )

        page = await fetcher.fetch_page(request_for())

        assert len(page.records) == 1
        assert len(seen) == 4
        assert fake_sleep.delays == [1.0, 2.0, 3.0]
        assert fetcher.variant is PageVariant.PRIVATE

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self, fake_sleep):
        seen = []
        fetcher = RetryingPageFetcher(
            GrowiPrivateClient("token", client=mock_client([httpx.Response(500) for _ in range(4)], seen)),
            RetryPolicy(max_attempts=4),
            sleep=fake_sleep,
        )

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await fetcher.fetch_page(request_for())

        assert len(seen) == 4
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_shape_error_is_requested_once(self, fake_sleep):
        seen = []
        fetcher = RetryingPageFetcher(
            GrowiPrivateClient("token", client=mock_client([httpx.Response(200, json={"data": []})], seen)),
            RetryPolicy(max_attempts=4),
            sleep=fake_sleep,
        )

        with pytest.raises(UpstreamShapeError):
            await fetcher.fetch_page(request_for())

        assert len(seen) == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_request_timeout_422_is_retried(self, fake_sleep, make_private_page):
        seen = []
        responses = [
            httpx.Response(422, json={"error": "Request timeout"}),
            httpx.Response(200, json=make_private_page([])),
        ]
        fetcher = RetryingPageFetcher(
            GrowiPrivateClient("token", client=mock_client(responses, seen)),
            sleep=fake_sleep,
        )

        page = await fetcher.fetch_page(request_for())

        assert page.records == []
        assert len(seen) == 2

    def test_policy_from_settings(self):
        policy = retry_policy_from_settings(Settings(GROWI_MAX_ATTEMPTS=3, GROWI_RETRY_BASE_DELAY=0.5))
        assert policy.max_attempts == 3
        assert policy.delay_after(2) == 1.0
