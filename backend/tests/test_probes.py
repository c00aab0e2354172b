import httpx
import pytest

from geoaudit.core.config import settings
from geoaudit.services import brand_mentions, https_check, pagespeed, structured_data


def _patch_async_client(monkeypatch: pytest.MonkeyPatch, module, handler) -> None:
    transport = httpx.MockTransport(handler)
    real_async_client = httpx.AsyncClient

    class MockAsyncClient:
        def __init__(self, *args, **kwargs):
            kwargs.pop("transport", None)
            self._client = real_async_client(transport=transport, **kwargs)

        async def __aenter__(self):
            return self._client

        async def __aexit__(self, exc_type, exc, tb):
            await self._client.aclose()

    monkeypatch.setattr(module.httpx, "AsyncClient", MockAsyncClient)


def _pagespeed_payload(score=0.92, speed_index_ms=2345.0, viewport=1):
    return {
        "lighthouseResult": {
            "categories": {"performance": {"score": score}},
            "audits": {
                "speed-index": {"numericValue": speed_index_ms},
                "viewport": {"score": viewport},
            },
        }
    }


# HTTPS


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("example.com", "https://example.com"),
        ("  //example.com/path ", "https://example.com/path"),
        ("http://example.com", "http://example.com"),
        ("", ""),
    ],
)
def test_normalize_url(raw: str, expected: str) -> None:
    assert https_check.normalize_url(raw) == expected


@pytest.mark.anyio
async def test_https_probe_defaults_schemeless_to_secure() -> None:
    assert (await https_check.check_https("example.com")).secure is True
    assert (await https_check.check_https("http://example.com")).secure is False
    assert (await https_check.check_https("https://")).secure is False


# PageSpeed


def test_parse_pagespeed_rounds_and_converts() -> None:
    result = pagespeed.parse_pagespeed(_pagespeed_payload(score=0.925, speed_index_ms=2345.0, viewport=1))
    assert result.score == 93
    assert result.load_time == 2.3
    assert result.mobile_friendly is True
    assert result.fallback is False


def test_parse_pagespeed_viewport_not_passing() -> None:
    result = pagespeed.parse_pagespeed(_pagespeed_payload(viewport=0))
    assert result.mobile_friendly is False


@pytest.mark.anyio
async def test_pagespeed_probe_sends_mobile_strategy_and_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "google_api_key", "g-key")
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["strategy"] = request.url.params.get("strategy")
        seen["categories"] = request.url.params.get_list("category")
        seen["key"] = request.url.params.get("key")
        seen["url"] = request.url.params.get("url")
        return httpx.Response(200, json=_pagespeed_payload(), request=request)

    _patch_async_client(monkeypatch, pagespeed, handler)
    result = await pagespeed.check_performance("https://example.com")

    assert result.score == 92
    assert seen == {
        "strategy": "mobile",
        "categories": ["performance", "seo"],
        "key": "g-key",
        "url": "https://example.com",
    }


@pytest.mark.anyio
async def test_pagespeed_probe_falls_back_on_upstream_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"}, request=request)

    _patch_async_client(monkeypatch, pagespeed, handler)
    result = await pagespeed.check_performance("https://example.com")

    assert result == pagespeed.FALLBACK
    assert (result.score, result.load_time, result.mobile_friendly) == (50, 3.5, True)


@pytest.mark.anyio
async def test_pagespeed_probe_falls_back_on_malformed_body(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"lighthouseResult": {}}, request=request)

    _patch_async_client(monkeypatch, pagespeed, handler)
    assert await pagespeed.check_performance("https://example.com") == pagespeed.FALLBACK


# Structured data


def test_structured_data_needs_marker_and_known_type() -> None:
    page = '<script type="application/ld+json">{"@type": "Organization"}</script>'
    assert structured_data.has_structured_data(page) is True
    assert structured_data.has_structured_data('<script type="application/ld+json">{"@type":"Product"}</script>')
    assert structured_data.has_structured_data('{"@type": "Organization"}') is False
    assert structured_data.has_structured_data('<script type="application/ld+json">{"@type": "Recipe"}</script>') is False


def test_structured_data_ignores_unusual_spacing() -> None:
    page = '<script type="application/ld+json">{"@type" : "Organization"}</script>'
    assert structured_data.has_structured_data(page) is False


@pytest.mark.anyio
async def test_structured_data_probe_fetches_with_browser_user_agent(monkeypatch: pytest.MonkeyPatch) -> None:
    agents: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        agents.append(request.headers.get("User-Agent", ""))
        body = '<html><script type="application/ld+json">{"@type":"LocalBusiness"}</script></html>'
        return httpx.Response(200, text=body, request=request)

    _patch_async_client(monkeypatch, structured_data, handler)
    result = await structured_data.check_structured_data("https://example.com")

    assert result.present is True
    assert result.fallback is False
    assert agents == [structured_data.USER_AGENT]


@pytest.mark.anyio
async def test_structured_data_probe_falls_back_on_network_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    _patch_async_client(monkeypatch, structured_data, handler)
    assert await structured_data.check_structured_data("https://example.com") == structured_data.FALLBACK


# Brand mentions


@pytest.mark.parametrize(
    ("url", "domain"),
    [
        ("https://www.Example.com/about", "example.com"),
        ("shop.example.co.uk", "shop.example.co.uk"),
        ("", ""),
    ],
)
def test_extract_domain(url: str, domain: str) -> None:
    assert brand_mentions.extract_domain(url) == domain


def test_is_mentioned_matches_domain_or_first_label() -> None:
    assert brand_mentions.is_mentioned("Visit EXAMPLE.com today", "example.com") is True
    assert brand_mentions.is_mentioned("Example offers bikes", "example.com") is True
    assert brand_mentions.is_mentioned("Nothing relevant here", "example.com") is False
    assert brand_mentions.is_mentioned(None, "example.com") is False


@pytest.mark.anyio
async def test_chatgpt_probe_without_key_falls_back() -> None:
    result = await brand_mentions.check_chatgpt("https://example.com")
    assert result.mentioned is False
    assert result.fallback is True
    assert result.provider == brand_mentions.CHATGPT


@pytest.mark.anyio
async def test_chatgpt_probe_uses_answer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    prompts: list[str] = []

    async def fake_ask(prompt: str) -> str:
        prompts.append(prompt)
        return "Example.com sells handmade furniture."

    monkeypatch.setattr(brand_mentions, "ask_openai", fake_ask)
    result = await brand_mentions.check_chatgpt("https://www.example.com")

    assert result.mentioned is True
    assert result.fallback is False
    assert prompts == [brand_mentions.PROMPT_TEMPLATE.format(domain="example.com")]


@pytest.mark.anyio
async def test_chatgpt_probe_sdk_error_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")

    async def failing_ask(prompt: str) -> str:
        raise RuntimeError("quota exceeded")

    monkeypatch.setattr(brand_mentions, "ask_openai", failing_ask)
    result = await brand_mentions.check_chatgpt("https://example.com")

    assert result == brand_mentions.fallback(brand_mentions.CHATGPT)


@pytest.mark.anyio
async def test_gemini_probe_reads_first_candidate(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "gemini_api_key", "gm-key")
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("x-goog-api-key", "")
        payload = {"candidates": [{"content": {"parts": [{"text": "I have no data on that site."}]}}]}
        return httpx.Response(200, json=payload, request=request)

    _patch_async_client(monkeypatch, brand_mentions, handler)
    result = await brand_mentions.check_gemini("https://acme.pl")

    assert result.mentioned is False
    assert result.fallback is False
    assert seen["path"].endswith(f"/{settings.gemini_model}:generateContent")
    assert seen["key"] == "gm-key"


@pytest.mark.anyio
async def test_gemini_probe_unexpected_shape_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "gemini_api_key", "gm-key")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []}, request=request)

    _patch_async_client(monkeypatch, brand_mentions, handler)
    result = await brand_mentions.check_gemini("https://acme.pl")

    assert result.fallback is True
    assert result.mentioned is False
