"""Tests for LLM menu extraction (OpenAI client mocked)."""

import json
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from app.services.extraction import (
    ExtractionError,
    MenuExtractor,
    czech_weekday,
    normalize_price,
    normalize_weekday,
    normalize_weight,
)

LLM_MENU = {
    "restaurant_name": "Restaurace U Lípy",
    "date": "2025-10-21",
    "day_of_week": "úterý",
    "menu_items": [
        {
            "category": "Polévka",
            "name": " Hovězí vývar s nudlemi ",
            "price": "45,-",
            "allergens": [1, 3, "9"],
            "weight": "0,3 L",
        },
        {"category": "Hlavní jídlo", "name": "Svíčková na smetaně", "price": 145},
        {"category": "", "name": "Bez kategorie", "price": 99},
        {"category": "dezert", "price": 60},
        "garbage",
    ],
    "daily_menu": False,
    "source_url": "https://elsewhere.test/",
}


def _client(content: str | None) -> SimpleNamespace:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    create = AsyncMock(return_value=response)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


async def _extract(extractor: MenuExtractor, images=None):
    return await extractor.extract(
        "Polévka 45 Kč",
        images,
        source_url="https://x.test/menu",
        target_date="2025-10-22",
        day_of_week="středa",
    )


def test_normalize_price() -> None:
    assert normalize_price("145,-") == 145.0
    assert normalize_price("145 Kč") == 145.0
    assert normalize_price("12,50 €") == 12.5
    assert normalize_price(89) == 89.0
    assert normalize_price("zdarma") == 0.0
    assert normalize_price(None) == 0.0
    # Thousands separators, whichever way round
    assert normalize_price("1.234,50 Kč") == 1234.5
    assert normalize_price("1,234.50 EUR") == 1234.5
    assert normalize_price("1 290 Kč") == 1290.0


def test_normalize_weight() -> None:
    assert normalize_weight("150 G") == "150g"
    assert normalize_weight(" 0,3 l ") == "0,3l"


def test_czech_weekday() -> None:
    assert czech_weekday(date(2025, 10, 20)) == "pondělí"
    assert czech_weekday(date(2025, 10, 22)) == "středa"
    assert czech_weekday(date(2025, 10, 26)) == "neděle"


@pytest.mark.parametrize("value", ["středa", "Wednesday", " ST ", "3"])
def test_normalize_weekday_aliases(value: str) -> None:
    assert normalize_weekday(value) == "středa"


def test_normalize_weekday_unknown_is_unchanged() -> None:
    assert normalize_weekday("svátek") == "svátek"
    assert normalize_weekday("7") == "neděle"


async def test_extract_normalizes_llm_output() -> None:
    client = _client(json.dumps(LLM_MENU, ensure_ascii=False))

    result = await _extract(MenuExtractor(client, model="gpt-4o"))

    assert result.restaurant_name == "Restaurace U Lípy"
    # Request metadata wins over whatever the model echoed back
    assert result.date == "2025-10-22"
    assert result.day_of_week == "středa"
    assert result.source_url == "https://x.test/menu"
    assert result.daily_menu is False

    assert [item.name for item in result.menu_items] == [
        "Hovězí vývar s nudlemi",
        "Svíčková na smetaně",
    ]
    soup = result.menu_items[0]
    assert soup.category == "polévka"
    assert soup.price == 45.0
    assert soup.allergens == ["1", "3", "9"]
    assert soup.weight == "0,3l"
    assert result.menu_items[1].allergens is None

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "Polévka 45 Kč" in kwargs["messages"][1]["content"]
    assert "středa" in kwargs["messages"][0]["content"]


async def test_extract_defaults_and_code_fences() -> None:
    client = _client('```json\n{"menu_items": []}\n```')

    result = await _extract(MenuExtractor(client))

    assert result.restaurant_name == "Unknown Restaurant"
    assert result.daily_menu is True
    assert result.menu_items == []


async def test_extract_truncates_long_text() -> None:
    client = _client("{}")
    extractor = MenuExtractor(client)

    await extractor.extract(
        "x" * 20_000,
        source_url="https://x.test/menu",
        target_date="2025-10-22",
        day_of_week="středa",
    )

    content = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert "x" * 12_000 + "..." in content
    assert "x" * 12_001 not in content


async def test_extract_sends_first_image_as_data_url() -> None:
    client = _client("{}")
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    extractor = MenuExtractor(client, http_client=http_client)

    await _extract(extractor, ["https://x.test/menu.png", "https://x.test/other.jpg"])

    assert requested == ["https://x.test/menu.png"]
    content = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")


async def test_extract_falls_back_to_text_when_image_download_fails() -> None:
    client = _client("{}")
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(404))
    )
    extractor = MenuExtractor(client, http_client=http_client)

    await _extract(extractor, ["https://x.test/menu.jpg"])

    content = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert isinstance(content, str)
    assert "Polévka 45 Kč" in content


async def test_extract_falls_back_to_text_when_image_url_is_invalid() -> None:
    client = _client("{}")
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"x"))
    )
    extractor = MenuExtractor(client, http_client=http_client)

    await _extract(extractor, ["http://x.test:notaport/menu.jpg"])

    content = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert isinstance(content, str)


@pytest.mark.parametrize("content", [None, "", "this is not json", "[1, 2, 3]"])
async def test_extract_unusable_response_raises(content) -> None:
    with pytest.raises(ExtractionError):
        await _extract(MenuExtractor(_client(content)))


async def test_extract_api_error_raises_extraction_error() -> None:
    from openai import APIConnectionError

    client = _client("{}")
    client.chat.completions.create.side_effect = APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )

    with pytest.raises(ExtractionError, match="OpenAI API error"):
        await _extract(MenuExtractor(client))


async def test_extract_logs_weekday_mismatch(caplog: pytest.LogCaptureFixture) -> None:
    # LLM_MENU answers for Tuesday, the request is for Wednesday
    client = _client(json.dumps(LLM_MENU, ensure_ascii=False))

    with caplog.at_level("INFO", logger="app.services.extraction"):
        menu = await _extract(MenuExtractor(client))

    assert menu.day_of_week == "středa"
    assert "LLM answered for úterý" in caplog.text


async def test_extract_weekday_alias_is_not_a_mismatch(caplog: pytest.LogCaptureFixture) -> None:
    client = _client(json.dumps({"day_of_week": "Wednesday"}))

    with caplog.at_level("INFO", logger="app.services.extraction"):
        await _extract(MenuExtractor(client))

    assert "LLM answered for" not in caplog.text
